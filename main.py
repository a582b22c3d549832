#!/usr/bin/env python3
"""Command-line entry point: run the two research tools without the HTTP server."""

import argparse
import json
import sys

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from config.config import Config
from models.document import RetrievalRequest, SourceKind
from orchestrator.retrieval import RetrievalOrchestrator
from tools.web.contracts import SearchParams
from tools.web.factory import create_search_service_from_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ResearchRelay command-line tools")
    subcommands = parser.add_subparsers(dest="command", required=True)

    search = subcommands.add_parser("search", help="Run a web search")
    search.add_argument("query", help="Search query")
    search.add_argument("--exact", dest="exact_terms", help="Phrase every result must contain")
    search.add_argument("--exclude", dest="exclude_terms", help="Words no result may contain")
    search.add_argument("--start", type=int, help="1-based index of the first result (max 100)")

    fetch = subcommands.add_parser("fetch", help="Fetch readable content for a URL")
    fetch.add_argument("url", help="URL to fetch")
    fetch.add_argument(
        "--hint",
        choices=[kind.value for kind in SourceKind],
        help="Advisory source kind, e.g. from a search result",
    )

    return parser


def run_search(config: Config, args: argparse.Namespace) -> int:
    try:
        params = SearchParams(
            query=args.query, exact_terms=args.exact_terms, exclude_terms=args.exclude_terms, start=args.start
        )
        orchestrator = RetrievalOrchestrator.from_config(config)
        service = create_search_service_from_config(config, orchestrator.identifier)
    except (ValueError, ModuleNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        response = service.search(params)
    finally:
        service.close()
        orchestrator.close()

    if not response.ok:
        print(f"Search failed: {response.error}", file=sys.stderr)
        return 1
    print(json.dumps([result.to_dict() for result in response.results], indent=2, ensure_ascii=False))
    return 0


def run_fetch(config: Config, args: argparse.Namespace) -> int:
    orchestrator = RetrievalOrchestrator.from_config(config)
    try:
        result = orchestrator.retrieve(
            RetrievalRequest(url=args.url, source_hint=SourceKind(args.hint) if args.hint else None)
        )
    finally:
        orchestrator.close()

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.is_success else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = Config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.command == "search":
        return run_search(config, args)
    return run_fetch(config, args)


if __name__ == "__main__":
    sys.exit(main())
