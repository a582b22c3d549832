"""Function-calling schemas for the two tools exposed to the agent."""

QUERY_SEARCH_TOOL = {
    "type": "function",
    "function": {
        "name": "query_search",
        "description": "Search the web. Returns an ordered list of results, each with a title, url, snippet and the source_kind that fetch_page will use for the url.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query."
                },
                "exact_terms": {
                    "type": "string",
                    "description": "A phrase that every result must contain."
                },
                "exclude_terms": {
                    "type": "string",
                    "description": "Words that must not appear in any result."
                },
                "start": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "description": "1-based index of the first result to return, for fetching later pages."
                },
            },
            "required": [
                "query",
            ],
            "additionalProperties": False
        },
    }
}

FETCH_PAGE_TOOL = {
    "type": "function",
    "function": {
        "name": "fetch_page",
        "description": "Fetch a url and return its readable text. Documentation, Q&A and discussion pages are read through their native sources; other pages go through generic article extraction. On failure returns a reason and message instead of a document.",
        "parameters": {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The url to fetch, usually taken from a query_search result."
                }
            },
            "required": [
                "url",
            ],
            "additionalProperties": False
        },
        "strict": True
    }
}

TOOLS = [QUERY_SEARCH_TOOL, FETCH_PAGE_TOOL]
