import json
from collections.abc import Callable

import httpx
import pytest

from config.config import RedditCredentials


def json_response(status_code: int = 200, payload=None, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload if payload is not None else {}).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    """httpx client whose every request is answered by ``handler``; nothing leaves the process."""
    return httpx.Client(transport=httpx.MockTransport(handler), timeout=5.0)


@pytest.fixture
def make_http_client():
    clients = []

    def _make(handler):
        client = mock_http_client(handler)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()


@pytest.fixture
def reddit_credentials():
    return RedditCredentials(
        client_id="app-id",
        client_secret="app-secret",
        username="relay-bot",
        password="hunter2",
        user_agent="research-relay-tests/1.0",
    )


@pytest.fixture
def base_env():
    """Minimal environment: Google search configured, every optional source absent."""
    return {
        "SEARCH_PROVIDER": "google",
        "GOOGLE_SEARCH_ENGINE_ID": "engine-1",
        "GOOGLE_SEARCH_API_KEY": "google-key",
    }


MOUSEOVER_MD = """---
title: "Element: mouseover event"
short-title: mouseover
slug: Web/API/Element/mouseover_event
page-type: web-api-event
browser-compat: api.Element.mouseover_event
---

{{APIRef}}

The **`mouseover`** event is fired at an {{domxref("Element")}} when a pointing device
is used to move the cursor onto the element or one of its child elements.

## Syntax

Use the event name in methods like {{domxref("EventTarget.addEventListener", "addEventListener()")}}.

```js
addEventListener("mouseover", (event) => {});
```

## Examples

See the [`mouseout`](/en-US/docs/Web/API/Element/mouseout_event) page for a demo.

## Specifications

{{Specifications}}

## Browser compatibility

{{Compat}}
"""

LEGACY_HTML = """<h1>Ignored heading</h1>
<p>Old translated page about <code>Array</code>.</p>
<pre>const a = [];</pre>
"""


@pytest.fixture
def docs_corpus(tmp_path):
    """A tiny mdn/content-shaped checkout."""
    files = tmp_path / "files"

    page = files / "en-us" / "web" / "api" / "element" / "mouseover_event"
    page.mkdir(parents=True)
    (page / "index.md").write_text(MOUSEOVER_MD, encoding="utf-8")

    legacy = files / "fr" / "web" / "javascript" / "reference" / "global_objects" / "array"
    legacy.mkdir(parents=True)
    (legacy / "index.html").write_text(
        "---\ntitle: Array\nslug: Web/JavaScript/Reference/Global_Objects/Array\n---\n" + LEGACY_HTML,
        encoding="utf-8",
    )

    selector = files / "en-us" / "web" / "css" / "_colon_hover"
    selector.mkdir(parents=True)
    (selector / "index.md").write_text(
        "---\ntitle: \":hover\"\nslug: Web/CSS/:hover\n---\n\nThe **`:hover`** pseudo-class matches when the user hovers.\n",
        encoding="utf-8",
    )

    broken = files / "en-us" / "web" / "broken"
    broken.mkdir(parents=True)
    (broken / "index.md").write_text("No front-matter here, only text.\n", encoding="utf-8")

    untitled = files / "en-us" / "web" / "untitled"
    untitled.mkdir(parents=True)
    (untitled / "index.md").write_text("---\nslug: Web/Untitled\n---\n\nBody text.\n", encoding="utf-8")

    return tmp_path
