"""In-process stand-in for a FreshRSS instance (Fever + Google Reader)."""

import asyncio
import contextlib
import itertools
from typing import Any, Callable, Dict, List, Optional

from aiohttp import web
from aiohttp.test_utils import TestServer

from fever_client import derive_api_key
from freshrss_client import FreshRSSClient

USERNAME = "alice"
PASSWORD = "secret"


def make_item(item_id, feed_id=1, is_read=0, **extra) -> Dict[str, Any]:
    item = {
        "id": int(item_id),
        "feed_id": feed_id,
        "title": f"Item {item_id}",
        "author": "",
        "html": f"<p>Body {item_id}</p>",
        "url": f"https://example.com/{item_id}",
        "is_saved": 0,
        "is_read": is_read,
        "created_on_time": 1700000000 + int(item_id),
    }
    item.update(extra)
    return item


class FakeFreshRSS:
    def __init__(self):
        self.api_key = derive_api_key(USERNAME, PASSWORD)
        self.items: Dict[str, Dict[str, Any]] = {}
        self.feeds = [{"id": 1, "title": "Example", "url": "https://example.com/feed"}]
        self.groups = [{"id": 1, "title": "News"}]
        self.tags: List[Dict[str, Any]] = [
            {"id": "user/-/state/com.google/starred"},
            {"id": "user/-/label/News", "type": "folder"},
        ]

        # Overrides for the next responses
        self.unread_item_ids: Optional[str] = None
        self.fever_hook: Optional[Callable[[Dict[str, str]], Optional[web.Response]]] = None
        self.login_body: Any = None
        self.edit_token_body: Optional[str] = None
        self.token_response: Optional[web.Response] = None
        self.tag_list_response: Optional[web.Response] = None
        self.edit_response: Any = None
        self.max_items_per_call = 50

        # Recorded traffic
        self.fever_calls: List[Dict[str, str]] = []
        self.logins: List[Dict[str, str]] = []
        self.token_requests: List[str] = []
        self.tag_list_requests: List[Dict[str, str]] = []
        self.edits: List[Dict[str, str]] = []
        self.max_in_flight = 0

        self._sessions: Dict[str, str] = {}
        self._counter = itertools.count(1)
        self._in_flight = 0

    def add_items(self, *items):
        for item in items:
            self.items[str(item["id"])] = item

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/fever.php", self.fever)
        app.router.add_post("/api/greader.php/accounts/ClientLogin", self.client_login)
        app.router.add_get("/api/greader.php/reader/api/0/token", self.token)
        app.router.add_get("/api/greader.php/reader/api/0/tag/list", self.tag_list)
        app.router.add_post(
            "/api/greader.php/reader/api/0/subscription/edit", self.subscription_edit
        )
        return app

    # Fever

    def _envelope(self, form: Dict[str, str]) -> Dict[str, Any]:
        return {
            "api_version": 3,
            "auth": 1 if form.get("api_key") == self.api_key else 0,
            "last_refreshed_on_time": 1700000500,
        }

    async def fever(self, request: web.Request) -> web.Response:
        form = dict(await request.post())
        self.fever_calls.append(form)

        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await asyncio.sleep(0.01)
        finally:
            self._in_flight -= 1

        if self.fever_hook is not None:
            response = self.fever_hook(form)
            if response is not None:
                return response

        envelope = self._envelope(form)
        if not envelope["auth"]:
            return web.json_response(envelope)

        if "feeds" in form:
            envelope["feeds"] = self.feeds
            envelope["feeds_groups"] = []
        elif "groups" in form:
            envelope["groups"] = self.groups
            envelope["feeds_groups"] = []
        elif "unread_item_ids" in form:
            if self.unread_item_ids is not None:
                envelope["unread_item_ids"] = self.unread_item_ids
            else:
                envelope["unread_item_ids"] = ",".join(
                    key for key, item in self.items.items() if item["is_read"] == 0
                )
        elif "items" in form:
            if "with_ids" in form:
                ids = [i for i in form["with_ids"].split(",") if i]
                items = [self.items[i] for i in ids if i in self.items]
            else:
                # feed_ids is ignored on purpose: the real server has been
                # seen leaking other feeds' items into filtered responses.
                items = list(self.items.values())
            envelope["items"] = items[: self.max_items_per_call]
            envelope["total_items"] = len(self.items)
        elif "mark" in form:
            item = self.items.get(form.get("id", ""))
            if form["mark"] == "item" and item is not None:
                item["is_read"] = 1 if form.get("as") == "read" else 0

        return web.json_response(envelope)

    # Google Reader

    def _authorized(self, request: web.Request) -> Optional[str]:
        header = request.headers.get("Authorization", "")
        prefix = "GoogleLogin auth="
        if header.startswith(prefix) and header[len(prefix):] in self._sessions:
            return header[len(prefix):]
        return None

    async def client_login(self, request: web.Request) -> web.Response:
        form = dict(await request.post())
        self.logins.append(form)

        if form.get("Email") != USERNAME or form.get("Passwd") != PASSWORD:
            return web.Response(status=401, text="Unauthorized!")

        n = next(self._counter)
        auth = f"{USERNAME}/auth{n}"
        self._sessions[auth] = f"edit{n}"

        body = self.login_body
        if isinstance(body, bytes):
            return web.Response(body=body, content_type="text/plain", charset="utf-8")
        if body is None:
            body = f"SID={auth}\nLSID=null\nAuth={auth}\n"
        return web.Response(text=body, content_type="text/plain")

    async def token(self, request: web.Request) -> web.Response:
        self.token_requests.append(request.headers.get("Authorization", ""))
        auth = self._authorized(request)
        if auth is None:
            return web.Response(status=401, text="Unauthorized!")

        if self.token_response is not None:
            return self.token_response

        body = self.edit_token_body
        if body is None:
            body = f"  {self._sessions[auth]}\n"
        return web.Response(text=body, content_type="text/plain")

    async def tag_list(self, request: web.Request) -> web.Response:
        self.tag_list_requests.append(dict(request.query))
        if self._authorized(request) is None:
            return web.Response(status=401, text="Unauthorized!")
        if self.tag_list_response is not None:
            return self.tag_list_response
        return web.json_response({"tags": self.tags})

    async def subscription_edit(self, request: web.Request) -> web.Response:
        form = dict(await request.post())
        auth = self._authorized(request)
        form["_auth"] = auth or ""
        self.edits.append(form)

        if auth is None or form.get("T") != self._sessions[auth]:
            return web.Response(status=401, text="Unauthorized!")

        if self.edit_response is not None:
            response, self.edit_response = self.edit_response, None
            if callable(response):
                return await response(request)
            return response

        if form.get("ac") == "subscribe" and form.get("a"):
            if not any(tag["id"] == form["a"] for tag in self.tags):
                self.tags.append({"id": form["a"], "type": "folder"})

        return web.Response(text="OK", content_type="text/plain")


@contextlib.asynccontextmanager
async def serve(fake: FakeFreshRSS):
    server = TestServer(fake.app(), host="127.0.0.1")
    await server.start_server()
    try:
        yield f"http://127.0.0.1:{server.port}"
    finally:
        await server.close()


@contextlib.asynccontextmanager
async def connected(fake: FakeFreshRSS, password: str = PASSWORD, **kwargs):
    async with serve(fake) as base_url:
        async with FreshRSSClient(base_url + "/", USERNAME, password, **kwargs) as client:
            yield client
