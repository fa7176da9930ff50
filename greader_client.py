"""
Google Reader compatible API for FreshRSS.

The Fever API cannot subscribe, unsubscribe or create folders, so those
operations go through greader.php instead. Each operation logs in from
scratch: ClientLogin for an auth token, then /token for an edit token.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

import aiohttp

from config import Config
from errors import (
    FreshRSSError,
    MissingTokenError,
    ProtocolError,
    SessionError,
    TransportError,
)
from utils import decode_body, describe_exception, error_detail, feed_stream_id, label_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GReaderSession:
    auth_token: str
    edit_token: str
    base_url: str

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"GoogleLogin auth={self.auth_token}"}

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}/reader/api/0/{endpoint}"


async def _call(
    http: aiohttp.ClientSession,
    method: str,
    url: str,
    failure: str,
    error_cls: Type[FreshRSSError] = TransportError,
    check_status: bool = True,
    **kwargs,
) -> Tuple[int, Any]:
    """Issue one request and return (status, decoded body).

    Network errors, and non-2xx statuses when check_status is set, are
    raised as error_cls with the failing step as message prefix.
    """
    logger.info(f"Making {method} request to {url}")

    try:
        async with http.request(method, url, **kwargs) as resp:
            status = resp.status
            text = await resp.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"{failure}: {e!r}")
        raise error_cls(f"{failure}: {describe_exception(e)}") from e
    except UnicodeDecodeError as e:
        logger.error(f"{failure}: undecodable response body ({e})")
        raise error_cls(
            f"{failure}: undecodable response body ({e})", status=status
        ) from e

    logger.info(f"Response status: {status}")
    body = decode_body(text)

    if check_status and not 200 <= status < 300:
        detail = error_detail(body, f"Request failed with status code {status}")
        logger.error(f"{failure}: {status} - {text[:200]}")
        raise error_cls(f"{failure}: {detail}", status=status, body=body)

    return status, body


def parse_auth_token(text: str) -> str:
    """Extract the token from the ``Auth=`` line of a ClientLogin response"""
    for line in text.split("\n"):
        line = line.strip()
        if line.startswith("Auth="):
            token = line[5:].strip()
            if token:
                return token

    raise MissingTokenError(
        "FreshRSS Google Reader: no Auth token in login response", body=text
    )


class GReaderAuth:
    """Two-step Google Reader login, performed again for every operation."""

    def __init__(
        self,
        http: aiohttp.ClientSession,
        api_url: str,
        username: str,
        password: str,
    ):
        self.http = http
        self.base_url = f"{api_url}{Config.GREADER_PATH}"
        self.username = username
        self.password = password

    async def login(self) -> GReaderSession:
        auth_token = await self._client_login()
        edit_token = await self._fetch_edit_token(auth_token)
        return GReaderSession(
            auth_token=auth_token, edit_token=edit_token, base_url=self.base_url
        )

    async def _client_login(self) -> str:
        logger.info(f"Authenticating user: {self.username}")

        _, body = await _call(
            self.http,
            "POST",
            f"{self.base_url}/accounts/ClientLogin",
            "FreshRSS Google Reader login failed",
            error_cls=SessionError,
            data={"Email": self.username, "Passwd": self.password},
        )

        auth_token = parse_auth_token(body if isinstance(body, str) else str(body))
        logger.info(f"Got auth token: {auth_token[:10]}...")
        return auth_token

    async def _fetch_edit_token(self, auth_token: str) -> str:
        _, body = await _call(
            self.http,
            "GET",
            f"{self.base_url}/reader/api/0/token",
            "FreshRSS Google Reader token failed",
            error_cls=SessionError,
            headers={"Authorization": f"GoogleLogin auth={auth_token}"},
        )

        edit_token = "".join(body.split()) if isinstance(body, str) else ""
        if not edit_token:
            raise MissingTokenError(
                "FreshRSS Google Reader: no edit token returned", body=body
            )
        return edit_token


class SubscriptionManager:
    """Subscribe, unsubscribe and create categories over Google Reader."""

    def __init__(self, auth: GReaderAuth, placeholder_feed: Optional[str] = None):
        self.auth = auth
        self.placeholder_feed = placeholder_feed or Config.PLACEHOLDER_FEED_URL

    async def _edit_subscription(
        self,
        session: GReaderSession,
        form: Dict[str, str],
        failure: str,
        check_status: bool = True,
    ) -> Tuple[int, Any]:
        return await _call(
            self.auth.http,
            "POST",
            session.url("subscription/edit"),
            failure,
            check_status=check_status,
            headers=session.headers,
            data={**form, "T": session.edit_token},
        )

    async def subscribe_feed(
        self, feed_url: str, category_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Subscribe to a feed, optionally filing it under a category.

        FreshRSS creates the category on the fly when the label does not
        exist yet. A rejected subscription is returned as ``{"error": msg}``
        rather than raised.

        Returns:
            Dict with feedId, title, numResults and error
        """
        session = await self.auth.login()

        form = {"ac": "subscribe", "s": feed_stream_id(feed_url)}
        if category_name:
            form["a"] = label_id(category_name)

        logger.info(f"Subscribing to {feed_url} (category: {category_name})")
        status, body = await self._edit_subscription(
            session, form, "FreshRSS subscribe failed", check_status=False
        )

        if status != 200:
            message = error_detail(body, f"Request failed with status code {status}")
            logger.warning(f"Subscription rejected: {status} - {message}")
            return {"error": message}

        # subscription/edit answers a plain "OK"; quickadd-style servers
        # answer JSON describing the new stream.
        if isinstance(body, str):
            if body.strip() == "OK":
                return {"feedId": None, "title": None, "numResults": 1, "error": None}
            return {"error": f"Unexpected response: {body.strip()[:200]}"}

        if not isinstance(body, dict):
            return {"error": f"Unexpected response: {str(body)[:200]}"}

        return {
            "feedId": body.get("streamId")
            if body.get("streamId") is not None
            else body.get("feedId"),
            "title": body.get("streamName")
            if body.get("streamName") is not None
            else body.get("title"),
            "numResults": body.get("numResults"),
            "error": body.get("error"),
        }

    async def create_category(self, category_name: str) -> Dict[str, Any]:
        """Make sure a category exists.

        There is no endpoint to create an empty folder, so a missing
        category is created by subscribing a placeholder feed into it. The
        existence check must run first, otherwise every call would add the
        placeholder feed again.
        """
        session = await self.auth.login()
        label = label_id(category_name)

        _, body = await _call(
            self.auth.http,
            "GET",
            session.url("tag/list"),
            "FreshRSS tag list failed",
            headers=session.headers,
            params={"output": "json"},
        )
        if not isinstance(body, dict):
            raise ProtocolError(
                "FreshRSS tag list failed: unexpected response", body=body
            )

        tags = body.get("tags") or []
        if any(isinstance(tag, dict) and tag.get("id") == label for tag in tags):
            logger.info(f"Category {category_name!r} already exists")
            return {
                "created": False,
                "message": f'Category "{category_name}" already exists.',
            }

        logger.info(f"Creating category {category_name!r} via {self.placeholder_feed}")
        await self._edit_subscription(
            session,
            {"ac": "subscribe", "s": feed_stream_id(self.placeholder_feed), "a": label},
            "FreshRSS create category failed",
        )

        return {"created": True, "message": f'Category "{category_name}" created.'}

    async def unsubscribe_feed(self, feed_id: Any) -> None:
        """Remove a feed subscription"""
        session = await self.auth.login()

        logger.info(f"Unsubscribing from feed {feed_id}")
        await self._edit_subscription(
            session,
            {"ac": "unsubscribe", "s": feed_stream_id(feed_id)},
            "FreshRSS unsubscribe failed",
        )
