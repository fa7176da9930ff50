"""
Client for the FreshRSS Fever API.

The Fever API has a single endpoint. Every call is a form-encoded POST
carrying the account's API key, and the operation is selected by which
extra field is present in the form.
"""

import asyncio
import hashlib
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from config import Config
from errors import InvalidArgumentError, ProtocolError, TransportError
from utils import chunk_list, decode_body, describe_exception, split_ids

logger = logging.getLogger(__name__)


def derive_api_key(username: str, password: str) -> str:
    """Fever API key: MD5 hex digest of ``username:password``"""
    return hashlib.md5(f"{username}:{password}".encode("utf-8")).hexdigest()


class FeverClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_url: str,
        api_key: str,
        batch_size: Optional[int] = None,
    ):
        self.session = session
        self.url = f"{api_url}{Config.FEVER_PATH}"
        self.api_key = api_key
        self.batch_size = (
            Config.UNREAD_BATCH_SIZE if batch_size is None else batch_size
        )

    async def _request(self, fields: Dict[str, str]) -> Dict[str, Any]:
        """POST one Fever call and return the decoded envelope"""
        data = {"api_key": self.api_key, **fields}
        verb = ",".join(fields)

        logger.info(f"Making POST request to {self.url} ({verb})")

        try:
            async with self.session.post(self.url, data=data) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Fever request failed: {e!r}")
            raise TransportError(f"FreshRSS API error: {describe_exception(e)}") from e
        except UnicodeDecodeError as e:
            logger.error(f"Undecodable Fever response: {e}")
            raise TransportError(
                f"FreshRSS API error: undecodable response body ({e})", status=status
            ) from e

        logger.info(f"Response status: {status}")
        body = decode_body(text)

        if not 200 <= status < 300:
            detail = None
            if isinstance(body, dict):
                detail = body.get("error")
            if not detail:
                detail = f"Request failed with status code {status}"
            logger.error(f"API error response: {text[:200]}")
            raise TransportError(
                f"FreshRSS API error: {detail}", status=status, body=body
            )

        if not isinstance(body, dict) or not body.get("api_version"):
            logger.error(f"Invalid Fever response: {text[:200]}")
            raise ProtocolError(
                "FreshRSS API error: Invalid API response", status=status, body=body
            )

        # auth is 0 when the key does not match any account
        if body.get("auth") == 0:
            raise ProtocolError(
                "FreshRSS API error: Fever API rejected the credentials",
                status=status,
                body=body,
            )

        logger.debug(f"JSON response keys: {list(body.keys())}")
        return body

    async def list_subscriptions(self) -> Dict[str, Any]:
        """List subscribed feeds"""
        return await self._request({"feeds": ""})

    async def list_categories(self) -> Dict[str, Any]:
        """List feed groups"""
        return await self._request({"groups": ""})

    async def get_items_by_feed(self, feed_id: Any) -> Dict[str, Any]:
        """Get items for one feed.

        The server has been seen returning items from other feeds here, so
        the result is filtered again on feed_id and total_items adjusted.
        """
        try:
            numeric_id = str(int(str(feed_id).strip()))
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid feed_id: {feed_id!r}") from e

        result = await self._request({"items": "", "feed_ids": numeric_id})

        items = result.get("items")
        if isinstance(items, list):
            result["items"] = [
                item
                for item in items
                if isinstance(item, dict) and str(item.get("feed_id")) == numeric_id
            ]
            if "total_items" in result:
                result["total_items"] = len(result["items"])

        return result

    async def get_items_by_ids(self, item_ids: Sequence[str]) -> Dict[str, Any]:
        """Get specific items by id"""
        return await self._request(
            {"items": "", "with_ids": ",".join(str(i) for i in item_ids)}
        )

    async def mark_item_read(self, item_id: str) -> Dict[str, Any]:
        return await self._request({"mark": "item", "id": str(item_id), "as": "read"})

    async def mark_item_unread(self, item_id: str) -> Dict[str, Any]:
        return await self._request(
            {"mark": "item", "id": str(item_id), "as": "unread"}
        )

    async def mark_feed_read(self, feed_id: str) -> Dict[str, Any]:
        """Mark everything in a feed up to now as read"""
        return await self._request(
            {
                "mark": "feed",
                "id": str(feed_id),
                "as": "read",
                "before": str(int(time.time())),
            }
        )

    async def get_unread_items(self) -> Dict[str, Any]:
        """Get every unread item.

        Asking for ``items`` alone only returns a limited window, which
        can miss unread items from quieter feeds. Instead the full unread
        id list is fetched first, then the items are requested by id in
        batches, one batch at a time.
        """
        ids_resp = await self._request({"unread_item_ids": ""})
        unread_ids = split_ids(ids_resp.get("unread_item_ids"))

        batches = chunk_list(unread_ids, self.batch_size) if unread_ids else []
        logger.info(
            f"Fetching {len(unread_ids)} unread items in {len(batches)} batch(es)"
        )

        collected: List[Dict[str, Any]] = []
        for batch in batches:
            items_resp = await self._request(
                {"items": "", "with_ids": ",".join(batch)}
            )
            items = items_resp.get("items")
            if isinstance(items, list):
                collected.extend(items)

        # Compatibility shim: some server versions include read items even
        # when asked by unread id.
        items = [
            item
            for item in collected
            if isinstance(item, dict) and item.get("is_read") == 0
        ]
        if len(items) != len(collected):
            logger.debug(f"Dropped {len(collected) - len(items)} read item(s)")

        return {
            "api_version": ids_resp.get("api_version"),
            "auth": ids_resp.get("auth"),
            "last_refreshed_on_time": ids_resp.get("last_refreshed_on_time"),
            "total_items": len(items),
            "items": items,
        }
