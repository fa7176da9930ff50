import logging
import ssl
from typing import Any, Dict, Optional, Sequence

import aiohttp

from config import Config
from fever_client import FeverClient, derive_api_key
from greader_client import GReaderAuth, SubscriptionManager

logger = logging.getLogger(__name__)


class FreshRSSClient:
    """Single entry point for every FreshRSS operation.

    Reading and marking go through the Fever API; subscription and
    category management go through the Google Reader API. Use as an async
    context manager so the underlying HTTP session is opened and closed:

        async with FreshRSSClient() as client:
            unread = await client.get_unread_items()
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        self.api_url = (api_url or Config.FRESHRSS_API_URL or "").rstrip("/")
        self.username = username if username is not None else Config.FRESHRSS_USERNAME
        self.password = password if password is not None else Config.FRESHRSS_PASSWORD
        self.batch_size = batch_size
        self._api_key = derive_api_key(self.username or "", self.password or "")
        self.session: Optional[aiohttp.ClientSession] = None
        self._fever: Optional[FeverClient] = None
        self._subscriptions: Optional[SubscriptionManager] = None

    async def __aenter__(self):
        connector = None
        if not Config.VERIFY_SSL:
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
            connector = aiohttp.TCPConnector(ssl=ssl_context)

        timeout = aiohttp.ClientTimeout(total=Config.REQUEST_TIMEOUT)
        self.session = aiohttp.ClientSession(connector=connector, timeout=timeout)

        self._fever = FeverClient(
            self.session, self.api_url, self._api_key, batch_size=self.batch_size
        )
        auth = GReaderAuth(self.session, self.api_url, self.username, self.password)
        self._subscriptions = SubscriptionManager(auth)

        logger.info(f"FreshRSS client ready for {self.api_url} as {self.username}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    @property
    def fever(self) -> FeverClient:
        if self._fever is None:
            raise RuntimeError("FreshRSSClient must be used as an async context manager")
        return self._fever

    @property
    def subscriptions(self) -> SubscriptionManager:
        if self._subscriptions is None:
            raise RuntimeError("FreshRSSClient must be used as an async context manager")
        return self._subscriptions

    # Fever API

    async def list_subscriptions(self) -> Dict[str, Any]:
        return await self.fever.list_subscriptions()

    async def list_categories(self) -> Dict[str, Any]:
        return await self.fever.list_categories()

    async def get_unread_items(self) -> Dict[str, Any]:
        return await self.fever.get_unread_items()

    async def get_items_by_feed(self, feed_id: Any) -> Dict[str, Any]:
        return await self.fever.get_items_by_feed(feed_id)

    async def get_items_by_ids(self, item_ids: Sequence[str]) -> Dict[str, Any]:
        return await self.fever.get_items_by_ids(item_ids)

    async def mark_item_read(self, item_id: str) -> Dict[str, Any]:
        return await self.fever.mark_item_read(item_id)

    async def mark_item_unread(self, item_id: str) -> Dict[str, Any]:
        return await self.fever.mark_item_unread(item_id)

    async def mark_feed_read(self, feed_id: str) -> Dict[str, Any]:
        return await self.fever.mark_feed_read(feed_id)

    # Google Reader API

    async def subscribe_feed(
        self, feed_url: str, category_name: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.subscriptions.subscribe_feed(feed_url, category_name)

    async def create_category(self, category_name: str) -> Dict[str, Any]:
        return await self.subscriptions.create_category(category_name)

    async def unsubscribe_feed(self, feed_id: Any) -> None:
        await self.subscriptions.unsubscribe_feed(feed_id)
