import json
import logging
from typing import Any, Dict, List

from errors import InvalidArgumentError
from freshrss_client import FreshRSSClient
from utils import split_ids

logger = logging.getLogger(__name__)


def _string_property(description: str) -> Dict[str, str]:
    return {"type": "string", "description": description}


TOOLS: List[Dict[str, Any]] = [
    {
        "name": "list_feeds",
        "description": "List all feed subscriptions",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_feed_groups",
        "description": "Get feed groups",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_unread",
        "description": "Get unread items",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_feed_items",
        "description": "Get items from a specific feed",
        "inputSchema": {
            "type": "object",
            "properties": {"feed_id": _string_property("Feed ID")},
            "required": ["feed_id"],
        },
    },
    {
        "name": "mark_item_read",
        "description": "Mark an item as read",
        "inputSchema": {
            "type": "object",
            "properties": {"item_id": _string_property("Item ID to mark as read")},
            "required": ["item_id"],
        },
    },
    {
        "name": "mark_item_unread",
        "description": "Mark an item as unread",
        "inputSchema": {
            "type": "object",
            "properties": {"item_id": _string_property("Item ID to mark as unread")},
            "required": ["item_id"],
        },
    },
    {
        "name": "mark_feed_read",
        "description": "Mark all items in a feed as read",
        "inputSchema": {
            "type": "object",
            "properties": {"feed_id": _string_property("Feed ID to mark as read")},
            "required": ["feed_id"],
        },
    },
    {
        "name": "get_items",
        "description": "Get specific items by their IDs",
        "inputSchema": {
            "type": "object",
            "properties": {
                "item_ids": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Array of item IDs to get",
                }
            },
            "required": ["item_ids"],
        },
    },
    {
        "name": "unsubscribe_feed",
        "description": "Unsubscribe from a feed (remove the feed subscription). "
        "Uses Google Reader API.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "feed_id": _string_property(
                    "Feed ID to unsubscribe from (same ID as in list_feeds)"
                )
            },
            "required": ["feed_id"],
        },
    },
    {
        "name": "create_category",
        "description": "Create a category (folder) in FreshRSS if it does not exist. "
        "Uses Google Reader API.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "category_name": _string_property(
                    "Name of the category/folder to create (e.g. 'AI')"
                )
            },
            "required": ["category_name"],
        },
    },
    {
        "name": "subscribe_feed",
        "description": "Subscribe to a feed by URL. Optionally place it in a "
        "category (folder); the category is created if it doesn't exist. "
        "Uses Google Reader API.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "feed_url": _string_property(
                    "Feed URL or site URL (e.g. https://example.com/feed.xml)"
                ),
                "category_name": _string_property(
                    "Optional category/folder name to put the feed in"
                ),
            },
            "required": ["feed_url"],
        },
    },
]

TOOL_NAMES = {tool["name"] for tool in TOOLS}


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def require(arguments: Dict[str, Any], name: str) -> Any:
    """Fetch a required tool argument or raise InvalidArgumentError"""
    value = arguments.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgumentError(f"Missing required argument: {name}")
    return value


async def list_feeds_tool(client: FreshRSSClient) -> str:
    """List all feed subscriptions"""
    return _to_json(await client.list_subscriptions())


async def get_feed_groups_tool(client: FreshRSSClient) -> str:
    """List feed groups"""
    return _to_json(await client.list_categories())


async def get_unread_tool(client: FreshRSSClient) -> str:
    """Get every unread item"""
    result = await client.get_unread_items()
    logger.info(f"Found {result['total_items']} unread items")
    return _to_json(result)


async def get_feed_items_tool(client: FreshRSSClient, feed_id: str) -> str:
    """Get items of one feed"""
    return _to_json(await client.get_items_by_feed(feed_id))


async def get_items_tool(client: FreshRSSClient, item_ids: Any) -> str:
    """Get specific items by id"""
    # Some agents send a comma-joined string instead of an array
    if isinstance(item_ids, str):
        item_ids = split_ids(item_ids)
    elif not isinstance(item_ids, list):
        raise InvalidArgumentError(
            f"item_ids must be an array of strings, got {type(item_ids).__name__}"
        )
    return _to_json(await client.get_items_by_ids([str(i) for i in item_ids]))


async def mark_item_read_tool(client: FreshRSSClient, item_id: str) -> str:
    await client.mark_item_read(item_id)
    return f"Successfully marked item {item_id} as read"


async def mark_item_unread_tool(client: FreshRSSClient, item_id: str) -> str:
    await client.mark_item_unread(item_id)
    return f"Successfully marked item {item_id} as unread"


async def mark_feed_read_tool(client: FreshRSSClient, feed_id: str) -> str:
    await client.mark_feed_read(feed_id)
    return f"Successfully marked all items in feed {feed_id} as read"


async def unsubscribe_feed_tool(client: FreshRSSClient, feed_id: str) -> str:
    await client.unsubscribe_feed(feed_id)
    return f"Successfully unsubscribed from feed {feed_id}"


async def create_category_tool(client: FreshRSSClient, category_name: str) -> str:
    """Create a category unless it already exists"""
    return _to_json(await client.create_category(category_name))


async def subscribe_feed_tool(
    client: FreshRSSClient, feed_url: str, category_name: Any = None
) -> str:
    """Subscribe to a feed; a rejected subscription is reported, not raised"""
    result = await client.subscribe_feed(feed_url, category_name or None)

    if result.get("error"):
        logger.warning(f"Subscribe to {feed_url} rejected: {result['error']}")
        return _to_json({"success": False, "error": result["error"]})

    details = {key: value for key, value in result.items() if value is not None}
    return _to_json({"success": True, **details})
