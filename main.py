#!/usr/bin/env python3
"""
Minimal MCP server for FreshRSS (Fever + Google Reader APIs)
"""

import asyncio
import json
import sys
import logging
from typing import Dict, Any
from config import Config
from errors import FreshRSSError, InvalidArgumentError
from freshrss_client import FreshRSSClient
from tools import (
    TOOLS,
    TOOL_NAMES,
    require,
    list_feeds_tool,
    get_feed_groups_tool,
    get_unread_tool,
    get_feed_items_tool,
    get_items_tool,
    mark_item_read_tool,
    mark_item_unread_tool,
    mark_feed_read_tool,
    unsubscribe_feed_tool,
    create_category_tool,
    subscribe_feed_tool,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "freshrss-server", "version": "0.1.0"}

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class MinimalMCPServer:
    def __init__(self, client: FreshRSSClient):
        self.client = client

    async def send_response(self, response: Dict[str, Any]):
        """Send JSON response to stdout"""
        json_str = json.dumps(response)
        print(json_str, flush=True)

    async def handle_message(self, message: Dict[str, Any]):
        """Handle incoming message"""
        method = message.get("method", "")
        params = message.get("params") or {}

        # Notifications carry no id and expect no answer
        if "id" not in message:
            logger.debug(f"Received notification: {method}")
            return

        msg_id = message.get("id")
        logger.info(f"Received method: {method}")

        try:
            if method == "initialize":
                await self.handle_initialize(msg_id, params)
            elif method == "ping":
                await self.send_result(msg_id, {})
            elif method == "tools/list":
                await self.handle_list_tools(msg_id)
            elif method == "tools/call":
                await self.handle_call_tool(msg_id, params)
            else:
                await self.send_error(msg_id, METHOD_NOT_FOUND, f"Unknown method: {method}")

        except Exception as e:
            logger.error(f"Error handling {method}: {e}", exc_info=True)
            await self.send_error(msg_id, INTERNAL_ERROR, str(e))

    async def handle_initialize(self, msg_id: Any, params: Dict):
        """Handle initialize"""
        await self.send_result(
            msg_id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": SERVER_INFO,
            },
        )

    async def handle_list_tools(self, msg_id: Any):
        """List available tools"""
        await self.send_result(msg_id, {"tools": TOOLS})

    async def handle_call_tool(self, msg_id: Any, params: Dict):
        """Handle tool call"""
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}

        if tool_name not in TOOL_NAMES:
            await self.send_error(msg_id, METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")
            return

        logger.info(f"Calling tool: {tool_name}")
        client = self.client

        try:
            if tool_name == "list_feeds":
                result = await list_feeds_tool(client)
            elif tool_name == "get_feed_groups":
                result = await get_feed_groups_tool(client)
            elif tool_name == "get_unread":
                result = await get_unread_tool(client)
            elif tool_name == "get_feed_items":
                feed_id = require(arguments, "feed_id")
                result = await get_feed_items_tool(client, feed_id)
            elif tool_name == "get_items":
                item_ids = require(arguments, "item_ids")
                result = await get_items_tool(client, item_ids)
            elif tool_name == "mark_item_read":
                item_id = require(arguments, "item_id")
                result = await mark_item_read_tool(client, item_id)
            elif tool_name == "mark_item_unread":
                item_id = require(arguments, "item_id")
                result = await mark_item_unread_tool(client, item_id)
            elif tool_name == "mark_feed_read":
                feed_id = require(arguments, "feed_id")
                result = await mark_feed_read_tool(client, feed_id)
            elif tool_name == "unsubscribe_feed":
                feed_id = require(arguments, "feed_id")
                result = await unsubscribe_feed_tool(client, feed_id)
            elif tool_name == "create_category":
                category_name = require(arguments, "category_name")
                result = await create_category_tool(client, category_name)
            else:
                feed_url = require(arguments, "feed_url")
                category_name = arguments.get("category_name")
                result = await subscribe_feed_tool(client, feed_url, category_name)

        except InvalidArgumentError as e:
            logger.warning(f"Invalid arguments for {tool_name}: {e}")
            await self.send_error(msg_id, INVALID_PARAMS, str(e))
            return
        except FreshRSSError as e:
            logger.error(f"Tool error: {e}")
            await self.send_error(msg_id, INTERNAL_ERROR, str(e))
            return

        await self.send_result(
            msg_id, {"content": [{"type": "text", "text": result}]}
        )

    async def send_result(self, msg_id: Any, result: Dict[str, Any]):
        await self.send_response({"jsonrpc": "2.0", "id": msg_id, "result": result})

    async def send_error(self, msg_id: Any, code: int, message: str):
        """Send error response"""
        response = {
            "jsonrpc": "2.0",
            "id": msg_id,
            "error": {"code": code, "message": message},
        }
        await self.send_response(response)

    async def handle_line(self, line: bytes):
        line_str = line.decode().strip()
        if not line_str:
            return

        try:
            message = json.loads(line_str)
        except json.JSONDecodeError:
            logger.error(f"Invalid JSON: {line_str}")
            return

        if not isinstance(message, dict):
            logger.error(f"Ignoring non-object message: {line_str}")
            return

        await self.handle_message(message)

    async def run(self):
        """Main server loop"""
        logger.info("FreshRSS MCP server running on stdio")

        # Read from stdin
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)

        await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)

        while True:
            try:
                line = await reader.readline()
                if not line:
                    break

                await self.handle_line(line)

            except Exception as e:
                logger.error(f"Server loop error: {e}")


async def main():
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    async with FreshRSSClient() as client:
        server = MinimalMCPServer(client)
        await server.run()


def run_server():
    asyncio.run(main())


if __name__ == "__main__":
    run_server()
