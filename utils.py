import json
from typing import Any, List, Sequence, TypeVar

T = TypeVar("T")

LABEL_PREFIX = "user/-/label/"


def chunk_list(items: Sequence[T], chunk_size: int) -> List[List[T]]:
    """Split a sequence into consecutive chunks of at most chunk_size items.

    A non-positive chunk_size yields the whole sequence as a single chunk.
    """
    if chunk_size <= 0:
        return [list(items)]
    return [list(items[i : i + chunk_size]) for i in range(0, len(items), chunk_size)]


def split_ids(raw: Any) -> List[str]:
    """Turn a comma-joined id string into a list, dropping blanks"""
    if raw is None:
        return []
    return [part.strip() for part in str(raw).split(",") if part.strip()]


def label_id(category_name: str) -> str:
    return f"{LABEL_PREFIX}{category_name}"


def feed_stream_id(feed: Any) -> str:
    return f"feed/{feed}"


def decode_body(text: str) -> Any:
    """Parse a response body as JSON, falling back to the raw text.

    FreshRSS is not consistent about Content-Type, so the body itself
    decides.
    """
    stripped = text.strip()
    if stripped.startswith("{") or stripped.startswith("["):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            pass
    return text


def error_detail(body: Any, fallback: str = "") -> str:
    """Pick the most useful message out of an upstream error body"""
    if isinstance(body, dict):
        detail = body.get("error") or body.get("message")
        if detail:
            return str(detail)
        return json.dumps(body)
    if isinstance(body, str) and body.strip():
        return body.strip()
    return fallback


def describe_exception(exc: BaseException) -> str:
    """Exception message, or its class name when the message is empty"""
    return str(exc) or type(exc).__name__
