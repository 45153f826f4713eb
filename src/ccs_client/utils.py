"""
Utility functions for the Crawl Column Store client.

Includes timestamp helpers and the NDJSON record parsing used by the CLI.
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, TextIO

from .errors import InvalidInput
from .models import CrawlRecord


def microseconds(milliseconds: int) -> int:
    """Convert a millisecond epoch timestamp to microseconds."""
    return int(milliseconds) * 1000


def fourteen_digit_date(milliseconds: int) -> str:
    """Format an epoch-millisecond timestamp as UTC ``YYYYMMDDHHMMSS``.

    Raises:
        InvalidInput: if the timestamp falls outside what datetime can represent.
    """
    try:
        dt = datetime.fromtimestamp(milliseconds / 1000.0, tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as e:
        raise InvalidInput(f"Timestamp {milliseconds} ms is out of range: {e}") from e
    return dt.strftime("%Y%m%d%H%M%S")


def _decode_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    return base64.b64decode(value)


def record_from_dict(obj: Dict[str, Any]) -> CrawlRecord:
    """Build a CrawlRecord from a JSON object; request/response are base64."""
    data = dict(obj)
    data["request"] = _decode_bytes(data.get("request"))
    data["response"] = _decode_bytes(data.get("response"))
    return CrawlRecord(**data)


def iter_ndjson_records(fh: TextIO) -> Iterator[CrawlRecord]:
    """Yield CrawlRecords from a newline-delimited JSON stream, skipping blanks."""
    for line in fh:
        line = line.strip()
        if not line:
            continue
        yield record_from_dict(json.loads(line))
