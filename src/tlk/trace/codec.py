"""Payload decoding helpers.

Captured payloads arrive as base64 text in trace documents and are held as
bytes in the model. Display code turns them into text and, where they hold
JSON, into indented JSON.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Optional

logger = logging.getLogger(__name__)

JSON_INDENT = 2


def _reject_constant(name: str) -> float:
    raise ValueError(f"{name} is not valid JSON")


def decode_base64(data: Optional[str]) -> Optional[bytes]:
    """Decode a base64 payload; None stays None."""
    if data is None:
        return None
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"payload is not valid base64: {e}") from e


def decode_text(data: Optional[bytes]) -> str:
    """Decode payload bytes as UTF-8, replacing undecodable sequences."""
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def pretty_json(raw: str, indent: int = JSON_INDENT) -> str:
    """Re-indent ``raw`` if it parses as JSON, otherwise return it unchanged."""
    try:
        parsed = json.loads(raw, parse_constant=_reject_constant)
    except (json.JSONDecodeError, ValueError):
        logger.debug("Payload is not JSON, showing raw text (%d chars)", len(raw))
        return raw
    return json.dumps(parsed, indent=indent, ensure_ascii=False)
