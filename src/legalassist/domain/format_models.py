from __future__ import annotations

from typing import Any, List, Optional
from pydantic import BaseModel


class FormatRequest(BaseModel):
    # Left untyped so non-string payloads reach the formatter's own input check
    text: Any = None
    writing: bool = False
    message_id: Optional[str] = None


class StreamFormatRequest(BaseModel):
    chunks: List[str]
    message_id: Optional[str] = None


class FormattedMessage(BaseModel):
    message_id: Optional[str] = None
    fragment: str
    writing: bool = False
    show_cursor: bool = False
    html: str
