from __future__ import annotations

"""Chat bubble rendering around a formatted fragment.

The fragment is injected as trusted markup; the cursor span is appended only
while the assistant is still writing.
"""

import html
import os
from typing import Any, Optional

from ..domain.format_models import FormattedMessage
from .formatter import ChatFormatter, get_formatter

DEFAULT_CURSOR_GLYPH = "|"


def cursor_glyph() -> str:
    return os.getenv("LEGALASSIST_CURSOR_GLYPH") or DEFAULT_CURSOR_GLYPH


def wrap_fragment(fragment: str, *, writing: bool = False, message_id: Optional[str] = None) -> str:
    attrs = 'class="chat-formatter"'
    if message_id:
        attrs += f' id="message-{html.escape(message_id, quote=True)}"'
    cursor = f'<span class="cursor">{html.escape(cursor_glyph())}</span>' if writing else ""
    return f"<div {attrs}>{fragment}{cursor}</div>"


def render_message(
    text: Any,
    writing: bool = False,
    message_id: Optional[str] = None,
    formatter: Optional[ChatFormatter] = None,
) -> FormattedMessage:
    fmt = formatter or get_formatter()
    fragment = fmt.format(text, writing)
    return FormattedMessage(
        message_id=message_id,
        fragment=fragment,
        writing=bool(writing),
        show_cursor=bool(writing),
        html=wrap_fragment(fragment, writing=writing, message_id=message_id),
    )
