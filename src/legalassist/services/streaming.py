# --- legalassist-stream ---
from typing import Any, AsyncIterator, Iterable, Iterator, List, Optional, Union

from ..domain.format_models import FormattedMessage
from .formatter import ChatFormatter
from .message_view import render_message

Token = Union[str, dict]


def iter_as_async(it: Iterable[Any]) -> AsyncIterator[Any]:
    async def gen() -> AsyncIterator[Any]:
        for x in it:
            yield x

    return gen()


def _token_text(token: Token) -> str:
    if isinstance(token, dict):
        piece = token.get("token")
    else:
        piece = token
    return piece if isinstance(piece, str) else ""


def iter_formatted(
    tokens: Iterable[Token],
    *,
    message_id: Optional[str] = None,
    formatter: Optional[ChatFormatter] = None,
) -> Iterator[FormattedMessage]:
    """Yield a snapshot per token with the cursor on, then the final snapshot.

    Each snapshot re-formats the whole buffer; nothing is carried over.
    """
    buffer: List[str] = []
    for token in tokens:
        piece = _token_text(token)
        if not piece:
            continue
        buffer.append(piece)
        yield render_message("".join(buffer), True, message_id, formatter)
    yield render_message("".join(buffer), False, message_id, formatter)


async def stream_formatted(
    tokens: Iterable[Token],
    *,
    message_id: Optional[str] = None,
    formatter: Optional[ChatFormatter] = None,
) -> AsyncIterator[FormattedMessage]:  # --- legalassist-stream ---
    buffer: List[str] = []
    async for token in iter_as_async(tokens):
        piece = _token_text(token)
        if not piece:
            continue
        buffer.append(piece)
        yield render_message("".join(buffer), True, message_id, formatter)
    yield render_message("".join(buffer), False, message_id, formatter)
