from __future__ import annotations

import json

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ...domain.format_models import FormatRequest, FormattedMessage, StreamFormatRequest
from ...services.message_view import render_message
from ...services.streaming import stream_formatted

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/format", response_model=FormattedMessage)
def format_chat_message(req: FormatRequest) -> FormattedMessage:
    return render_message(req.text, req.writing, req.message_id)


@router.post("/format/stream", response_class=StreamingResponse)
async def stream_chat_message(req: StreamFormatRequest):
    async def event_stream():  # --- legalassist-stream ---
        async for frame in stream_formatted(req.chunks, message_id=req.message_id):
            yield f"data: {json.dumps(frame.model_dump())}\n\n"

    headers = {
        "Cache-Control": "no-cache, no-transform",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers=headers,
    )
