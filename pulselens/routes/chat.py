"""
chat.py — Ask questions about a region's emotional climate.

Route:
  POST /api/v1/chat — {question, emotionsSummary, topPosts, region} → {answer}

`topTweets` is accepted as an alias of `topPosts` for older map clients.
"""

from fastapi import APIRouter, Request

from pulselens.core.rate_limit import limiter
from pulselens.models.pulse import ChatRequest, ChatResponse, ErrorResponse
from pulselens.services import chat_responder

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post(
    "",
    response_model=ChatResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
@limiter.limit("20/minute")
async def chat(request: Request, payload: ChatRequest):
    answer = await chat_responder.answer(
        payload.question,
        payload.emotions_summary,
        payload.top_posts,
        payload.region,
    )
    return ChatResponse(answer=answer)
