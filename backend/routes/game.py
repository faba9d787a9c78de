"""Turn endpoint — streams the next turn of the adventure."""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from backend.llm import LLM, LLMError
from backend.prompts import PromptError, build_turn_prompt
from infinite_adventure.models import TURN_SCHEMA, TurnRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/game")
async def game_turn(body: TurnRequest, request: Request):
    """Build the turn prompt and relay the model's JSON text as it streams.

    An upstream failure ends the stream early; the client sees an
    incomplete object and treats the turn as failed.
    """
    try:
        prompt = build_turn_prompt(body.history, body.current_hp, body.inventory)
    except PromptError as e:
        raise HTTPException(500, str(e))

    logger.info(
        "turn requested last_action=%r hp=%d history=%d",
        body.last_action, body.current_hp, len(body.history),
    )
    return StreamingResponse(
        _relay(request.app.state.llm, prompt),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache"},
    )


async def _relay(llm: LLM, prompt: str) -> AsyncIterator[str]:
    try:
        async for chunk in llm.stream(prompt, TURN_SCHEMA):
            yield chunk
    except LLMError as e:
        logger.error("turn stream aborted: %s", e)
