"""Prompt enhancement adapter for the Gemini ``:generateContent`` endpoint."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError as SchemaError

from ..config import settings
from ..errors import ResponseShapeError
from ..models.schemas import (
    Candidate,
    GenerateContentRequest,
    GenerateContentResponse,
    RequestContent,
    TextPart,
)
from .gemini_endpoint import GeminiEndpoint

logger = logging.getLogger(__name__)


ENHANCEMENT_INSTRUCTION = (
    "You are an expert prompt engineer for an AI image generator. A user has provided a "
    "basic idea. Your task is to expand this idea into a rich, detailed, and artistic prompt. "
    "Focus on adding specifics about lighting (e.g., golden hour, cinematic lighting), mood "
    "(e.g., serene, melancholic, epic), composition, and artistic style (e.g., photorealistic, "
    "digital painting, fantasy art). Keep the final prompt concise, under 100 words, and "
    "focused on visual details. Do not add any conversational text, just output the enhanced "
    'prompt. User\'s idea: "{idea}"'
)


def build_enhancement_instruction(idea: str) -> str:
    return ENHANCEMENT_INSTRUCTION.format(idea=idea)


def build_enhancement_request(instruction: str) -> dict[str, Any]:
    """Wrap the instruction as a single user turn."""

    request = GenerateContentRequest(
        contents=[RequestContent(role="user", parts=[TextPart(text=instruction)])]
    )
    return request.model_dump(by_alias=True)


def parse_enhancement_response(payload: Any) -> str:
    """Return the first text part of the first candidate, untrimmed."""

    try:
        response = GenerateContentResponse.model_validate(payload)
        candidate = Candidate.model_validate(response.candidates[0])
    except SchemaError as exc:
        logger.error("Unexpected response structure from enhancement API: %s", exc)
        raise ResponseShapeError("Could not extract enhanced prompt from API response.") from exc

    for part in candidate.content.parts:
        if part.text and part.text.strip():
            return part.text

    logger.error("Enhancement candidate carried no text parts: %r", candidate)
    raise ResponseShapeError("Could not extract enhanced prompt from API response.")


class PromptEnhancementService(GeminiEndpoint):
    """Asks the text model to rewrite an instruction into an enhanced prompt."""

    method = "generateContent"

    def __init__(self, *, model: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs: Any):
        super().__init__(model=model or settings.text_model, transport=transport, **kwargs)

    async def request_enhancement(self, instruction: str) -> str:
        data = await self._post_json(build_enhancement_request(instruction))
        return parse_enhancement_response(data)
