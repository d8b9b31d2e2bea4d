"""Pydantic models describing endpoint payloads and the service's own API."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# --- Image model (``:predict``) -------------------------------------------------


class ImageInstance(_WireModel):
    prompt: str


class ImageParameters(_WireModel):
    sample_count: int = Field(default=1, alias="sampleCount")


class ImagePredictRequest(_WireModel):
    """Body for the image-generation endpoint: one instance, one sample."""

    instances: list[ImageInstance]
    parameters: ImageParameters = Field(default_factory=ImageParameters)


class ImagePrediction(_WireModel):
    bytes_base64_encoded: str = Field(..., alias="bytesBase64Encoded", min_length=1)
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


class ImagePredictResponse(_WireModel):
    # Only the first prediction is validated against ``ImagePrediction``.
    predictions: list[Any] = Field(..., min_length=1)


# --- Text model (``:generateContent``) ------------------------------------------


class TextPart(_WireModel):
    text: str


class RequestContent(_WireModel):
    role: str = "user"
    parts: list[TextPart]


class GenerateContentRequest(_WireModel):
    """Body for the text-generation endpoint: a single conversational turn."""

    contents: list[RequestContent]


class ResponsePart(_WireModel):
    text: Optional[str] = None


class CandidateContent(_WireModel):
    parts: list[ResponsePart] = Field(..., min_length=1)


class Candidate(_WireModel):
    content: CandidateContent


class GenerateContentResponse(_WireModel):
    candidates: list[Any] = Field(..., min_length=1)


# --- Service API ---------------------------------------------------------------


class PromptUpdateRequest(BaseModel):
    """User edit of the scene description."""

    prompt: str = Field(..., description="New scene description text")


class GenerateRequest(BaseModel):
    """Incoming payload for an image generation attempt."""

    prompt: Optional[str] = Field(
        default=None, description="Prompt to render; defaults to the current session prompt"
    )


class ErrorPayload(BaseModel):
    operation: str
    kind: str
    message: str


class SessionStateResponse(BaseModel):
    """Represents the current state of the session."""

    prompt: str
    image: Optional[str] = Field(default=None, description="PNG data URL of the displayed image")
    generation_in_flight: bool
    enhancement_in_flight: bool
    busy: bool
    error: Optional[ErrorPayload] = None


class OperationResponse(BaseModel):
    """Response returned after a generate or enhance attempt settles."""

    operation: str
    succeeded: bool
    error: Optional[ErrorPayload] = None
    state: SessionStateResponse
