"""Image generation adapter for the Imagen ``:predict`` endpoint."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError as SchemaError

from ..config import settings
from ..errors import ResponseShapeError
from ..models.schemas import (
    ImageInstance,
    ImageParameters,
    ImagePrediction,
    ImagePredictRequest,
    ImagePredictResponse,
)
from ..models.session import ImageAsset
from .gemini_endpoint import GeminiEndpoint

logger = logging.getLogger(__name__)

PNG_MIME_TYPE = "image/png"


def build_image_request(prompt: str) -> dict[str, Any]:
    """Build the body for a single-instance, single-sample generation."""

    request = ImagePredictRequest(
        instances=[ImageInstance(prompt=prompt)],
        parameters=ImageParameters(sample_count=1),
    )
    return request.model_dump(by_alias=True)


def parse_image_response(payload: Any) -> ImageAsset:
    """Extract the first prediction's image, raising ``ResponseShapeError`` if it is missing."""

    try:
        response = ImagePredictResponse.model_validate(payload)
        prediction = ImagePrediction.model_validate(response.predictions[0])
    except SchemaError as exc:
        keys = list(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
        logger.error("Unexpected image response structure (keys: %s): %s", keys, exc)
        raise ResponseShapeError("Image data not found in the response.") from exc

    if prediction.mime_type and prediction.mime_type != PNG_MIME_TYPE:
        logger.error("Image model returned %s instead of %s", prediction.mime_type, PNG_MIME_TYPE)
        raise ResponseShapeError(f"Unexpected image type {prediction.mime_type!r} in the response.")

    try:
        return ImageAsset.from_base64(prediction.bytes_base64_encoded)
    except ValueError as exc:
        logger.error("Image payload could not be decoded: %s", exc)
        raise ResponseShapeError("Image data in the response is not valid base64.") from exc


class ImageGenerationService(GeminiEndpoint):
    """Interfaces with the image model to render a prompt."""

    method = "predict"

    def __init__(self, *, model: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs: Any):
        super().__init__(model=model or settings.image_model, transport=transport, **kwargs)

    async def request_image(self, prompt: str) -> ImageAsset:
        """Generate one image for ``prompt``."""

        data = await self._post_json(build_image_request(prompt))
        asset = parse_image_response(data)
        logger.info("Image model returned %d bytes", len(asset.data))
        return asset
