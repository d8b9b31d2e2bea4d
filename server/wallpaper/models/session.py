"""In-memory session state shared between the orchestrator and the presentation layer."""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


IMAGE_ENCODING = "base64-png"


class Operation(str, Enum):
    """The two user-triggered operations the orchestrator runs."""
    GENERATE = "generate"
    ENHANCE = "enhance"


@dataclass(frozen=True, slots=True)
class ImageAsset:
    """Decoded image payload returned by the image model."""

    data: bytes
    encoding: str = IMAGE_ENCODING

    @classmethod
    def from_base64(cls, payload: str) -> "ImageAsset":
        """Decode a base64 payload, raising ``ValueError`` when it is not valid base64."""
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid base64 image payload: {exc}") from exc
        if not data:
            raise ValueError("empty image payload")
        return cls(data=data)

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{self.base64}"


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Advisory description of the last failed attempt."""

    operation: Operation
    kind: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"operation": self.operation.value, "kind": self.kind, "message": self.message}


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    """Result of one ``generate`` or ``enhance`` attempt."""

    operation: Operation
    succeeded: bool
    error: Optional[ErrorInfo] = None


@dataclass
class SessionState:
    """Single mutable record the orchestrator writes and the UI reads."""

    prompt_text: str
    image: Optional[ImageAsset] = None
    generation_in_flight: bool = False
    enhancement_in_flight: bool = False
    last_error: Optional[ErrorInfo] = None

    @property
    def busy(self) -> bool:
        """Whether either control should currently be disabled."""
        return self.generation_in_flight or self.enhancement_in_flight

    def snapshot(self, *, show_image: bool = True) -> dict[str, Any]:
        """Render the state as a JSON-friendly mapping for clients."""
        image = self.image if show_image else None
        return {
            "prompt": self.prompt_text,
            "image": image.data_url if image else None,
            "generation_in_flight": self.generation_in_flight,
            "enhancement_in_flight": self.enhancement_in_flight,
            "busy": self.busy,
            "error": self.last_error.to_dict() if self.last_error else None,
        }
