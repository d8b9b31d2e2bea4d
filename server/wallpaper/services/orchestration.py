"""Session orchestrator coordinating prompt enhancement and image generation.

The orchestrator owns the single :class:`SessionState` and is its only writer.
Each operation follows ``Idle -> Pending -> {Success, Failure} -> Idle``: the
busy flag is raised before the adapter call is awaited and lowered once the
result (or failure) has been applied, so readers never see a flag stuck on.

Single-flight is the caller's job. The HTTP and websocket layers check
:attr:`WallpaperOrchestrator.busy` before invoking an operation, mirroring the
disabled buttons of the original UI; the orchestrator itself does not guard.
Callers that run an operation as a background task call
:meth:`WallpaperOrchestrator.reserve` first so the flag is up before the task
is scheduled.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from ..config import Settings, settings as default_settings
from ..errors import ValidationError, WallpaperError
from ..models.session import ErrorInfo, Operation, OperationOutcome, SessionState
from .image_generation import ImageGenerationService
from .prompt_enhancement import PromptEnhancementService, build_enhancement_instruction

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], Awaitable[None]]

EMPTY_PROMPT_MESSAGES = {
    Operation.GENERATE: "Please enter a prompt before generating.",
    Operation.ENHANCE: "Please enter a prompt idea first.",
}
FAILURE_MESSAGES = {
    Operation.GENERATE: "Sorry, something went wrong while generating the image. Please try again.",
    Operation.ENHANCE: "Sorry, couldn't enhance the prompt right now.",
}


class WallpaperOrchestrator:
    """Runs ``generate`` and ``enhance`` against one shared session state.

    ``keep_image_while_pending`` is the stale-while-revalidate display policy:
    when true (the default) the previous image stays visible while a new one is
    being generated. It only affects :meth:`snapshot`; the stored image is never
    cleared by a pending or failed attempt.
    """

    def __init__(
        self,
        *,
        image_service: ImageGenerationService,
        enhancement_service: PromptEnhancementService,
        default_prompt: str,
        keep_image_while_pending: bool = True,
    ) -> None:
        self.state = SessionState(prompt_text=default_prompt)
        self.keep_image_while_pending = keep_image_while_pending
        self._image_service = image_service
        self._enhancement_service = enhancement_service
        self._listeners: list[StateListener] = []
        self._started = False

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "WallpaperOrchestrator":
        config = config or default_settings
        common: dict[str, Any] = {
            "api_key": config.gemini_api_key,
            "base_url": config.gemini_base_url,
            "timeout": config.request_timeout,
        }
        return cls(
            image_service=ImageGenerationService(model=config.image_model, **common),
            enhancement_service=PromptEnhancementService(model=config.text_model, **common),
            default_prompt=config.default_prompt,
        )

    @property
    def busy(self) -> bool:
        return self.state.busy

    @property
    def started(self) -> bool:
        return self._started

    def snapshot(self) -> dict[str, Any]:
        """Return what the presentation layer should currently render."""
        hide_image = self.state.generation_in_flight and not self.keep_image_while_pending
        return self.state.snapshot(show_image=not hide_image)

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                await listener(self.state)
            except Exception:
                logger.exception("State listener %r failed; continuing", listener)

    def reserve(self, operation: Operation) -> None:
        """Mark ``operation`` as pending before its task gets a chance to run.

        Callers that schedule an operation with ``asyncio.create_task`` reserve it
        first so a command arriving before the task starts already sees ``busy``.
        The operation itself clears the flag when it settles or is rejected.
        """
        self._set_in_flight(operation, True)

    def _set_in_flight(self, operation: Operation, value: bool) -> None:
        if operation is Operation.GENERATE:
            self.state.generation_in_flight = value
        else:
            self.state.enhancement_in_flight = value

    async def set_prompt(self, text: str) -> None:
        """Apply a user edit to the prompt text."""
        self.state.prompt_text = text
        await self._notify()

    async def start(self) -> Optional[OperationOutcome]:
        """Run the initial-load generation exactly once per session."""
        if self._started:
            return None
        self._started = True
        logger.info("Initial load: generating image for the seeded prompt")
        return await self.generate(self.state.prompt_text)

    async def generate(self, prompt_text: str) -> OperationOutcome:
        """Generate an image for ``prompt_text``; ``image`` changes only on success."""
        self.state.last_error = None
        if not (prompt_text or "").strip():
            return await self._reject_empty(Operation.GENERATE)

        self.state.generation_in_flight = True
        await self._notify()
        logger.info("Generating image (prompt length=%d)", len(prompt_text))

        try:
            asset = await self._image_service.request_image(prompt_text)
        except Exception as exc:
            outcome = self._record_failure(Operation.GENERATE, exc)
        else:
            self.state.image = asset
            outcome = OperationOutcome(Operation.GENERATE, succeeded=True)
            logger.info("Image generation succeeded")
        finally:
            self.state.generation_in_flight = False

        await self._notify()
        return outcome

    async def enhance(self) -> OperationOutcome:
        """Rewrite the current prompt through the text model; ``prompt_text`` changes only on success."""
        self.state.last_error = None
        idea = self.state.prompt_text
        if not (idea or "").strip():
            return await self._reject_empty(Operation.ENHANCE)

        self.state.enhancement_in_flight = True
        await self._notify()
        logger.info("Enhancing prompt (length=%d)", len(idea))

        try:
            enhanced = await self._enhancement_service.request_enhancement(
                build_enhancement_instruction(idea)
            )
        except Exception as exc:
            outcome = self._record_failure(Operation.ENHANCE, exc)
        else:
            self.state.prompt_text = enhanced.strip()
            outcome = OperationOutcome(Operation.ENHANCE, succeeded=True)
            logger.info("Prompt enhancement succeeded (new length=%d)", len(self.state.prompt_text))
        finally:
            self.state.enhancement_in_flight = False

        await self._notify()
        return outcome

    async def _reject_empty(self, operation: Operation) -> OperationOutcome:
        self._set_in_flight(operation, False)
        error = ValidationError(EMPTY_PROMPT_MESSAGES[operation])
        info = ErrorInfo(operation=operation, kind=error.kind, message=str(error))
        self.state.last_error = info
        logger.info("Rejected %s: empty prompt", operation.value)
        await self._notify()
        return OperationOutcome(operation, succeeded=False, error=info)

    def _record_failure(self, operation: Operation, exc: Exception) -> OperationOutcome:
        if isinstance(exc, WallpaperError):
            kind = exc.kind
            logger.warning("%s failed (%s): %s", operation.value, kind, exc)
        else:
            kind = "internal"
            logger.exception("%s failed with an unexpected error", operation.value)
        info = ErrorInfo(operation=operation, kind=kind, message=FAILURE_MESSAGES[operation])
        self.state.last_error = info
        return OperationOutcome(operation, succeeded=False, error=info)
