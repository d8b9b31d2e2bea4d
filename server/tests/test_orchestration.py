from __future__ import annotations

import asyncio

import httpx
import pytest

from wallpaper.errors import EndpointError, ResponseShapeError
from wallpaper.models.session import IMAGE_ENCODING, ImageAsset, Operation
from wallpaper.services.image_generation import ImageGenerationService
from wallpaper.services.orchestration import (
    EMPTY_PROMPT_MESSAGES,
    FAILURE_MESSAGES,
    WallpaperOrchestrator,
)
from wallpaper.services.prompt_enhancement import PromptEnhancementService


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


class FakeImageService:
    def __init__(self, result: ImageAsset | None = None, error: Exception | None = None):
        self.result = result or ImageAsset(data=b"PNG")
        self.error = error
        self.prompts: list[str] = []
        self.flag_during_call: list[bool] = []
        self.orchestrator: WallpaperOrchestrator | None = None

    async def request_image(self, prompt: str) -> ImageAsset:
        self.prompts.append(prompt)
        if self.orchestrator is not None:
            self.flag_during_call.append(self.orchestrator.state.generation_in_flight)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.result


class FakeEnhancementService:
    def __init__(self, result: str = "Enhanced.", error: Exception | None = None):
        self.result = result
        self.error = error
        self.instructions: list[str] = []
        self.flag_during_call: list[bool] = []
        self.orchestrator: WallpaperOrchestrator | None = None

    async def request_enhancement(self, instruction: str) -> str:
        self.instructions.append(instruction)
        if self.orchestrator is not None:
            self.flag_during_call.append(self.orchestrator.state.enhancement_in_flight)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.result


def _orchestrator(image=None, text=None, prompt: str = "a dog", **kwargs) -> WallpaperOrchestrator:  # noqa: ANN001
    image = image or FakeImageService()
    text = text or FakeEnhancementService()
    orchestrator = WallpaperOrchestrator(
        image_service=image,
        enhancement_service=text,
        default_prompt=prompt,
        **kwargs,
    )
    image.orchestrator = orchestrator
    text.orchestrator = orchestrator
    return orchestrator


def _mocked_orchestrator(image_handler=None, text_handler=None, prompt: str = "a dog"):  # noqa: ANN001
    def unused(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    common = {"api_key": "test-key", "base_url": "https://models.example.test/v1beta"}
    return WallpaperOrchestrator(
        image_service=ImageGenerationService(
            model="imagen-test", transport=httpx.MockTransport(image_handler or unused), **common
        ),
        enhancement_service=PromptEnhancementService(
            model="gemini-test", transport=httpx.MockTransport(text_handler or unused), **common
        ),
        default_prompt=prompt,
    )


# --- generate ------------------------------------------------------------------


def test_successful_generate_sets_image_and_no_error() -> None:
    asset = ImageAsset(data=b"new image")
    orchestrator = _orchestrator(image=FakeImageService(result=asset))

    outcome = _run(orchestrator.generate("a lighthouse at dusk"))

    assert outcome.succeeded is True
    assert outcome.operation is Operation.GENERATE
    assert orchestrator.state.image == asset
    assert orchestrator.state.last_error is None
    assert orchestrator.state.generation_in_flight is False


@pytest.mark.parametrize("prompt", ["", "   "])
def test_generate_with_empty_prompt_never_calls_adapter(prompt: str) -> None:
    image = FakeImageService()
    orchestrator = _orchestrator(image=image)

    outcome = _run(orchestrator.generate(prompt))

    assert image.prompts == []
    assert outcome.succeeded is False
    assert orchestrator.state.last_error is not None
    assert orchestrator.state.last_error.kind == "validation"
    assert orchestrator.state.last_error.message == EMPTY_PROMPT_MESSAGES[Operation.GENERATE]
    assert orchestrator.state.generation_in_flight is False


@pytest.mark.parametrize(
    "error",
    [
        EndpointError("down", status_code=503),
        ResponseShapeError("no predictions"),
        RuntimeError("unexpected bug"),
    ],
)
def test_failed_generate_keeps_previous_image(error: Exception) -> None:
    previous = ImageAsset(data=b"previous")
    image = FakeImageService(error=error)
    orchestrator = _orchestrator(image=image)
    orchestrator.state.image = previous

    outcome = _run(orchestrator.generate("sunset"))

    assert outcome.succeeded is False
    assert orchestrator.state.image is previous
    assert orchestrator.state.last_error.message == FAILURE_MESSAGES[Operation.GENERATE]
    assert orchestrator.state.generation_in_flight is False


def test_generation_flag_is_raised_only_while_pending() -> None:
    image = FakeImageService()
    orchestrator = _orchestrator(image=image)
    observed: list[bool] = []

    async def listener(state) -> None:  # noqa: ANN001
        observed.append(state.generation_in_flight)

    orchestrator.subscribe(listener)
    assert orchestrator.state.generation_in_flight is False
    _run(orchestrator.generate("sunset"))

    assert image.flag_during_call == [True]
    assert observed == [True, False]
    assert orchestrator.state.generation_in_flight is False


def test_generate_clears_previous_error_on_success() -> None:
    orchestrator = _orchestrator()
    _run(orchestrator.generate(""))
    assert orchestrator.state.last_error is not None

    _run(orchestrator.generate("sunset"))
    assert orchestrator.state.last_error is None


def test_previous_image_visible_while_new_one_is_pending() -> None:
    previous = ImageAsset(data=b"previous")
    seen_images: list[str | None] = []
    image = FakeImageService()
    orchestrator = _orchestrator(image=image)
    orchestrator.state.image = previous

    async def listener(_state) -> None:  # noqa: ANN001
        seen_images.append(orchestrator.snapshot()["image"])

    orchestrator.subscribe(listener)
    _run(orchestrator.generate("sunset"))

    assert seen_images[0] == previous.data_url


def test_display_policy_can_hide_image_while_pending_without_clearing_it() -> None:
    previous = ImageAsset(data=b"previous")
    seen_images: list[str | None] = []
    image = FakeImageService(error=EndpointError("down", status_code=500))
    orchestrator = _orchestrator(image=image, keep_image_while_pending=False)
    orchestrator.state.image = previous

    async def listener(_state) -> None:  # noqa: ANN001
        seen_images.append(orchestrator.snapshot()["image"])

    orchestrator.subscribe(listener)
    _run(orchestrator.generate("sunset"))

    assert seen_images == [None, previous.data_url]
    assert orchestrator.state.image is previous


# --- enhance -------------------------------------------------------------------


def test_successful_enhance_overwrites_prompt_with_trimmed_text() -> None:
    text = FakeEnhancementService(result="\n  A moody harbor at night.\t")
    orchestrator = _orchestrator(text=text, prompt="harbor")

    outcome = _run(orchestrator.enhance())

    assert outcome.succeeded is True
    assert orchestrator.state.prompt_text == "A moody harbor at night."
    assert orchestrator.state.enhancement_in_flight is False
    (instruction,) = text.instructions
    assert instruction.endswith('"harbor"')


def test_enhancement_flag_is_raised_only_while_pending() -> None:
    text = FakeEnhancementService()
    orchestrator = _orchestrator(text=text)
    observed: list[bool] = []

    async def listener(state) -> None:  # noqa: ANN001
        observed.append(state.enhancement_in_flight)

    orchestrator.subscribe(listener)
    _run(orchestrator.enhance())

    assert text.flag_during_call == [True]
    assert observed == [True, False]
    assert orchestrator.state.enhancement_in_flight is False


def test_failed_enhance_keeps_prompt() -> None:
    text = FakeEnhancementService(error=EndpointError("nope", status_code=500))
    orchestrator = _orchestrator(text=text, prompt="harbor")

    outcome = _run(orchestrator.enhance())

    assert outcome.succeeded is False
    assert orchestrator.state.prompt_text == "harbor"
    assert orchestrator.state.last_error.message == FAILURE_MESSAGES[Operation.ENHANCE]
    assert orchestrator.state.last_error.kind == "endpoint"
    assert orchestrator.state.enhancement_in_flight is False


def test_enhance_uses_prompt_edited_by_user() -> None:
    text = FakeEnhancementService()
    orchestrator = _orchestrator(text=text, prompt="harbor")

    _run(orchestrator.set_prompt("forest"))
    _run(orchestrator.enhance())

    assert text.instructions[0].endswith('"forest"')


# --- initial load and listeners ------------------------------------------------


def test_start_generates_seeded_prompt_exactly_once() -> None:
    image = FakeImageService()
    orchestrator = _orchestrator(image=image, prompt="seeded scene")

    first = _run(orchestrator.start())
    second = _run(orchestrator.start())

    assert first is not None and first.succeeded is True
    assert second is None
    assert image.prompts == ["seeded scene"]
    assert orchestrator.started is True


def test_failing_listener_does_not_break_operation() -> None:
    orchestrator = _orchestrator()
    calls: list[str] = []

    async def broken(_state) -> None:  # noqa: ANN001
        raise RuntimeError("socket closed")

    async def healthy(_state) -> None:  # noqa: ANN001
        calls.append("called")

    orchestrator.subscribe(broken)
    orchestrator.subscribe(healthy)
    outcome = _run(orchestrator.generate("sunset"))

    assert outcome.succeeded is True
    assert calls == ["called", "called"]

    orchestrator.unsubscribe(healthy)
    orchestrator.unsubscribe(healthy)
    _run(orchestrator.set_prompt("x"))
    assert calls == ["called", "called"]


# --- end-to-end against mocked endpoints ---------------------------------------


def test_initial_load_renders_seed_prompt() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": "QUJD"}]})

    orchestrator = _mocked_orchestrator(image_handler=handler, prompt="A cat on a roof at sunset")
    _run(orchestrator.start())

    assert len(requests) == 1
    assert orchestrator.state.image.encoding == IMAGE_ENCODING
    assert orchestrator.state.image.base64 == "QUJD"
    assert orchestrator.state.last_error is None


def test_enhance_trims_model_output() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        text = "  A golden retriever bathed in cinematic light.  "
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    orchestrator = _mocked_orchestrator(text_handler=handler, prompt="a dog")
    _run(orchestrator.enhance())

    assert orchestrator.state.prompt_text == "A golden retriever bathed in cinematic light."


def test_server_error_leaves_image_untouched() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"code": 500}})

    previous = ImageAsset(data=b"previous")
    orchestrator = _mocked_orchestrator(image_handler=handler)
    orchestrator.state.image = previous

    _run(orchestrator.generate("sunset"))

    assert orchestrator.state.last_error is not None
    assert orchestrator.state.last_error.kind == "endpoint"
    assert orchestrator.state.image is previous
    assert orchestrator.state.generation_in_flight is False


def test_empty_predictions_surface_as_shape_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"predictions": []})

    orchestrator = _mocked_orchestrator(image_handler=handler)
    outcome = _run(orchestrator.generate("x"))

    assert outcome.succeeded is False
    assert orchestrator.state.last_error.kind == "response_shape"


def test_enhance_with_empty_prompt_skips_text_model() -> None:
    orchestrator = _mocked_orchestrator(prompt="")

    outcome = _run(orchestrator.enhance())

    assert outcome.succeeded is False
    assert orchestrator.state.last_error.kind == "validation"
    assert orchestrator.state.last_error.message == EMPTY_PROMPT_MESSAGES[Operation.ENHANCE]


# --- reservations ----------------------------------------------------------------


@pytest.mark.parametrize(
    ("operation", "flag"),
    [(Operation.GENERATE, "generation_in_flight"), (Operation.ENHANCE, "enhancement_in_flight")],
)
def test_reserve_marks_operation_busy_synchronously(operation: Operation, flag: str) -> None:
    orchestrator = _orchestrator()

    orchestrator.reserve(operation)

    assert orchestrator.busy is True
    assert getattr(orchestrator.state, flag) is True


def test_reserved_generate_settles_flag() -> None:
    image = FakeImageService()
    orchestrator = _orchestrator(image=image)

    orchestrator.reserve(Operation.GENERATE)
    _run(orchestrator.generate("sunset"))

    assert image.flag_during_call == [True]
    assert orchestrator.busy is False


def test_reserved_operation_rejected_as_empty_releases_flag() -> None:
    orchestrator = _orchestrator(prompt="")

    orchestrator.reserve(Operation.ENHANCE)
    _run(orchestrator.enhance())
    orchestrator.reserve(Operation.GENERATE)
    _run(orchestrator.generate("  "))

    assert orchestrator.busy is False
    assert orchestrator.state.last_error.kind == "validation"
