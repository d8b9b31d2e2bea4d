"""Session endpoints exposing the orchestrator to HTTP clients."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..models import schemas
from ..models.session import OperationOutcome
from ..services.orchestration import WallpaperOrchestrator

router = APIRouter(prefix="/session", tags=["session"])

DOWNLOAD_FILENAME = "ai-wallpaper.png"


def get_orchestrator(request: Request) -> WallpaperOrchestrator:
    return request.app.state.orchestrator


def _state(orchestrator: WallpaperOrchestrator) -> schemas.SessionStateResponse:
    return schemas.SessionStateResponse(**orchestrator.snapshot())


def _operation(orchestrator: WallpaperOrchestrator, outcome: OperationOutcome) -> schemas.OperationResponse:
    return schemas.OperationResponse(
        operation=outcome.operation.value,
        succeeded=outcome.succeeded,
        error=outcome.error.to_dict() if outcome.error else None,
        state=_state(orchestrator),
    )


def _ensure_idle(orchestrator: WallpaperOrchestrator) -> None:
    # Both controls are disabled while either operation is pending.
    if orchestrator.busy:
        raise HTTPException(status_code=409, detail="Another operation is still in progress")


@router.get("", response_model=schemas.SessionStateResponse)
async def get_session_state(
    orchestrator: WallpaperOrchestrator = Depends(get_orchestrator),
) -> schemas.SessionStateResponse:
    """Return the state the UI should currently render."""

    return _state(orchestrator)


@router.put("/prompt", response_model=schemas.SessionStateResponse)
async def update_prompt(
    payload: schemas.PromptUpdateRequest,
    orchestrator: WallpaperOrchestrator = Depends(get_orchestrator),
) -> schemas.SessionStateResponse:
    await orchestrator.set_prompt(payload.prompt)
    return _state(orchestrator)


@router.post("/generate", response_model=schemas.OperationResponse)
async def generate_image(
    payload: Optional[schemas.GenerateRequest] = None,
    orchestrator: WallpaperOrchestrator = Depends(get_orchestrator),
) -> schemas.OperationResponse:
    """Generate an image from the supplied prompt, or the session prompt when omitted.

    Failures are reported in the body (``succeeded=false``); they never change the
    HTTP status because the session stays usable.
    """

    _ensure_idle(orchestrator)
    prompt = orchestrator.state.prompt_text
    if payload is not None and payload.prompt is not None:
        prompt = payload.prompt
    outcome = await orchestrator.generate(prompt)
    return _operation(orchestrator, outcome)


@router.post("/enhance", response_model=schemas.OperationResponse)
async def enhance_prompt(
    orchestrator: WallpaperOrchestrator = Depends(get_orchestrator),
) -> schemas.OperationResponse:
    _ensure_idle(orchestrator)
    outcome = await orchestrator.enhance()
    return _operation(orchestrator, outcome)


@router.get("/image")
async def download_image(
    orchestrator: WallpaperOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Serve the last successful image as a PNG attachment."""

    image = orchestrator.state.image
    if image is None:
        raise HTTPException(status_code=404, detail="No image has been generated yet")
    return Response(
        content=image.data,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"'},
    )
