"""API route definitions: one endpoint per UI event, plus the page itself."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse, Response

from imageanalyzer.analyzer.prediction import NO_PREDICTION_TEXT, CaptureMode, format_probability
from imageanalyzer.api.middleware import verify_api_key
from imageanalyzer.api.schemas import (
    AnalyzerState,
    ChosenItemOut,
    ErrorResponse,
    HealthResponse,
    LabelSlot,
    PredictionOut,
)

if TYPE_CHECKING:
    from imageanalyzer.analyzer.component import ImageAnalyzer
    from imageanalyzer.ml.inference import InferencePool

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])
public_router = APIRouter()

_UNAVAILABLE = {status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}}


def _get_analyzer(request: Request) -> ImageAnalyzer:
    analyzer: ImageAnalyzer = request.app.state.analyzer
    return analyzer


def _get_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _label_slots(analyzer: ImageAnalyzer) -> list[LabelSlot]:
    """One slot per model class, filled from the latest scores when there are any."""
    scores = analyzer.scores
    if scores:
        slots = []
        for result in scores:
            text = format_probability(result.probability)
            slots.append(LabelSlot(label=result.label, probability=float(text), display=f"{result.label}: {text}"))
        return slots
    classifier = analyzer.classifier
    if classifier is None:
        return []
    return [LabelSlot(label=label, display=f"{label}: -") for label in classifier.labels]


def build_state(analyzer: ImageAnalyzer) -> AnalyzerState:
    """Project the analyzer onto what the page renders."""
    prediction = analyzer.prediction
    chosen = analyzer.chosen_item
    manual = analyzer.mode is CaptureMode.MANUAL_UPLOAD
    return AnalyzerState(
        model_status=analyzer.model_status.value,
        mode=analyzer.mode.value,
        toggle_label="Use Webcam" if manual else "Switch to Manual Upload",
        webcam_active=analyzer.webcam_active,
        prediction=(
            PredictionOut(label=prediction.label, probability=prediction.probability, display=prediction.display)
            if prediction is not None
            else None
        ),
        prediction_text=prediction.display if prediction is not None else NO_PREDICTION_TEXT,
        labels=_label_slots(analyzer),
        chosen_item=(
            ChosenItemOut(label=chosen.label, probability=chosen.probability, display=chosen.display)
            if chosen is not None
            else None
        ),
        image_src=analyzer.image_src if manual else None,
        error=analyzer.error,
    )


@public_router.get("/", include_in_schema=False)
async def index() -> FileResponse:
    """Serve the analyzer page."""
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")


@router.get("/state", response_model=AnalyzerState, summary="Current analyzer state")
async def get_state(request: Request) -> AnalyzerState:
    return build_state(_get_analyzer(request))


@router.post("/mode/toggle", response_model=AnalyzerState, summary="Switch capture source")
async def toggle_mode(request: Request) -> AnalyzerState:
    """Flip between webcam and manual upload; leaving webcam mode stops the camera."""
    analyzer = _get_analyzer(request)
    analyzer.toggle_mode()
    return build_state(analyzer)


@router.post(
    "/webcam/start",
    response_model=AnalyzerState,
    responses={**_UNAVAILABLE, status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
    summary="Open the camera and start predicting",
)
async def start_webcam(request: Request) -> AnalyzerState:
    analyzer = _get_analyzer(request)
    await analyzer.start_webcam()
    return build_state(analyzer)


@router.post("/webcam/stop", response_model=AnalyzerState, summary="Release the camera")
async def stop_webcam(request: Request) -> AnalyzerState:
    analyzer = _get_analyzer(request)
    await analyzer.stop_webcam()
    return build_state(analyzer)


@router.get(
    "/webcam/frame",
    response_class=Response,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Latest webcam frame as JPEG",
)
async def webcam_frame(request: Request) -> Response:
    frame = await _get_analyzer(request).webcam_frame()
    if frame is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Webcam is not running", "code": "webcam_inactive"},
        )
    return Response(content=frame, media_type="image/jpeg", headers={"Cache-Control": "no-store"})


@router.post(
    "/upload",
    response_model=AnalyzerState,
    responses={
        **_UNAVAILABLE,
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
    },
    summary="Classify an uploaded image once",
)
async def upload_image(request: Request, file: UploadFile) -> AnalyzerState:
    analyzer = _get_analyzer(request)
    data = await file.read()
    await analyzer.upload_image(data, file.content_type)
    return build_state(analyzer)


@router.post("/choose", response_model=AnalyzerState, summary="Lock in the current prediction")
async def choose_item(request: Request) -> AnalyzerState:
    analyzer = _get_analyzer(request)
    analyzer.choose_item()
    return build_state(analyzer)


@public_router.get("/api/v1/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    analyzer = _get_analyzer(request)
    pool = _get_pool(request)
    classifier = analyzer.classifier
    return HealthResponse(
        model_status=analyzer.model_status.value,
        model_name=classifier.model_name if classifier is not None else None,
        total_classes=classifier.total_classes if classifier is not None else 0,
        webcam_active=analyzer.webcam_active,
        pending_tasks=pool.pending,
    )
