"""Pydantic request/response schemas for the ImageAnalyzer API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PredictionOut(BaseModel):
    """Top prediction of the latest classification."""

    label: str
    probability: float = Field(ge=0.0, le=1.0, description="Rounded to 2 decimals")
    display: str = Field(description="'<label>: <probability>' with two decimals")


class ChosenItemOut(BaseModel):
    """Prediction the user locked in with Choose Item."""

    label: str
    probability: float = Field(ge=0.0, le=1.0)
    display: str = Field(description="'<label>, <probability>' with two decimals")


class LabelSlot(BaseModel):
    """One row of the per-class readout; probability is None before the first prediction."""

    label: str
    probability: float | None = Field(default=None, ge=0.0, le=1.0)
    display: str


class AnalyzerState(BaseModel):
    """Everything the UI page renders."""

    model_config = ConfigDict(protected_namespaces=())

    model_status: str = Field(description="'loading', 'ready', or 'failed'")
    mode: str = Field(description="'webcam' or 'manual_upload'")
    toggle_label: str
    webcam_active: bool
    prediction: PredictionOut | None
    prediction_text: str
    labels: list[LabelSlot]
    chosen_item: ChosenItemOut | None
    image_src: str | None = Field(description="Inline data URL of the last upload (manual mode only)")
    error: str | None


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = "ok"
    model_status: str
    model_name: str | None
    total_classes: int
    webcam_active: bool
    pending_tasks: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
