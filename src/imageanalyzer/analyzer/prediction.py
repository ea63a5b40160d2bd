"""Value types shared by the analyzer and the API."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from imageanalyzer.ml.image_classifier import ClassificationResult

NO_PREDICTION_TEXT = "No predictions yet."


class CaptureMode(StrEnum):
    WEBCAM = "webcam"
    MANUAL_UPLOAD = "manual_upload"


class ModelStatus(StrEnum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def format_probability(probability: float) -> str:
    """Render a probability with exactly two decimals, clamped to [0, 1]."""
    if math.isnan(probability):
        raise ValueError("Probability is NaN")
    return f"{min(max(probability, 0.0), 1.0):.2f}"


@dataclass(frozen=True)
class Prediction:
    """Top-scoring class of the latest classification."""

    label: str
    probability: float

    @classmethod
    def from_result(cls, result: ClassificationResult) -> Prediction:
        return cls(label=result.label, probability=float(format_probability(result.probability)))

    @property
    def display(self) -> str:
        return f"{self.label}: {format_probability(self.probability)}"


@dataclass(frozen=True)
class ChosenItem:
    """Snapshot of a Prediction the user locked in."""

    label: str
    probability: float

    @classmethod
    def from_prediction(cls, prediction: Prediction) -> ChosenItem:
        return cls(label=prediction.label, probability=prediction.probability)

    @property
    def display(self) -> str:
        return f"{self.label}, {format_probability(self.probability)}"


def select_top(results: Sequence[ClassificationResult]) -> ClassificationResult:
    """Return the most probable result; ties go to the earliest entry.

    Raises:
        ValueError: If ``results`` is empty.
    """
    if not results:
        raise ValueError("Cannot select a prediction from an empty result list")
    best = results[0]
    for result in results[1:]:
        if result.probability > best.probability:
            best = result
    return best


def check_scores(results: Sequence[ClassificationResult]) -> Sequence[ClassificationResult]:
    """Pass ``results`` through unchanged if every probability is a finite number in [0, 1].

    Raises:
        ValueError: On NaN, infinite or out-of-range probabilities.
    """
    for result in results:
        if not (math.isfinite(result.probability) and 0.0 <= result.probability <= 1.0):
            raise ValueError(f"Invalid probability {result.probability!r} for {result.label!r}")
    return results
