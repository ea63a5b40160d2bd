"""Image classification model backed by an ONNX Runtime session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from imageanalyzer.ml.preprocessing import prepare_input

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from imageanalyzer.ml.metadata import ModelMetadata


@dataclass(frozen=True)
class ClassificationResult:
    """A single label with its predicted probability."""

    label: str
    probability: float


class ImageClassifier(Protocol):
    """Protocol for image classification models."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    @property
    def total_classes(self) -> int:
        """Return the number of classes the model predicts."""
        ...

    @property
    def labels(self) -> list[str]:
        """Return the class labels in model output order."""
        ...

    def classify(self, image: NDArray[np.uint8]) -> list[ClassificationResult]:
        """Classify an image.

        Args:
            image: HxWx3 RGB uint8 array.

        Returns:
            One result per class, in the model's label order.
        """
        ...


def _softmax(logits: NDArray[np.float32]) -> NDArray[np.float32]:
    shifted = logits - logits.max()
    exp = np.exp(shifted)
    return exp / exp.sum()


class OnnxImageClassifier:
    """Teachable Machine image model exported to ONNX."""

    def __init__(self, session: InferenceSession, metadata: ModelMetadata) -> None:
        self._session = session
        self._metadata = metadata
        model_input = session.get_inputs()[0]
        self._input_name: str = model_input.name
        shape = model_input.shape
        # NCHW graphs put the 3 colour channels right after the batch axis.
        self._channels_first = len(shape) == 4 and shape[1] == 3

    @property
    def model_name(self) -> str:
        return self._metadata.model_name

    @property
    def total_classes(self) -> int:
        return len(self._metadata.labels)

    @property
    def labels(self) -> list[str]:
        return list(self._metadata.labels)

    def classify(self, image: NDArray[np.uint8]) -> list[ClassificationResult]:
        tensor = prepare_input(image, self._metadata.image_size, channels_first=self._channels_first)
        outputs = self._session.run(None, {self._input_name: tensor})
        scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if scores.shape[0] != self.total_classes:
            raise ValueError(f"Model produced {scores.shape[0]} scores for {self.total_classes} labels")
        if not np.isfinite(scores).all():
            raise ValueError("Model produced non-finite scores")
        if scores.min() < 0.0 or scores.max() > 1.0:
            scores = _softmax(scores)
        return [
            ClassificationResult(label=label, probability=float(score))
            for label, score in zip(self._metadata.labels, scores, strict=True)
        ]
