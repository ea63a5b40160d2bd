"""Model loader: fetch, validate, and open the exported image model.

Reads ``metadata.json`` and the ONNX graph from the configured model
directory (optionally downloading both from HuggingFace first) and builds
an ``OnnxImageClassifier`` around an ONNX Runtime session.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode
from pydantic import ValidationError

from imageanalyzer.errors import ModelLoadError
from imageanalyzer.ml.image_classifier import OnnxImageClassifier
from imageanalyzer.ml.metadata import ModelMetadata

if TYPE_CHECKING:
    from imageanalyzer.config import Settings
    from imageanalyzer.ml.image_classifier import ImageClassifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelLoader(Protocol):
    """Protocol for producing the inference handle."""

    def load(self) -> ImageClassifier:
        """Load the model and its metadata, or raise ModelLoadError."""
        ...


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelLoader:
    """Loads a Teachable Machine model exported to ONNX."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._model_dir = Path(settings.model_dir)
        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    def load(self) -> OnnxImageClassifier:
        """Open the model files and return a ready classifier."""
        model_path, metadata_path = self._resolve_paths()
        metadata = self.read_metadata(metadata_path)

        try:
            session = InferenceSession(
                str(model_path),
                sess_options=self._session_options,
                providers=self._providers,
            )
        except Exception as exc:  # onnxruntime raises its own pybind exception types
            raise ModelLoadError(f"Cannot open model {model_path}: {exc}") from exc

        classifier = OnnxImageClassifier(session, metadata)
        logger.info(
            "Loaded model %s from %s (%d classes, input %dpx)",
            metadata.model_name,
            model_path,
            classifier.total_classes,
            metadata.image_size,
        )
        return classifier

    @staticmethod
    def read_metadata(path: Path) -> ModelMetadata:
        """Parse and validate a ``metadata.json`` file."""
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ModelLoadError(f"Cannot read metadata {path}: {exc}") from exc
        try:
            return ModelMetadata.model_validate(raw)
        except ValidationError as exc:
            raise ModelLoadError(f"Malformed metadata {path}: {exc}") from exc

    # -- Internal -----------------------------------------------------------

    def _resolve_paths(self) -> tuple[Path, Path]:
        settings = self._settings
        if settings.model_repo_id is not None:
            return self._download(settings.model_file), self._download(settings.metadata_file)

        model_path = self._model_dir / settings.model_file
        metadata_path = self._model_dir / settings.metadata_file
        for path in (model_path, metadata_path):
            if not path.is_file():
                raise ModelLoadError(f"Model asset not found: {path}")
        return model_path, metadata_path

    def _download(self, filename: str) -> Path:
        repo_id = self._settings.model_repo_id
        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=filename,
                    local_dir=str(self._model_dir),
                )
            )
        except Exception as exc:  # network, auth and missing-file errors all end here
            raise ModelLoadError(f"Cannot download {filename} from {repo_id}: {exc}") from exc
        logger.info("Downloaded %s to %s", filename, downloaded)
        return downloaded

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                ("CUDAExecutionProvider", {"device_id": 0}),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
