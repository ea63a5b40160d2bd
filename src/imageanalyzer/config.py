"""Environment-based configuration for ImageAnalyzer."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from IMAGEANALYZER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGEANALYZER_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency (None = wait for a slot indefinitely)
    max_concurrent: int = Field(default=1, ge=1)
    queue_timeout: float | None = Field(default=None, gt=0)

    # Model assets
    model_dir: str = "model"
    model_file: str = "model.onnx"
    metadata_file: str = "metadata.json"
    model_repo_id: str | None = None

    # Webcam
    camera_index: int = Field(default=0, ge=0)
    webcam_width: int = Field(default=200, ge=1)
    webcam_height: int = Field(default=200, ge=1)
    webcam_flip: bool = True
    frame_interval: float = Field(default=0.0, ge=0.0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
