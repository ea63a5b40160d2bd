"""Shared fakes for analyzer, API and capture tests."""

from __future__ import annotations

import asyncio
import io
import time
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from imageanalyzer.config import Settings
from imageanalyzer.errors import DeviceAccessError
from imageanalyzer.ml.image_classifier import ClassificationResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


class FakeClassifier:
    """Returns canned scores; ``scores`` may be swapped between calls."""

    def __init__(self, scores: dict[str, float], *, error: Exception | None = None, delay: float = 0.0) -> None:
        self.scores = scores
        self.error = error
        self.delay = delay
        self.calls = 0

    @property
    def model_name(self) -> str:
        return "fake-model"

    @property
    def total_classes(self) -> int:
        return len(self.scores)

    @property
    def labels(self) -> list[str]:
        return list(self.scores)

    def classify(self, image: NDArray[np.uint8]) -> list[ClassificationResult]:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [ClassificationResult(label=label, probability=p) for label, p in self.scores.items()]


class FakeLoader:
    def __init__(
        self, classifier: FakeClassifier | None = None, *, error: Exception | None = None, delay: float = 0.0
    ) -> None:
        self.classifier = classifier
        self.error = error
        self.delay = delay
        self.calls = 0

    def load(self) -> FakeClassifier:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        assert self.classifier is not None
        return self.classifier


class FakeCamera:
    """In-memory camera producing a fixed 480x640 BGR frame."""

    def __init__(self, *, deny: bool = False, frames: bool = True) -> None:
        self.deny = deny
        self.frames = frames
        self.opened = False
        self.release_count = 0

    @property
    def released(self) -> bool:
        return self.release_count > 0

    def open(self) -> None:
        if self.deny:
            raise DeviceAccessError("Permission denied")
        self.opened = True

    def read(self) -> NDArray[np.uint8] | None:
        if not self.opened or not self.frames:
            return None
        return np.full((480, 640, 3), 127, dtype=np.uint8)

    def release(self) -> None:
        self.release_count += 1
        self.opened = False


class ExclusiveDevice:
    """A camera device only one handle can hold at a time."""

    def __init__(self) -> None:
        self.held = False
        self.opens = 0


class ExclusiveCamera(FakeCamera):
    """FakeCamera whose open fails while another handle holds ``device``."""

    def __init__(self, device: ExclusiveDevice) -> None:
        super().__init__()
        self.device = device

    def open(self) -> None:
        if self.device.held:
            raise DeviceAccessError("Device busy")
        self.device.held = True
        self.device.opens += 1
        super().open()

    def release(self) -> None:
        if self.opened:
            self.device.held = False
        super().release()


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "model_dir": "/tmp/imageanalyzer_test_model",
        "max_concurrent": 1,
        "frame_interval": 0.0,
        "webcam_width": 200,
        "webcam_height": 200,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def png_bytes(size: tuple[int, int] = (32, 24), color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


async def wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``condition`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()
