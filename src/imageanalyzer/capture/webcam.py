"""Webcam capture: device access and the frame render surface."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import cv2
import numpy as np

from imageanalyzer.errors import DeviceAccessError, WebcamSetupError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from imageanalyzer.config import Settings

logger = logging.getLogger(__name__)


class Camera(Protocol):
    """A video-only capture device."""

    def open(self) -> None:
        """Acquire the device. Raises DeviceAccessError when unavailable."""
        ...

    def read(self) -> NDArray[np.uint8] | None:
        """Grab one BGR frame, or None if the device produced nothing."""
        ...

    def release(self) -> None:
        """Give the device back. Safe to call more than once."""
        ...


class OpenCVCamera:
    """Camera backed by ``cv2.VideoCapture``."""

    def __init__(self, index: int) -> None:
        self._index = index
        self._capture: cv2.VideoCapture | None = None

    def open(self) -> None:
        capture = cv2.VideoCapture(self._index)
        if not capture.isOpened():
            capture.release()
            raise DeviceAccessError(f"Cannot open camera {self._index}")
        self._capture = capture

    def read(self) -> NDArray[np.uint8] | None:
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None


def fit_frame(frame: NDArray[np.uint8], width: int, height: int) -> NDArray[np.uint8]:
    """Center-crop a frame to the target aspect ratio, then resize it."""
    src_h, src_w = frame.shape[:2]
    target_ratio = width / height
    if src_w / src_h > target_ratio:
        crop_w = round(src_h * target_ratio)
        left = (src_w - crop_w) // 2
        frame = frame[:, left : left + crop_w]
    else:
        crop_h = round(src_w / target_ratio)
        top = (src_h - crop_h) // 2
        frame = frame[top : top + crop_h, :]
    return cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)


class WebcamSession:
    """An open camera plus the most recent processed frame.

    The surface holds an RGB frame of the configured size, mirrored when
    ``flip`` is set, and is what gets classified and shown to the user.
    """

    def __init__(self, camera: Camera, width: int, height: int, *, flip: bool) -> None:
        self._camera = camera
        self._width = width
        self._height = height
        self._flip = flip
        self._surface: NDArray[np.uint8] | None = None
        self._closed = False

    @classmethod
    def from_settings(cls, camera: Camera, settings: Settings) -> WebcamSession:
        return cls(camera, settings.webcam_width, settings.webcam_height, flip=settings.webcam_flip)

    @property
    def surface(self) -> NDArray[np.uint8] | None:
        return self._surface

    @property
    def closed(self) -> bool:
        return self._closed

    def setup(self) -> None:
        """Grab the first frame; the session is unusable without one."""
        if not self.update():
            raise WebcamSetupError("Camera opened but produced no frame")

    def update(self) -> bool:
        """Read the next frame into the surface. Returns False if none arrived."""
        if self._closed:
            return False
        frame = self._camera.read()
        if frame is None:
            return False
        rgb = cv2.cvtColor(fit_frame(frame, self._width, self._height), cv2.COLOR_BGR2RGB)
        if self._flip:
            rgb = np.ascontiguousarray(rgb[:, ::-1])
        self._surface = rgb
        return True

    def encode_jpeg(self, quality: int = 85) -> bytes | None:
        """Encode the current surface as JPEG for display."""
        if self._surface is None:
            return None
        bgr = cv2.cvtColor(self._surface, cv2.COLOR_RGB2BGR)
        ok, buf = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
        return buf.tobytes() if ok else None

    def stop(self) -> None:
        """Release the device and drop the surface."""
        if self._closed:
            return
        self._closed = True
        self._camera.release()
        self._surface = None
        logger.info("Webcam released")
