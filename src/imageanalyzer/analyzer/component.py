"""The image analyzer: model lifecycle, capture source selection, predictions.

All state lives on one ``ImageAnalyzer`` owned by the running event loop.
Blocking work (model load, camera I/O, decoding, inference) is awaited on
the ``InferencePool`` so handlers never overlap mid-mutation.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
from functools import partial
from typing import TYPE_CHECKING

from imageanalyzer.analyzer.loop import PredictionLoop
from imageanalyzer.analyzer.prediction import (
    CaptureMode,
    ChosenItem,
    ModelStatus,
    Prediction,
    check_scores,
    select_top,
)
from imageanalyzer.capture.webcam import OpenCVCamera, WebcamSession
from imageanalyzer.errors import (
    AnalyzerError,
    CaptureModeError,
    FileTooLargeError,
    InferenceError,
    ModelNotReadyError,
    UnsupportedMediaTypeError,
    WebcamSetupError,
)
from imageanalyzer.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from imageanalyzer.capture.webcam import Camera
    from imageanalyzer.config import Settings
    from imageanalyzer.ml.image_classifier import ClassificationResult, ImageClassifier
    from imageanalyzer.ml.inference import InferencePool
    from imageanalyzer.ml.model_loader import ModelLoader

logger = logging.getLogger(__name__)


class ImageAnalyzer:
    """Classifies webcam frames or uploaded images with one loaded model."""

    def __init__(
        self,
        settings: Settings,
        pool: InferencePool,
        loader: ModelLoader,
        camera_factory: Callable[[], Camera] | None = None,
    ) -> None:
        self._settings = settings
        self._pool = pool
        self._loader = loader
        self._camera_factory = camera_factory or partial(OpenCVCamera, settings.camera_index)

        self._classifier: ImageClassifier | None = None
        self._model_status = ModelStatus.LOADING
        self._load_task: asyncio.Task[None] | None = None

        self._mode = CaptureMode.MANUAL_UPLOAD
        self._session: WebcamSession | None = None
        self._loop: PredictionLoop | None = None
        self._draining: PredictionLoop | None = None
        self._starting = False

        self._prediction: Prediction | None = None
        self._scores: list[ClassificationResult] = []
        self._chosen: ChosenItem | None = None
        self._image_src: str | None = None
        self._upload_seq = 0
        self._error: str | None = None

    # -- Read-only view -----------------------------------------------------

    @property
    def model_status(self) -> ModelStatus:
        return self._model_status

    @property
    def classifier(self) -> ImageClassifier | None:
        return self._classifier

    @property
    def mode(self) -> CaptureMode:
        return self._mode

    @property
    def webcam_active(self) -> bool:
        return self._session is not None

    @property
    def prediction(self) -> Prediction | None:
        return self._prediction

    @property
    def scores(self) -> list[ClassificationResult]:
        return list(self._scores)

    @property
    def chosen_item(self) -> ChosenItem | None:
        return self._chosen

    @property
    def image_src(self) -> str | None:
        return self._image_src

    @property
    def error(self) -> str | None:
        return self._error

    # -- Lifecycle ----------------------------------------------------------

    def mount(self) -> asyncio.Task[None]:
        """Start loading the model in the background."""
        if self._load_task is None:
            self._load_task = asyncio.create_task(self.load_model(), name="model-load")
        return self._load_task

    async def load_model(self) -> None:
        """Load the model once. Failures are logged and leave the model unavailable."""
        if self._classifier is not None:
            return
        try:
            classifier = await self._pool.run(self._loader.load)
        except Exception as exc:
            logger.exception("Error loading model")
            self._model_status = ModelStatus.FAILED
            self._error = f"Model failed to load: {exc}"
            return
        self._classifier = classifier
        self._model_status = ModelStatus.READY
        logger.info("Model ready with %d classes", classifier.total_classes)

    async def unmount(self) -> None:
        """Stop capture, abandon a pending load and drop the model."""
        task = self._load_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.stop_webcam()
        self._classifier = None

    # -- Capture source selection ------------------------------------------

    def toggle_mode(self) -> CaptureMode:
        """Switch between webcam and manual upload."""
        if self._mode is CaptureMode.WEBCAM:
            self._detach_webcam()
            self._mode = CaptureMode.MANUAL_UPLOAD
        else:
            self._mode = CaptureMode.WEBCAM
        logger.info("Capture mode is now %s", self._mode)
        return self._mode

    async def start_webcam(self) -> None:
        """Acquire the camera and start the prediction loop.

        Raises:
            ModelNotReadyError: The model has not loaded (yet).
            CaptureModeError: Not in webcam mode.
            DeviceAccessError: The camera could not be opened.
            WebcamSetupError: The camera opened but gave no frame.
        """
        if self._classifier is None:
            raise ModelNotReadyError("Model is not loaded")
        if self._mode is not CaptureMode.WEBCAM:
            raise CaptureModeError("Switch to webcam mode before starting the webcam")
        if self._session is not None or self._starting:
            return

        self._starting = True
        try:
            # The device stays held until a stopped loop finishes its last cycle.
            draining = self._draining
            if draining is not None:
                await draining.wait()
                if self._draining is draining:
                    self._draining = None
            camera = self._camera_factory()
            await self._pool.run(camera.open)
            session = WebcamSession.from_settings(camera, self._settings)
            try:
                await self._pool.run(session.setup)
            except WebcamSetupError:
                session.stop()
                raise
        except AnalyzerError as exc:
            logger.error("Error starting webcam: %s", exc.message)
            self._error = exc.message
            raise
        finally:
            self._starting = False

        if self._mode is not CaptureMode.WEBCAM or self._classifier is None:
            logger.info("Capture mode changed while the webcam was starting; releasing it")
            session.stop()
            return

        self._session = session
        self._error = None
        self._loop = PredictionLoop(
            partial(self.process_frame, session),
            interval=self._settings.frame_interval,
            on_exit=session.stop,
            name="webcam-prediction-loop",
        )
        self._loop.start()
        logger.info("Webcam started")

    async def stop_webcam(self) -> None:
        """Stop the loop and wait until the camera is released. No-op when nothing is running."""
        self._detach_webcam()
        draining = self._draining
        if draining is not None:
            await draining.wait()
            if self._draining is draining:
                self._draining = None

    def _detach_webcam(self) -> None:
        """Hide the session from the UI and stop re-arming the loop.

        A loop that is mid-cycle releases the device itself when the cycle
        ends; until then it is kept in ``_draining`` so a new start waits.
        """
        session, loop = self._session, self._loop
        self._session = None
        self._loop = None
        if session is None:
            return
        if loop is not None:
            loop.stop()
        if loop is None or loop.done:
            session.stop()
        else:
            self._draining = loop
        logger.info("Webcam stopped")

    async def process_frame(self, session: WebcamSession) -> bool:
        """Run one webcam cycle: update the frame, classify it, publish the result.

        Returns False once ``session`` is no longer the active one or failed,
        which ends the loop.
        """
        classifier = self._classifier
        if self._session is not session or classifier is None:
            return False
        try:
            if not await self._pool.run(session.update):
                raise WebcamSetupError("Webcam stopped producing frames")
            if self._session is not session:
                return False
            frame = session.surface
            results = check_scores(await self._pool.run(classifier.classify, frame))
        except Exception as exc:
            logger.exception("Error classifying webcam frame")
            if self._session is session:
                self._error = str(exc)
                self._session = None
                self._draining = self._loop
                self._loop = None
            return False

        if self._session is not session:
            return False
        self._publish(results)
        return True

    async def webcam_frame(self) -> bytes | None:
        """JPEG of the current render surface, or None without a session."""
        session = self._session
        if session is None:
            return None
        return await self._pool.run(session.encode_jpeg)

    # -- Manual upload ------------------------------------------------------

    async def upload_image(self, data: bytes, content_type: str | None) -> Prediction | None:
        """Read, decode and classify one uploaded image.

        Raises:
            CaptureModeError: Not in manual upload mode.
            ModelNotReadyError: The model has not loaded (yet).
            UnsupportedMediaTypeError: Not an ``image/*`` upload.
            FileTooLargeError: Larger than ``max_file_size``.
            InvalidImageError: Pillow could not decode it.
            InferenceError: The model failed on it.
        """
        if self._mode is not CaptureMode.MANUAL_UPLOAD:
            raise CaptureModeError("Switch to manual upload mode before uploading")
        if self._classifier is None:
            raise ModelNotReadyError("Model is not loaded")
        if content_type is None or not content_type.startswith("image/"):
            raise UnsupportedMediaTypeError(f"Expected an image, got {content_type or 'unknown type'}")
        if len(data) > self._settings.max_file_size:
            raise FileTooLargeError(f"File is larger than {self._settings.max_file_size} bytes")

        self._upload_seq += 1
        seq = self._upload_seq
        classifier = self._classifier
        self._image_src = f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"

        try:
            image = await self._pool.run(decode_image, data, self._settings.max_image_pixels)
        except AnalyzerError as exc:
            logger.error("Error decoding upload: %s", exc.message)
            self._error = exc.message
            raise
        try:
            results = check_scores(await self._pool.run(classifier.classify, image))
        except Exception as exc:
            logger.exception("Error classifying uploaded image")
            self._error = f"Classification failed: {exc}"
            raise InferenceError(self._error) from exc

        # A newer upload or a mode switch supersedes this result.
        if seq != self._upload_seq or self._mode is not CaptureMode.MANUAL_UPLOAD:
            return self._prediction
        self._publish(results)
        return self._prediction

    # -- Prediction ---------------------------------------------------------

    def choose_item(self) -> ChosenItem | None:
        """Lock in the current prediction. No-op without one."""
        if self._prediction is not None:
            self._chosen = ChosenItem.from_prediction(self._prediction)
            logger.info("Chose %s", self._chosen.display)
        return self._chosen

    def _publish(self, results: Sequence[ClassificationResult]) -> None:
        self._prediction = Prediction.from_result(select_top(results))
        self._scores = list(results)
        self._error = None
