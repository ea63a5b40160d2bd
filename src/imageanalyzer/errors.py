"""Domain errors raised by the analyzer and mapped to HTTP responses by the API."""

from __future__ import annotations

from enum import StrEnum

from fastapi import status


class ErrorCode(StrEnum):
    MODEL_NOT_READY = "model_not_ready"
    MODEL_LOAD_FAILED = "model_load_failed"
    DEVICE_ACCESS = "device_access"
    WEBCAM_SETUP = "webcam_setup"
    WRONG_CAPTURE_MODE = "wrong_capture_mode"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    TOO_LARGE = "too_large"
    INVALID_IMAGE = "invalid_image"
    INFERENCE_FAILED = "inference_failed"


class AnalyzerError(Exception):
    """Base class for errors the UI can show to the user."""

    code: ErrorCode = ErrorCode.INFERENCE_FAILED
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ModelLoadError(AnalyzerError):
    code = ErrorCode.MODEL_LOAD_FAILED
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class ModelNotReadyError(AnalyzerError):
    code = ErrorCode.MODEL_NOT_READY
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class DeviceAccessError(AnalyzerError):
    """The capture device could not be opened (missing, busy, or denied)."""

    code = ErrorCode.DEVICE_ACCESS
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class WebcamSetupError(AnalyzerError):
    """The device opened but produced no usable frame."""

    code = ErrorCode.WEBCAM_SETUP
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class CaptureModeError(AnalyzerError):
    code = ErrorCode.WRONG_CAPTURE_MODE
    http_status = status.HTTP_409_CONFLICT


class UnsupportedMediaTypeError(AnalyzerError):
    code = ErrorCode.UNSUPPORTED_MEDIA_TYPE
    http_status = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class FileTooLargeError(AnalyzerError):
    code = ErrorCode.TOO_LARGE
    http_status = 413


class InvalidImageError(AnalyzerError):
    code = ErrorCode.INVALID_IMAGE
    http_status = status.HTTP_400_BAD_REQUEST


class InferenceError(AnalyzerError):
    code = ErrorCode.INFERENCE_FAILED
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
