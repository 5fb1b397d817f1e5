"""Error taxonomy for the anomaly overlay pipeline.

Every error carries an HTTP status code so the web layer can translate it
without knowing which stage raised it.
"""
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError


class AnomalyOverlayError(Exception):
    """Base class for all pipeline failures."""

    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, remote_status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.remote_status = remote_status

    @classmethod
    def from_boto(cls, exc: Exception) -> "AnomalyOverlayError":
        """Wrap a botocore failure, keeping the remote code and message verbatim."""
        if isinstance(exc, ClientError):
            error: Dict[str, Any] = exc.response.get("Error", {})
            meta: Dict[str, Any] = exc.response.get("ResponseMetadata", {})
            return cls(
                error.get("Message") or str(exc),
                code=error.get("Code"),
                remote_status=meta.get("HTTPStatusCode"),
            )
        if isinstance(exc, BotoCoreError):
            return cls(str(exc), code=type(exc).__name__)
        return cls(str(exc))

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class RequestValidationError(AnomalyOverlayError):
    """Inbound request is missing a field or has an invalid value."""

    status_code = 400


class DecodeError(AnomalyOverlayError):
    """Input image could not be decoded."""


class DetectionServiceError(AnomalyOverlayError):
    """Lookout for Vision rejected or failed a DetectAnomalies call."""


class MaskDecodeError(AnomalyOverlayError):
    """Anomaly mask bytes do not match the expected raster layout."""


class StorageError(AnomalyOverlayError):
    """Overlay artifact could not be written to S3."""


class ModelControlError(AnomalyOverlayError):
    """StartModel/StopModel was rejected by the remote service."""
