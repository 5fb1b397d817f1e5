"""Data model for the anomaly overlay pipeline.

Internal entities use snake_case. Models that mirror the HTTP contract or the
Lookout for Vision wire format keep the field names the callers see
(camelCase request bodies, PascalCase response members).
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageBuffer(BaseModel):
    """Encoded image bytes captured from a request."""
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., repr=False, description="Encoded image bytes (JPEG, PNG, ...)")
    mime_type: str = Field(..., description="Declared MIME type of the bytes")


class NormalizedImage(BaseModel):
    """Image resampled to the canonical detection resolution."""
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., repr=False)
    mime_type: str
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class DetectionResult(BaseModel):
    """Outcome of a DetectAnomalies call."""
    model_config = ConfigDict(frozen=True)

    is_anomalous: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: Optional[Dict[str, Any]] = None
    anomalies: Optional[List[Dict[str, Any]]] = None
    raw_mask: Optional[bytes] = Field(default=None, repr=False, exclude=True)

    @classmethod
    def from_lookout(cls, response: Dict[str, Any]) -> "DetectionResult":
        """Build a result from a boto3 ``detect_anomalies`` response."""
        result = response.get("DetectAnomalyResult") or {}
        return cls(
            is_anomalous=bool(result.get("IsAnomalous", False)),
            confidence=float(result.get("Confidence", 0.0)),
            source=result.get("Source"),
            anomalies=result.get("Anomalies"),
            raw_mask=result.get("AnomalyMask") or None,
        )


class CompositeArtifact(BaseModel):
    """Original image with the anomaly mask overlay-blended on top."""
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., repr=False)
    mime_type: str = "image/png"
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class StoredArtifactLocator(BaseModel):
    """Where a published overlay lives."""
    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    url: str


class AnomalyResult(BaseModel):
    """Caller-facing detection result. Has no slot for the raw mask."""
    model_config = ConfigDict(extra="forbid")

    Source: Optional[Dict[str, Any]] = None
    IsAnomalous: bool
    Confidence: float
    Anomalies: Optional[List[Dict[str, Any]]] = None
    AnomalyOverlayUrl: Optional[str] = None
    AnomalyOverlayError: Optional[str] = None


class ResponsePayload(BaseModel):
    """Body returned by ``POST /detect-anomalies``."""
    model_config = ConfigDict(extra="forbid")

    DetectAnomalyResult: AnomalyResult

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class StartModelRequest(BaseModel):
    """Body of ``POST /start-model``."""
    projectName: str = Field(..., min_length=1)
    modelVersion: str = Field(..., min_length=1)
    minInferenceUnits: int = Field(..., ge=1)
    maxInferenceUnits: Optional[int] = Field(default=None, ge=1)
    clientToken: Optional[str] = None


class StopModelRequest(BaseModel):
    """Body of ``POST /stop-model``."""
    projectName: str = Field(..., min_length=1)
    modelVersion: str = Field(..., min_length=1)


class DetectRequest(BaseModel):
    """Form fields of ``POST /detect-anomalies``."""
    projectName: str = Field(..., min_length=1)
    modelVersion: str = Field(..., min_length=1)
    contentType: Optional[str] = None


class ModelControlResult(BaseModel):
    """StartModel/StopModel response, minus transport metadata."""
    model_config = ConfigDict(extra="allow")

    Status: Optional[str] = None

    @classmethod
    def from_lookout(cls, response: Dict[str, Any]) -> "ModelControlResult":
        body = {k: v for k, v in response.items() if k != "ResponseMetadata"}
        return cls(**body)
