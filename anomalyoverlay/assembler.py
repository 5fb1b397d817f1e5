"""Builds the caller-facing payload from a detection result."""

from typing import Optional

from anomalyoverlay.schemas import AnomalyResult, DetectionResult, ResponsePayload, StoredArtifactLocator


def assemble(
    detection: DetectionResult,
    locator: Optional[StoredArtifactLocator] = None,
    overlay_error: Optional[str] = None,
) -> ResponsePayload:
    """Assemble the response field by field.

    The raw mask never reaches the payload: ``AnomalyResult`` has no field
    for it and rejects unknown fields. The overlay URL is only attached to
    anomalous results.
    """
    overlay_url = locator.url if (locator is not None and detection.is_anomalous) else None
    return ResponsePayload(
        DetectAnomalyResult=AnomalyResult(
            Source=detection.source,
            IsAnomalous=detection.is_anomalous,
            Confidence=detection.confidence,
            Anomalies=detection.anomalies,
            AnomalyOverlayUrl=overlay_url,
            AnomalyOverlayError=overlay_error,
        )
    )
