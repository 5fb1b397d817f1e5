import pytest
from pydantic import ValidationError

from anomalyoverlay.assembler import assemble
from anomalyoverlay.schemas import AnomalyResult, DetectionResult, StoredArtifactLocator

LOCATOR = StoredArtifactLocator(
    bucket="results",
    key="overlays/anomaly_overlay_1-abc.png",
    url="https://results.s3.us-east-1.amazonaws.com/overlays/anomaly_overlay_1-abc.png",
)


def _detection(anomalous=True, mask=b"\x00" * 16):
    return DetectionResult(
        is_anomalous=anomalous,
        confidence=0.8,
        source={"Type": "direct"},
        anomalies=[{"Name": "background"}],
        raw_mask=mask,
    )


def test_anomalous_result_carries_overlay_url():
    body = assemble(_detection(), LOCATOR).to_json()
    assert body == {
        "DetectAnomalyResult": {
            "Source": {"Type": "direct"},
            "IsAnomalous": True,
            "Confidence": 0.8,
            "Anomalies": [{"Name": "background"}],
            "AnomalyOverlayUrl": LOCATOR.url,
        }
    }


def test_normal_result_has_no_overlay_field():
    body = assemble(_detection(anomalous=False, mask=None)).to_json()
    assert "AnomalyOverlayUrl" not in body["DetectAnomalyResult"]
    assert body["DetectAnomalyResult"]["IsAnomalous"] is False


def test_locator_is_ignored_for_normal_result():
    body = assemble(_detection(anomalous=False), LOCATOR).to_json()
    assert "AnomalyOverlayUrl" not in body["DetectAnomalyResult"]


def test_overlay_error_keeps_verdict():
    body = assemble(_detection(), overlay_error="Access Denied").to_json()
    result = body["DetectAnomalyResult"]
    assert result["IsAnomalous"] is True
    assert result["Confidence"] == 0.8
    assert result["AnomalyOverlayError"] == "Access Denied"
    assert "AnomalyOverlayUrl" not in result


@pytest.mark.parametrize("locator, error", [(LOCATOR, None), (None, None), (None, "boom")])
def test_mask_never_reaches_payload(locator, error):
    payload = assemble(_detection(), locator, error)
    assert "AnomalyMask" not in payload.to_json()["DetectAnomalyResult"]
    assert "raw_mask" not in str(payload.model_dump())


def test_result_rejects_mask_field():
    with pytest.raises(ValidationError):
        AnomalyResult(IsAnomalous=True, Confidence=0.5, AnomalyMask=b"\x00")


def test_detection_result_dump_excludes_mask():
    assert "raw_mask" not in _detection().model_dump()
