"""Amazon Lookout for Vision client.

Thin pass-through over the boto3 ``lookoutvision`` client. Model lifecycle
state (STARTING, HOSTED, STOPPING, ...) belongs to the remote service and is
only reported back.
"""

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from anomalyoverlay.aws import LazyClient
from anomalyoverlay.errors import DetectionServiceError, ModelControlError, RequestValidationError
from anomalyoverlay.schemas import DetectionResult, ModelControlResult, NormalizedImage

logger = logging.getLogger(__name__)


def _require(name: str, value: Optional[str]) -> str:
    if not value or not str(value).strip():
        raise RequestValidationError(f"{name} is required")
    return value


class LookoutClient(LazyClient):
    """Detection and model control calls against one AWS account/region."""

    service_name = "lookoutvision"

    def detect(
        self,
        project_name: str,
        model_version: str,
        image: NormalizedImage,
        content_type: Optional[str] = None,
    ) -> DetectionResult:
        """Submit a normalized image to a hosted model.

        Raises:
            RequestValidationError: If an identifier is empty or the image has no bytes.
            DetectionServiceError: If the service rejects or fails the call.
        """
        _require("projectName", project_name)
        _require("modelVersion", model_version)
        if not image.data:
            raise RequestValidationError("image is empty")

        try:
            response = self.client.detect_anomalies(
                ProjectName=project_name,
                ModelVersion=model_version,
                Body=image.data,
                ContentType=content_type or image.mime_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise DetectionServiceError.from_boto(e) from e

        result = DetectionResult.from_lookout(response)
        logger.info(
            f"DetectAnomalies {project_name}/{model_version}: anomalous={result.is_anomalous} "
            f"confidence={result.confidence:.4f} mask={'yes' if result.raw_mask else 'no'}"
        )
        return result

    def start_model(
        self,
        project_name: str,
        model_version: str,
        min_inference_units: int,
        max_inference_units: Optional[int] = None,
        client_token: Optional[str] = None,
    ) -> ModelControlResult:
        """Start hosting a model version.

        Idempotency is delegated to the service: repeating a call with the same
        ``client_token`` does not start a second deployment.
        """
        _require("projectName", project_name)
        _require("modelVersion", model_version)
        params: Dict[str, Any] = {
            "ProjectName": project_name,
            "ModelVersion": model_version,
            "MinInferenceUnits": min_inference_units,
        }
        if max_inference_units:
            params["MaxInferenceUnits"] = max_inference_units
        if client_token:
            params["ClientToken"] = client_token

        try:
            response = self.client.start_model(**params)
        except (ClientError, BotoCoreError) as e:
            raise ModelControlError.from_boto(e) from e

        result = ModelControlResult.from_lookout(response)
        logger.info(f"StartModel {project_name}/{model_version}: {result.Status}")
        return result

    def stop_model(self, project_name: str, model_version: str) -> ModelControlResult:
        """Stop hosting a model version."""
        _require("projectName", project_name)
        _require("modelVersion", model_version)
        try:
            response = self.client.stop_model(ProjectName=project_name, ModelVersion=model_version)
        except (ClientError, BotoCoreError) as e:
            raise ModelControlError.from_boto(e) from e

        result = ModelControlResult.from_lookout(response)
        logger.info(f"StopModel {project_name}/{model_version}: {result.Status}")
        return result
