"""Flask HTTP surface for the anomaly overlay service.

Routes:
    POST /start-model       start hosting a Lookout for Vision model version
    POST /stop-model        stop hosting it
    POST /detect-anomalies  multipart upload (field ``image``) -> verdict + overlay URL
    GET  /health            liveness probe

Clients are created once per app in ``build_services`` and shared by every
request; run the app with a threaded server so requests proceed concurrently.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from anomalyoverlay.aws import single_attempt_config
from anomalyoverlay.config import Config, configure_logging, load_config
from anomalyoverlay.errors import AnomalyOverlayError, RequestValidationError
from anomalyoverlay.lookout import LookoutClient
from anomalyoverlay.pipeline import AnomalyPipeline
from anomalyoverlay.publisher import ArtifactPublisher, S3Adapter
from anomalyoverlay.schemas import DetectRequest, ImageBuffer, StartModelRequest, StopModelRequest

logger = logging.getLogger(__name__)

EXTENSION_KEY = "anomalyoverlay"


@dataclass
class Services:
    """Process-wide collaborators injected into request handlers."""
    lookout: LookoutClient
    pipeline: AnomalyPipeline


def build_services(config: Config) -> Services:
    """Create the long-lived Lookout and S3 clients for ``config``."""
    boto_config = single_attempt_config(config.lookout.connect_timeout, config.lookout.read_timeout)
    lookout = LookoutClient(config.aws, boto_config=boto_config)
    publisher = ArtifactPublisher(
        S3Adapter(config.aws, boto_config=boto_config),
        bucket=config.s3.bucket_name,
        region=config.aws.region,
    )
    pipeline = AnomalyPipeline(
        lookout,
        publisher,
        canonical_width=config.lookout.canonical_width,
        canonical_height=config.lookout.canonical_height,
        overlay_prefix=config.s3.overlay_prefix,
    )
    return Services(lookout=lookout, pipeline=pipeline)


def _services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def _json_object() -> dict:
    """Request JSON body, which must be an object when present."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return body


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def create_app(config: Optional[Config] = None, services: Optional[Services] = None) -> Flask:
    """Application factory.

    Args:
        config: Loaded configuration; ``load_config()`` when omitted.
        services: Pre-built collaborators (tests inject doubles here).
    """
    config = config or load_config()
    configure_logging(config.logging)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.server.max_upload_mb * 1024 * 1024
    app.extensions[EXTENSION_KEY] = services or build_services(config)

    @app.errorhandler(AnomalyOverlayError)
    def handle_pipeline_error(error: AnomalyOverlayError):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed ({type(error).__name__}): {error.message}")
        else:
            logger.info(f"{request.method} {request.path} rejected: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        message = _validation_message(error)
        logger.info(f"{request.method} {request.path} rejected: {message}")
        return jsonify({"error": message}), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error: RequestEntityTooLarge):
        return jsonify({"error": f"Upload exceeds {config.server.max_upload_mb} MB"}), 413

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.error(f"{request.method} {request.path} failed ({type(error).__name__}): {error}", exc_info=error)
        return jsonify({"error": str(error)}), 500

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/start-model", methods=["POST"])
    def start_model():
        body = StartModelRequest(**_json_object())
        result = _services().lookout.start_model(
            body.projectName,
            body.modelVersion,
            body.minInferenceUnits,
            max_inference_units=body.maxInferenceUnits,
            client_token=body.clientToken,
        )
        return jsonify(result.model_dump(exclude_none=True))

    @app.route("/stop-model", methods=["POST"])
    def stop_model():
        body = StopModelRequest(**_json_object())
        result = _services().lookout.stop_model(body.projectName, body.modelVersion)
        return jsonify(result.model_dump(exclude_none=True))

    @app.route("/detect-anomalies", methods=["POST"])
    def detect_anomalies():
        upload = request.files.get("image")
        if upload is None or not upload.filename:
            raise RequestValidationError("No image file uploaded.")

        form = DetectRequest(**request.form.to_dict())
        image = ImageBuffer(data=upload.read(), mime_type=upload.mimetype or "application/octet-stream")
        payload = _services().pipeline.run(
            image,
            form.projectName,
            form.modelVersion,
            content_type=form.contentType,
        )
        return jsonify(payload.to_json())

    return app
