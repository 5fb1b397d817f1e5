"""Request pipeline: normalize -> detect -> composite -> publish -> assemble.

One ``AnomalyPipeline`` is shared by all requests. It holds only the
long-lived clients and immutable settings; every intermediate value lives in
the call that created it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from anomalyoverlay.assembler import assemble
from anomalyoverlay.compositor import composite
from anomalyoverlay.errors import DecodeError, MaskDecodeError, StorageError
from anomalyoverlay.lookout import LookoutClient
from anomalyoverlay.normalizer import normalize
from anomalyoverlay.publisher import ArtifactPublisher
from anomalyoverlay.schemas import DetectionResult, ImageBuffer, NormalizedImage, ResponsePayload, StoredArtifactLocator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlayOutcome:
    """Result of the optional overlay step: a locator, an error, or neither."""
    locator: Optional[StoredArtifactLocator] = None
    error: Optional[str] = None


class AnomalyPipeline:
    """Runs one image through detection and overlay publishing."""

    def __init__(
        self,
        lookout: LookoutClient,
        publisher: ArtifactPublisher,
        canonical_width: int = 2268,
        canonical_height: int = 4032,
        overlay_prefix: str = "anomaly-overlays",
    ):
        self.lookout = lookout
        self.publisher = publisher
        self.canonical_width = canonical_width
        self.canonical_height = canonical_height
        self.overlay_prefix = overlay_prefix

    def run(
        self,
        image: ImageBuffer,
        project_name: str,
        model_version: str,
        content_type: Optional[str] = None,
    ) -> ResponsePayload:
        """Detect anomalies in ``image`` and publish an overlay when a mask comes back.

        Detection failures propagate. Overlay failures are reported in the
        payload's ``AnomalyOverlayError`` field instead.
        """
        normalized = normalize(image, self.canonical_width, self.canonical_height, mime_type=image.mime_type)
        detection = self.lookout.detect(project_name, model_version, normalized, content_type)
        overlay = self.build_overlay(normalized, detection)
        return assemble(detection, overlay.locator, overlay.error)

    def build_overlay(self, normalized: NormalizedImage, detection: DetectionResult) -> OverlayOutcome:
        if not detection.is_anomalous or not detection.raw_mask:
            return OverlayOutcome()

        try:
            artifact = composite(
                normalized,
                detection.raw_mask,
                mask_width=self.canonical_width,
                mask_height=self.canonical_height,
            )
            locator = self.publisher.publish_artifact(artifact, self.overlay_prefix)
        except (MaskDecodeError, DecodeError, StorageError) as e:
            logger.warning(f"Overlay unavailable ({type(e).__name__}): {e.message}")
            return OverlayOutcome(error=e.message)

        return OverlayOutcome(locator=locator)
