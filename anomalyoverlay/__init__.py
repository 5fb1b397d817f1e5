"""Visual anomaly overlay service.

Forwards images to an Amazon Lookout for Vision model and turns the returned
anomaly mask into an overlay image stored in S3:

- Image normalization to the model's canonical resolution
- Detection and model start/stop pass-through
- Overlay-blend compositing of the anomaly mask
- Artifact publishing with collision-free object keys
- Response assembly with the raw mask stripped
"""

__version__ = "0.1.0"
