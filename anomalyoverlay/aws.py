"""Shared boto3 session and client construction.

Clients are built once per process and reused across requests; boto3
clients are safe to share between threads once created.
"""

import threading
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

from anomalyoverlay.config import AWSConfig


def build_session(aws: AWSConfig) -> boto3.Session:
    """Create a boto3 session from explicit credentials, a profile, or the default chain."""
    kwargs = {"region_name": aws.region}
    if aws.profile:
        kwargs["profile_name"] = aws.profile
    elif aws.access_key_id and aws.secret_access_key:
        kwargs["aws_access_key_id"] = aws.access_key_id
        kwargs["aws_secret_access_key"] = aws.secret_access_key
        if aws.session_token:
            kwargs["aws_session_token"] = aws.session_token
    return boto3.Session(**kwargs)


def single_attempt_config(connect_timeout: float = 10.0, read_timeout: float = 60.0) -> BotoConfig:
    """botocore config with no retries and bounded timeouts."""
    return BotoConfig(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"total_max_attempts": 1, "mode": "standard"},
        max_pool_connections=50,
    )


class LazyClient:
    """Creates a boto3 client on first use, exactly once, under a lock."""

    service_name = ""

    def __init__(self, aws: AWSConfig, *, client: Any = None, boto_config: Optional[BotoConfig] = None):
        self.aws = aws
        self.boto_config = boto_config or single_attempt_config()
        self._client = client
        self._lock = threading.Lock()

    @property
    def client(self) -> Any:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    session = build_session(self.aws)
                    self._client = session.client(self.service_name, config=self.boto_config)
        return self._client
