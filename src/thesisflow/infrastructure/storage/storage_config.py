"""Object storage settings, resolved from the application Settings.

An empty ``S3_ENDPOINT_URL`` means AWS S3 proper; anything else is treated
as an S3-compatible endpoint such as a local MinIO.
"""

from dataclasses import dataclass
from typing import List, Optional

from ...config import Settings, get_settings


@dataclass
class StorageConfig:
    endpoint_url: Optional[str]
    access_key: str
    secret_key: str
    bucket_name: str
    region: str = "us-east-1"

    @property
    def uses_aws(self) -> bool:
        return not self.endpoint_url


def validate_storage_config(config: StorageConfig) -> None:
    """Raise ValueError listing every problem with ``config``."""
    problems: List[str] = []
    for field in ("access_key", "secret_key", "bucket_name"):
        if not getattr(config, field):
            problems.append(f"{field} is required")

    if config.uses_aws:
        if not config.region:
            problems.append("region is required when no endpoint_url is set")
    elif not config.endpoint_url.startswith(("http://", "https://")):
        problems.append(f"endpoint_url must be http(s), got {config.endpoint_url!r}")

    if problems:
        raise ValueError("Invalid storage configuration: " + "; ".join(problems))


def load_storage_config(settings: Optional[Settings] = None) -> StorageConfig:
    settings = settings or get_settings()
    config = StorageConfig(
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        access_key=settings.S3_ACCESS_KEY_ID,
        secret_key=settings.S3_SECRET_ACCESS_KEY,
        bucket_name=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
    )
    validate_storage_config(config)
    return config
