from .storage_config import StorageConfig, load_storage_config, validate_storage_config
from .s3_storage_adapter import S3StorageAdapter

__all__ = ["StorageConfig", "load_storage_config", "validate_storage_config", "S3StorageAdapter"]
