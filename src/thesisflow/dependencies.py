"""Global FastAPI dependencies for storage and workflow services.

Endpoints get a WorkflowEngine bound to the request's database session and
client info, and a DocumentBinder sharing that engine. Tests override
get_storage (and get_db) through app.dependency_overrides.
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .audit.service import client_info_from_request
from .database import get_db
from .domain.documents.ports.object_storage_port import ObjectStoragePort
from .domain.thesis.errors import StorageError
from .infrastructure.storage.s3_storage_adapter import S3StorageAdapter
from .infrastructure.storage.storage_config import load_storage_config
from .theses.document_binder import DocumentBinder
from .theses.workflow import WorkflowEngine

logger = logging.getLogger(__name__)


def get_storage() -> ObjectStoragePort:
    """Object storage adapter built from Settings.

    Raises:
        StorageError: If the storage configuration is invalid
    """
    try:
        config = load_storage_config()
    except ValueError as e:
        logger.error(f"Invalid storage configuration: {e}")
        raise StorageError(f"Object storage is misconfigured: {e}")
    return S3StorageAdapter.from_config(config)


def get_workflow_engine(
    request: Request,
    db: Session = Depends(get_db),
) -> WorkflowEngine:
    return WorkflowEngine(db, client=client_info_from_request(request))


def get_document_binder(
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage: ObjectStoragePort = Depends(get_storage),
) -> DocumentBinder:
    return DocumentBinder(engine, storage)
