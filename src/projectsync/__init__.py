"""Project Sync - GitHub repository metadata synchronization.

Keeps locally tracked project records in step with the GitHub REST API:
- Configuration management with environment overrides
- Async API client with Basic Auth and a rate limit gate
- Declarative field schema applied to API payloads
- README enrichment with relative image rewriting
- Record stores (in-memory and Qdrant)

Python Version: 3.10+ required
"""

# Configure logging before other imports
from .logging_config import StructuredFormatter, configure_logging

configure_logging()

from .__version__ import __version__
from .config import SyncConfig, get_config, reset_config
from .errors import (
    ErrorKind,
    FieldNotFoundError,
    HttpRequestFailedError,
    InvalidJsonError,
    InvalidParameterError,
    RecordNotFoundError,
    SyncError,
)
from .fields import FieldKind, FieldMapper, FieldSchema, FieldSpec, SyncResult
from .markdown import rewrite_relative_images
from .schema import PROJECT_SCHEMA, build_project_schema
from .stores import InMemoryRecordStore, QdrantRecordStore
from .sync import ProjectSyncEngine, SyncPassResult, create_engine
from .urls import make_api_url, make_web_url, sanitize_url

__all__ = [
    "PROJECT_SCHEMA",
    "ErrorKind",
    "FieldKind",
    "FieldMapper",
    "FieldNotFoundError",
    "FieldSchema",
    "FieldSpec",
    "HttpRequestFailedError",
    "InMemoryRecordStore",
    "InvalidJsonError",
    "InvalidParameterError",
    "ProjectSyncEngine",
    "QdrantRecordStore",
    "RecordNotFoundError",
    "StructuredFormatter",
    "SyncConfig",
    "SyncError",
    "SyncPassResult",
    "SyncResult",
    "__version__",
    "build_project_schema",
    "configure_logging",
    "create_engine",
    "get_config",
    "make_api_url",
    "make_web_url",
    "rewrite_relative_images",
    "reset_config",
    "sanitize_url",
]
