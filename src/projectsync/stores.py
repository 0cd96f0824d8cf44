"""Record and credential stores consumed by the sync engine.

The engine never owns record lifecycle: records are created elsewhere and
the engine only reads and writes fields by name. Two record stores ship
with the package:

- InMemoryRecordStore: dict-backed, used for dry runs and tests
- QdrantRecordStore: records persisted as vectorless Qdrant points whose
  payload holds the record fields
"""

import logging
from itertools import count
from typing import Any, NamedTuple, Protocol

from qdrant_client import QdrantClient, models
from qdrant_client.http.exceptions import UnexpectedResponse

from .config import SyncConfig, get_config
from .errors import RecordNotFoundError

logger = logging.getLogger("projectsync.stores")

__all__ = [
    "MODIFIED_FIELD",
    "MODIFIED_GMT_FIELD",
    "MODIFIED_TS_FIELD",
    "TITLE_KEY",
    "CredentialStore",
    "Credentials",
    "InMemoryRecordStore",
    "QdrantRecordStore",
    "RecordStore",
    "SettingsCredentialStore",
    "ensure_collection",
    "get_qdrant_client",
]

# Bookkeeping fields written after every successful record sync
MODIFIED_FIELD = "modified"  # Local time, YYYY-MM-DD HH:MM:SS
MODIFIED_GMT_FIELD = "modified_gmt"  # UTC, YYYY-MM-DD HH:MM:SS
MODIFIED_TS_FIELD = "modified_ts"  # Epoch seconds, used for eligibility ordering

TITLE_KEY = "display_title"


class RecordStore(Protocol):
    """Storage for synced records, addressed by record id and field name."""

    def get_field(self, record_id: Any, name: str) -> Any:
        """Return a field value (None if unset). Raises RecordNotFoundError."""
        ...

    def upsert_field(self, record_id: Any, name: str, value: Any) -> None:
        """Create or overwrite a field. Raises RecordNotFoundError."""
        ...

    def get_title(self, record_id: Any) -> str:
        """Return the record's display title."""
        ...

    def set_title(self, record_id: Any, text: str) -> None:
        """Set the record's display title."""
        ...

    def query_eligible(self, batch_size: int, order_by: str = MODIFIED_TS_FIELD) -> list[Any]:
        """Return up to batch_size record ids, least recently modified first."""
        ...


class Credentials(NamedTuple):
    """Basic Auth credential pair."""

    user: str
    key: str


class CredentialStore(Protocol):
    """Source of API credentials; None means anonymous requests."""

    def get_credentials(self) -> Credentials | None:
        ...


class SettingsCredentialStore:
    """Reads API credentials from SyncConfig (API_USER / API_KEY)."""

    def __init__(self, config: SyncConfig | None = None) -> None:
        self.config = config or get_config()

    def get_credentials(self) -> Credentials | None:
        """Return credentials only when both user and key are set."""
        if not self.config.has_credentials():
            return None
        return Credentials(self.config.api_user, self.config.api_key.get_secret_value())


class InMemoryRecordStore:
    """Dict-backed record store.

    Records never synced have modified_ts=0 and therefore sort first.
    Ties keep creation order.
    """

    def __init__(self) -> None:
        self._records: dict[Any, dict[str, Any]] = {}
        self._titles: dict[Any, str] = {}
        self._created: dict[Any, int] = {}
        self._counter = count()

    def create_record(self, record_id: Any, title: str = "", **fields: Any) -> None:
        """Register a record with optional initial field values."""
        self._records[record_id] = {MODIFIED_TS_FIELD: 0, **fields}
        self._titles[record_id] = title
        self._created[record_id] = next(self._counter)

    def _require(self, record_id: Any) -> dict[str, Any]:
        try:
            return self._records[record_id]
        except KeyError:
            raise RecordNotFoundError(
                f"Record {record_id!r} not found", record_id=record_id
            ) from None

    def get_field(self, record_id: Any, name: str) -> Any:
        return self._require(record_id).get(name)

    def upsert_field(self, record_id: Any, name: str, value: Any) -> None:
        self._require(record_id)[name] = value

    def get_title(self, record_id: Any) -> str:
        self._require(record_id)
        return self._titles.get(record_id, "")

    def set_title(self, record_id: Any, text: str) -> None:
        self._require(record_id)
        self._titles[record_id] = text

    def query_eligible(self, batch_size: int, order_by: str = MODIFIED_TS_FIELD) -> list[Any]:
        ordered = sorted(
            self._records,
            key=lambda rid: (self._records[rid].get(order_by) or 0, self._created[rid]),
        )
        return ordered[:batch_size]

    def fields(self, record_id: Any) -> dict[str, Any]:
        """Snapshot of all fields on a record."""
        return dict(self._require(record_id))


def get_qdrant_client(config: SyncConfig | None = None) -> QdrantClient:
    """Get a Qdrant client configured from SyncConfig.

    Args:
        config: Optional SyncConfig instance. Uses get_config() if not provided.
    """
    config = config or get_config()
    return QdrantClient(
        host=config.qdrant_host,
        port=config.qdrant_port,
        api_key=(
            config.qdrant_api_key.get_secret_value() if config.qdrant_api_key else None
        ),
        https=config.qdrant_use_https,
        timeout=10,
    )


def ensure_collection(client: QdrantClient, collection_name: str) -> bool:
    """Create the records collection and its ordering index if missing.

    Records carry no vectors; the float index on modified_ts is what makes
    ordered scrolling (least recently modified first) possible.

    Returns:
        True if the collection was created, False if it already existed.
    """
    if client.collection_exists(collection_name):
        return False

    client.create_collection(collection_name=collection_name, vectors_config={})
    client.create_payload_index(
        collection_name=collection_name,
        field_name=MODIFIED_TS_FIELD,
        field_schema=models.PayloadSchemaType.FLOAT,
    )
    logger.info("records_collection_created", extra={"collection": collection_name})
    return True


class QdrantRecordStore:
    """Record store backed by a Qdrant collection.

    Each record is a point without vectors. Field values live at the top
    level of the payload; the display title is kept under TITLE_KEY.
    Writes use set_payload, so only the touched key changes.

    Attributes:
        client: Qdrant client
        collection_name: Collection holding the records
    """

    def __init__(
        self,
        client: QdrantClient | None = None,
        collection_name: str | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        config = config or get_config()
        self.client = client or get_qdrant_client(config)
        self.collection_name = collection_name or config.qdrant_collection

    def create_record(self, record_id: Any, title: str = "", **fields: Any) -> None:
        """Insert a record (point) with modified_ts=0 so it sorts first."""
        self.client.upsert(
            collection_name=self.collection_name,
            points=[
                models.PointStruct(
                    id=record_id,
                    vector={},
                    payload={MODIFIED_TS_FIELD: 0, TITLE_KEY: title, **fields},
                )
            ],
        )

    def _payload(self, record_id: Any) -> dict[str, Any]:
        points = self.client.retrieve(
            collection_name=self.collection_name,
            ids=[record_id],
            with_payload=True,
            with_vectors=False,
        )
        if not points:
            raise RecordNotFoundError(
                f"Record {record_id!r} not found", record_id=record_id
            )
        return points[0].payload or {}

    def _set(self, record_id: Any, payload: dict[str, Any]) -> None:
        try:
            self.client.set_payload(
                collection_name=self.collection_name,
                payload=payload,
                points=[record_id],
            )
        except UnexpectedResponse as e:
            if e.status_code == 404:
                raise RecordNotFoundError(
                    f"Record {record_id!r} not found", record_id=record_id
                ) from e
            raise

    def get_field(self, record_id: Any, name: str) -> Any:
        return self._payload(record_id).get(name)

    def upsert_field(self, record_id: Any, name: str, value: Any) -> None:
        self._set(record_id, {name: value})

    def get_title(self, record_id: Any) -> str:
        return self._payload(record_id).get(TITLE_KEY, "")

    def set_title(self, record_id: Any, text: str) -> None:
        self._set(record_id, {TITLE_KEY: text})

    def query_eligible(self, batch_size: int, order_by: str = MODIFIED_TS_FIELD) -> list[Any]:
        points, _ = self.client.scroll(
            collection_name=self.collection_name,
            limit=batch_size,
            order_by=models.OrderBy(key=order_by, direction=models.Direction.ASC),
            with_payload=False,
            with_vectors=False,
        )
        return [point.id for point in points]
