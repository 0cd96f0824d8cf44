"""Declarative field schema and the field mapper.

A FieldSchema lists every field a record type carries. Fields with a
``source_path`` are populated from the API response during sync; fields
without one are form-only and never touched by the mapper.

Source paths are colon-delimited walks into the JSON response, e.g.
``"license:name"`` reads ``response["license"]["name"]``. If any step is
missing (or null) the field's default is used instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

from .errors import ErrorKind, InvalidParameterError, SyncError

if TYPE_CHECKING:
    from .hooks import CustomFieldHook
    from .stores import RecordStore

logger = logging.getLogger("projectsync.fields")

__all__ = [
    "DATETIME_FORMAT",
    "FieldKind",
    "FieldMapper",
    "FieldSchema",
    "FieldSpec",
    "SyncResult",
    "format_datetime",
    "walk_path",
]

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
PATH_SEPARATOR = ":"

_MISSING = object()


class FieldKind(str, Enum):
    """How an extracted value is written to the record."""

    PLAIN = "plain"  # Upserted as-is
    DATETIME = "datetime"  # Reformatted to DATETIME_FORMAT (UTC)
    CUSTOM = "custom"  # Handed to the custom field hook


@dataclass(frozen=True)
class FieldSpec:
    """Declares one field of a record and how sync populates it.

    Attributes:
        name: Field name on the record
        default: Value used when the source path is absent in the response
        source_path: Colon-delimited path into the API response (None = form-only)
        kind: Coercion applied before writing
        is_url_field: This field holds the record's sync-source URL
        is_title_field: Extracted value also becomes the record's display title
    """

    name: str
    default: Any = ""
    source_path: str | None = None
    kind: FieldKind = FieldKind.PLAIN
    is_url_field: bool = False
    is_title_field: bool = False

    @property
    def is_synced(self) -> bool:
        """True when the field is populated from the API response."""
        return bool(self.source_path)


class FieldSchema:
    """Validated, ordered collection of FieldSpecs for one record type.

    Validation (at construction):
    - field names are unique
    - at most one field is marked as the URL field
    - at most one field is marked as the title field

    Raises:
        InvalidParameterError: If any validation rule is violated.
    """

    def __init__(self, specs: Iterable[FieldSpec]) -> None:
        self.specs: tuple[FieldSpec, ...] = tuple(specs)

        names = [spec.name for spec in self.specs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidParameterError(
                "Duplicate field names in schema", fields=duplicates
            )

        url_fields = [spec.name for spec in self.specs if spec.is_url_field]
        if len(url_fields) > 1:
            raise InvalidParameterError(
                "At most one field may be marked as the URL field", fields=url_fields
            )

        title_fields = [spec.name for spec in self.specs if spec.is_title_field]
        if len(title_fields) > 1:
            raise InvalidParameterError(
                "At most one field may be marked as the title field",
                fields=title_fields,
            )

        self.url_field: str | None = url_fields[0] if url_fields else None
        self.title_field: str | None = title_fields[0] if title_fields else None

    def __iter__(self):
        return iter(self.specs)

    def __len__(self) -> int:
        return len(self.specs)

    def get(self, name: str) -> FieldSpec | None:
        """Look up a spec by field name."""
        for spec in self.specs:
            if spec.name == name:
                return spec
        return None

    @property
    def synced_fields(self) -> list[FieldSpec]:
        """Specs populated from the API response, in declaration order."""
        return [spec for spec in self.specs if spec.is_synced]


def _walk(node: Any, tokens: list[str]) -> Any:
    if not tokens:
        return node
    head, rest = tokens[0], tokens[1:]
    if isinstance(node, dict):
        child = node.get(head, _MISSING)
    elif isinstance(node, list) and head.lstrip("-").isdigit():
        index = int(head)
        child = node[index] if -len(node) <= index < len(node) else _MISSING
    else:
        return _MISSING
    if child is _MISSING or child is None:
        return _MISSING
    return _walk(child, rest)


def walk_path(data: Any, path: str) -> tuple[bool, Any]:
    """Walk a colon-delimited path through a decoded JSON tree.

    Objects are indexed by key, arrays by integer token. A missing key,
    a null value or a scalar in the middle of the path ends the walk.

    Args:
        data: Decoded JSON (dict/list/scalars)
        path: Colon-delimited path, e.g. "license:name"

    Returns:
        (found, value) tuple; value is None when not found.

    Example:
        >>> walk_path({"license": {"name": "MIT"}}, "license:name")
        (True, 'MIT')
        >>> walk_path({"license": None}, "license:name")
        (False, None)
    """
    value = _walk(data, path.split(PATH_SEPARATOR))
    if value is _MISSING:
        return False, None
    return True, value


def _from_epoch(seconds: float) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise InvalidParameterError(
            f"Timestamp out of range: {seconds!r}", value=seconds
        ) from e


def format_datetime(value: Any) -> str:
    """Parse a timestamp and reformat it as ``YYYY-MM-DD HH:MM:SS`` in UTC.

    Accepts ISO 8601 strings (a trailing ``Z`` is allowed), epoch seconds
    (int/float or numeric strings) and datetime objects. Naive values are
    treated as UTC.

    Raises:
        InvalidParameterError: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        raise InvalidParameterError("Boolean is not a timestamp", value=value)

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = _from_epoch(value)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = _from_epoch(float(text))
        except (ValueError, InvalidParameterError):
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError as e:
                raise InvalidParameterError(
                    f"Unparsable timestamp: {value!r}", value=value
                ) from e
    else:
        raise InvalidParameterError(f"Unparsable timestamp: {value!r}", value=value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime(DATETIME_FORMAT)


@dataclass
class SyncResult:
    """Result of syncing a single record.

    Writes are best-effort: a failed result never implies a rollback, and
    a successful one may still carry per-field failures.
    """

    success: bool = True
    error_kind: ErrorKind | None = None
    context: dict[str, Any] = field(default_factory=dict)
    fields_written: list[str] = field(default_factory=list)
    fields_failed: list[str] = field(default_factory=list)
    enrichments_failed: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: SyncError) -> "SyncResult":
        """Build a failed result from a typed error."""
        return cls(success=False, error_kind=error.kind, context=error.to_dict())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        return {
            "success": self.success,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "fields_written": len(self.fields_written),
            "fields_failed": list(self.fields_failed),
            "enrichments_failed": list(self.enrichments_failed),
        }


class FieldMapper:
    """Applies a FieldSchema to an API response, writing into a record store.

    Each field is written independently: a failure on one field is logged
    and recorded, and the remaining fields are still attempted.

    Attributes:
        schema: Field schema to apply
        store: Record store receiving the writes
        custom_hook: Receives values of fields with kind=custom
    """

    def __init__(
        self,
        schema: FieldSchema,
        store: "RecordStore",
        custom_hook: "CustomFieldHook | None" = None,
    ) -> None:
        self.schema = schema
        self.store = store
        self.custom_hook = custom_hook

    def apply_fields(
        self,
        record_id: Any,
        response: dict[str, Any],
        context: str = "",
    ) -> SyncResult:
        """Populate every synced field of a record from an API response.

        Args:
            record_id: Record to update
            response: Decoded primary API payload
            context: Caller context passed through to the custom field hook

        Returns:
            SyncResult (always success) listing written and failed fields.
        """
        result = SyncResult()

        for spec in self.schema.synced_fields:
            found, value = walk_path(response, spec.source_path)
            if not found:
                value = spec.default

            try:
                self._apply_field(record_id, spec, value, context)
                result.fields_written.append(spec.name)
            except SyncError as e:
                logger.warning(
                    "field_sync_failed",
                    extra={"record_id": record_id, "field": spec.name, **e.to_dict()},
                )
                result.fields_failed.append(spec.name)

        logger.debug(
            "fields_applied",
            extra={"record_id": record_id, **result.to_dict()},
        )
        return result

    def _apply_field(
        self, record_id: Any, spec: FieldSpec, value: Any, context: str
    ) -> None:
        if spec.is_title_field and value != spec.default:
            self.store.set_title(record_id, str(value))

        if spec.kind is FieldKind.DATETIME and value != spec.default:
            value = format_datetime(value)

        if spec.kind is FieldKind.CUSTOM:
            if self.custom_hook is None:
                raise InvalidParameterError(
                    "No custom field hook configured", field=spec.name
                )
            self.custom_hook.on_custom_field(record_id, spec.name, value, context)
        else:
            self.store.upsert_field(record_id, spec.name, value)

