"""Host-side hooks invoked by the sync engine.

- CustomFieldHook: intercepts fields declared with kind=custom
- ErrorNotifier: fire-and-forget callout when a record fails to sync
"""

import logging
from typing import Any, Protocol

import httpx

from .config import SyncConfig, get_config
from .errors import SyncError
from .stores import RecordStore
from .urls import make_api_url

logger = logging.getLogger("projectsync.hooks")

__all__ = [
    "AdminAlertNotifier",
    "CustomFieldHook",
    "ErrorNotifier",
    "OverrideAwareFieldHook",
    "override_flag_name",
]


class CustomFieldHook(Protocol):
    """Receives values for fields declared with kind=custom."""

    def on_custom_field(
        self, record_id: Any, field_name: str, value: Any, context: str
    ) -> bool:
        """Write (or veto) a custom field. Returns True if written."""
        ...


class ErrorNotifier(Protocol):
    """Alerting callout for records whose primary fetch failed."""

    async def on_sync_failure(self, record_id: Any) -> None:
        ...


def override_flag_name(field_name: str) -> str:
    """Name of the record flag that pins a field to its locally curated value."""
    return f"override_{field_name}"


class OverrideAwareFieldHook:
    """Skips synced writes for fields the user chose to curate locally.

    If the record's ``override_<field>`` flag is truthy (e.g. the user wrote
    their own description for a repository they don't own), the API value is
    discarded. Otherwise the value is upserted as usual.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def on_custom_field(
        self, record_id: Any, field_name: str, value: Any, context: str
    ) -> bool:
        if self.store.get_field(record_id, override_flag_name(field_name)):
            logger.debug(
                "custom_field_overridden",
                extra={"record_id": record_id, "field": field_name, "sync_context": context},
            )
            return False

        self.store.upsert_field(record_id, field_name, value)
        return True


class AdminAlertNotifier:
    """Logs sync failures and optionally posts them to a webhook.

    Every failure is logged. A JSON alert ``{"subject", "message",
    "record_id", "api_url"}`` is POSTed to FAILURE_WEBHOOK_URL only when
    NOTIFY_ON_FAILURE is enabled. Gathering context is best-effort, and
    nothing raised here reaches the caller.

    Attributes:
        store: Record store (title and URL lookup)
        url_field: Name of the field holding the sync-source URL
        config: SyncConfig with notification settings
    """

    WEBHOOK_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        store: RecordStore,
        url_field: str,
        config: SyncConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.store = store
        self.url_field = url_field
        self.config = config or get_config()
        self._http = http_client

    def _describe(self, record_id: Any) -> tuple[str, str]:
        """Return (title, api_url) for the failed record, best-effort."""
        try:
            title = self.store.get_title(record_id) or str(record_id)
        except SyncError:
            title = str(record_id)
        try:
            api_url = make_api_url(
                self.store.get_field(record_id, self.url_field),
                self.config.source_host,
                self.config.api_host,
            )
        except SyncError:
            api_url = "unknown"
        return title, api_url

    async def on_sync_failure(self, record_id: Any) -> None:
        title, api_url = self._describe(record_id)
        subject = f"Failed to update repository: {title}"
        message = (
            f"Could not update '{title}'. The failing URL was {api_url}. "
            f"Please check record {record_id} to fix this."
        )

        notify = self.config.notify_on_failure
        logger.error(
            "record_sync_failed",
            extra={"record_id": record_id, "api_url": api_url, "notified": notify},
        )
        if not notify:
            return

        alert = {
            "subject": subject,
            "message": message,
            "record_id": str(record_id),
            "api_url": api_url,
        }
        try:
            if self._http is not None:
                response = await self._http.post(
                    self.config.failure_webhook_url, json=alert
                )
            else:
                async with httpx.AsyncClient(timeout=self.WEBHOOK_TIMEOUT) as client:
                    response = await client.post(
                        self.config.failure_webhook_url, json=alert
                    )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "failure_alert_not_sent",
                extra={"record_id": record_id, "error": str(e)},
            )
