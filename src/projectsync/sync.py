"""Project sync engine.

Drives one sync pass over a bounded batch of records:

    budget check -> per-record fetch -> field mapping -> enrichment
    (contributors, readme) -> bookkeeping (modified timestamps)

Records are processed strictly one after another so that every request is
accounted against the shared rate limit in order. A failed record never
aborts the pass; only a failure to obtain the rate limit does.
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge
from prometheus_client.exposition import pushadd_to_gateway

from .config import SyncConfig, get_config
from .connectors.github.client import GitHubClient
from .connectors.github.rate_limit import RateLimiter
from .errors import FieldNotFoundError, InvalidJsonError, InvalidParameterError, SyncError
from .fields import DATETIME_FORMAT, FieldMapper, FieldSchema, SyncResult
from .hooks import (
    AdminAlertNotifier,
    CustomFieldHook,
    ErrorNotifier,
    OverrideAwareFieldHook,
    override_flag_name,
)
from .markdown import rewrite_relative_images
from .schema import CONTRIBUTORS_FIELD, PROJECT_SCHEMA, README_FIELD
from .stores import (
    MODIFIED_FIELD,
    MODIFIED_GMT_FIELD,
    MODIFIED_TS_FIELD,
    InMemoryRecordStore,
    QdrantRecordStore,
    RecordStore,
    SettingsCredentialStore,
)
from .urls import make_api_url

logger = logging.getLogger("projectsync.sync")

__all__ = ["ProjectSyncEngine", "SyncPassResult", "create_engine"]

# GitHub caps per_page at 100; a full page means "at least 100"
CONTRIBUTORS_PAGE_SIZE = 100


@dataclass
class SyncPassResult:
    """Result of one sync pass.

    Tracks per-record outcomes, enrichment failures and timing for metrics.
    """

    records_synced: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    field_errors: int = 0
    enrichment_errors: int = 0
    rate_remaining: int | None = None
    budget_exhausted: bool = False
    aborted: bool = False
    duration_seconds: float = 0.0
    failed_records: list[Any] = field(default_factory=list)

    @property
    def records_attempted(self) -> int:
        """Records that counted against the batch cap."""
        return self.records_synced + self.records_failed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for metrics and logging."""
        return {
            "records_synced": self.records_synced,
            "records_failed": self.records_failed,
            "records_skipped": self.records_skipped,
            "field_errors": self.field_errors,
            "enrichment_errors": self.enrichment_errors,
            "rate_remaining": self.rate_remaining,
            "budget_exhausted": self.budget_exhausted,
            "aborted": self.aborted,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class ProjectSyncEngine:
    """Synchronizes locally tracked repositories with the GitHub API.

    All collaborators are injected; the engine holds no global state.

    Attributes:
        store: Record store holding the synced records
        client: GitHubClient for every request made during a pass
        schema: Field schema (must mark exactly one URL field to sync)
        notifier: Alerting callout for records whose fetch failed
        rate_limiter: Budget gate consulted once per pass
        config: SyncConfig (batch cap, hosts, readme branch, metrics)
    """

    def __init__(
        self,
        store: RecordStore,
        client: GitHubClient,
        schema: FieldSchema = PROJECT_SCHEMA,
        notifier: ErrorNotifier | None = None,
        custom_hook: CustomFieldHook | None = None,
        rate_limiter: RateLimiter | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.client = client
        self.schema = schema
        self.url_field = schema.url_field
        self.notifier = notifier
        self.rate_limiter = rate_limiter or RateLimiter(
            client, padding=self.config.rate_padding, url=self.config.rate_limit_url
        )
        self.mapper = FieldMapper(
            schema, store, custom_hook or OverrideAwareFieldHook(store)
        )
        self.batch_cap = self.config.batch_cap

    async def __aenter__(self) -> "ProjectSyncEngine":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.client.close()

    # -- Pass entry point ----------------------------------------------

    async def run_sync_pass(self) -> SyncPassResult:
        """Run one full sync pass over the least recently modified records.

        Never raises for per-record problems; the returned result is for
        logging and metrics only.
        """
        start = time.monotonic()
        result = SyncPassResult()

        if not self.url_field:
            logger.warning("sync_pass_skipped: schema has no URL field")
            return result

        try:
            status = await self.rate_limiter.get_rate_limit_status()
        except SyncError as e:
            logger.error("Error retrieving rate limit, aborting pass: %s", e)
            result.aborted = True
            return self._finish(result, start)

        result.rate_remaining = status.remaining
        if status.exhausted:
            logger.info(
                "Rate limit budget exhausted (%d total), skipping pass", status.total
            )
            result.budget_exhausted = True
            return self._finish(result, start)

        try:
            record_ids = self.store.query_eligible(self.batch_cap)
        except Exception as e:
            logger.error("Failed to query eligible records: %s", e)
            result.aborted = True
            return self._finish(result, start)

        logger.info(
            "Starting sync pass: %d candidate records, cap=%d, budget=%d",
            len(record_ids),
            self.batch_cap,
            status.remaining,
        )

        for record_id in record_ids:
            api_url = self._resolve_api_url(record_id)
            if api_url is None:
                result.records_skipped += 1
                continue

            try:
                record_result = await self._sync_with_url(
                    record_id, api_url, context="scheduled"
                )
            except Exception as e:
                # Fail-open per record: log and continue with the next one
                logger.exception("Unexpected error syncing record %s: %s", record_id, e)
                result.records_failed += 1
                result.failed_records.append(record_id)
                continue

            result.field_errors += len(record_result.fields_failed)
            result.enrichment_errors += len(record_result.enrichments_failed)
            if record_result.success:
                result.records_synced += 1
            else:
                result.records_failed += 1
                result.failed_records.append(record_id)

        return self._finish(result, start)

    def _finish(self, result: SyncPassResult, start: float) -> SyncPassResult:
        result.duration_seconds = time.monotonic() - start
        if self.config.metrics_enabled:
            self._push_metrics(result)
        logger.info(
            "Sync pass complete: %d synced, %d failed, %d skipped in %.1fs",
            result.records_synced,
            result.records_failed,
            result.records_skipped,
            result.duration_seconds,
            extra=result.to_dict(),
        )
        return result

    # -- Single record -------------------------------------------------

    async def sync_record(self, record_id: Any, context: str = "") -> SyncResult:
        """Sync one record immediately, outside of a pass.

        No rate limit check is made. A record without a usable URL yields a
        failed INVALID_PARAMETER result without notifying.
        """
        if not self.url_field:
            return SyncResult.failure(
                InvalidParameterError("Schema has no URL field", record_id=record_id)
            )
        try:
            api_url = make_api_url(
                self.store.get_field(record_id, self.url_field),
                self.config.source_host,
                self.config.api_host,
            )
        except SyncError as e:
            logger.info("record_not_syncable", extra={"record_id": record_id, **e.to_dict()})
            return SyncResult.failure(e)
        return await self._sync_with_url(record_id, api_url, context)

    def _resolve_api_url(self, record_id: Any) -> str | None:
        """API URL for a record, or None when the record should be skipped."""
        try:
            url = self.store.get_field(record_id, self.url_field)
        except SyncError as e:
            logger.warning("Skipping record %s: %s", record_id, e)
            return None

        if not url or not str(url).strip():
            logger.info("[SKIPPING, no URL given] record %s", record_id)
            return None

        try:
            return make_api_url(url, self.config.source_host, self.config.api_host)
        except SyncError as e:
            logger.warning(
                "[SKIPPING, invalid URL] record %s, url=%s: %s", record_id, url, e
            )
            return None

    async def _sync_with_url(
        self, record_id: Any, api_url: str, context: str
    ) -> SyncResult:
        try:
            data = await self.client.get(api_url)
            if not isinstance(data, dict):
                raise InvalidJsonError(
                    "Repository payload is not a JSON object", url=api_url
                )
        except SyncError as e:
            logger.warning(
                "record_fetch_failed",
                extra={"record_id": record_id, "api_url": api_url, **e.to_dict()},
            )
            await self._notify_failure(record_id)
            return SyncResult.failure(e)

        result = self.mapper.apply_fields(record_id, data, context)

        for name, enrich in (
            ("contributors", self._enrich_contributors),
            ("readme", self._enrich_readme),
        ):
            try:
                await enrich(record_id, data)
            except SyncError as e:
                logger.warning(
                    "Failed to retrieve %s for record %s: %s", name, record_id, e
                )
                result.enrichments_failed.append(name)

        self._touch(record_id, result)

        logger.info(
            "Updated record %s",
            record_id,
            extra={"record_id": record_id, **result.to_dict()},
        )
        return result

    async def _notify_failure(self, record_id: Any) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.on_sync_failure(record_id)
        except Exception as e:
            logger.warning("Failure notifier raised for record %s: %s", record_id, e)

    # -- Enrichment ----------------------------------------------------

    async def _enrich_contributors(self, record_id: Any, data: dict[str, Any]) -> None:
        """Store the contributor count, or "100+" when the first page is full.

        Counting beyond one page would cost an extra request per hundred
        contributors, so the count is never paginated.
        """
        contributors_url = data.get("contributors_url")
        if not contributors_url:
            raise FieldNotFoundError(
                "Payload has no contributors_url", record_id=record_id
            )

        contributors = await self.client.get(
            contributors_url, params={"per_page": str(CONTRIBUTORS_PAGE_SIZE)}
        )
        if not isinstance(contributors, list):
            raise InvalidJsonError(
                "Contributors payload is not a JSON array", url=contributors_url
            )

        count: int | str = len(contributors)
        if count >= CONTRIBUTORS_PAGE_SIZE:
            count = f"{CONTRIBUTORS_PAGE_SIZE}+"
        self.store.upsert_field(record_id, CONTRIBUTORS_FIELD, count)

    async def _enrich_readme(self, record_id: Any, data: dict[str, Any]) -> None:
        """Fetch, decode and store the README unless the record overrides it."""
        if self.store.get_field(record_id, override_flag_name(README_FIELD)):
            logger.debug("readme_overridden", extra={"record_id": record_id})
            return

        repo_url = data.get("url")
        if not repo_url:
            raise FieldNotFoundError("Payload has no url", record_id=record_id)

        readme_url = f"{repo_url}/readme"
        readme = await self.client.get(readme_url)
        content = readme.get("content") if isinstance(readme, dict) else None
        if not isinstance(content, str):
            raise InvalidJsonError("Readme payload has no content", url=readme_url)

        try:
            markdown = base64.b64decode(content).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as e:
            raise InvalidJsonError(
                "Readme content is not valid base64", url=readme_url
            ) from e

        markdown = rewrite_relative_images(
            repo_url,
            markdown,
            branch=self.config.readme_branch,
            source_host=self.config.source_host,
            api_host=self.config.api_host,
        )
        self.store.upsert_field(record_id, README_FIELD, markdown)

    # -- Bookkeeping ---------------------------------------------------

    def _touch(self, record_id: Any, result: SyncResult) -> None:
        """Write the modification timestamps used to order future passes."""
        now = datetime.now(timezone.utc)
        for name, value in (
            (MODIFIED_FIELD, now.astimezone().strftime(DATETIME_FORMAT)),
            (MODIFIED_GMT_FIELD, now.strftime(DATETIME_FORMAT)),
            (MODIFIED_TS_FIELD, now.timestamp()),
        ):
            try:
                self.store.upsert_field(record_id, name, value)
            except SyncError as e:
                logger.warning(
                    "Failed to update %s on record %s: %s", name, record_id, e
                )
                result.fields_failed.append(name)

    # -- Metrics -------------------------------------------------------

    def _push_metrics(self, result: SyncPassResult) -> None:
        """Push pass metrics to the pushgateway. Failures are only logged."""
        try:
            registry = CollectorRegistry()

            records_total = Counter(
                "project_sync_records_total",
                "Records processed by sync passes",
                ["status"],
                registry=registry,
            )
            duration = Gauge(
                "project_sync_duration_seconds",
                "Sync pass duration",
                registry=registry,
            )
            remaining = Gauge(
                "project_sync_rate_remaining",
                "Padded API budget at the start of the last pass",
                registry=registry,
            )

            records_total.labels(status="synced").inc(result.records_synced)
            records_total.labels(status="failed").inc(result.records_failed)
            records_total.labels(status="skipped").inc(result.records_skipped)
            duration.set(result.duration_seconds)
            if result.rate_remaining is not None:
                remaining.set(result.rate_remaining)

            pushadd_to_gateway(
                self.config.pushgateway_url,
                job="project_sync",
                registry=registry,
            )
        except Exception as e:
            logger.warning("Failed to push metrics: %s", e)


def create_engine(
    config: SyncConfig | None = None,
    store: RecordStore | None = None,
) -> ProjectSyncEngine:
    """Wire a ProjectSyncEngine from configuration.

    Args:
        config: SyncConfig. Uses get_config() if None.
        store: Record store override. Defaults to the configured backend.
    """
    config = config or get_config()
    if store is None:
        if config.record_store == "qdrant":
            store = QdrantRecordStore(config=config)
        else:
            store = InMemoryRecordStore()

    client = GitHubClient(
        credentials=SettingsCredentialStore(config),
        timeout=config.request_timeout,
    )
    notifier = AdminAlertNotifier(store, url_field=PROJECT_SCHEMA.url_field, config=config)
    return ProjectSyncEngine(
        store=store,
        client=client,
        schema=PROJECT_SCHEMA,
        notifier=notifier,
        config=config,
    )
