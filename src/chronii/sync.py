"""
Local/cloud synchronization.

synchronize_items() is the merge primitive: it copies every source item the
destination lacks and overwrites destination items whose updated_at is
strictly older than the source copy (last write wins, destination wins
ties). Items missing from the source are left alone on the destination, so
deletions are not propagated.

SyncService runs that primitive for todos, timers and notes, in either
direction, isolating each collection's failures from the others.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

from .auth import AuthProvider
from .errors import NotAuthenticatedError, StoreError
from .repositories.base import BaseRepository
from .repositories.factory import EntityKind, RepositoryFactory
from .settings import Settings

logger = logging.getLogger(__name__)

S = TypeVar("S")


class SyncDirection(str, Enum):
    TO_CLOUD = "to_cloud"
    TO_LOCAL = "to_local"


class SyncStatus(str, Enum):
    COMPLETED = "completed"  # every write succeeded
    PARTIAL = "partial"  # some item writes failed; safe to retry
    FAILED = "failed"  # the pass aborted before or during its read phase
    SKIPPED = "skipped"  # not attempted


# PUBLIC_INTERFACE
@dataclass
class SyncResult:
    """Outcome of one merge pass for one collection."""

    kind: Optional[EntityKind] = None
    status: SyncStatus = SyncStatus.COMPLETED
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    removed_from_source: int = 0
    reason: Optional[str] = None
    synced_ids: List[str] = field(default_factory=list, repr=False)

    @property
    def writes(self) -> int:
        return self.added + self.updated

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("synced_ids")
        data["kind"] = self.kind.value if self.kind else None
        data["status"] = self.status.value
        return data


# PUBLIC_INTERFACE
@dataclass
class SyncReport:
    """Outcome of a synchronization in one direction across all collections."""

    direction: SyncDirection
    results: Dict[EntityKind, SyncResult] = field(default_factory=dict)

    @property
    def skipped(self) -> bool:
        return bool(self.results) and all(r.status is SyncStatus.SKIPPED for r in self.results.values())

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and all(r.status is SyncStatus.COMPLETED for r in self.results.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "skipped": self.skipped,
            "succeeded": self.succeeded,
            "results": {kind.value: result.to_dict() for kind, result in self.results.items()},
        }


def _bounded(write: Awaitable[Any], timeout: Optional[float]) -> Awaitable[Any]:
    return asyncio.wait_for(write, timeout) if timeout else write


def _latest_by_id(items: Iterable[S]) -> Dict[str, S]:
    latest: Dict[str, Any] = {}
    for item in items:
        current = latest.get(item.id)  # type: ignore[attr-defined]
        if current is None or item.updated_at > current.updated_at:  # type: ignore[attr-defined]
            latest[item.id] = item  # type: ignore[attr-defined]
    return latest


# PUBLIC_INTERFACE
async def synchronize_items(
    source: BaseRepository,
    destination: BaseRepository,
    timeout: Optional[float] = None,
) -> SyncResult:
    """
    Merge every item of ``source`` into ``destination`` by updated_at.

    Both sides are read completely before the first write. Writes target
    distinct ids, so they are issued concurrently; the call returns only
    after all of them finished. A write that raises, times out, or (for
    update) reports a missing id counts as failed and the pass reports
    PARTIAL; the other writes are unaffected.

    Args:
        source: Repository whose items are copied.
        destination: Repository receiving new and newer items.
        timeout: Per-write limit in seconds; None for no limit.

    Returns:
        SyncResult with added/updated/unchanged/failed counts.
    """
    source_items, destination_items = await asyncio.gather(source.get_all(), destination.get_all())
    destination_by_id = {item.id: item for item in destination_items}

    result = SyncResult()
    operations: List[Tuple[str, str]] = []
    writes: List[Awaitable[Any]] = []
    for item in _latest_by_id(source_items).values():
        match = destination_by_id.get(item.id)
        if match is None:
            operations.append(("add", item.id))
            writes.append(_bounded(destination.add(item), timeout))
        elif item.updated_at > match.updated_at:
            operations.append(("update", item.id))
            writes.append(_bounded(destination.update(item), timeout))
        else:
            result.unchanged += 1
            result.synced_ids.append(item.id)

    outcomes = await asyncio.gather(*writes, return_exceptions=True)
    for (operation, item_id), outcome in zip(operations, outcomes):
        if isinstance(outcome, BaseException):
            result.failed += 1
            logger.warning("Sync %s of %s failed: %r", operation, item_id, outcome)
        elif operation == "update" and outcome is False:
            result.failed += 1
            logger.warning("Sync update of %s failed: item vanished from destination", item_id)
        else:
            if operation == "add":
                result.added += 1
            else:
                result.updated += 1
            result.synced_ids.append(item_id)

    if result.failed:
        result.status = SyncStatus.PARTIAL
    return result


# PUBLIC_INTERFACE
class SyncService:
    """
    Moves data between the local and the cloud store around sign-in and sign-out.

    - synchronize_to_cloud(): local is the source, cloud the destination.
    - synchronize_to_local(): cloud is the source, local the destination.

    Both need a fully authenticated user; without one every collection is
    reported SKIPPED and neither store is touched. Collections are synced
    one after another and a failure in one never stops the next. A
    collection whose sync is still running is SKIPPED by a second caller.
    """

    def __init__(
        self,
        factory: RepositoryFactory,
        auth: AuthProvider,
        settings: Optional[Settings] = None,
        kinds: Iterable[EntityKind] = tuple(EntityKind),
    ) -> None:
        self._factory = factory
        self._auth = auth
        self._settings = settings or Settings()
        self._kinds = tuple(kinds)
        self._in_flight: Set[EntityKind] = set()

    @property
    def _timeout(self) -> Optional[float]:
        return self._settings.store_timeout_seconds or None

    def is_syncing(self, kind: EntityKind) -> bool:
        return kind in self._in_flight

    async def synchronize_to_cloud(self) -> SyncReport:
        """Copy new and newer local items to the cloud store."""
        return await self._synchronize(SyncDirection.TO_CLOUD)

    async def synchronize_to_local(self) -> SyncReport:
        """Copy new and newer cloud items to the local store."""
        return await self._synchronize(SyncDirection.TO_LOCAL)

    async def merge_data(self) -> SyncReport:
        """Reconcile local changes into the cloud; same merge as synchronize_to_cloud()."""
        return await self.synchronize_to_cloud()

    async def _synchronize(self, direction: SyncDirection) -> SyncReport:
        report = SyncReport(direction)
        if not self._auth.is_fully_authenticated:
            logger.info("Skipping %s sync: no authenticated (non-anonymous) user", direction.value)
            for kind in self._kinds:
                report.results[kind] = SyncResult(kind, SyncStatus.SKIPPED, reason="not authenticated")
            return report

        for kind in self._kinds:
            report.results[kind] = await self._synchronize_kind(kind, direction)
        return report

    async def _synchronize_kind(self, kind: EntityKind, direction: SyncDirection) -> SyncResult:
        if kind in self._in_flight:
            logger.info("Skipping %s sync of %s: a sync is already in progress", direction.value, kind.value)
            return SyncResult(kind, SyncStatus.SKIPPED, reason="sync already in progress")

        self._in_flight.add(kind)
        try:
            local = self._factory.local_repository(kind)
            cloud = self._factory.cloud_repository(kind)
            await local.initialize()
            await cloud.initialize()

            if direction is SyncDirection.TO_CLOUD:
                result = await synchronize_items(local, cloud, timeout=self._timeout)
            else:
                result = await synchronize_items(cloud, local, timeout=self._timeout)
            result.kind = kind

            if (
                direction is SyncDirection.TO_CLOUD
                and self._settings.clear_local_after_upload
                and result.status is SyncStatus.COMPLETED
            ):
                result.removed_from_source = await self._clear_uploaded(local, result.synced_ids)

            if result.writes or result.failed:
                logger.info(
                    "Synced %s %s: %d added, %d updated, %d failed",
                    kind.value,
                    direction.value,
                    result.added,
                    result.updated,
                    result.failed,
                )
            return result
        except NotAuthenticatedError as exc:
            logger.info("Skipping %s sync of %s: %s", direction.value, kind.value, exc)
            return SyncResult(kind, SyncStatus.SKIPPED, reason=str(exc))
        except Exception as exc:
            logger.exception("Error synchronizing %s (%s)", kind.value, direction.value)
            return SyncResult(kind, SyncStatus.FAILED, reason=str(exc) or type(exc).__name__)
        finally:
            self._in_flight.discard(kind)

    @staticmethod
    async def _clear_uploaded(local: BaseRepository, item_ids: List[str]) -> int:
        removed = 0
        for item_id in item_ids:
            try:
                if await local.delete(item_id):
                    removed += 1
            except StoreError as exc:
                logger.warning("Could not clear uploaded item %s locally: %s", item_id, exc)
        logger.info("Cleared %d uploaded %s from local storage", removed, type(local).__name__)
        return removed
