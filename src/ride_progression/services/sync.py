"""Last-write-wins sync of the local snapshot against a remote copy.

One sync attempt walks:

    IDLE -> AUTHENTICATING -> LOCATING -> (CREATING | DOWNLOADING)
         -> (UPLOADING | PULLING | NOOP) -> DONE | ERROR

Direction is decided by ``exportedAt`` alone, with one safeguard that runs
first: an empty local history never overwrites a non-empty remote, it pulls.
Whole snapshots are replaced; nothing is merged field by field.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import RideProgressionError
from ..integrations.base import IntegrationError, RateLimitError
from ..integrations.drive import DriveClient
from ..models.snapshot import Snapshot, parse_timestamp, utc_now_iso
from .store import TrainingStore

logger = logging.getLogger(__name__)

PullCallback = Callable[[Dict[str, Any]], Any]


class SyncState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    LOCATING = "locating"
    CREATING = "creating"
    DOWNLOADING = "downloading"
    UPLOADING = "uploading"
    PULLING = "pulling"
    NOOP = "noop"
    DONE = "done"
    ERROR = "error"


class SyncStatus(str, Enum):
    CREATED = "created"
    PUSHED = "pushed"
    PULLED = "pulled"
    SYNCED = "synced"
    ERROR = "error"


class SyncAction(str, Enum):
    PUSH = "push"
    PULL = "pull"
    NONE = "none"


@dataclass
class SyncResult:
    """Outcome of one sync attempt."""

    status: SyncStatus
    action: SyncAction
    message: str
    data: Optional[Dict[str, Any]] = None
    rate_limited: bool = False
    retry_after: Optional[int] = None
    states: List[SyncState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status != SyncStatus.ERROR

    def to_dict(self) -> dict:
        result = {
            "status": self.status.value,
            "action": self.action.value,
            "message": self.message,
        }
        if self.rate_limited:
            result["rateLimited"] = True
            result["retryAfter"] = self.retry_after
        return result


def _ride_count(data: Dict[str, Any]) -> int:
    history = data.get("history")
    return len(history) if isinstance(history, list) else 0


class SyncCoordinator:
    """
    Runs user-triggered syncs against a Drive-backed remote.

    Args:
        remote: Drive client bound to the backup file
        is_online: Connectivity check run before anything else
        clock: Source of ISO timestamps for ``lastSyncedAt``
    """

    def __init__(
        self,
        remote: DriveClient,
        is_online: Callable[[], bool] = lambda: True,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.remote = remote
        self._is_online = is_online
        self._clock = clock
        self._lock = asyncio.Lock()
        self.state = SyncState.IDLE
        self._trace: List[SyncState] = []

    def _enter(self, state: SyncState) -> None:
        logger.debug("Sync state %s -> %s", self.state.value, state.value)
        self.state = state
        self._trace.append(state)

    def _finish(self, result: SyncResult) -> SyncResult:
        self._enter(SyncState.ERROR if result.status == SyncStatus.ERROR else SyncState.DONE)
        result.states = list(self._trace)
        return result

    async def _pull(self, remote_data: Dict[str, Any], on_pull: Optional[PullCallback]) -> SyncResult:
        self._enter(SyncState.PULLING)
        remote_data["lastSyncedAt"] = self._clock()
        if on_pull is not None:
            outcome = on_pull(remote_data)
            if inspect.isawaitable(outcome):
                await outcome
        return SyncResult(
            status=SyncStatus.PULLED,
            action=SyncAction.PULL,
            message=f"Restored {_ride_count(remote_data)} rides from Google Drive",
            data=remote_data,
        )

    async def sync(
        self,
        local_data: Dict[str, Any],
        on_pull: Optional[PullCallback] = None,
    ) -> SyncResult:
        """
        Reconcile ``local_data`` (a snapshot dict) with the remote copy.

        ``on_pull`` receives the remote snapshot when it should replace local
        state. It may be a plain function or a coroutine function.

        Returns:
            SyncResult. Failures are reported through ``status == error``,
            never raised.
        """
        if self._lock.locked():
            return SyncResult(SyncStatus.ERROR, SyncAction.NONE, "Sync already in progress")

        async with self._lock:
            self.state = SyncState.IDLE
            self._trace = [SyncState.IDLE]

            if not self._is_online():
                return self._finish(
                    SyncResult(SyncStatus.ERROR, SyncAction.NONE, "No internet connection")
                )

            try:
                return self._finish(await self._run(local_data, on_pull))
            except RateLimitError as e:
                logger.warning("Sync rate limited: %s", e)
                return self._finish(SyncResult(
                    SyncStatus.ERROR,
                    SyncAction.NONE,
                    str(e),
                    rate_limited=True,
                    retry_after=e.retry_after,
                ))
            except (IntegrationError, RideProgressionError, ValueError) as e:
                logger.error("Sync failed: %s", e)
                return self._finish(
                    SyncResult(SyncStatus.ERROR, SyncAction.NONE, str(e) or "Sync failed")
                )

    async def _run(self, local_data: Dict[str, Any], on_pull: Optional[PullCallback]) -> SyncResult:
        self._enter(SyncState.AUTHENTICATING)
        await self.remote.authenticate()

        self._enter(SyncState.LOCATING)
        existing = await self.remote.find_backup_file()
        local_rides = _ride_count(local_data)

        if existing is None:
            self._enter(SyncState.CREATING)
            now = self._clock()
            upload = dict(local_data)
            upload["syncVersion"] = 1
            upload["lastSyncedAt"] = now
            upload["exportedAt"] = local_data.get("exportedAt") or now
            await self.remote.create_backup(upload)
            return SyncResult(
                status=SyncStatus.CREATED,
                action=SyncAction.PUSH,
                message=f"Backup created in Google Drive ({local_rides} rides)",
            )

        self._enter(SyncState.DOWNLOADING)
        remote_data = await self.remote.download_backup(existing["id"])
        remote_rides = _ride_count(remote_data)
        logger.info(
            "Local exportedAt %s (%d rides), remote exportedAt %s (%d rides)",
            local_data.get("exportedAt"),
            local_rides,
            remote_data.get("exportedAt"),
            remote_rides,
        )

        # An empty local copy (fresh install, cleared data) must never
        # overwrite existing remote rides, whatever the timestamps say
        if local_rides == 0 and remote_rides > 0:
            logger.info("Local history is empty but remote has data, pulling")
            return await self._pull(remote_data, on_pull)

        local_time = parse_timestamp(local_data.get("exportedAt"))
        remote_time = parse_timestamp(remote_data.get("exportedAt"))

        if local_time > remote_time:
            self._enter(SyncState.UPLOADING)
            upload = dict(local_data)
            upload["syncVersion"] = local_data.get("syncVersion") or 1
            upload["lastSyncedAt"] = self._clock()
            await self.remote.update_backup(existing["id"], upload)
            return SyncResult(
                status=SyncStatus.PUSHED,
                action=SyncAction.PUSH,
                message=f"Uploaded {local_rides} rides to Google Drive",
            )

        if remote_time > local_time:
            return await self._pull(remote_data, on_pull)

        self._enter(SyncState.NOOP)
        return SyncResult(
            status=SyncStatus.SYNCED,
            action=SyncAction.NONE,
            message=f"Already in sync ({local_rides} rides)",
        )

    async def sync_store(self, store: TrainingStore) -> SyncResult:
        """Sync a TrainingStore, replacing its state when the remote wins."""

        def apply_remote(remote_data: Dict[str, Any]) -> None:
            store.replace_from_snapshot(Snapshot.from_dict(remote_data, default_ftp=store.ftp))

        return await self.sync(store.to_snapshot().to_dict(), apply_remote)

    def sign_out(self) -> None:
        self.remote.sign_out()
