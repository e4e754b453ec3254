import asyncio
import json
from json import JSONDecodeError

from loguru import logger
from pydantic import ValidationError

from liftlog.cache.base import SnapshotBackend
from liftlog.exceptions import SnapshotDecodeError
from liftlog.schemas import Snapshot

CACHE_FORMAT_VERSION = 1


def encode_snapshot(snapshot: Snapshot) -> str:
    return json.dumps(
        {
            "version": CACHE_FORMAT_VERSION,
            "snapshot": snapshot.model_dump(mode="json", by_alias=True),
        }
    )


def decode_snapshot(raw: str, user_id: str) -> Snapshot:
    try:
        blob = json.loads(raw)
    except (JSONDecodeError, TypeError) as exc:
        raise SnapshotDecodeError(user_id, f"invalid json: {exc}") from exc
    if not isinstance(blob, dict):
        raise SnapshotDecodeError(user_id, "blob is not an object")
    version = blob.get("version")
    if version != CACHE_FORMAT_VERSION:
        raise SnapshotDecodeError(user_id, f"unsupported version {version!r}")
    try:
        return Snapshot.model_validate(blob.get("snapshot"))
    except (ValidationError, TypeError, ValueError) as exc:
        raise SnapshotDecodeError(user_id, str(exc)) from exc


class SnapshotCacheStore:
    """Holds the latest snapshot for one user in memory and in a durable backend.

    The in-memory mirror is swapped synchronously, so ``current()`` never sees
    a partially written snapshot and always returns the last one stored.
    Durable writes are serialized and skipped once a later snapshot (or a
    clear) has replaced the one being written.
    """

    def __init__(self, user_id: str | int, backend: SnapshotBackend) -> None:
        self.user_id = str(user_id)
        self.backend = backend
        self._snapshot: Snapshot | None = None
        self._write_lock = asyncio.Lock()

    def current(self) -> Snapshot | None:
        return self._snapshot

    async def load(self) -> Snapshot | None:
        try:
            raw = await self.backend.read(self.user_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"exercise_cache_read_failed user={self.user_id} error={exc}")
            return self._snapshot
        if not raw:
            return self._snapshot
        try:
            snapshot = decode_snapshot(raw, self.user_id)
        except SnapshotDecodeError as exc:
            logger.debug(f"exercise_cache_corrupt user={self.user_id} reason={exc.reason}")
            await self._discard_persisted()
            return self._snapshot

        # a snapshot stored while the read was pending is the newer one
        if self._snapshot is not None:
            return self._snapshot
        self._snapshot = snapshot
        return snapshot

    async def store(self, snapshot: Snapshot) -> bool:
        """Replace the held snapshot; returns whether the durable copy was written."""
        self._snapshot = snapshot
        blob = encode_snapshot(snapshot)
        async with self._write_lock:
            if self._snapshot is not snapshot:
                return False
            try:
                written = await self.backend.write(self.user_id, blob)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"exercise_cache_write_failed user={self.user_id} error={exc}")
                written = False
        if written:
            logger.debug(f"exercise_cache_stored user={self.user_id} count={snapshot.count}")
        return bool(written)

    async def clear(self) -> None:
        self._snapshot = None
        async with self._write_lock:
            await self._discard_persisted()
        logger.debug(f"exercise_cache_cleared user={self.user_id}")

    async def _discard_persisted(self) -> None:
        try:
            await self.backend.delete(self.user_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"exercise_cache_delete_failed user={self.user_id} error={exc}")
