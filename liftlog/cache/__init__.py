from .base import MemorySnapshotBackend, RedisSnapshotBackend, SnapshotBackend, build_snapshot_backend
from .snapshot import CACHE_FORMAT_VERSION, SnapshotCacheStore, decode_snapshot, encode_snapshot

__all__ = [
    "CACHE_FORMAT_VERSION",
    "MemorySnapshotBackend",
    "RedisSnapshotBackend",
    "SnapshotBackend",
    "SnapshotCacheStore",
    "build_snapshot_backend",
    "decode_snapshot",
    "encode_snapshot",
]
