"""
sentimentpool/protocol/storage.py

Key-value storage behind the sentiment engine.

Two layers:
1. StorageBackend - raw bytes by string key (memory or a JSON file)
2. EngineStore    - typed records (submissions, reputations, aggregates,
                    engine context) encoded as JSON

Writes produced by one engine operation are committed with a single
put_many call; a backend either applies the whole batch or none of it.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
from abc import ABC, abstractmethod

from ..config import EngineContext
from ..identity import Identity
from .periods import PeriodAggregate
from .reputation import Reputation
from .submissions import Submission

logger = logging.getLogger("sentimentpool.protocol.storage")


# ============================================================================
# CONSTANTS
# ============================================================================

SUBMISSION_PREFIX = "submission:"
REPUTATION_PREFIX = "reputation:"
AGGREGATE_PREFIX = "aggregate:"
CONTEXT_KEY = "context"

DEFAULT_STATE_FILE = Path.home() / ".sentimentpool" / "state.json"


# ============================================================================
# STORAGE BACKENDS
# ============================================================================

class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Get a value by key."""
        pass

    @abstractmethod
    def put_many(self, items: Dict[str, bytes]) -> None:
        """Store several values atomically."""
        pass

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """List keys with optional prefix filter."""
        pass

    def put(self, key: str, value: bytes) -> None:
        """Store a single value."""
        self.put_many({key: value})

    def contains(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryBackend(StorageBackend):
    """In-memory storage backend."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put_many(self, items: Dict[str, bytes]) -> None:
        self._data.update(items)

    def contains(self, key: str) -> bool:
        return key in self._data

    def list_keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class FileBackend(StorageBackend):
    """
    Local file storage backend.

    The whole keyspace lives in one JSON document. Every batch rewrites
    the document through a temporary file and os.replace, so a crash
    leaves either the old or the new state on disk.
    """

    def __init__(self, path: Path = None):
        self.path = Path(path) if path else DEFAULT_STATE_FILE
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        """Load state from disk."""
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.debug(f"Loaded {len(data)} keys from {self.path}")
        return data

    def _save(self, data: Dict[str, str]) -> None:
        """Write state to disk atomically."""
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except Exception as e:
            logger.error(f"Failed to write state file {self.path}: {e}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[bytes]:
        value = self._data.get(key)
        return value.encode("utf-8") if value is not None else None

    def put_many(self, items: Dict[str, bytes]) -> None:
        updated = dict(self._data)
        for key, value in items.items():
            updated[key] = value.decode("utf-8")
        self._save(updated)
        self._data = updated

    def contains(self, key: str) -> bool:
        return key in self._data

    def list_keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


# ============================================================================
# TYPED ENGINE STORE
# ============================================================================

def submission_key(owner: Identity, period: int) -> str:
    return f"{SUBMISSION_PREFIX}{owner}:{period}"


def reputation_key(owner: Identity) -> str:
    return f"{REPUTATION_PREFIX}{owner}"


def aggregate_key(period: int) -> str:
    return f"{AGGREGATE_PREFIX}{period}"


def _encode(record: dict) -> bytes:
    return json.dumps(record, sort_keys=True).encode("utf-8")


def _decode(raw: bytes) -> dict:
    return json.loads(raw.decode("utf-8"))


class EngineStore:
    """
    Typed access to engine records.

    Reads never create records. Writes are staged with a WriteBatch and
    committed in one backend call.

    Usage:
        store = EngineStore(MemoryBackend())

        batch = store.batch()
        batch.put_submission(submission)
        batch.put_aggregate(aggregate)
        store.commit(batch)
    """

    def __init__(self, backend: Optional[StorageBackend] = None):
        self.backend = backend or MemoryBackend()

    def get_context(self) -> EngineContext:
        raw = self.backend.get(CONTEXT_KEY)
        if raw is None:
            return EngineContext()
        return EngineContext.from_dict(_decode(raw))

    def get_submission(self, owner: Identity, period: int) -> Optional[Submission]:
        raw = self.backend.get(submission_key(owner, period))
        return Submission.from_dict(_decode(raw)) if raw is not None else None

    def has_submission(self, owner: Identity, period: int) -> bool:
        return self.backend.contains(submission_key(owner, period))

    def get_reputation(self, owner: Identity) -> Optional[Reputation]:
        raw = self.backend.get(reputation_key(owner))
        return Reputation.from_dict(_decode(raw)) if raw is not None else None

    def get_aggregate(self, period: int) -> Optional[PeriodAggregate]:
        raw = self.backend.get(aggregate_key(period))
        return PeriodAggregate.from_dict(_decode(raw)) if raw is not None else None

    def list_period_submissions(self, period: int) -> List[Submission]:
        suffix = f":{period}"
        submissions = []
        for key in sorted(self.backend.list_keys(SUBMISSION_PREFIX)):
            if key.endswith(suffix):
                raw = self.backend.get(key)
                if raw is not None:
                    submissions.append(Submission.from_dict(_decode(raw)))
        return submissions

    def batch(self) -> "WriteBatch":
        return WriteBatch()

    def commit(self, batch: "WriteBatch") -> None:
        if not batch.items:
            return
        self.backend.put_many(batch.items)
        logger.debug(f"Committed {len(batch.items)} records: {sorted(batch.items)}")


class WriteBatch:
    """Records staged for one atomic commit."""

    def __init__(self):
        self.items: Dict[str, bytes] = {}

    def put_context(self, context: EngineContext) -> "WriteBatch":
        self.items[CONTEXT_KEY] = _encode(context.to_dict())
        return self

    def put_submission(self, submission: Submission) -> "WriteBatch":
        self.items[submission_key(submission.owner, submission.period)] = _encode(submission.to_dict())
        return self

    def put_reputation(self, reputation: Reputation) -> "WriteBatch":
        self.items[reputation_key(reputation.owner)] = _encode(reputation.to_dict())
        return self

    def put_aggregate(self, aggregate: PeriodAggregate) -> "WriteBatch":
        self.items[aggregate_key(aggregate.period)] = _encode(aggregate.to_dict())
        return self

    def __len__(self) -> int:
        return len(self.items)
