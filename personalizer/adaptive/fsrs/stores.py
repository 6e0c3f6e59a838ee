"""
Collaborator interfaces and stores

The engine never touches storage directly: weights, state and review history
are reached through these capability interfaces, bundled per user in a
PersonalizationContext. Saves are whole-record replaces.
"""
import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from personalizer.core.config import get_settings
from .errors import PersistenceFailure
from .models import PersonalizationState, ReviewEvent
from .weights import coerce_weights, default_weights

logger = logging.getLogger(__name__)


class ReviewHistoryProvider(ABC):
    """Read-only, chronologically ordered review events"""

    @abstractmethod
    def get_history(self, user_id: str) -> List[ReviewEvent]:
        """Full history for a user"""
        pass

    def get_recent(self, user_id: str, limit: int) -> List[ReviewEvent]:
        """Trailing window of at most `limit` events"""
        history = self.get_history(user_id)
        return history[-limit:] if limit > 0 else []


class WeightStore(ABC):
    """Persists the 21-float weight vector"""

    @abstractmethod
    def load(self, user_id: str) -> List[float]:
        """Stored vector, or the defaults when nothing is stored"""
        pass

    @abstractmethod
    def save(self, user_id: str, weights: Sequence[float]) -> None:
        pass


class PersonalizationStateStore(ABC):
    """Persists the per-user PersonalizationState"""

    @abstractmethod
    def load(self, user_id: str) -> PersonalizationState:
        """Stored state, or a fresh baseline state"""
        pass

    @abstractmethod
    def save(self, user_id: str, state: PersonalizationState) -> None:
        pass


class NotificationSink(ABC):
    """Receives human-readable notices; fire-and-forget"""

    @abstractmethod
    def notify(self, message: str) -> None:
        pass


# === In-memory implementations ===

class InMemoryReviewHistory(ReviewHistoryProvider):
    """Append-only history kept in a dict"""

    def __init__(self):
        self._events: Dict[str, List[ReviewEvent]] = {}

    def append(self, user_id: str, event: ReviewEvent) -> int:
        """Record a review and return the new history length"""
        events = self._events.setdefault(user_id, [])
        events.append(event)
        return len(events)

    def extend(self, user_id: str, events: Sequence[ReviewEvent]) -> int:
        for event in events:
            self.append(user_id, event)
        return len(self._events.get(user_id, []))

    def get_history(self, user_id: str) -> List[ReviewEvent]:
        return list(self._events.get(user_id, []))


class InMemoryWeightStore(WeightStore):
    def __init__(self):
        self._weights: Dict[str, List[float]] = {}

    def load(self, user_id: str) -> List[float]:
        stored = self._weights.get(user_id)
        return list(stored) if stored is not None else default_weights()

    def save(self, user_id: str, weights: Sequence[float]) -> None:
        self._weights[user_id] = [float(w) for w in weights]

    def clear(self, user_id: str) -> None:
        self._weights.pop(user_id, None)


class InMemoryStateStore(PersonalizationStateStore):
    """Stores deep copies so callers cannot mutate the durable record"""

    def __init__(self):
        self._states: Dict[str, PersonalizationState] = {}

    def load(self, user_id: str) -> PersonalizationState:
        stored = self._states.get(user_id)
        return copy.deepcopy(stored) if stored is not None else PersonalizationState()

    def save(self, user_id: str, state: PersonalizationState) -> None:
        self._states[user_id] = copy.deepcopy(state)


# === JSON file implementations ===

class _JsonFileStore:
    """One JSON document per user, replaced atomically on save"""

    def __init__(self, directory: str, suffix: str):
        self.directory = Path(directory)
        self.suffix = suffix

    def _path(self, user_id: str) -> Path:
        safe_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in user_id)
        return self.directory / f"{safe_id}.{self.suffix}.json"

    def _read(self, user_id: str) -> Optional[object]:
        path = self._path(user_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"failed to read {path}: {e}", {"path": str(path)}) from e

    def _write(self, user_id: str, data: object) -> None:
        path = self._path(user_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceFailure(f"failed to write {path}: {e}", {"path": str(path)}) from e


class JsonFileWeightStore(_JsonFileStore, WeightStore):
    def __init__(self, directory: str):
        super().__init__(directory, "weights")

    def load(self, user_id: str) -> List[float]:
        data = self._read(user_id)
        if data is None:
            return default_weights()
        return coerce_weights(data)

    def save(self, user_id: str, weights: Sequence[float]) -> None:
        self._write(user_id, [float(w) for w in weights])


class JsonFileStateStore(_JsonFileStore, PersonalizationStateStore):
    def __init__(self, directory: str):
        super().__init__(directory, "state")

    def load(self, user_id: str) -> PersonalizationState:
        data = self._read(user_id)
        if data is None:
            return PersonalizationState()
        try:
            return PersonalizationState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"corrupt state record for {user_id}: {e}") from e

    def save(self, user_id: str, state: PersonalizationState) -> None:
        self._write(user_id, state.to_dict())


# === Notification sinks ===

class LoggingNotificationSink(NotificationSink):
    """Writes notices to the log"""

    def notify(self, message: str) -> None:
        logger.info(f"[notice] {message}")


class CollectingNotificationSink(NotificationSink):
    """Keeps notices so the caller can render them"""

    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


@dataclass
class PersonalizationContext:
    """Everything the engine needs for one user profile"""
    user_id: str
    weight_store: WeightStore
    state_store: PersonalizationStateStore
    history_provider: Optional[ReviewHistoryProvider] = None
    notifier: Optional[NotificationSink] = None
    pending_notices: List[str] = field(default_factory=list)

    def notify(self, message: str) -> None:
        """Queue a notice for the caller and forward it to the sink"""
        self.pending_notices.append(message)
        if self.notifier is None:
            return
        try:
            self.notifier.notify(message)
        except Exception:
            logger.exception(f"Notification sink failed for user {self.user_id}")

    def drain_notices(self) -> List[str]:
        notices, self.pending_notices = self.pending_notices, []
        return notices

    @classmethod
    def in_memory(cls, user_id: str = "default") -> "PersonalizationContext":
        """Context backed entirely by in-memory stores"""
        return cls(
            user_id=user_id,
            weight_store=InMemoryWeightStore(),
            state_store=InMemoryStateStore(),
            history_provider=InMemoryReviewHistory(),
            notifier=CollectingNotificationSink(),
        )

    @classmethod
    def file_backed(
        cls,
        user_id: str,
        directory: Optional[str] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> "PersonalizationContext":
        """Context persisting weights and state as JSON files (default: settings.data_dir)"""
        directory = directory or get_settings().data_dir
        return cls(
            user_id=user_id,
            weight_store=JsonFileWeightStore(directory),
            state_store=JsonFileStateStore(directory),
            history_provider=InMemoryReviewHistory(),
            notifier=notifier or LoggingNotificationSink(),
        )
