"""Durable mirror of the live session plus the bounded meeting history.

Nothing here raises on a storage problem.  Reads fall back to safe defaults
(the sample agenda, an empty history) and writes report what happened
through a ``StorageResult`` after logging it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from mt.common.logger import log
from mt.core.agenda import Active, AgendaItem, Meeting, sample_agenda
from mt.core.clock import now_ms
from mt.core.config import HISTORY_KEY, SESSION_KEY
from mt.core.storage import StorageResult, StorageStatus

HISTORY_LIMIT = 10


def iso_date(ms):
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RestoredSession:
    items: list
    running: bool
    status: StorageStatus
    saved_at: int | None = None
    seeded: bool = False


def _replay_background_time(item, now):
    """Credit the time since ``start_time`` to an active item and restart it at ``now``."""
    if not item.is_active:
        return item
    additional = now - item.start_time
    return item.evolve(elapsed=max(0, item.elapsed + additional), status=Active(now))


class SessionStore:
    """Reads and writes the ``active-meeting-session`` record."""

    def __init__(self, store, key=SESSION_KEY, clock=now_ms):
        self._store = store
        self._key = key
        self._clock = clock

    def save(self, items, running, now=None):
        now = self._clock() if now is None else now
        payload = {
            "agendaItems": [item.to_dict() for item in items],
            "isRunning": bool(running),
            "savedAt": now,
        }
        result = self._store.put(self._key, payload)
        if not result.ok:
            log.error(f"Failed to save session ({result.status.value}): {result.error}")
        return result

    def restore(self, now=None):
        now = self._clock() if now is None else now
        result = self._store.get(self._key)
        if result.status is StorageStatus.MISSING:
            log.info("No saved session found, starting from the sample agenda")
            return RestoredSession(sample_agenda(now), False, result.status, seeded=True)
        if not result.ok:
            log.error(f"Failed to restore session ({result.status.value}), starting from the sample agenda")
            return RestoredSession(sample_agenda(now), False, result.status, seeded=True)

        try:
            payload = result.value
            if not isinstance(payload, dict) or not isinstance(payload.get("agendaItems"), list):
                raise ValueError("session record needs an 'agendaItems' list")
            items = [AgendaItem.from_dict(raw) for raw in payload["agendaItems"]]
        except ValueError as e:
            log.error(f"Failed to restore session: {e}. Starting from the sample agenda")
            return RestoredSession(sample_agenda(now), False, StorageStatus.CORRUPT, seeded=True)

        restored = []
        for item in items:
            if item.is_active:
                replayed = _replay_background_time(item, now)
                log.info(f"Credited {replayed.elapsed - item.elapsed} ms of unloaded time to '{item.name}'")
                item = replayed
            restored.append(item)

        saved_at = payload.get("savedAt")
        log.info(f"Restored session with {len(restored)} items (saved at {saved_at})")
        return RestoredSession(
            items=restored,
            running=bool(payload.get("isRunning", False)),
            status=StorageStatus.OK,
            saved_at=saved_at if isinstance(saved_at, int) else None,
        )

    def clear(self):
        result = self._store.delete(self._key)
        if result.status is StorageStatus.IO_ERROR:
            log.error(f"Failed to clear saved session: {result.error}")
        return result


@dataclass
class HistoryArchive:
    """Most-recent-first list of finished meetings, capped at ``limit``."""

    store: object
    key: str = HISTORY_KEY
    limit: int = HISTORY_LIMIT
    clock: object = now_ms
    meetings: list = field(default_factory=list)

    def load(self):
        result = self.store.get(self.key)
        if result.status is StorageStatus.MISSING:
            self.meetings = []
            return result
        if not result.ok or not isinstance(result.value, list):
            log.error(f"Failed to load meeting history ({result.status.value}), starting with an empty history")
            self.meetings = []
            return StorageResult(StorageStatus.CORRUPT if result.ok else result.status, error=result.error)

        meetings = []
        for raw in result.value:
            try:
                meetings.append(Meeting.from_dict(raw))
            except ValueError as e:
                log.warning(f"Skipping malformed meeting in history: {e}")
        self.meetings = meetings[:self.limit]
        log.info(f"Loaded {len(self.meetings)} meetings from history")
        return StorageResult(StorageStatus.OK, list(self.meetings))

    def archive(self, items, now=None):
        """Record the completed items as a new meeting.

        Returns None when nothing is completed.  Otherwise the in-memory
        history is updated and the result of the durable write is returned
        with the new Meeting as its value.
        """
        completed = tuple(item for item in items if item.is_completed)
        if not completed:
            return None
        now = self.clock() if now is None else now

        meeting_id = str(now)
        taken = {m.id for m in self.meetings}
        n = 1
        while meeting_id in taken:
            meeting_id = f"{now}-{n}"
            n += 1

        meeting = Meeting(id=meeting_id, date=iso_date(now), agenda_items=completed)
        self.meetings = [meeting] + self.meetings[:self.limit - 1]
        result = self.store.put(self.key, [m.to_dict() for m in self.meetings])
        if result.ok:
            log.info(f"Archived meeting {meeting.id} with {len(completed)} completed items")
        else:
            log.error(f"Meeting {meeting.id} kept in memory but not saved ({result.status.value}): {result.error}")
        return StorageResult(result.status, meeting, result.error)

    def get(self, meeting_id):
        return next((m for m in self.meetings if m.id == meeting_id), None)
