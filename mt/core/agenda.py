"""Agenda item and meeting records.

An item's timing state is one of three variants:

* ``Pending``   - not accruing time; may hold banked ``elapsed`` from a pause.
* ``Active``    - accruing time since ``start_time`` (ms since epoch).
* ``Completed`` - closed with ``actual_minutes`` (rounded to 0.1 minute).

The persisted JSON keeps the flat camelCase shape (``isActive``,
``startTime``, ``actualMinutes``...) so existing session files stay readable;
``to_dict``/``from_dict`` translate between the two.
"""

import uuid
from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Active:
    start_time: int


@dataclass(frozen=True)
class Completed:
    actual_minutes: float


PENDING = Pending()

_SAMPLE_AGENDA = (
    ("Project overview", 5),
    ("Progress report", 10),
    ("Issues and discussion", 15),
    ("Next actions", 5),
)


def new_item_id():
    return uuid.uuid4().hex


@dataclass(frozen=True)
class AgendaItem:
    id: str
    name: str
    estimated_minutes: float
    elapsed: int = 0
    status: Pending | Active | Completed = field(default=PENDING)

    @property
    def is_active(self):
        return isinstance(self.status, Active)

    @property
    def is_completed(self):
        return isinstance(self.status, Completed)

    @property
    def start_time(self):
        return self.status.start_time if isinstance(self.status, Active) else None

    @property
    def actual_minutes(self):
        return self.status.actual_minutes if isinstance(self.status, Completed) else None

    @property
    def untouched(self):
        """Pending with no banked time, the only state an item may be deleted in."""
        return isinstance(self.status, Pending) and self.elapsed == 0

    def evolve(self, **changes):
        return replace(self, **changes)

    def to_dict(self):
        data = {
            "id": self.id,
            "name": self.name,
            "estimatedMinutes": self.estimated_minutes,
            "isActive": self.is_active,
            "elapsedTime": self.elapsed,
        }
        if self.start_time is not None:
            data["startTime"] = self.start_time
        if self.actual_minutes is not None:
            data["actualMinutes"] = self.actual_minutes
        return data

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValueError(f"Agenda item must be an object, got {type(data).__name__}")
        try:
            item_id = str(data["id"])
            name = str(data["name"])
            estimated = _number(data["estimatedMinutes"], "estimatedMinutes")
        except KeyError as e:
            raise ValueError(f"Agenda item is missing required field {e}") from None

        elapsed = int(_number(data.get("elapsedTime", 0), "elapsedTime"))
        actual = data.get("actualMinutes")
        start = data.get("startTime")

        # A completed record wins over a stale active flag; an active flag without a start time can't accrue
        # anything, so it degrades to pending with whatever was banked.
        if actual is not None:
            status = Completed(float(_number(actual, "actualMinutes")))
        elif data.get("isActive") and start is not None:
            status = Active(int(_number(start, "startTime")))
        else:
            status = PENDING
        return cls(id=item_id, name=name, estimated_minutes=estimated, elapsed=max(0, elapsed), status=status)


def _number(value, label):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field '{label}' must be a number, got {value!r}")
    return value


@dataclass(frozen=True)
class Meeting:
    id: str
    date: str
    agenda_items: tuple = ()

    @property
    def total_estimated_minutes(self):
        return sum(item.estimated_minutes for item in self.agenda_items)

    @property
    def total_actual_minutes(self):
        return sum(item.actual_minutes or 0 for item in self.agenda_items)

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date,
            "agendaItems": [item.to_dict() for item in self.agenda_items],
        }

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValueError(f"Meeting must be an object, got {type(data).__name__}")
        items = data.get("agendaItems")
        if "id" not in data or "date" not in data or not isinstance(items, list):
            raise ValueError("Meeting record needs 'id', 'date' and an 'agendaItems' list")
        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            agenda_items=tuple(AgendaItem.from_dict(item) for item in items),
        )


def sample_agenda(now):
    """Seed agenda used when there is no saved session to restore."""
    return [
        AgendaItem(id=f"sample_{now}_{n}", name=name, estimated_minutes=minutes)
        for n, (name, minutes) in enumerate(_SAMPLE_AGENDA, start=1)
    ]
