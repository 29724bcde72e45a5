"""Meeting session state machine. Pure logic with no UI or storage.

``MeetingSession`` owns the agenda list and the global running flag.  All
changes go through its transition methods so the at-most-one-active rule
holds after every call.  A transition whose preconditions don't hold is a
no-op that returns ``False``; nothing here raises for a bad request.
"""

from enum import Enum

from mt.common.logger import log
from mt.core.agenda import PENDING, Active, AgendaItem, Completed, new_item_id
from mt.core.clock import now_ms
from mt.core.elapsed import MS_PER_MINUTE, current_elapsed, round_minutes


class MeetingState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    PAUSED = "paused"
    ALL_COMPLETE = "all_complete"


def _valid_name(name):
    return isinstance(name, str) and name.strip() != ""


def _valid_estimate(minutes):
    return isinstance(minutes, (int, float)) and not isinstance(minutes, bool) and minutes > 0


def _bank(item, now):
    """Close the item's open interval into ``elapsed`` and make it pending."""
    return item.evolve(elapsed=max(0, current_elapsed(item, now)), status=PENDING)


def _reopen(item):
    """Turn a completed item back into banked milliseconds."""
    if isinstance(item.status, Completed):
        return item.evolve(elapsed=int(round(item.actual_minutes * MS_PER_MINUTE)), status=PENDING)
    return item


class MeetingSession:

    def __init__(self, items=(), running=False, clock=now_ms):
        self._clock = clock
        self._items = self._single_active(list(items), clock())
        self._running = bool(running)
        self._listeners = []

        # A session with an item accruing time is a running session, whatever the flag said.
        if self.active_index is not None and not self._running:
            log.warning("Session had an active item but was flagged as not running, marking it running")
            self._running = True

    # ------------------------------------------------------------------ #
    #  Read-only views                                                     #
    # ------------------------------------------------------------------ #

    @property
    def items(self):
        return tuple(self._items)

    @property
    def is_running(self):
        return self._running

    @property
    def active_index(self):
        for i, item in enumerate(self._items):
            if item.is_active:
                return i
        return None

    @property
    def active_item(self):
        i = self.active_index
        return None if i is None else self._items[i]

    @property
    def state(self):
        if self._items and all(item.is_completed for item in self._items):
            return MeetingState.ALL_COMPLETE
        if self._running:
            return MeetingState.RUNNING
        if any(item.is_completed or item.elapsed > 0 for item in self._items):
            return MeetingState.PAUSED
        return MeetingState.NOT_STARTED

    @property
    def has_completed_items(self):
        return any(item.is_completed for item in self._items)

    def item(self, item_id):
        i = self.index_of(item_id)
        return None if i is None else self._items[i]

    def index_of(self, item_id):
        for i, item in enumerate(self._items):
            if item.id == item_id:
                return i
        return None

    # ------------------------------------------------------------------ #
    #  Change notification                                                 #
    # ------------------------------------------------------------------ #

    def add_listener(self, callback):
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _changed(self, reason):
        log.debug(f"Session changed ({reason}): running={self._running}, active={self.active_index}")
        for callback in list(self._listeners):
            callback(self)

    def _now(self, now):
        return self._clock() if now is None else now

    # ------------------------------------------------------------------ #
    #  Meeting flow                                                        #
    # ------------------------------------------------------------------ #

    def start(self, now=None):
        if self._running or not self._items:
            return False
        now = self._now(now)
        self._running = True
        first = next((i for i, item in enumerate(self._items) if not item.is_completed), None)
        if first is not None:
            self._items = [_bank(item, now) if item.is_active else item for item in self._items]
            self._items[first] = self._items[first].evolve(status=Active(now))
        log.info(f"Meeting started at {now}, active item index {first}")
        self._changed("start")
        return True

    def pause(self, now=None):
        if not self._running and self.active_index is None:
            return False
        now = self._now(now)
        self._running = False
        self._items = [_bank(item, now) if item.is_active else item for item in self._items]
        log.info(f"Meeting paused at {now}")
        self._changed("pause")
        return True

    def advance(self, now=None):
        """Complete the active item and, while running, activate the next open one."""
        i = self.active_index
        if i is None:
            return False
        now = self._now(now)
        current = self._items[i]
        total = max(0, current_elapsed(current, now))
        self._items[i] = current.evolve(elapsed=total, status=Completed(round_minutes(total)))
        log.info(f"Completed '{current.name}' after {total} ms ({self._items[i].actual_minutes} min)")

        if self._running:
            nxt = next((j for j in range(i + 1, len(self._items)) if not self._items[j].is_completed), None)
            if nxt is not None:
                self._items[nxt] = self._items[nxt].evolve(status=Active(now))
        self._changed("advance")
        return True

    def previous(self, now=None):
        """Step back one item, reopening its committed time as banked time."""
        now = self._now(now)
        i = self.active_index
        if i is not None:
            if i == 0:
                return False
            target = i - 1
            self._items[i] = _bank(self._items[i], now)
        else:
            target = next((j for j in range(len(self._items) - 1, -1, -1) if self._items[j].is_completed), None)
            if target is None:
                return False

        reopened = _reopen(self._items[target])
        if self._running:
            reopened = reopened.evolve(status=Active(now))
        self._items[target] = reopened
        log.info(f"Stepped back to '{reopened.name}' with {reopened.elapsed} ms banked")
        self._changed("previous")
        return True

    def reset(self, now=None):
        if not self._running and all(item.untouched for item in self._items):
            return False
        self._running = False
        self._items = [item.evolve(elapsed=0, status=PENDING) for item in self._items]
        log.info("Meeting reset, all items back to pending")
        self._changed("reset")
        return True

    # ------------------------------------------------------------------ #
    #  Visibility support                                                  #
    # ------------------------------------------------------------------ #

    # Banks the open interval of the active item and restarts it at `now`. Used when the host goes to background.
    def bank_active(self, now=None):
        if not self._running or self.active_index is None:
            return False
        now = self._now(now)
        i = self.active_index
        item = self._items[i]
        self._items[i] = item.evolve(elapsed=max(0, current_elapsed(item, now)), status=Active(now))
        self._changed("bank_active")
        return True

    # Moves the active item's interval start to `now` without banking anything.
    def rebase_active(self, now=None):
        if not self._running or self.active_index is None:
            return False
        now = self._now(now)
        i = self.active_index
        self._items[i] = self._items[i].evolve(status=Active(now))
        self._changed("rebase_active")
        return True

    # ------------------------------------------------------------------ #
    #  Agenda editing                                                      #
    # ------------------------------------------------------------------ #

    def add_item(self, name, estimated_minutes, item_id=None):
        if not _valid_name(name) or not _valid_estimate(estimated_minutes):
            return None
        if item_id is not None and self.index_of(item_id) is not None:
            return None
        item = AgendaItem(id=item_id or new_item_id(), name=name.strip(), estimated_minutes=estimated_minutes)
        self._items.append(item)
        self._changed("add_item")
        return item

    def edit_item(self, item_id, name=None, estimated_minutes=None):
        i = self.index_of(item_id)
        if i is None:
            return False
        if name is not None and not _valid_name(name):
            return False
        if estimated_minutes is not None and not _valid_estimate(estimated_minutes):
            return False
        item = self._items[i]
        updated = item.evolve(
            name=item.name if name is None else name.strip(),
            estimated_minutes=item.estimated_minutes if estimated_minutes is None else estimated_minutes,
        )
        if updated == item:
            return False
        self._items[i] = updated
        self._changed("edit_item")
        return True

    # Only untouched pending items can go; anything that accrued time is part of the meeting record.
    def delete_item(self, item_id):
        i = self.index_of(item_id)
        if i is None or not self._items[i].untouched:
            return False
        del self._items[i]
        self._changed("delete_item")
        return True

    def move_item(self, item_id, new_index):
        i = self.index_of(item_id)
        if i is None or self._items[i].is_active:
            return False
        new_index = max(0, min(int(new_index), len(self._items) - 1))
        if new_index == i:
            return False
        item = self._items.pop(i)
        self._items.insert(new_index, item)
        self._changed("move_item")
        return True

    def replace_items(self, items, now=None):
        """Swap in a whole new agenda. Refused while the meeting is running."""
        if self._running:
            return False
        items = list(items)
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            log.warning("Refusing agenda with duplicate item ids")
            return False
        self._items = [_bank(item, self._now(now)) if item.is_active else item for item in items]
        self._changed("replace_items")
        return True

    def load_meeting(self, meeting):
        """Re-run an archived meeting's agenda, every item back to pending."""
        return self.replace_items(
            item.evolve(elapsed=0, status=PENDING) for item in meeting.agenda_items
        )

    # ------------------------------------------------------------------ #
    #  Helpers                                                             #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _single_active(items, now):
        seen = False
        for i, item in enumerate(items):
            if item.is_active:
                if seen:
                    log.warning(f"Extra active item '{item.name}' found, banking it back to pending")
                    items[i] = _bank(item, now)
                seen = True
        return items

    def __repr__(self):
        return f"MeetingSession(items={len(self._items)}, running={self._running}, state={self.state.value})"
