from mt.common.logger import log
from mt.core import config
from mt.core.agenda import sample_agenda
from mt.core.clock import ClockSource, now_ms
from mt.core.elapsed import current_elapsed, total_elapsed, total_estimated
from mt.core.persistence import HistoryArchive, SessionStore
from mt.core.session import MeetingSession
from mt.core.storage import JsonFileStore
from mt.core.visibility import VisibilityReconciler, application_visibility


# Ties the pieces together for one process: restores the saved session, mirrors every session change to storage, keeps
# the clock's run flag in step with the meeting and feeds visibility events to the reconciler. UI code talks to
# `tracker.session` for transitions and reads display values from here.
class MeetingTracker:

    def __init__(self, store=None, visibility=None, clock=now_ms, settings=None):
        settings = settings or config.load_settings()
        store = store if store is not None else JsonFileStore(config.STORE_DIR)
        self._clock = clock
        self._closed = False

        # -- Persistence --
        self.sessions = SessionStore(store, clock=clock)
        self.history = HistoryArchive(store, limit=settings["history_limit"], clock=clock)
        self.history.load()
        self.restored = self.sessions.restore()

        # -- Session --
        self.session = MeetingSession(self.restored.items, self.restored.running, clock=clock)
        self.last_save = None

        # -- Clock --
        self.clock = ClockSource(clock=clock, tick_ms=settings["tick_interval_ms"], running=self.session.is_running)

        # -- Visibility --
        self._owns_visibility = visibility is None
        self.visibility = visibility if visibility is not None else application_visibility()
        self._reconciler = VisibilityReconciler(self.session, self.visibility, clock=clock)

        self.session.add_listener(self._on_session_changed)

        # Restore re-based the active item's start time, write that back straight away
        self._on_session_changed(self.session)
        log.info(f"Tracker ready: {self.session!r}")

    # ------------------------------------------------------------------ #
    #  Display values                                                      #
    # ------------------------------------------------------------------ #

    @property
    def current_time(self):
        return self.clock.current_time

    def current_elapsed(self, item):
        return current_elapsed(item, self.clock.current_time)

    @property
    def total_elapsed(self):
        return total_elapsed(self.session.items, self.clock.current_time)

    @property
    def total_estimated(self):
        return total_estimated(self.session.items)

    # ------------------------------------------------------------------ #
    #  Session lifecycle                                                   #
    # ------------------------------------------------------------------ #

    def _on_session_changed(self, session):
        self.clock.running = session.is_running
        self.last_save = self.sessions.save(session.items, session.is_running)

    # Archives the completed items and clears the live session. Returns None if there was nothing to archive. When the
    # history can't be written the live session is left as it is, so the completed items survive a restart.
    def save_meeting(self, now=None):
        if not self.session.has_completed_items:
            log.info("Nothing completed yet, not saving meeting")
            return None
        now = self._clock() if now is None else now
        result = self.history.archive(self.session.items, now)
        if not result.ok:
            log.warning(f"History write failed ({result.status.value}), keeping the live session")
            return result
        self.session.reset(now)
        self.sessions.clear()
        return result

    # Drops all progress on the live session without archiving it.
    def discard_session(self):
        self.session.reset()
        return self.sessions.clear()

    def load_meeting(self, meeting_id):
        meeting = self.history.get(meeting_id)
        if meeting is None:
            log.warning(f"No meeting '{meeting_id}' in history")
            return False
        return self.session.load_meeting(meeting)

    def load_sample(self, now=None):
        now = self._clock() if now is None else now
        return self.session.replace_items(sample_agenda(now))

    # ------------------------------------------------------------------ #
    #  Teardown                                                            #
    # ------------------------------------------------------------------ #

    @property
    def closed(self):
        return self._closed

    def close(self):
        if self._closed:
            return
        self.session.remove_listener(self._on_session_changed)
        self._reconciler.close()
        if self._owns_visibility and hasattr(self.visibility, "close"):
            self.visibility.close()
        self.clock.close()
        self._closed = True
        log.info("Tracker closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
