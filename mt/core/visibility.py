"""Foreground/background tracking for the running meeting.

The host tells us when the app is hidden or shown through a
``VisibilitySignal``.  ``VisibilityReconciler`` turns those events into
session transitions so the active item's open interval is banked on hide
and re-based on show.
"""

from PySide6.QtCore import QCoreApplication, QObject, Qt, Signal

from mt.common.logger import log
from mt.core.clock import now_ms


class VisibilitySignal(QObject):
    """A boolean foreground signal. ``changed`` carries True when visible."""

    changed = Signal(bool)

    def __init__(self, visible=True, parent=None):
        super().__init__(parent)
        self._visible = bool(visible)

    @property
    def visible(self):
        return self._visible

    def set_visible(self, visible):
        visible = bool(visible)
        if visible == self._visible:
            return
        self._visible = visible
        self.changed.emit(visible)


# Application states that still count as "on screen". Inactive only means another window has focus.
_VISIBLE_STATES = (Qt.ApplicationState.ApplicationActive, Qt.ApplicationState.ApplicationInactive)


class QtApplicationVisibility(VisibilitySignal):
    """Feeds a VisibilitySignal from ``QGuiApplication.applicationStateChanged``."""

    def __init__(self, app=None, parent=None):
        if app is None:
            from PySide6.QtGui import QGuiApplication
            app = QGuiApplication.instance()
            if app is None:
                raise RuntimeError("QtApplicationVisibility needs a running QGuiApplication")
        state = app.applicationState() if hasattr(app, "applicationState") else Qt.ApplicationState.ApplicationActive
        super().__init__(visible=state in _VISIBLE_STATES, parent=parent)
        self._app = app
        self._app.applicationStateChanged.connect(self._on_state)

    def _on_state(self, state):
        self.set_visible(state in _VISIBLE_STATES)

    def close(self):
        if self._app is not None:
            self._app.applicationStateChanged.disconnect(self._on_state)
            self._app = None


def application_visibility(app=None):
    """Visibility source for ``app`` (the running application by default).

    GUI applications report their state through ``applicationStateChanged``
    and get a ``QtApplicationVisibility``.  A core application has no such
    signal, so it gets a plain ``VisibilitySignal`` the host can drive itself.
    """
    app = app if app is not None else QCoreApplication.instance()
    if app is not None and hasattr(app, "applicationStateChanged"):
        return QtApplicationVisibility(app)
    return VisibilitySignal()


class VisibilityReconciler:
    """Applies hide/show events to a MeetingSession while it's running.

    On hide the active item's interval is banked and restarted at the hide
    time.  On show it's re-based to the show time, so wall time spent hidden
    inside one process is not credited a second time.  Both events are inert
    when the meeting isn't running.
    """

    def __init__(self, session, signal, clock=now_ms):
        self._session = session
        self._signal = signal
        self._clock = clock
        self._hidden_at = None
        self._closed = False
        self._signal.changed.connect(self._on_changed)

    @property
    def closed(self):
        return self._closed

    def _on_changed(self, visible):
        if visible:
            self.on_shown()
        else:
            self.on_hidden()

    def on_hidden(self, now=None):
        if not self._session.is_running:
            return False
        now = self._clock() if now is None else now
        self._hidden_at = now
        banked = self._session.bank_active(now)
        if banked:
            log.debug(f"App hidden at {now}, banked active item")
        return banked

    def on_shown(self, now=None):
        if not self._session.is_running:
            self._hidden_at = None
            return False
        now = self._clock() if now is None else now
        if self._hidden_at is not None:
            # Hidden time after the hide event isn't credited here. A restore in between would have credited it.
            log.info(f"App shown after {now - self._hidden_at} ms hidden, that span is not credited to the active item")
            self._hidden_at = None
        return self._session.rebase_active(now)

    def close(self):
        if self._closed:
            return
        self._signal.changed.disconnect(self._on_changed)
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
