"""Clock source: wall-clock milliseconds plus a 1 Hz refresh while running."""

import time

from PySide6.QtCore import QObject, QTimer, Signal

from mt.common.logger import log

DEFAULT_TICK_MS = 1000


def now_ms():
    """Current wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


class ClockSource(QObject):
    """Holds ``current_time`` and refreshes it once per tick while running.

    The refresh is a QTimer owned by this object.  It is stopped whenever
    ``running`` turns false and by ``close()``; once closed the clock keeps
    its last value and can no longer be resumed.
    """

    ticked = Signal(int)
    runningChanged = Signal(bool)

    def __init__(self, clock=now_ms, tick_ms=DEFAULT_TICK_MS, running=False, parent=None):
        super().__init__(parent)
        self._clock = clock
        self._current_time = clock()
        self._running = False
        self._closed = False

        self._timer = QTimer(self)
        self._timer.setInterval(int(tick_ms))
        self._timer.timeout.connect(self._tick)

        if running:
            self.running = True

    @property
    def current_time(self):
        return self._current_time

    @property
    def running(self):
        return self._running

    @running.setter
    def running(self, value):
        value = bool(value)
        if self._closed and value:
            log.warning("Ignoring attempt to resume a closed clock")
            return
        if value == self._running:
            return
        self._running = value
        if value:
            self._current_time = self._clock()
            self._timer.start()
        else:
            self._timer.stop()
        log.debug(f"Clock running set to {value} at {self._current_time}")
        self.runningChanged.emit(value)

    @property
    def active(self):
        """True while a refresh timer is live."""
        return self._timer.isActive()

    @property
    def closed(self):
        return self._closed

    def pause(self):
        self.running = False

    def resume(self):
        self.running = True

    def _tick(self):
        if not self._running:
            return
        self._current_time = self._clock()
        self.ticked.emit(self._current_time)

    def close(self):
        if self._closed:
            return
        self.running = False
        self._timer.timeout.disconnect(self._tick)
        self._closed = True
        log.debug("Clock closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
