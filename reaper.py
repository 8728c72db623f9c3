"""Periodic eviction of participants that stopped sending heartbeats."""
import logging
import threading
from typing import List

from errors import StorageError
from presence import now_ms
from schemas import LEAVE_TEXT

LOGGER = logging.getLogger(__name__)


class Reaper:
    def __init__(self, registry, messages, *, threshold: float = 10, interval: float = 15):
        self.registry = registry
        self.messages = messages
        self.threshold_ms = int(threshold * 1000)
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread = None

    def scan(self) -> List[str]:
        """Evict every stale participant once. Returns the evicted names."""
        now = now_ms(self.registry.clock)
        evicted = []
        for participant in self.registry.list_active():
            if now - participant["lastStatus"] <= self.threshold_ms:
                continue
            name = participant["name"]
            try:
                if not self.registry.evict(participant):
                    continue
                self.messages.append_system_notice(name, LEAVE_TEXT)
            except StorageError:
                LOGGER.exception("evicting %r failed", name)
                continue
            LOGGER.info("%s timed out", name)
            evicted.append(name)
        return evicted

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.scan()
            except Exception:
                LOGGER.exception("participant scan failed")

    def start(self) -> None:
        if self.running and not self._stop_event.is_set():
            return
        # each thread gets its own event so a stopping one cannot be revived
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._loop, args=(self._stop_event,), name="reaper", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            LOGGER.warning("reaper did not finish its scan within %ss", timeout)
        else:
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
