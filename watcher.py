"""Background loop that keeps USB/Bluetooth printers accepting jobs."""

import logging
import threading
from typing import Callable, List, Optional

import printer
from models import Printer

logger = logging.getLogger(__name__)

IDLE, RUNNING, STOPPED = 'idle', 'running', 'stopped'


def _log_error(exc: Exception) -> None:
    logger.warning("Printer watcher error: %s", exc)


class PrinterWatcher:
    """
    Periodically resumes paused or disabled printers.

    The first pass runs as soon as the watcher starts; every later pass is
    scheduled `interval` seconds after the previous one finished, for as
    long as the watcher is running. A stopped watcher cannot be restarted.
    """

    def __init__(
        self,
        interval: float = 1.0,
        printer_names: Optional[List[str]] = None,
        on_resume: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self.interval = interval
        self.printer_names = list(printer_names or [])
        self.on_resume = on_resume
        self.on_error = on_error or _log_error
        self.state = IDLE
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self.state == RUNNING

    def start(self) -> 'PrinterWatcher':
        if self.state != IDLE:
            raise RuntimeError(f"watcher is {self.state}, it can only be started once")
        self.state = RUNNING
        self._thread = threading.Thread(target=self._loop, name='printer-watcher', daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        if self.state == RUNNING:
            logger.info("Stopping printer watcher")
        self.state = STOPPED
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _loop(self) -> None:
        while self.running:
            self.check_once()
            if self._stop.wait(self.interval):
                break

    def _candidates(self) -> List[Printer]:
        printers = printer.list_printers()
        if self.printer_names:
            selected = [p for p in printers if p.name in self.printer_names]
            logger.debug("Watching %d specific printer(s): %s",
                         len(selected), ', '.join(p.name for p in selected))
        else:
            selected = [p for p in printers if p.is_usb or p.is_bluetooth]
            logger.debug("Watching %d USB/Bluetooth printer(s): %s",
                         len(selected), ', '.join(p.name for p in selected))
        return selected

    def check_once(self) -> None:
        """Run a single pass. Never raises."""
        try:
            for p in self._candidates():
                if printer.is_printer_enabled(p.name):
                    continue
                logger.warning('Printer "%s" is paused/disabled, attempting to resume', p.name)
                printer.enable_printer(p.name)
                if self.on_resume:
                    self.on_resume(p.name)
        except Exception as e:
            try:
                self.on_error(e)
            except Exception:
                logger.exception("Printer watcher error handler failed")


def start_monitor(
    interval: float = 1.0,
    printer_names: Optional[List[str]] = None,
    on_resume: Optional[Callable[[str], None]] = None,
    on_error: Optional[Callable[[Exception], None]] = None,
) -> PrinterWatcher:
    """Create and start a watcher; the returned handle's stop() ends it."""
    return PrinterWatcher(interval, printer_names, on_resume, on_error).start()
