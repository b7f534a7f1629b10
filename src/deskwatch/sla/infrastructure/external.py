"""
SLA External Integrations
==========================

- YAML shift window file with watchdog hot reload
- APScheduler job that watches for shift changes

Shift file format::

    timezone: Asia/Manila      # optional, overrides SHIFT_TIMEZONE
    shifts:
      - {code: AM, start_hour: 6, end_hour: 14}
      - {code: PM, start_hour: 14, end_hour: 22}
      - {code: GY, start_hour: 22, end_hour: 6}
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from deskwatch.sla.application.services import Clock, ShiftReconciliationService, utc_now
from deskwatch.sla.domain import ShiftSchedule, ShiftWindow
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ShiftFileHandler(FileSystemEventHandler):
    """Reloads the schedule when the watched file changes."""

    def __init__(self, manager: "ShiftConfigManager", path: Path):
        self.manager = manager
        self.path = path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.path.resolve():
            logger.info("Shift config file changed", extra={"path": event.src_path})
            self.manager.reload()


class ShiftConfigManager:
    """
    Thread-safe holder of the current ``ShiftSchedule``.

    A missing file means the default AM/PM/GY windows. A file that fails to
    parse or validate on reload leaves the previous schedule in force.
    """

    def __init__(self, default_timezone: str = "UTC"):
        self._default_timezone = default_timezone
        self._schedule = ShiftSchedule(timezone=default_timezone)
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> ShiftSchedule:
        self._path = Path(path)
        schedule = self._load_from_file(self._path)
        with self._lock:
            self._schedule = schedule
        return schedule

    def _load_from_file(self, path: Path) -> ShiftSchedule:
        if not path.exists():
            logger.info("Shift config file not found, using default windows", extra={"path": str(path)})
            return ShiftSchedule(timezone=self._default_timezone)

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Shift config must be a mapping, got {type(data).__name__}")

        shifts = data.get("shifts")
        windows = tuple(ShiftWindow(**w) for w in shifts) if shifts else ShiftSchedule().windows
        return ShiftSchedule(windows=windows, timezone=data.get("timezone") or self._default_timezone)

    def reload(self) -> bool:
        if self._path is None:
            return False

        try:
            schedule = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
            logger.error("Failed to reload shift config", extra={"path": str(self._path), "error": str(e)})
            return False

        with self._lock:
            self._schedule = schedule
        logger.info(
            "Shift config reloaded",
            extra={"timezone": schedule.timezone, "shifts": [w.code for w in schedule.windows]}
        )
        return True

    def start_watching(self) -> None:
        """Watch the file's directory; skipped when the file does not exist."""
        if self._path is None:
            raise RuntimeError("Shift config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("Shift config file doesn't exist, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            self._observer.schedule(ShiftFileHandler(self, self._path), str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching shift config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static shift config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def schedule(self) -> ShiftSchedule:
        with self._lock:
            return self._schedule


class ShiftMonitor:
    """
    Polls the wall-clock shift and triggers reconciliation when it changes.

    ``tick`` is the job body and can be driven directly.
    """

    JOB_ID = "shift_monitor"

    def __init__(
        self,
        reconciliation: ShiftReconciliationService,
        config: ShiftConfigManager,
        interval_seconds: int = 60,
        clock: Clock = utc_now,
    ):
        self.interval_seconds = interval_seconds
        self._reconciliation = reconciliation
        self._config = config
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._last_shift: Optional[str] = None

    @property
    def last_shift(self) -> Optional[str]:
        return self._last_shift

    def _current_shift(self, now: Optional[datetime] = None) -> str:
        return self._config.schedule.shift_for(now or self._clock())

    async def tick(self):
        """Reconcile once if the shift changed since the previous tick."""
        current = self._current_shift()
        if self._last_shift is None:
            self._last_shift = current
            return None
        if current == self._last_shift:
            return None

        logger.info("Shift changed", extra={"from_shift": self._last_shift, "to_shift": current})
        self._last_shift = current
        try:
            return await self._reconciliation.handle_shift_change(current)
        except Exception as e:
            # The job must survive to see the next shift change
            logger.error(
                "Shift reconciliation failed",
                extra={"shift": current, "error": str(e), "error_type": type(e).__name__}
            )
            return None

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Shift monitor already running")
            return

        self._last_shift = self._current_shift()
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="Shift Change Monitor",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Shift monitor started",
            extra={"interval_seconds": self.interval_seconds, "shift": self._last_shift}
        )

    async def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Shift monitor stopped")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running
