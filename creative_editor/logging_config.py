"""
Logging setup.

Log files roll over once per day and again whenever they exceed a size
limit: editor_2026-01-12.log, editor_2026-01-12_01.log, ...
"""

import glob
import logging
import os
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "google_genai", "uvicorn.access")


class DailyRotatingFileHandler(RotatingFileHandler):
    """
    Rotating handler that starts a fresh file every day and splits a day's
    file by size. Files older than ``backup_days`` are removed on start-up.
    """

    def __init__(
        self,
        log_dir: str,
        base_name: str = "editor",
        max_bytes: int = 20 * 1024 * 1024,
        backup_count: int = 10,
        backup_days: int = 14,
        encoding: str = "utf-8",
    ):
        self.log_dir = Path(log_dir)
        self.base_name = base_name
        self.backup_days = backup_days
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._current_date = self._today()
        super().__init__(
            filename=str(self._path_for(self._current_date)),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
        )
        self._cleanup_old_logs()

    @staticmethod
    def _today() -> str:
        return datetime.now().strftime("%Y-%m-%d")

    def _path_for(self, day: str) -> Path:
        return self.log_dir / f"{self.base_name}_{day}.log"

    def shouldRollover(self, record):
        if self._current_date != self._today():
            return True
        return super().shouldRollover(record)

    def doRollover(self):
        today = self._today()
        if self._current_date == today:
            super().doRollover()
            return

        # New day: switch files instead of renaming the old one
        if self.stream:
            self.stream.close()
            self.stream = None
        self._current_date = today
        self.baseFilename = str(self._path_for(today))
        self.stream = self._open()

    def rotation_filename(self, default_name):
        # editor_2026-01-12.log.1 -> editor_2026-01-12_01.log
        if ".log." not in default_name:
            return default_name
        base, num = default_name.rsplit(".log.", 1)
        return f"{base}_{num.zfill(2)}.log"

    def _cleanup_old_logs(self):
        cutoff = datetime.now() - timedelta(days=self.backup_days)
        prefix = f"{self.base_name}_"
        for log_file in glob.glob(str(self.log_dir / f"{prefix}*.log")):
            stem = os.path.basename(log_file)[len(prefix):].split(".log")[0]
            try:
                file_date = datetime.strptime(stem.split("_")[0], "%Y-%m-%d")
            except ValueError:
                continue
            if file_date < cutoff:
                try:
                    os.remove(log_file)
                except OSError as e:
                    logging.getLogger(__name__).debug(f"Could not remove {log_file}: {e}")


def setup_logging(
    log_dir: str = "logs",
    log_level: str = "INFO",
    max_bytes: int = 20 * 1024 * 1024,
    backup_count: int = 10,
    backup_days: int = 14,
) -> None:
    """
    Configure the root logger.

    Args:
        log_dir: Directory for log files
        log_level: Root level (DEBUG/INFO/WARNING/ERROR)
        max_bytes: Size limit of a single file before it is split
        backup_count: Max number of split files per day
        backup_days: Days of history to keep
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    for base_name, level in (("editor", logging.DEBUG), ("error", logging.ERROR)):
        handler = DailyRotatingFileHandler(
            log_dir=log_dir,
            base_name=base_name,
            max_bytes=max_bytes,
            backup_count=backup_count,
            backup_days=backup_days,
        )
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"Logging initialised, dir: {Path(log_dir).absolute()}, level: {log_level}")
