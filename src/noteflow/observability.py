"""Observability utilities for the Noteflow server.

Provides disk logging with rotation, per-operation timing metrics and the
``timed_operation`` context manager used by the tool server.
"""
import json
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".noteflow" / "logs"
DEFAULT_METRICS_FILE = Path.home() / ".noteflow" / "metrics.json"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Configure rotating file logging for the ``noteflow`` logger hierarchy.

    Args:
        log_dir: Directory for log files. Defaults to ~/.noteflow/logs/
        level: Logging level (default: INFO)
        max_bytes: Maximum size per log file before rotation (default: 10 MB)
        backup_count: Number of rotated files to keep (default: 5)
        console: Also log to stderr (default: True)

    Returns:
        Path to the log directory
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger("noteflow")
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    log_file = log_path / "noteflow.log"
    if not any(
        isinstance(h, RotatingFileHandler)
        and h.baseFilename == os.path.abspath(log_file)
        for h in root_logger.handlers
    ):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if console and not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        for h in root_logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.info(
        f"Logging configured: {log_file} (max {max_bytes} bytes, {backup_count} backups)"
    )
    return log_path


def _sanitize_error_message(message: Optional[str], max_length: int = 200) -> Optional[str]:
    """Make an error message safe to keep in metrics.

    The home directory is shortened to ``~``, whitespace runs (including
    newlines) collapse to single spaces, and long messages are truncated.
    """
    if message is None:
        return None
    home = str(Path.home())
    if home and home != "/":
        message = message.replace(home, "~")
    message = " ".join(message.split())
    if len(message) > max_length:
        message = message[: max_length - 3] + "..."
    return message

@dataclass
class OperationStats:
    """Running totals for one tool (``nf_create_note``, ``nf_delete_done_tasks``, ...)."""
    calls: int = 0
    failures: int = 0
    total_ms: float = 0.0
    fastest_ms: Optional[float] = None
    slowest_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_at: Optional[str] = None

    def add(self, duration_ms: float, error: Optional[str] = None) -> None:
        self.calls += 1
        self.total_ms += duration_ms
        self.slowest_ms = max(self.slowest_ms, duration_ms)
        if self.fastest_ms is None or duration_ms < self.fastest_ms:
            self.fastest_ms = duration_ms
        if error is not None:
            self.failures += 1
            self.last_error = _sanitize_error_message(error)
            self.last_error_at = datetime.now(timezone.utc).isoformat()

    def report(self) -> Dict[str, Any]:
        """Summarise the totals the way ``nf_health`` shows them."""
        successes = self.calls - self.failures
        return {
            "count": self.calls,
            "success_count": successes,
            "error_count": self.failures,
            "success_rate": successes / self.calls if self.calls else 0,
            "avg_duration_ms": round(self.total_ms / self.calls, 2) if self.calls else 0,
            "min_duration_ms": round(self.fastest_ms or 0, 2),
            "max_duration_ms": round(self.slowest_ms, 2),
            "last_error": self.last_error,
            "last_error_time": self.last_error_at,
        }

class MetricsCollector:
    """Per-tool call statistics, kept in memory and saved as JSON.

    The file is rewritten every ``auto_save_interval`` recorded calls (0 turns
    that off) and whenever ``save_metrics`` is called, e.g. at shutdown.
    Totals found in the file at construction carry on from where they were.
    """

    def __init__(
        self,
        metrics_file: Optional[Union[str, Path]] = None,
        auto_save_interval: int = 100,
    ):
        self._metrics_file = Path(metrics_file) if metrics_file else DEFAULT_METRICS_FILE
        self._auto_save_interval = auto_save_interval
        self._lock = Lock()
        self._stats: Dict[str, OperationStats] = {}
        self._started = datetime.now(timezone.utc)
        self._unsaved = 0
        self._load()

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        """Add one finished tool call to the totals."""
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.add(duration_ms, None if success else (error or "unknown error"))
            self._unsaved += 1
            if self._auto_save_interval and self._unsaved >= self._auto_save_interval:
                self._write()

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Get the report of every tool called so far, keyed by tool name."""
        with self._lock:
            return {name: stats.report() for name, stats in self._stats.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Get totals across all tools plus the uptime."""
        with self._lock:
            calls = sum(s.calls for s in self._stats.values())
            failures = sum(s.failures for s in self._stats.values())
            return {
                "uptime_seconds": (datetime.now(timezone.utc) - self._started).total_seconds(),
                "total_operations": calls,
                "total_success": calls - failures,
                "total_errors": failures,
                "overall_success_rate": (calls - failures) / calls if calls else 1.0,
            }

    def reset(self) -> None:
        """Forget every total and restart the uptime clock."""
        with self._lock:
            self._stats = {}
            self._started = datetime.now(timezone.utc)
            self._unsaved = 0

    def save_metrics(self) -> bool:
        """Write the totals to the metrics file; False if that failed."""
        with self._lock:
            return self._write()

    def _load(self) -> None:
        if not self._metrics_file.exists():
            return
        try:
            data = json.loads(self._metrics_file.read_text(encoding="utf-8"))
            started = datetime.fromisoformat(data["startedAt"])
            stats = {
                name: OperationStats(**fields)
                for name, fields in data.get("operations", {}).items()
            }
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable metrics file {self._metrics_file}: {e}")
            return
        self._started = started
        self._stats = stats

    def _write(self) -> bool:
        """Persist the totals; the caller holds the lock."""
        data = {
            "startedAt": self._started.isoformat(),
            "savedAt": datetime.now(timezone.utc).isoformat(),
            "operations": {name: asdict(stats) for name, stats in self._stats.items()},
        }
        try:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)
            self._metrics_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save metrics to {self._metrics_file}: {e}")
            return False
        self._unsaved = 0
        return True

metrics = MetricsCollector()

@contextmanager
def timed_operation(operation: str, **context):
    """Time one tool call and add it to ``metrics``.

    Yields a dict the tool may fill with result details, which are logged at
    DEBUG. Tools that turn exceptions into error text themselves store the
    exception under ``"error"`` so the call still counts as failed.

    Example:
        with timed_operation("nf_list_tasks", user_id=user_id) as op:
            tasks = task_service.list_tasks(user_id)
            op["result_count"] = len(tasks)
    """
    op: Dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield op
    except Exception as e:
        op["error"] = e
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        error = op.pop("error", None)
        metrics.record_operation(
            operation,
            duration_ms,
            error is None,
            None if error is None else str(error),
        )
        details = ", ".join(f"{k}={v}" for k, v in {**context, **op}.items())
        outcome = "ok" if error is None else f"failed: {error}"
        logger.debug(f"{operation} {outcome} in {duration_ms:.1f}ms ({details})")
