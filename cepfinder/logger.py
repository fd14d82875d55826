"""
Structured logging for cepfinder.

One process-wide logger writes to stderr and, when a log directory is
configured, to a daily file. It also keeps in-process counters so a CLI run
can report how each address source behaved.
"""

import json
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class SourceStats:
    """Lookup counters for one source."""

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    total_ms: int = 0
    errors: Counter = field(default_factory=Counter)

    @property
    def success_rate(self) -> float:
        return round(self.successes / self.attempts, 3) if self.attempts else 0.0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.successes if self.successes else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "success_rate": self.success_rate,
            "mean_ms": round(self.mean_ms, 1),
            "errors": dict(self.errors),
        }


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


class StructuredLogger:
    """
    Logger wrapper that appends keyword context as JSON and tracks
    per-source lookup metrics.
    """

    def __init__(
        self,
        name: str = "cepfinder",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for the daily log file (default: logs/)
            enable_file: Write logs to file; the file always gets DEBUG
            enable_console: Write logs to stderr
        """
        numeric_level = getattr(logging, level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if enable_file else numeric_level)
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.counters: Counter = Counter()
        self.sources: Dict[str, SourceStats] = {}

        if enable_console:
            self.logger.addHandler(_handler(logging.StreamHandler(sys.stderr), numeric_level, CONSOLE_FORMAT))

        if enable_file:
            log_dir = Path(log_dir) if log_dir is not None else Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"cepfinder_{datetime.now():%Y%m%d}.log"
            self.logger.addHandler(
                _handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT)
            )

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, context)

    def critical(self, message: str, **context):
        self._log(logging.CRITICAL, message, context)

    def _log(self, level: int, message: str, context: Dict[str, Any]):
        if context:
            message = f"{message} | Context: {json.dumps(context, ensure_ascii=False, default=str)}"
        self.logger.log(level, message)

    # Metrics

    def _source(self, source: str) -> SourceStats:
        return self.sources.setdefault(source, SourceStats())

    def record_api_call(self):
        self.counters["api_calls"] += 1

    def record_cache_hit(self):
        self.counters["cache_hits"] += 1

    def record_cache_miss(self):
        self.counters["cache_misses"] += 1

    def record_lookup_attempt(self, source: str):
        self.counters["lookups_attempted"] += 1
        self._source(source).attempts += 1

    def record_lookup_success(self, source: str, elapsed_ms: int = 0):
        self.counters["lookups_successful"] += 1
        stats = self._source(source)
        stats.successes += 1
        stats.total_ms += elapsed_ms

    def record_lookup_failure(self, source: str, error_type: str):
        self.counters["lookups_failed"] += 1
        self.counters[f"error:{error_type}"] += 1
        stats = self._source(source)
        stats.failures += 1
        stats.errors[error_type] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Plain-dict snapshot of every counter; safe to mutate."""
        names = ("api_calls", "lookups_attempted", "lookups_successful", "lookups_failed", "cache_hits", "cache_misses")
        metrics: Dict[str, Any] = {name: self.counters[name] for name in names}
        metrics["errors_by_type"] = {
            key.split(":", 1)[1]: count for key, count in self.counters.items() if key.startswith("error:")
        }
        metrics["sources"] = {name: stats.as_dict() for name, stats in self.sources.items()}
        return metrics

    def log_metrics_summary(self):
        metrics = self.get_metrics()
        attempts = metrics["lookups_attempted"]
        successes = metrics["lookups_successful"]
        overall = round(successes / attempts * 100, 1) if attempts else 0

        self.info("=== Lookup Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")
        self.info(f"Lookups: {successes}/{attempts} ({overall}% success)")
        self.info(f"Cache: {metrics['cache_hits']} hits, {metrics['cache_misses']} misses")

        for name, stats in metrics["sources"].items():
            self.info(
                f"  {name}: {stats['successes']}/{stats['attempts']} "
                f"({stats['success_rate'] * 100:.1f}%), avg {stats['mean_ms']:.0f}ms"
            )
        for error_type, count in metrics["errors_by_type"].items():
            self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "cepfinder", level: Optional[str] = None, **kwargs) -> StructuredLogger:
    """
    Get or create the process-wide logger.

    Level and file output default to cepfinder.config settings; file logging
    is on only when CEPFINDER_LOG_DIR is set.
    """
    global _global_logger

    if _global_logger is None:
        from .config import settings

        kwargs.setdefault("log_dir", settings.log_dir)
        kwargs.setdefault("enable_file", settings.log_dir is not None)
        _global_logger = StructuredLogger(name=name, level=level or settings.log_level, **kwargs)

    return _global_logger


def reset_logger():
    """Drop the process-wide logger (tests)."""
    global _global_logger
    _global_logger = None
