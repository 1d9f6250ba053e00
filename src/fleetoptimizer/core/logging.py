"""Logging setup for the recommendation engine and CLI.

Records can carry pool and pricing context through ``extra=``; the
structured formatter copies those fields into the JSON line. While a
workflow runs, :func:`run_context` stamps every record with its run id.
"""

import json
import logging
import logging.handlers
import re
import sys
import threading
import time
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Libraries that are chatty at INFO
QUIET_LOGGERS = ('boto3', 'botocore', 'urllib3', 'httpx')

_run_id: ContextVar[Optional[str]] = ContextVar('fleetoptimizer_run_id', default=None)


@contextmanager
def run_context(run_id: str):
    """Tag records logged inside the block with run_id"""
    token = _run_id.set(run_id)
    try:
        yield run_id
    finally:
        _run_id.reset(token)


class RunContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        run_id = _run_id.get()
        if run_id and not hasattr(record, 'run_id'):
            record.run_id = run_id
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record"""

    EXTRA_FIELDS = (
        'run_id', 'node_pool', 'instance_type', 'capacity_class',
        'price_source', 'operation', 'duration',
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(
            (name, getattr(record, name)) for name in self.EXTRA_FIELDS if hasattr(record, name)
        )

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Redacts credentials that end up in log messages"""

    SENSITIVE_KEYS = (
        'password', 'secret', 'token', 'api_key', 'access_key',
        'private_key', 'credential', 'authorization',
    )
    REDACTED = '***REDACTED***'

    _keys = '|'.join(SENSITIVE_KEYS)
    # "secret": "value" and secret=value / token: value
    _json_pair = re.compile(rf'"(\w*(?:{_keys})\w*)"\s*:\s*"[^"]*"', re.IGNORECASE)
    _assignment = re.compile(rf'\b(\w*(?:{_keys})\w*)(["\']?\s*[:=]\s*["\']?)[^"\'\s,}}]+',
                             re.IGNORECASE)
    _aws_key_id = re.compile(r'\b(?:AKIA|ASIA)[A-Z0-9]{16}\b')

    def redact(self, message: str) -> str:
        message = self._json_pair.sub(rf'"\1": "{self.REDACTED}"', message)
        message = self._assignment.sub(rf'\1\2{self.REDACTED}', message)
        return self._aws_key_id.sub(self.REDACTED, message)

    def filter(self, record: logging.LogRecord) -> bool:
        original = record.getMessage()
        redacted = self.redact(original)
        if redacted != original:
            record.msg, record.args = redacted, None
        return True


class PerformanceLogger:
    """Times engine operations and keeps per-operation totals"""

    def __init__(self):
        self.logger = logging.getLogger('performance')
        self._stats: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    @contextmanager
    def timer(self, operation: str, **fields):
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            with self._lock:
                stats = self._stats.setdefault(operation, {'count': 0, 'total': 0.0, 'slowest': 0.0})
                stats['count'] += 1
                stats['total'] += duration
                stats['slowest'] = max(stats['slowest'], duration)

            self.logger.debug(
                f"Performance: {operation} completed in {duration:.3f}s",
                extra={'operation': operation, 'duration': duration, **fields}
            )

    def stats(self, operation: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            if operation is not None:
                return dict(self._stats.get(operation, {'count': 0, 'total': 0.0, 'slowest': 0.0}))
            return {name: dict(values) for name, values in self._stats.items()}

    def reset(self):
        with self._lock:
            self._stats.clear()


class LoggerManager:
    """Owns the root handlers and the shared performance logger"""

    def __init__(self):
        self.performance_logger = PerformanceLogger()

    def setup_logging(self,
                      level: str = "INFO",
                      log_file: Optional[Path] = None,
                      structured: bool = False,
                      console: bool = True,
                      fmt: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                      max_bytes: int = 10485760,
                      backup_count: int = 5):
        formatter = StructuredFormatter() if structured else logging.Formatter(fmt)
        handlers = []

        if console:
            handlers.append(logging.StreamHandler(sys.stderr))
        if log_file:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count
            ))

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, level.upper()))
        root_logger.handlers = []
        for handler in handlers:
            handler.setFormatter(formatter)
            handler.addFilter(RunContextFilter())
            handler.addFilter(SecurityFilter())
            root_logger.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


logger_manager = LoggerManager()


def setup_logging(**kwargs):
    logger_manager.setup_logging(**kwargs)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_performance_logger() -> PerformanceLogger:
    return logger_manager.performance_logger
