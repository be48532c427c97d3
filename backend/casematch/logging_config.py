"""Central logging configuration for the CaseMatch service.

Usage: from .logging_config import configure_logging; configure_logging()

Writes structured key=value logs to stdout (suitable for Docker), or one JSON
object per line when LOG_JSON=true. Candidate contact details are masked.
"""
from __future__ import annotations

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Optional


class KeyValueFormatter(logging.Formatter):
    """Minimal key=value structured formatter.

    Example output:
        2025-09-24T12:00:00.123+00:00 INFO casematch.services.matching.engine matching.run candidates=40 teams=9 rid=...
    """

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # type: ignore[override]
        dt = datetime.fromtimestamp(record.created, timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}+00:00"

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        record.asctime = self.formatTime(record)
        extras = []
        for key in ("request_id", "client_ip", "path", "method"):
            val = getattr(record, key, None)
            if val is not None:
                extras.append(f"{key}={val}")
        msg = super().format(record)
        extras_s = " " + " ".join(extras) if extras else ""
        return f"{record.asctime} {record.levelname} {record.name} {msg}{extras_s}"


class JsonFormatter(logging.Formatter):
    _SKIP = {
        "args", "msg", "message", "exc_info", "exc_text", "stack_info", "lineno", "pathname", "filename",
        "module", "created", "msecs", "relativeCreated", "funcName", "thread", "threadName",
        "processName", "process", "asctime",
    }

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base = {
            "ts": KeyValueFormatter().formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k.startswith('_') or k in self._SKIP:
                continue
            if isinstance(v, (str, int, float, bool)) or v is None:
                base.setdefault(k, v)
        if record.exc_info:
            base["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
        return json.dumps(base, ensure_ascii=False)


class PiiMaskFilter(logging.Filter):
    _email_re = re.compile(r"([a-zA-Z0-9_.+-]{1,3})[a-zA-Z0-9_.+-]*@([a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+)")
    _phone_re = re.compile(r"(?<!\d)(\+?[0-9][0-9\-\s]{6,}[0-9])(?!\d)")

    def mask(self, s: str) -> str:
        s = self._email_re.sub(lambda m: f"{m.group(1)}***@{m.group(2)}", s)
        return self._phone_re.sub("***REDACTED_PHONE***", s)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)
        return True


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in {"1", "true", "yes"}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger idempotently.

    - LEVEL from LOG_LEVEL env (default INFO)
    - LOG_JSON=true switches to one JSON object per line
    """
    if getattr(configure_logging, "_configured", False):  # type: ignore[attr-defined]
        return

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    root = logging.getLogger()
    root.setLevel(log_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    formatter: logging.Formatter = JsonFormatter() if _env_bool("LOG_JSON", False) else KeyValueFormatter("%(message)s")
    handler.setFormatter(formatter)
    handler.addFilter(PiiMaskFilter())
    root.addHandler(handler)

    for noisy in ["uvicorn", "httpx", "asyncio"]:
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING").upper())

    configure_logging._configured = True  # type: ignore[attr-defined]


__all__ = ["configure_logging", "KeyValueFormatter", "JsonFormatter", "PiiMaskFilter"]
