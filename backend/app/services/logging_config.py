"""Structured logging configuration for the structural extraction service."""
import logging
import json
import sys
from datetime import datetime, timezone

# Extra attributes copied into the JSON line when a log call supplies them
CONTEXT_FIELDS = (
    "request_id", "http_method", "http_path", "http_status", "duration_ms",
    "project_id", "file_id", "job_id", "image_path", "confidence", "threshold",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))
    root.handlers = [handler]

    for name in ["uvicorn.access", "httpcore", "httpx", "pdfminer"]:
        logging.getLogger(name).setLevel(logging.WARNING)
