# app/logging_json.py
import os
import json
import time
import random
import logging
from typing import Any, Dict, Optional

_RESERVED = {"exc_info", "stack_info", "stacklevel", "extra"}


def _merged_fields(record: logging.LogRecord) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    ctx = getattr(record, "context", None)
    if isinstance(ctx, dict):
        out.update(ctx)
    fields = getattr(record, "fields", None)
    if isinstance(fields, dict):
        out.update(fields)
    return out


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        ctx = getattr(record, "context", None)
        if ctx:
            base["context"] = ctx
        fields = _merged_fields(record)
        if fields:
            base["fields"] = fields
        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


class PlainFormatterVerbose(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        fields = _merged_fields(record)
        if fields:
            msg = f"{msg} | " + " ".join(f"{k}={fields[k]!r}" for k in sorted(fields))
        return msg


class StructuredAdapter(logging.LoggerAdapter):
    """
    log.info("Found links", link_count=2, links=[...])
    Іменовані аргументи йдуть у record.fields, контекст логера у record.context.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, context or {})

    def bind(self, **ctx) -> "StructuredAdapter":
        """Новий адаптер із доданим контекстом (trace_id тощо); поточний не змінюється."""
        merged = dict(self.extra or {})
        merged.update(ctx)
        return StructuredAdapter(self.logger, merged)

    def log(self, level: int, msg: Any, *args, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", False)
        stacklevel = kwargs.pop("stacklevel", 1)
        extra = kwargs.pop("extra", None) or {}

        custom_fields = {k: v for k, v in kwargs.items() if k not in _RESERVED}
        if isinstance(extra.get("fields"), dict):
            custom_fields = {**extra["fields"], **custom_fields}

        extra["context"] = dict(self.extra or {})
        if custom_fields:
            extra["fields"] = custom_fields

        self.logger._log(  # type: ignore[attr-defined]
            level, msg, args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel,
        )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def configure_logging(force_json: Optional[bool] = None,
                      force_plain_verbose: Optional[bool] = None) -> bool:
    """
    LOG_JSON=1 -> JSON формат
    LOG_PLAIN_FIELDS=0 -> plain без key=value полів
    Повторний виклик нічого не робить, якщо root уже має handlers.
    """
    decided_json = _env_bool("LOG_JSON", False) if force_json is None else force_json
    show_fields_plain = (
        _env_bool("LOG_PLAIN_FIELDS", True) if force_plain_verbose is None else force_plain_verbose
    )

    root = logging.getLogger()
    if root.handlers:
        return decided_json

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    if decided_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        fmt = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
        datefmt = "%H:%M:%S"
        if show_fields_plain:
            formatter = PlainFormatterVerbose(fmt, datefmt)
        else:
            formatter = logging.Formatter(fmt, datefmt)
    handler.setFormatter(formatter)
    root.setLevel(level)
    root.addHandler(handler)

    # Telethon дуже “шумний” на DEBUG
    if level == logging.DEBUG:
        logging.getLogger("telethon").setLevel(logging.INFO)

    return decided_json


def get_logger(name: str, **context) -> StructuredAdapter:
    logger = logging.getLogger(name)
    return StructuredAdapter(logger, context or {})


def new_trace_id(prefix: str = "msg") -> str:
    """msg_1719830400123_417: мітка для зв'язування записів однієї обробки."""
    return f"{prefix}_{int(time.time() * 1000)}_{random.randint(0, 999)}"
