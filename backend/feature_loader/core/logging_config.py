from __future__ import annotations

import logging

_NOISY_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "httpcore.connection",
    "httpcore.http11",
    "uvicorn.access",
)

_FORMAT = '[%(levelname)s] %(name)s: %(message)s'


def _ensure_stream_handler(logger: logging.Logger) -> None:
    handler_exists = any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
    if handler_exists:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)


def configure_logging(level_name: str | None = None) -> None:
    """Configure the root logger and quiet per-request HTTP chatter."""

    lvl = getattr(logging, (level_name or 'INFO').upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(lvl)
    _ensure_stream_handler(root_logger)

    # Every resource download logs a request line at INFO; keep those at WARNING
    # unless the loader itself runs in DEBUG.
    for noisy_name in _NOISY_LOGGERS:
        logger = logging.getLogger(noisy_name)
        logger.setLevel(logging.DEBUG if lvl <= logging.DEBUG else logging.WARNING)
