from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None, log_file: str | None = None, *, to_stderr: bool = True) -> None:
    """Configure process-wide diagnostics.

    Under curses nothing may be written to the terminal, so callers pass
    ``to_stderr=False``; records then go to ``log_file`` or nowhere.
    """

    resolved = (level or os.getenv("TURNTALK_LOG_LEVEL") or "INFO").strip().upper()
    handlers: list[logging.Handler] = []
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    elif to_stderr:
        handlers.append(logging.StreamHandler())
    else:
        handlers.append(logging.NullHandler())
    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
