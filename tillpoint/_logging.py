"""
Logging setup for the service entry point.

Library modules only call `logging.getLogger(__name__)`; handlers are
installed here, once, by whoever runs the app.
"""

from __future__ import annotations

import logging

FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    root = logging.getLogger("tillpoint")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root.setLevel(level)
    if not any(getattr(h, "_tillpoint", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        handler._tillpoint = True  # type: ignore[attr-defined]
        root.addHandler(handler)


__all__ = ("configure_logging",)
