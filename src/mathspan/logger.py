"""Logging helpers.

The library never installs handlers; applications (the CLI here) decide
where records go.
"""

from __future__ import annotations

import logging

_ROOT = "mathspan"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under ``mathspan``."""
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")
