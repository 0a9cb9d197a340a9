"""Pluggable logging for the SDK.

The request pipeline never talks to a logging backend directly. It calls
the four methods of :class:`Logger`, each taking a message and an optional
mapping of structured fields. Three implementations ship with the package:

- :class:`NullLogger` -- the default; discards everything.
- :class:`StdlibLogger` -- forwards to :mod:`logging` (``refyne`` logger).
- :class:`OutputLogger` -- writes to the CLI's stderr diagnostics via
  :mod:`refyne.output`.

Example::

    import logging
    from refyne import Client
    from refyne.logger import StdlibLogger

    logging.basicConfig(level=logging.DEBUG)
    client = Client("key", logger=StdlibLogger())
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

Meta = Optional[Mapping[str, Any]]


def format_meta(meta: Meta) -> str:
    """Render structured fields as ``key=value`` pairs, in insertion order."""
    if not meta:
        return ""
    return " ".join(f"{key}={value}" for key, value in meta.items())


class Logger(ABC):
    """Logging capability consumed by the clients."""

    @abstractmethod
    def debug(self, message: str, meta: Meta = None) -> None: ...

    @abstractmethod
    def info(self, message: str, meta: Meta = None) -> None: ...

    @abstractmethod
    def warning(self, message: str, meta: Meta = None) -> None: ...

    @abstractmethod
    def error(self, message: str, meta: Meta = None) -> None: ...


class NullLogger(Logger):
    """Logger that discards every message."""

    def debug(self, message: str, meta: Meta = None) -> None:
        pass

    def info(self, message: str, meta: Meta = None) -> None:
        pass

    def warning(self, message: str, meta: Meta = None) -> None:
        pass

    def error(self, message: str, meta: Meta = None) -> None:
        pass


class StdlibLogger(Logger):
    """Adapter onto a standard library :class:`logging.Logger`.

    Structured fields are appended to the message and also attached to the
    record as ``refyne_meta`` so handlers can format them separately.

    Args:
        logger: Target logger. Defaults to ``logging.getLogger("refyne")``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("refyne")

    def _log(self, level: int, message: str, meta: Meta) -> None:
        if not self._logger.isEnabledFor(level):
            return
        suffix = format_meta(meta)
        text = f"{message} {suffix}" if suffix else message
        self._logger.log(level, text, extra={"refyne_meta": dict(meta or {})})

    def debug(self, message: str, meta: Meta = None) -> None:
        self._log(logging.DEBUG, message, meta)

    def info(self, message: str, meta: Meta = None) -> None:
        self._log(logging.INFO, message, meta)

    def warning(self, message: str, meta: Meta = None) -> None:
        self._log(logging.WARNING, message, meta)

    def error(self, message: str, meta: Meta = None) -> None:
        self._log(logging.ERROR, message, meta)


class OutputLogger(Logger):
    """Adapter onto the global :class:`~refyne.output.OutputManager`.

    Debug lines only appear with ``--verbose``; info is hidden by
    ``--quiet``; warnings and errors are always shown.
    """

    def _text(self, message: str, meta: Meta) -> str:
        suffix = format_meta(meta)
        return f"{message} ({suffix})" if suffix else message

    def debug(self, message: str, meta: Meta = None) -> None:
        from refyne.output import get_output

        get_output().debug(self._text(message, meta))

    def info(self, message: str, meta: Meta = None) -> None:
        from refyne.output import get_output

        get_output().info(self._text(message, meta))

    def warning(self, message: str, meta: Meta = None) -> None:
        from refyne.output import get_output

        get_output().warning(self._text(message, meta))

    def error(self, message: str, meta: Meta = None) -> None:
        from refyne.output import get_output

        get_output().error(self._text(message, meta))
