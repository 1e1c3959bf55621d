"""Print-style logging of optimizer and statistics progress."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime
from typing import IO, Optional


def timestamp() -> str:
    """Provides the current time with millisecond precision, e.g. *24-03-01 12:30:45.123*."""
    return datetime.now().strftime("%y-%m-%d %H:%M:%S.%f")[:-3]


def _noop(*args, **kwargs) -> None:
    pass


def make_logger(
    enabled: bool = True, *, file: Optional[IO[str]] = None, prefix: str | Callable[[], str] = ""
) -> Callable[..., None]:
    """Creates a logging function that is called just like `print`.

    Parameters
    ----------
    enabled : bool, optional
        Whether anything should be written at all, by default *True*. Disabled loggers simply ignore all calls, such that
        callers do not need to check the verbosity themselves.
    file : Optional[IO[str]], optional
        Where to write the entries. By default, entries go to whatever ``sys.stderr`` is at the time of the call.
    prefix : str | Callable[[], str], optional
        Prepended to each entry. Callables (such as `timestamp`) are evaluated anew for each entry.

    Returns
    -------
    Callable[..., None]
        The logging function
    """
    if not enabled:
        return _noop

    def _log(*args, **kwargs) -> None:
        current_prefix = prefix() if callable(prefix) else prefix
        entry = (current_prefix, *args) if current_prefix else args
        print(*entry, file=file if file is not None else sys.stderr, **kwargs)

    return _log
