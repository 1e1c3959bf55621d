"""Errors that are not tied to statistics or join ordering specifically."""

from __future__ import annotations


class LogicError(RuntimeError):
    """Indicates a broken internal assumption, e.g. a sub-plan that should have been memoized but is missing.

    Faulty user input is reported through `ValueError` or the errors in `joinopt.errors` instead. A `LogicError` always
    points to a bug in joinopt.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)


class StateError(RuntimeError):
    """Indicates that an operation was requested before its prerequisites were met.

    Examples are explaining a plan before any join order was computed, or statistics that could not be gathered because
    the underlying table is not accessible.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
