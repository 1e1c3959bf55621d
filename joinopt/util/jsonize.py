"""JSON export of plans, statistics and catalogs.

Objects take part in the export by implementing a `__json__` method, which returns a JSON-compatible representation of the
instance (typically a dict). `to_json` uses the `PlanEncoder` to apply these hooks recursively. Apart from the hooks, the
encoder knows about enums (exported by name), sets of predicates or aliases (exported as sorted lists, so the output is
stable across runs) and numpy scalars and arrays, which are produced by the histograms.
"""

from __future__ import annotations

import enum
import json
from typing import Any

import numpy as np

jsondict = dict
"""Type alias for the dictionaries that are produced by `__json__` methods."""


class PlanEncoder(json.JSONEncoder):
    """JSON encoder that respects `__json__` hooks."""

    def default(self, obj: Any) -> Any:
        if hasattr(obj, "__json__"):
            return obj.__json__()
        if isinstance(obj, enum.Enum):
            return obj.name
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.generic):
            return obj.item()
        return super().default(obj)


def to_json(obj: Any, **kwargs) -> str | None:
    """Exports an object as a JSON string. *None* stays *None*.

    Additional keyword arguments are passed on to `json.dumps`.
    """
    if obj is None:
        return None
    kwargs["cls"] = PlanEncoder
    return json.dumps(obj, **kwargs)
