"""Tabular export of optimizer results as Pandas data frames."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pandas as pd


def as_df(rows: Sequence[dict[str, Any]], *, columns: Sequence[str]) -> pd.DataFrame:
    """Builds a data frame with a fixed column layout from a sequence of rows.

    Each row is a dictionary that provides (at least) an entry for each of the `columns`. Additional entries are ignored.
    If there are no rows, the data frame is empty but still has the requested columns.
    """
    data = {column: [row[column] for row in rows] for column in columns}
    return pd.DataFrame(data, columns=list(columns))
