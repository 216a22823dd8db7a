from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np
import pandas as pd

_TRUE_LABELS = {"TRUE", "True", "true"}
_FALSE_LABELS = {"FALSE", "False", "false"}


def get_logger(name: str = "HyperParsEffect") -> logging.Logger:
    """Named logger with a plain message handler attached once."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt="%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def type_convert(values: pd.Series) -> pd.Series:
    """
    Convert a text column to the narrowest type its labels allow.

    Numeric labels become numbers, TRUE/FALSE labels become booleans and
    anything else is returned as text. Missing entries stay missing.
    """
    if pd.api.types.is_numeric_dtype(values) or pd.api.types.is_bool_dtype(values):
        return values

    text = values.astype("object").where(values.notna(), None)
    present = [v for v in text if v is not None]
    labels = [str(v) for v in present]

    try:
        return pd.to_numeric(
            pd.Series([None if v is None else str(v) for v in text], index=values.index)
        )
    except (TypeError, ValueError):
        pass

    if labels and all(lab in _TRUE_LABELS | _FALSE_LABELS for lab in labels):
        return pd.Series(
            [None if v is None else str(v) in _TRUE_LABELS for v in text],
            index=values.index,
            dtype="object",
        )

    return pd.Series(
        [None if v is None else str(v) for v in text], index=values.index, dtype="object"
    )


def single_name(value: Any, what: str) -> Any:
    """Unwrap a one-element selector; longer selectors are not supported."""
    if isinstance(value, (list, tuple)):
        if len(value) > 1:
            raise NotImplementedError(
                f"Greater than 1 length x, y, z or facet not yet supported (got {what}={list(value)})"
            )
        return value[0] if value else None
    return value


def is_flag(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_))


def existing(columns: Sequence[str], names: Sequence[str]) -> list:
    """Members of ``names`` that are columns, preserving order."""
    cols = set(columns)
    return [n for n in names if n in cols]
