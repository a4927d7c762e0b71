"""
Input validation shared by the hazard and incidence routines.
"""

from typing import Iterable

import numpy as np
import pandas as pd


class InvalidInputError(ValueError):
    """Raised when a curve, weight vector or person-period table is malformed."""


def check_columns(df: pd.DataFrame, columns: Iterable[str]) -> None:
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise InvalidInputError(f"Missing required columns: {missing}")


def check_probabilities(values, name: str = 'hazard') -> np.ndarray:
    """
    Coerce to a 1-d float array and check every entry lies in [0, 1].

    Parameters
    ----------
    values : array-like
        Probabilities to check
    name : str
        Label used in the error message

    Returns
    -------
    np.ndarray
    """
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise InvalidInputError(f"{name} must be one-dimensional, got shape {arr.shape}")
    bad = ~((arr >= 0.0) & (arr <= 1.0))
    if bad.any():
        idx = int(np.flatnonzero(bad)[0])
        raise InvalidInputError(
            f"{name} must lie in [0, 1]; found {arr[idx]!r} at index {idx}"
        )
    return arr


def check_weights(weights, n: int) -> np.ndarray:
    """Coerce weights to a float array of length n with non-negative entries."""
    arr = np.asarray(weights, dtype=float)
    if arr.shape != (n,):
        raise InvalidInputError(
            f"Expected {n} weights, got array of shape {arr.shape}"
        )
    if np.isnan(arr).any():
        raise InvalidInputError("Weights must not be missing")
    if not np.isfinite(arr).all():
        raise InvalidInputError("Weights must be finite")
    if (arr < 0).any():
        raise InvalidInputError(f"Weights must be non-negative; minimum is {arr.min()!r}")
    return arr


def check_time_index(times, horizon: int) -> np.ndarray:
    """Check discrete time indices are integers within [0, horizon]."""
    arr = np.asarray(times, dtype=float)
    if np.isnan(arr).any():
        raise InvalidInputError("Time index must not be missing")
    if (arr != np.floor(arr)).any():
        raise InvalidInputError("Time index must be integer valued")
    if len(arr) and (arr.min() < 0 or arr.max() > horizon):
        raise InvalidInputError(
            f"Time index must lie in [0, {horizon}]; "
            f"found range [{arr.min():g}, {arr.max():g}]"
        )
    return arr.astype(int)
