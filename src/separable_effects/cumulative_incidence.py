"""
Cumulative Incidence Function (CIF) estimation for discrete-time competing risks.

The cumulative incidence function gives the probability of experiencing
a specific event by the end of interval t, accounting for competing risks:

    S(0) = 1
    S(t) = S(t-1) * (1 - h_k(t-1)) * (1 - h_j(t-1))
    CIF_k(t) = sum over s<=t of: S(s) * h_k(s)

Key distinction:
- 1 - prod(1 - h_k) is NOT the same as CIF_k when competing risks exist
- CIF_k removes subjects who experience the competing event from the risk set
"""

from typing import Callable, Mapping, Union

import numpy as np
import pandas as pd

from .data_prep import TIME_COL
from .validation import (
    InvalidInputError,
    check_columns,
    check_probabilities,
    check_time_index,
    check_weights,
)

GroupFilter = Union[None, Callable[[pd.DataFrame], pd.Series], Mapping[str, object]]


def _group_mask(records: pd.DataFrame, group_filter: GroupFilter) -> np.ndarray:
    if group_filter is None:
        return np.ones(len(records), dtype=bool)

    if callable(group_filter):
        mask = np.asarray(group_filter(records), dtype=bool)
    else:
        check_columns(records, group_filter.keys())
        mask = np.ones(len(records), dtype=bool)
        for col, value in group_filter.items():
            mask &= (records[col] == value).values

    if mask.shape != (len(records),):
        raise InvalidInputError(
            f"Group filter must select rows of the table, got mask of shape {mask.shape}"
        )
    return mask


def aggregate_hazard(
    records: pd.DataFrame,
    weights: Union[None, str, np.ndarray, pd.Series],
    group_filter: GroupFilter,
    event_col: str,
    horizon: int,
    time_col: str = TIME_COL,
) -> np.ndarray:
    """
    Population-average (weighted) hazard of one event at each interval.

    For each t in [0, horizon] the hazard is sum(w * y) / sum(w) over the
    selected records at time t whose indicator y is not missing. Rows with a
    missing indicator are outside the risk set for this event and enter
    neither the numerator nor the denominator. Intervals without eligible
    records have hazard 0.

    Parameters
    ----------
    records : pd.DataFrame
        Person-period data
    weights : str, array-like or None
        Weight column name, per-record weights, or None for unweighted
    group_filter : callable, mapping or None
        Row predicate (e.g. ``lambda d: d['rx'] == 1``), a
        ``{column: value}`` mapping, or None for all records
    event_col : str
        Binary outcome indicator column
    horizon : int
        Last discrete interval K
    time_col : str
        Discrete time column

    Returns
    -------
    np.ndarray
        Hazard curve of length horizon + 1
    """
    check_columns(records, [time_col, event_col])
    if horizon < 0:
        raise InvalidInputError(f"Horizon must be non-negative, got {horizon}")

    times = check_time_index(records[time_col].values, horizon)

    if weights is None:
        w = np.ones(len(records))
    elif isinstance(weights, str):
        check_columns(records, [weights])
        w = check_weights(records[weights].values, len(records))
    else:
        w = check_weights(weights, len(records))

    y = records[event_col].astype(float).values
    observed = ~np.isnan(y)
    if not np.isin(y[observed], (0.0, 1.0)).all():
        raise InvalidInputError(f"'{event_col}' must be 0, 1 or missing")

    eligible = _group_mask(records, group_filter) & observed

    n_steps = horizon + 1
    events = np.bincount(
        times[eligible], weights=w[eligible] * y[eligible], minlength=n_steps
    )
    at_risk = np.bincount(times[eligible], weights=w[eligible], minlength=n_steps)

    hazard = np.zeros(n_steps)
    np.divide(events, at_risk, out=hazard, where=at_risk > 0)

    return hazard


def survival_from_hazards(hazard_primary, hazard_competing) -> np.ndarray:
    """
    Probability of being free of both events at the start of each interval.

    Parameters
    ----------
    hazard_primary : array-like
        Hazard of the first event per interval
    hazard_competing : array-like
        Hazard of the second event per interval

    Returns
    -------
    np.ndarray
        S(t) with S(0) = 1
    """
    h1 = check_probabilities(hazard_primary, name='hazard_primary')
    h2 = check_probabilities(hazard_competing, name='hazard_competing')
    if len(h1) != len(h2):
        raise InvalidInputError(
            f"Hazard curves must have equal length, got {len(h1)} and {len(h2)}"
        )

    if len(h1) == 0:
        return np.empty(0)

    step = (1.0 - h1) * (1.0 - h2)
    return np.concatenate([[1.0], np.cumprod(step)[:-1]])


def cumulative_incidence(
    hazard_primary,
    hazard_competing,
    competing: bool = False,
) -> np.ndarray:
    """
    Cumulative incidence of one event in the presence of a competing event.

    The survival recursion uses both hazards symmetrically, so computing
    the incidence of the competing event only changes which hazard is
    accumulated. ``cumulative_incidence(h1, h2, competing=True)`` equals
    ``cumulative_incidence(h2, h1)``.

    Parameters
    ----------
    hazard_primary : array-like
        Hazard of the primary event per interval
    hazard_competing : array-like
        Hazard of the competing event per interval; all zeros for a
        setting where the competing event is eliminated
    competing : bool
        Return the incidence of the competing event instead

    Returns
    -------
    np.ndarray
        Cumulative incidence at the end of each interval
    """
    survival = survival_from_hazards(hazard_primary, hazard_competing)
    of_interest = hazard_competing if competing else hazard_primary

    return np.cumsum(survival * np.asarray(of_interest, dtype=float))


def incidence_curve_frame(
    curves: Mapping[str, np.ndarray],
    time_name: str = TIME_COL,
) -> pd.DataFrame:
    """
    Collect named curves of equal length into one table indexed by time.

    Parameters
    ----------
    curves : Mapping[str, np.ndarray]
        Curve name to curve values
    time_name : str
        Name of the index

    Returns
    -------
    pd.DataFrame
    """
    lengths = {name: len(curve) for name, curve in curves.items()}
    if len(set(lengths.values())) > 1:
        raise InvalidInputError(f"Curves must have equal length, got {lengths}")

    frame = pd.DataFrame({name: np.asarray(curve, dtype=float) for name, curve in curves.items()})
    frame.index.name = time_name
    return frame
