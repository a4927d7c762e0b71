"""
Risk summaries and contrasts for cumulative incidence curves.

Each estimand compares two counterfactual curves at a time point:
- Risk under each assignment
- Risk ratio (treated / control)
- Risk difference (treated - control)
"""

from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .validation import InvalidInputError, check_probabilities

SUMMARY_COLUMNS = ['Estimand', 'Event', 'Risk (a=1)', 'Risk (a=0)', 'RR', 'RD']


def risk_at(curve, time: Optional[int] = None) -> float:
    """
    Cumulative incidence at a time index (default: the last interval).

    Parameters
    ----------
    curve : array-like
        Cumulative incidence curve
    time : int, optional
        Time index; negative values count from the end

    Returns
    -------
    float
    """
    curve = check_probabilities(curve, name='curve')
    if len(curve) == 0:
        raise InvalidInputError("Curve must not be empty")
    if time is None:
        return float(curve[-1])
    if not -len(curve) <= time < len(curve):
        raise InvalidInputError(f"Time {time} outside curve of length {len(curve)}")
    return float(curve[time])


def risk_contrast(
    curve_treated,
    curve_control,
    time: Optional[int] = None,
) -> Dict[str, float]:
    """
    Risk ratio and risk difference between two curves at one time.

    Parameters
    ----------
    curve_treated : array-like
        Cumulative incidence under a=1
    curve_control : array-like
        Cumulative incidence under a=0
    time : int, optional
        Time index (default: last interval)

    Returns
    -------
    Dict[str, float]
        Keys 'risk_1', 'risk_0', 'rr', 'rd'; rr is NaN when risk_0 is 0
    """
    if len(curve_treated) != len(curve_control):
        raise InvalidInputError(
            f"Curves must have equal length, got {len(curve_treated)} and {len(curve_control)}"
        )

    risk_1 = risk_at(curve_treated, time)
    risk_0 = risk_at(curve_control, time)

    return {
        'risk_1': risk_1,
        'risk_0': risk_0,
        'rr': risk_1 / risk_0 if risk_0 > 0 else np.nan,
        'rd': risk_1 - risk_0,
    }


def summarize_estimands(
    contrasts: Mapping[Tuple[str, str], Tuple[np.ndarray, np.ndarray]],
    time: Optional[int] = None,
) -> pd.DataFrame:
    """
    Build a summary table of risks and contrasts for several estimands.

    Parameters
    ----------
    contrasts : Mapping[(estimand, event), (curve_treated, curve_control)]
        Pairs of curves keyed by estimand and event name
    time : int, optional
        Time index (default: last interval)

    Returns
    -------
    pd.DataFrame
        One row per estimand and event with columns SUMMARY_COLUMNS
    """
    rows: List[dict] = []

    for (estimand, event), (curve_treated, curve_control) in contrasts.items():
        summary = risk_contrast(curve_treated, curve_control, time)
        rows.append({
            'Estimand': estimand,
            'Event': event,
            'Risk (a=1)': summary['risk_1'],
            'Risk (a=0)': summary['risk_0'],
            'RR': summary['rr'],
            'RD': summary['rd'],
        })

    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def format_results_table(
    results_df: pd.DataFrame,
    multiply_by_100: bool = True,
) -> pd.DataFrame:
    """
    Format the summary table for display.

    Parameters
    ----------
    results_df : pd.DataFrame
        Results from summarize_estimands
    multiply_by_100 : bool
        Whether to show risks and risk differences in percent

    Returns
    -------
    pd.DataFrame
        Table indexed by (Estimand, Event)
    """
    df = results_df.copy()

    if multiply_by_100:
        for col in ['Risk (a=1)', 'Risk (a=0)', 'RD']:
            df[col] = df[col] * 100

    df = df.set_index(['Estimand', 'Event'])

    return df.round(2)
