"""
Data preparation functions for discrete-time competing risks analysis.

This module turns one-row-per-subject trial data into the person-period
(long) format used by pooled logistic hazard models, and derives the
inverse probability weights used by the weighted estimands.
"""

from typing import Iterator, List, Optional

import numpy as np
import pandas as pd

from prostate_data.columns import (
    BASELINE_COVARIATES,
    CENSORING_COL,
    PRIMARY_EVENT_COL,
    COMPETING_EVENT_COL,
    OUTCOME_ORDER,
    DEFAULT_HORIZON,
    EVENT_CENSORED,
    EVENT_PROSTATE_DEATH,
    EVENT_OTHER_DEATH,
)
from .validation import InvalidInputError, check_columns, check_probabilities

TIME_COL = 'time'


def _subject_periods(
    subject: dict,
    horizon: int,
    carry_cols: List[str],
    time_col: str,
    event_col: str,
) -> Iterator[dict]:
    """
    Yield the person-period rows of a single subject.

    Rows run from interval 0 to the interval of the first outcome, or to
    the horizon when follow-up extends past it. In the outcome interval the
    indicators follow the order censoring, primary event, competing event:
    everything after the first indicator that equals 1 is missing.
    """
    followup = subject[time_col]
    event = subject[event_col]
    last = int(min(followup, horizon))

    for t in range(last + 1):
        row = {col: subject[col] for col in carry_cols}
        row[TIME_COL] = t

        if t < followup:
            row[CENSORING_COL] = 0.0
            row[PRIMARY_EVENT_COL] = 0.0
            row[COMPETING_EVENT_COL] = 0.0
        elif event == EVENT_CENSORED:
            row[CENSORING_COL] = 1.0
            row[PRIMARY_EVENT_COL] = np.nan
            row[COMPETING_EVENT_COL] = np.nan
        elif event == EVENT_PROSTATE_DEATH:
            row[CENSORING_COL] = 0.0
            row[PRIMARY_EVENT_COL] = 1.0
            row[COMPETING_EVENT_COL] = np.nan
        else:
            row[CENSORING_COL] = 0.0
            row[PRIMARY_EVENT_COL] = 0.0
            row[COMPETING_EVENT_COL] = 1.0

        yield row


def expand_person_periods(
    subjects: pd.DataFrame,
    horizon: int = DEFAULT_HORIZON,
    id_col: str = 'id',
    time_col: str = 'dtime',
    event_col: str = 'event_type',
    treatment_col: str = 'rx',
    covariates: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Create a person-period table with one row per subject and interval.

    Subjects whose follow-up ends after the horizon are administratively
    censored: they contribute rows 0..horizon with all indicators 0.

    Parameters
    ----------
    subjects : pd.DataFrame
        One row per subject with follow-up time and event type
    horizon : int
        Last discrete interval K
    id_col : str
        Subject identifier column
    time_col : str
        Discrete follow-up time (interval of the outcome)
    event_col : str
        Event type (0=censored, 1=primary, 2=competing)
    treatment_col : str
        Binary treatment column
    covariates : List[str], optional
        Baseline covariates carried to every row

    Returns
    -------
    pd.DataFrame
        Columns [id_col, treatment_col, *covariates, 'time', 'censored',
        'prostate_death', 'other_death'], sorted by subject and time
    """
    if covariates is None:
        covariates = BASELINE_COVARIATES
    carry_cols = [id_col, treatment_col] + list(covariates)
    check_columns(subjects, carry_cols + [time_col, event_col])

    if horizon < 0:
        raise InvalidInputError(f"Horizon must be non-negative, got {horizon}")
    if subjects[id_col].duplicated().any():
        raise InvalidInputError(f"Subject identifiers in '{id_col}' must be unique")

    followup = pd.to_numeric(subjects[time_col], errors='coerce')
    if followup.isna().any() or (followup < 0).any():
        raise InvalidInputError(f"'{time_col}' must be non-negative and not missing")
    if (followup != np.floor(followup)).any():
        raise InvalidInputError(f"'{time_col}' must hold whole intervals")

    valid_events = {EVENT_CENSORED, EVENT_PROSTATE_DEATH, EVENT_OTHER_DEATH}
    unknown = set(subjects[event_col].unique()) - valid_events
    if unknown:
        raise InvalidInputError(f"Unknown event codes in '{event_col}': {sorted(unknown)}")

    rows = []
    for subject in subjects.to_dict('records'):
        rows.extend(_subject_periods(subject, horizon, carry_cols, time_col, event_col))

    columns = carry_cols + [TIME_COL] + OUTCOME_ORDER
    long_df = pd.DataFrame(rows, columns=columns)

    return long_df.sort_values([id_col, TIME_COL]).reset_index(drop=True)


def compute_ip_weights(
    df: pd.DataFrame,
    prob_col: str,
    id_col: str = 'id',
    time_col: str = TIME_COL,
    numerator_col: Optional[str] = None,
    lag: bool = False,
) -> pd.Series:
    """
    Inverse probability weights from per-interval outcome probabilities.

    W(t) = 1 / prod_{k<=t} (1 - p(k)), computed within each subject in
    increasing time order. With a numerator column the weight is
    stabilized: prod(1 - p_num) / prod(1 - p). With lag=True only strictly
    earlier intervals enter the products, which is what a process that
    happens after the outcome within an interval requires.

    Parameters
    ----------
    df : pd.DataFrame
        Person-period data
    prob_col : str
        Modeled probability of the process adjusted for (e.g. censoring)
    id_col : str
        Subject identifier column
    time_col : str
        Discrete time column
    numerator_col : str, optional
        Probability from a marginal model for stabilized weights
    lag : bool
        Use products over intervals strictly before t

    Returns
    -------
    pd.Series
        Weights aligned with df.index
    """
    required = [id_col, time_col, prob_col] + ([numerator_col] if numerator_col else [])
    check_columns(df, required)

    if df.duplicated(subset=[id_col, time_col]).any():
        raise InvalidInputError(f"Duplicate ({id_col}, {time_col}) records")

    ordered = df.sort_values([id_col, time_col])

    def cumulative_survival(col: str) -> pd.Series:
        surv = pd.Series(
            1.0 - check_probabilities(ordered[col].values, name=col),
            index=ordered.index,
        )
        cum = surv.groupby(ordered[id_col], sort=False).cumprod()
        if lag:
            cum = cum.groupby(ordered[id_col], sort=False).shift(1).fillna(1.0)
        return cum

    denominator = cumulative_survival(prob_col)
    if (denominator <= 0).any():
        raise InvalidInputError(
            f"Cumulative probability of remaining free of '{prob_col}' reaches 0"
        )

    weights = 1.0 / denominator
    if numerator_col is not None:
        weights = weights * cumulative_survival(numerator_col)

    return weights.reindex(df.index).rename('weight')


def calculate_model_terms(
    df: pd.DataFrame,
    time_col: str = TIME_COL,
    treatment_col: str = 'rx',
) -> pd.DataFrame:
    """
    Add polynomial time terms and treatment-by-time interactions.

    Parameters
    ----------
    df : pd.DataFrame
        Person-period or synthetic cohort data
    time_col : str
        Discrete time column
    treatment_col : str
        Binary treatment column

    Returns
    -------
    pd.DataFrame
        Copy of df with time2, time3, rx_time, rx_time2, rx_time3
    """
    df = df.copy()

    t = df[time_col].astype(float)
    df['time2'] = t ** 2
    df['time3'] = t ** 3

    if treatment_col in df.columns:
        rx = df[treatment_col].astype(float)
        df['rx_time'] = rx * t
        df['rx_time2'] = rx * df['time2']
        df['rx_time3'] = rx * df['time3']

    return df
