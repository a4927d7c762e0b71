"""
Utility functions for recoding the prostate trial data.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .columns import (
    SUBJECT_ID_COL,
    TREATMENT_COL,
    FOLLOWUP_COL,
    STATUS_COL,
    RAW_REQUIRED_COLUMNS,
    PLACEBO_ARM,
    DEFAULT_TREATED_ARM,
    TREATMENT_LEVELS,
    STATUS_EVENT_MAP,
    NORMAL_ACTIVITY_LEVEL,
    AGE_BANDS,
    AGE_LABELS,
    HEMOGLOBIN_THRESHOLD,
    SUBJECT_COLUMNS,
    EVENT_CENSORED,
    EVENT_PROSTATE_DEATH,
    EVENT_OTHER_DEATH,
)

logger = logging.getLogger(__name__)


def map_event_type(status: str) -> Optional[int]:
    """
    Map a trial status level to an event type code.

    Args:
        status: Status level, e.g. 'alive' or 'dead - prostatic ca'

    Returns:
        0 (censored), 1 (prostate cancer death), 2 (other death) or None
    """
    if pd.isna(status):
        return None
    return STATUS_EVENT_MAP.get(str(status).strip())


def bin_age(age: float) -> Optional[str]:
    """
    Bin age into the analysis age bands.

    Args:
        age: Age at randomization in years

    Returns:
        Age band label or None
    """
    if pd.isna(age) or age < 0:
        return None

    # Bands are closed on the right: (0, 59], (59, 74], (74, 200]
    for i, upper in enumerate(AGE_BANDS[1:]):
        if age <= upper:
            return AGE_LABELS[i]

    return AGE_LABELS[-1]


def is_low_hemoglobin(hg: float, threshold: float = HEMOGLOBIN_THRESHOLD) -> Optional[int]:
    """
    Flag hemoglobin below the threshold.

    Args:
        hg: Serum hemoglobin (g/100ml)
        threshold: Cut-off below which hemoglobin is low

    Returns:
        1 if low, 0 otherwise, None if missing
    """
    if pd.isna(hg):
        return None
    return int(hg < threshold)


def validate_data(df: pd.DataFrame, required_columns: List[str]) -> Tuple[bool, List[str]]:
    """
    Validate that dataframe has required columns.

    Args:
        df: DataFrame to validate
        required_columns: List of required column names

    Returns:
        Tuple of (is_valid, missing_columns)
    """
    missing = [col for col in required_columns if col not in df.columns]
    return len(missing) == 0, missing


def recode_subjects(
    df: pd.DataFrame,
    treated_arm: str = DEFAULT_TREATED_ARM,
    control_arm: str = PLACEBO_ARM,
) -> pd.DataFrame:
    """
    Recode raw trial records into one analysis row per subject.

    Restricts the data to the two compared arms and derives the binary
    treatment, the event type and the baseline covariates used by the
    hazard models. Subjects missing any required covariate are dropped.

    Args:
        df: Raw subject-level trial data
        treated_arm: Treatment level coded as rx = 1
        control_arm: Treatment level coded as rx = 0

    Returns:
        DataFrame with columns SUBJECT_COLUMNS
    """
    is_valid, missing = validate_data(df, RAW_REQUIRED_COLUMNS)
    if not is_valid:
        raise ValueError(f"Missing required columns: {missing}")

    for arm in (treated_arm, control_arm):
        if arm not in TREATMENT_LEVELS:
            raise ValueError(f"Unknown treatment arm: {arm!r}")

    rx = df[TREATMENT_COL].astype(str).str.strip()
    trial = df[rx.isin([treated_arm, control_arm])].copy()
    logger.info(
        f"Kept {len(trial):,} of {len(df):,} subjects in arms "
        f"'{control_arm}' vs '{treated_arm}'"
    )

    statuses = trial[STATUS_COL].dropna().astype(str).str.strip()
    unknown = sorted(set(statuses) - set(STATUS_EVENT_MAP))
    if unknown:
        raise ValueError(f"Unknown status levels: {unknown}")

    out = pd.DataFrame({
        'id': trial[SUBJECT_ID_COL].values,
        'rx': (trial[TREATMENT_COL].astype(str).str.strip() == treated_arm).astype(int).values,
        'dtime': pd.to_numeric(trial[FOLLOWUP_COL], errors='coerce').values,
        'event_type': trial[STATUS_COL].map(map_event_type).values,
    })

    out['normal_act'] = (
        trial['pf'].astype(str).str.strip() == NORMAL_ACTIVITY_LEVEL
    ).astype(float).values
    out.loc[trial['pf'].isna().values, 'normal_act'] = np.nan

    age_band = trial['age'].map(bin_age)
    out['age_60_74'] = (age_band == AGE_LABELS[1]).astype(float).values
    out['age_75_plus'] = (age_band == AGE_LABELS[2]).astype(float).values
    out.loc[age_band.isna().values, ['age_60_74', 'age_75_plus']] = np.nan

    out['hg_low'] = trial['hg'].map(is_low_hemoglobin).values
    out['hx'] = pd.to_numeric(trial['hx'], errors='coerce').values

    n_before = len(out)
    out = out.dropna(subset=SUBJECT_COLUMNS).reset_index(drop=True)
    n_dropped = n_before - len(out)
    if n_dropped:
        logger.warning(f"Dropped {n_dropped:,} subjects with missing covariates")

    int_cols = ['rx', 'dtime', 'event_type', 'normal_act',
                'age_60_74', 'age_75_plus', 'hg_low', 'hx']
    out[int_cols] = out[int_cols].astype(int)

    return out[SUBJECT_COLUMNS]


def summarize_subjects(df: pd.DataFrame, name: str = "Dataset") -> pd.DataFrame:
    """
    Tabulate event types by treatment arm and log the counts.

    Args:
        df: Recoded subject-level data
        name: Name for display

    Returns:
        Counts of event types (columns) per arm (rows)
    """
    labels = {
        EVENT_CENSORED: 'censored',
        EVENT_PROSTATE_DEATH: 'prostate_death',
        EVENT_OTHER_DEATH: 'other_death',
    }
    table = pd.crosstab(df['rx'], df['event_type'].map(labels))
    table = table.reindex(columns=list(labels.values()), fill_value=0)
    table.index.name = 'rx'

    logger.info(f"{name}: {len(df):,} subjects")
    for rx, row in table.iterrows():
        counts = ', '.join(f"{k}={v:,}" for k, v in row.items())
        logger.info(f"  rx={rx}: {counts}")

    return table
