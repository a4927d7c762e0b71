"""
Tests for person-period construction and inverse probability weights.

Usage:
    pytest tests/test_data_prep.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add source root to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from separable_effects.data_prep import (
    calculate_model_terms,
    compute_ip_weights,
    expand_person_periods,
)
from separable_effects.validation import InvalidInputError

# Configuration
TOLERANCE = 1e-12
COVARIATES = ['normal_act', 'age_60_74', 'age_75_plus', 'hg_low', 'hx']


def make_subjects(rows) -> pd.DataFrame:
    """Subjects from (id, rx, dtime, event_type) tuples with fixed covariates."""
    df = pd.DataFrame(rows, columns=['id', 'rx', 'dtime', 'event_type'])
    for col in COVARIATES:
        df[col] = 1
    return df


def outcomes(long_df: pd.DataFrame, subject_id) -> np.ndarray:
    rows = long_df[long_df['id'] == subject_id]
    return rows[['censored', 'prostate_death', 'other_death']].values


# -----------------------------
# Person-period expansion
# -----------------------------
def test_outcome_columns_follow_within_interval_order():
    long_df = expand_person_periods(make_subjects([(1, 1, 2, 1)]), horizon=5)

    assert list(long_df.columns[-4:]) == ['time', 'censored', 'prostate_death', 'other_death']


def test_primary_event_row_marks_competing_missing():
    long_df = expand_person_periods(make_subjects([(1, 1, 2, 1)]), horizon=5)

    np.testing.assert_array_equal(long_df['time'].values, [0, 1, 2])
    np.testing.assert_array_equal(
        outcomes(long_df, 1),
        [[0, 0, 0], [0, 0, 0], [0, 1, np.nan]],
    )


def test_competing_event_row_observes_primary_as_zero():
    long_df = expand_person_periods(make_subjects([(1, 0, 1, 2)]), horizon=5)

    np.testing.assert_array_equal(
        outcomes(long_df, 1),
        [[0, 0, 0], [0, 0, 1]],
    )


def test_censoring_row_marks_both_events_missing():
    long_df = expand_person_periods(make_subjects([(7, 0, 3, 0)]), horizon=5)

    last = outcomes(long_df, 7)[-1]
    assert last[0] == 1
    assert np.isnan(last[1]) and np.isnan(last[2])
    assert len(long_df) == 4


def test_followup_beyond_horizon_is_administratively_censored():
    long_df = expand_person_periods(make_subjects([(1, 1, 70, 1), (2, 0, 60, 0)]), horizon=59)

    for subject_id in (1, 2):
        rows = long_df[long_df['id'] == subject_id]
        assert len(rows) == 60
        assert rows['time'].max() == 59
        assert (rows[['censored', 'prostate_death', 'other_death']].values == 0).all()


def test_event_at_horizon_is_kept():
    long_df = expand_person_periods(make_subjects([(1, 1, 4, 2)]), horizon=4)

    assert outcomes(long_df, 1)[-1].tolist() == [0, 0, 1]


def test_event_in_first_interval():
    long_df = expand_person_periods(make_subjects([(1, 1, 0, 1)]), horizon=4)

    assert len(long_df) == 1
    np.testing.assert_array_equal(outcomes(long_df, 1), [[0, 1, np.nan]])


def test_no_indicator_is_set_after_an_outcome():
    subjects = make_subjects([
        (1, 1, 3, 0), (2, 1, 2, 1), (3, 0, 5, 2), (4, 0, 9, 0),
    ])
    long_df = expand_person_periods(subjects, horizon=6)

    for _, rows in long_df.groupby('id'):
        vals = rows[['censored', 'prostate_death', 'other_death']].fillna(0).values
        # At most one outcome per subject, and only in the last row
        assert vals.sum() <= 1
        assert vals[:-1].sum() == 0


def test_covariates_and_treatment_carried_forward():
    subjects = make_subjects([(1, 1, 3, 1), (2, 0, 1, 2)])
    subjects.loc[1, 'hg_low'] = 0
    long_df = expand_person_periods(subjects, horizon=10)

    assert (long_df.loc[long_df['id'] == 1, 'rx'] == 1).all()
    assert (long_df.loc[long_df['id'] == 2, 'hg_low'] == 0).all()
    assert list(long_df['id']) == [1, 1, 1, 1, 2, 2]


def test_expand_does_not_mutate_input():
    subjects = make_subjects([(1, 1, 3, 1)])
    before = subjects.copy()

    expand_person_periods(subjects, horizon=5)

    pd.testing.assert_frame_equal(subjects, before)


@pytest.mark.parametrize('rows', [
    [(1, 1, -1, 1)],
    [(1, 1, 2.5, 1)],
    [(1, 1, 2, 5)],
    [(1, 1, 2, 1), (1, 0, 3, 1)],
])
def test_expand_rejects_invalid_subjects(rows):
    with pytest.raises(InvalidInputError):
        expand_person_periods(make_subjects(rows), horizon=5)


def test_expand_requires_columns():
    subjects = make_subjects([(1, 1, 2, 1)]).drop(columns='hx')

    with pytest.raises(InvalidInputError):
        expand_person_periods(subjects, horizon=5)


# -----------------------------
# Inverse probability weights
# -----------------------------
def weight_table() -> pd.DataFrame:
    return pd.DataFrame({
        'id': [1, 1, 1, 2, 2],
        'time': [0, 1, 2, 0, 1],
        'p': [0.1, 0.2, 0.5, 0.5, 0.0],
        'p_marginal': [0.1, 0.1, 0.1, 0.2, 0.2],
    })


def test_ip_weights_cumulative_product_resets_per_subject():
    weights = compute_ip_weights(weight_table(), 'p')

    expected = [1 / 0.9, 1 / (0.9 * 0.8), 1 / (0.9 * 0.8 * 0.5), 2.0, 2.0]
    np.testing.assert_allclose(weights.values, expected, rtol=TOLERANCE)


def test_ip_weights_follow_time_order_not_row_order():
    shuffled = weight_table().iloc[[4, 2, 0, 3, 1]]

    weights = compute_ip_weights(shuffled, 'p')

    assert list(weights.index) == list(shuffled.index)
    np.testing.assert_allclose(weights.loc[2], 1 / (0.9 * 0.8 * 0.5), rtol=TOLERANCE)
    np.testing.assert_allclose(weights.loc[4], 2.0, rtol=TOLERANCE)


def test_lagged_ip_weights_use_prior_intervals_only():
    weights = compute_ip_weights(weight_table(), 'p', lag=True)

    expected = [1.0, 1 / 0.9, 1 / (0.9 * 0.8), 1.0, 2.0]
    np.testing.assert_allclose(weights.values, expected, rtol=TOLERANCE)


def test_stabilized_ip_weights():
    weights = compute_ip_weights(weight_table(), 'p', numerator_col='p_marginal')

    expected = [
        0.9 / 0.9,
        0.81 / (0.9 * 0.8),
        0.729 / (0.9 * 0.8 * 0.5),
        0.8 / 0.5,
        0.64 / 0.5,
    ]
    np.testing.assert_allclose(weights.values, expected, rtol=1e-9)


def test_ip_weights_reject_invalid_probabilities():
    table = weight_table()
    table.loc[0, 'p'] = 1.5

    with pytest.raises(InvalidInputError):
        compute_ip_weights(table, 'p')


def test_ip_weights_reject_certain_outcome():
    table = weight_table()
    table.loc[0, 'p'] = 1.0

    with pytest.raises(InvalidInputError):
        compute_ip_weights(table, 'p')


def test_ip_weights_reject_duplicate_records():
    table = pd.concat([weight_table(), weight_table().iloc[[0]]])

    with pytest.raises(InvalidInputError):
        compute_ip_weights(table, 'p')


# -----------------------------
# Model terms
# -----------------------------
def test_model_terms():
    df = pd.DataFrame({'time': [0, 2, 3], 'rx': [1, 0, 1]})

    terms = calculate_model_terms(df)

    np.testing.assert_array_equal(terms['time2'], [0, 4, 9])
    np.testing.assert_array_equal(terms['time3'], [0, 8, 27])
    np.testing.assert_array_equal(terms['rx_time'], [0, 0, 3])
    np.testing.assert_array_equal(terms['rx_time3'], [0, 0, 27])
    assert 'time2' not in df.columns
