"""
Tests for recoding the raw prostate trial records.

Usage:
    pytest tests/test_prostate_data.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add source root to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from prostate_data.columns import SUBJECT_COLUMNS
from prostate_data.utils import (
    bin_age,
    is_low_hemoglobin,
    map_event_type,
    recode_subjects,
    summarize_subjects,
    validate_data,
)


def raw_records() -> pd.DataFrame:
    """A handful of records in the layout of the published dataset."""
    return pd.DataFrame({
        'patno': [1, 2, 3, 4, 5, 6],
        'stage': [3, 3, 4, 4, 3, 4],
        'rx': [
            'placebo', '5.0 mg estrogen', '1.0 mg estrogen',
            '5.0 mg estrogen', 'placebo', 'placebo',
        ],
        'dtime': [72, 1, 40, 20, 65, 34],
        'status': [
            'alive', 'dead - prostatic ca', 'dead - other ca',
            'dead - heart or vascular', 'alive', 'dead - prostatic ca',
        ],
        'age': [75, 54, 69, 60, 80, np.nan],
        'hg': [13.8, 11.0, 14.6, 12.0, 10.2, 13.0],
        'pf': [
            'normal activity', 'normal activity', 'in bed < 50% daytime',
            'in bed > 50% daytime', 'normal activity', 'normal activity',
        ],
        'hx': [0, 0, 1, 1, 0, 0],
    })


def test_map_event_type():
    assert map_event_type('alive') == 0
    assert map_event_type('dead - prostatic ca') == 1
    assert map_event_type('dead - cerebrovascular') == 2
    assert map_event_type('dead - unknown cause') == 2
    assert map_event_type(np.nan) is None
    assert map_event_type('missing in action') is None


@pytest.mark.parametrize('age, label', [
    (48, '<=59'), (59, '<=59'), (59.5, '60-74'), (60, '60-74'),
    (74, '60-74'), (75, '75+'), (89, '75+'),
])
def test_bin_age(age, label):
    assert bin_age(age) == label


def test_bin_age_missing():
    assert bin_age(np.nan) is None


def test_low_hemoglobin():
    assert is_low_hemoglobin(11.9) == 1
    assert is_low_hemoglobin(12.0) == 0
    assert is_low_hemoglobin(np.nan) is None


def test_validate_data():
    is_valid, missing = validate_data(raw_records().drop(columns='hg'), ['hg', 'pf'])
    assert not is_valid
    assert missing == ['hg']


def test_recode_subjects_restricts_arms_and_drops_incomplete():
    subjects = recode_subjects(raw_records())

    # Subject 3 is on 1.0 mg, subject 6 has no age
    assert list(subjects['id']) == [1, 2, 4, 5]
    assert list(subjects.columns) == SUBJECT_COLUMNS


def test_recode_subjects_values():
    subjects = recode_subjects(raw_records()).set_index('id')

    assert subjects.loc[1, 'rx'] == 0
    assert subjects.loc[2, 'rx'] == 1
    assert list(subjects['event_type']) == [0, 1, 2, 0]
    assert subjects.loc[4, 'normal_act'] == 0
    assert subjects.loc[1, 'age_75_plus'] == 1
    assert subjects.loc[4, 'age_60_74'] == 1
    assert subjects.loc[2, 'age_60_74'] == 0 and subjects.loc[2, 'age_75_plus'] == 0
    assert subjects.loc[2, 'hg_low'] == 1
    assert subjects.loc[4, 'hg_low'] == 0
    assert subjects.loc[4, 'hx'] == 1
    assert subjects['dtime'].dtype.kind == 'i'


def test_recode_subjects_other_treated_arm():
    subjects = recode_subjects(raw_records(), treated_arm='1.0 mg estrogen')

    assert list(subjects['id']) == [1, 3, 5]
    assert list(subjects['rx']) == [0, 1, 0]


def test_recode_subjects_rejects_missing_columns():
    with pytest.raises(ValueError, match='Missing required columns'):
        recode_subjects(raw_records().drop(columns='pf'))


def test_recode_subjects_rejects_unknown_arm():
    with pytest.raises(ValueError, match='Unknown treatment arm'):
        recode_subjects(raw_records(), treated_arm='10 mg estrogen')


def test_recode_subjects_rejects_unknown_status():
    records = raw_records()
    records.loc[0, 'status'] = 'lost'

    with pytest.raises(ValueError, match='Unknown status'):
        recode_subjects(records)


def test_summarize_subjects():
    table = summarize_subjects(recode_subjects(raw_records()))

    assert list(table.columns) == ['censored', 'prostate_death', 'other_death']
    assert table.loc[0, 'censored'] == 2
    assert table.loc[1, 'prostate_death'] == 1
    assert table.loc[1, 'other_death'] == 1
    assert table.loc[0, 'other_death'] == 0
