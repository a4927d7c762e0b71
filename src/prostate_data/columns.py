"""
Column definitions for the Byar & Greene prostate cancer trial dataset.

Based on the Vanderbilt Biostatistics `prostate` dataset (502 patients,
stage 3 and 4 prostate cancer, randomized to placebo or diethylstilbestrol).
"""

# Raw subject-level columns used by the analysis
SUBJECT_ID_COL = 'patno'
TREATMENT_COL = 'rx'
FOLLOWUP_COL = 'dtime'
STATUS_COL = 'status'

RAW_REQUIRED_COLUMNS = [
    SUBJECT_ID_COL,
    TREATMENT_COL,
    FOLLOWUP_COL,
    STATUS_COL,
    'age',
    'hg',
    'pf',
    'hx',
]

# Treatment arms
PLACEBO_ARM = 'placebo'
DEFAULT_TREATED_ARM = '5.0 mg estrogen'
TREATMENT_LEVELS = [
    'placebo',
    '0.2 mg estrogen',
    '1.0 mg estrogen',
    '5.0 mg estrogen',
]

# Event type codes after recoding
EVENT_CENSORED = 0
EVENT_PROSTATE_DEATH = 1
EVENT_OTHER_DEATH = 2

# Status level mapping for event types
# Every death not attributed to prostate cancer is the competing event
STATUS_EVENT_MAP = {
    'alive': EVENT_CENSORED,
    'dead - prostatic ca': EVENT_PROSTATE_DEATH,
    'dead - heart or vascular': EVENT_OTHER_DEATH,
    'dead - cerebrovascular': EVENT_OTHER_DEATH,
    'dead - pulmonary embolus': EVENT_OTHER_DEATH,
    'dead - other ca': EVENT_OTHER_DEATH,
    'dead - respiratory disease': EVENT_OTHER_DEATH,
    'dead - other specific non-ca': EVENT_OTHER_DEATH,
    'dead - unspecified non-ca': EVENT_OTHER_DEATH,
    'dead - unknown cause': EVENT_OTHER_DEATH,
}

# Performance status level that counts as normal activity
NORMAL_ACTIVITY_LEVEL = 'normal activity'

# Age bands (years): <=59, 60-74, >=75
AGE_BANDS = [0, 59, 74, 200]
AGE_LABELS = ['<=59', '60-74', '75+']

# Hemoglobin threshold (g/100ml) for the low-hemoglobin indicator
HEMOGLOBIN_THRESHOLD = 12.0

# Recoded subject-level columns
SUBJECT_COLUMNS = [
    'id',
    'rx',
    'dtime',
    'event_type',
    'normal_act',
    'age_60_74',
    'age_75_plus',
    'hg_low',
    'hx',
]

BASELINE_COVARIATES = [
    'normal_act',
    'age_60_74',
    'age_75_plus',
    'hg_low',
    'hx',
]

# Person-period outcome indicators, in within-interval order
CENSORING_COL = 'censored'
PRIMARY_EVENT_COL = 'prostate_death'
COMPETING_EVENT_COL = 'other_death'
OUTCOME_ORDER = [CENSORING_COL, PRIMARY_EVENT_COL, COMPETING_EVENT_COL]

# Administrative horizon: intervals 0..59 (60 monthly steps)
DEFAULT_HORIZON = 59
