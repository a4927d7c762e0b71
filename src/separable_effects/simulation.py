"""
Discrete-time g-formula for counterfactual cumulative incidence.

A synthetic cohort keeps every subject's baseline covariates fixed and
sets time and treatment to the values of a counterfactual scenario. The
treatment can differ between the pathway to the primary event and the
pathway to the competing event, which is what the separable effects
require: e.g. (1, 0) gives the primary-event model the treated value and
the competing-event model the placebo value.

References:
-----------
Stensrud, M.J., Young, J.G., Didelez, V., Robins, J.M. and Hernan, M.A.
(2022). "Separable Effects for Causal Inference in the Presence of
Competing Events." JASA, 117(537), 175-183.
"""

from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from prostate_data.columns import DEFAULT_HORIZON
from .data_prep import TIME_COL
from .validation import InvalidInputError, check_probabilities, check_time_index

Assignment = Union[int, Tuple[int, int]]

AGGREGATIONS = ('cohort', 'subject')


def _split_assignment(treatment: Assignment) -> Tuple[int, int]:
    if np.ndim(treatment) == 0:
        a_primary = a_competing = treatment
    else:
        if len(treatment) != 2:
            raise InvalidInputError(
                f"Treatment must be a value or a (primary, competing) pair, got {treatment!r}"
            )
        a_primary, a_competing = treatment

    for value in (a_primary, a_competing):
        if value not in (0, 1):
            raise InvalidInputError(f"Treatment values must be 0 or 1, got {value!r}")

    return int(a_primary), int(a_competing)


def _as_predictor(model) -> Callable[[pd.DataFrame], np.ndarray]:
    if hasattr(model, 'predict_hazard'):
        return model.predict_hazard
    if callable(model):
        return model
    raise InvalidInputError(
        f"Hazard model must be callable or expose predict_hazard, got {type(model).__name__}"
    )


def build_synthetic_cohort(
    cohort: pd.DataFrame,
    times: Sequence[int],
    treatment_value: int,
    time_col: str = TIME_COL,
    treatment_col: str = 'rx',
) -> pd.DataFrame:
    """
    Replicate each subject once per time step under a fixed treatment.

    Parameters
    ----------
    cohort : pd.DataFrame
        One row per subject with baseline covariates
    times : Sequence[int]
        Discrete time grid
    treatment_value : int
        Value assigned to treatment_col on every row
    time_col : str
        Name of the time column to create
    treatment_col : str
        Name of the treatment column to set

    Returns
    -------
    pd.DataFrame
        len(cohort) * len(times) rows ordered by subject, then time
    """
    times = np.asarray(times)
    n_times = len(times)

    positions = np.repeat(np.arange(len(cohort)), n_times)
    synthetic = cohort.iloc[positions].reset_index(drop=True)
    synthetic[time_col] = np.tile(times, len(cohort))
    synthetic[treatment_col] = treatment_value

    return synthetic


def simulate_counterfactual_incidence(
    cohort: pd.DataFrame,
    treatment: Assignment,
    hazard_model_p,
    hazard_model_o,
    times: Optional[Sequence[int]] = None,
    horizon: int = DEFAULT_HORIZON,
    competing: bool = False,
    aggregation: str = 'cohort',
    time_col: str = TIME_COL,
    treatment_col: str = 'rx',
) -> np.ndarray:
    """
    Cumulative incidence under a fixed counterfactual treatment assignment.

    For every synthetic record the models give hP and hO, and the
    probability of surviving both events in the interval is
    s = (1 - hP) * (1 - hO). With aggregation='cohort' the hazard and s are
    averaged over subjects at each t before integrating:

        CIF(t) = sum over k<=t of: mean hP(k) * prod over j<k of: mean s(j)

    With aggregation='subject' each subject's curve is integrated from its
    own hazards and the curves are averaged.

    Parameters
    ----------
    cohort : pd.DataFrame
        One row per subject with baseline covariates
    treatment : int or (int, int)
        Assignment for both pathways, or (primary pathway, competing pathway)
    hazard_model_p : callable or model
        Predicts the primary-event hazard for synthetic rows
    hazard_model_o : callable or model
        Predicts the competing-event hazard for synthetic rows
    times : Sequence[int], optional
        Time grid 0..K; defaults to range(horizon + 1)
    horizon : int
        Last discrete interval K when times is not given
    competing : bool
        Return the incidence of the competing event instead
    aggregation : str
        'cohort' or 'subject'
    time_col : str
        Time column read by the models
    treatment_col : str
        Treatment column read by the models

    Returns
    -------
    np.ndarray
        Cumulative incidence at the end of each interval
    """
    if aggregation not in AGGREGATIONS:
        raise InvalidInputError(f"Unknown aggregation: {aggregation}")
    if len(cohort) == 0:
        raise InvalidInputError("Cohort must contain at least one subject")

    a_primary, a_competing = _split_assignment(treatment)

    if times is None:
        times = np.arange(horizon + 1)
    times = np.asarray(times)
    if len(times) == 0:
        raise InvalidInputError("Time grid must not be empty")
    times = check_time_index(times, int(times.max()))
    if times[0] != 0:
        raise InvalidInputError(f"Time grid must start at 0, got {times[0]}")
    if (np.diff(times) <= 0).any():
        raise InvalidInputError("Time grid must be strictly increasing")

    n_subjects, n_times = len(cohort), len(times)

    def predict(model, treatment_value: int, name: str) -> np.ndarray:
        synthetic = build_synthetic_cohort(
            cohort, times, treatment_value, time_col=time_col, treatment_col=treatment_col
        )
        hazard = check_probabilities(_as_predictor(model)(synthetic), name=name)
        if len(hazard) != n_subjects * n_times:
            raise InvalidInputError(
                f"{name} returned {len(hazard)} predictions for "
                f"{n_subjects * n_times} synthetic records"
            )
        return hazard.reshape(n_subjects, n_times)

    hazard_p = predict(hazard_model_p, a_primary, 'hazard_model_p')
    hazard_o = predict(hazard_model_o, a_competing, 'hazard_model_o')

    joint_survival = (1.0 - hazard_p) * (1.0 - hazard_o)
    of_interest = hazard_o if competing else hazard_p

    if aggregation == 'cohort':
        mean_survival = joint_survival.mean(axis=0)
        at_start = np.concatenate([[1.0], np.cumprod(mean_survival)[:-1]])
        return np.cumsum(of_interest.mean(axis=0) * at_start)

    at_start = np.hstack([
        np.ones((n_subjects, 1)),
        np.cumprod(joint_survival, axis=1)[:, :-1],
    ])
    return np.cumsum(of_interest * at_start, axis=1).mean(axis=0)
