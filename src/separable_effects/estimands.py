"""
Total, direct and separable effect estimands for the prostate trial.

Following Young et al. (2020) and Stensrud et al. (2022):

- Total effect: IPCW-weighted hazards per arm, competing deaths allowed
- Direct effect: competing deaths eliminated by inverse probability
  weighting, competing hazard fixed at 0
- Separable effects: g-formula with the treatment set separately on the
  pathway to prostate cancer death and the pathway to other death

References:
-----------
Young, J.G., Stensrud, M.J., Tchetgen Tchetgen, E.J. and Hernan, M.A.
(2020). "A causal framework for classical statistical estimands in
failure-time settings with competing events." Statistics in Medicine,
39(8), 1199-1236.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from prostate_data.columns import (
    PRIMARY_EVENT_COL,
    COMPETING_EVENT_COL,
    BASELINE_COVARIATES,
    DEFAULT_HORIZON,
)
from prostate_data.utils import summarize_subjects
from .cumulative_incidence import aggregate_hazard, cumulative_incidence
from .data_prep import TIME_COL, compute_ip_weights, expand_person_periods
from .evaluation import summarize_estimands
from .hazard_models import PooledLogisticHazard, fit_hazard_models
from .simulation import simulate_counterfactual_incidence

logger = logging.getLogger(__name__)

ARMS = (1, 0)

# (primary pathway, competing pathway) assignments
SEPARABLE_SCENARIOS = [(1, 1), (0, 0), (1, 0), (0, 1)]

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Attach console (and optionally file) handlers to the package loggers.

    Handlers from an earlier call are closed and replaced.

    Parameters
    ----------
    level : int
        Logging level
    log_file : str or Path, optional
        File to write the log to in addition to the console
    """
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))

    for name in ('separable_effects', 'prostate_data'):
        package_logger = logging.getLogger(name)
        package_logger.setLevel(level)
        for handler in list(package_logger.handlers):
            handler.close()
            package_logger.removeHandler(handler)
        for handler in handlers:
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)


def censoring_weights(
    person_periods: pd.DataFrame,
    models: Dict[str, PooledLogisticHazard],
    stabilized: bool = False,
) -> pd.Series:
    """
    Inverse probability of censoring weights.

    Parameters
    ----------
    person_periods : pd.DataFrame
        Person-period data
    models : Dict[str, PooledLogisticHazard]
        Needs 'censoring' (and 'censoring_marginal' when stabilized)
    stabilized : bool
        Multiply by the marginal model's cumulative product

    Returns
    -------
    pd.Series
    """
    df = person_periods.assign(p_censor=models['censoring'].predict_hazard(person_periods))
    numerator_col = None
    if stabilized:
        df['p_censor_marginal'] = models['censoring_marginal'].predict_hazard(person_periods)
        numerator_col = 'p_censor_marginal'

    return compute_ip_weights(df, 'p_censor', numerator_col=numerator_col)


def competing_event_weights(
    person_periods: pd.DataFrame,
    models: Dict[str, PooledLogisticHazard],
    stabilized: bool = False,
) -> pd.Series:
    """
    Inverse probability weights that remove the competing event.

    The competing event comes after the primary event within an interval,
    so the products run over strictly earlier intervals.

    Parameters
    ----------
    person_periods : pd.DataFrame
        Person-period data
    models : Dict[str, PooledLogisticHazard]
        Needs 'competing' (and 'competing_marginal' when stabilized)
    stabilized : bool
        Multiply by the marginal model's cumulative product

    Returns
    -------
    pd.Series
    """
    df = person_periods.assign(p_other=models['competing'].predict_hazard(person_periods))
    numerator_col = None
    if stabilized:
        df['p_other_marginal'] = models['competing_marginal'].predict_hazard(person_periods)
        numerator_col = 'p_other_marginal'

    return compute_ip_weights(df, 'p_other', numerator_col=numerator_col, lag=True)


def total_effect(
    person_periods: pd.DataFrame,
    models: Optional[Dict[str, PooledLogisticHazard]] = None,
    horizon: int = DEFAULT_HORIZON,
    stabilized: bool = False,
) -> Dict[str, Dict[int, np.ndarray]]:
    """
    Cumulative incidence of both events per arm with competing events allowed.

    Without models the hazards are unweighted (no adjustment for
    censoring).

    Parameters
    ----------
    person_periods : pd.DataFrame
        Person-period data
    models : Dict[str, PooledLogisticHazard], optional
        Fitted models providing the censoring weights
    horizon : int
        Last discrete interval K
    stabilized : bool
        Use stabilized censoring weights

    Returns
    -------
    Dict[str, Dict[int, np.ndarray]]
        Curves keyed by event ('prostate_death', 'other_death') and arm
    """
    weights = None
    if models is not None:
        weights = censoring_weights(person_periods, models, stabilized=stabilized).values

    curves = {PRIMARY_EVENT_COL: {}, COMPETING_EVENT_COL: {}}
    for arm in ARMS:
        arm_filter = {'rx': arm}
        hazard_p = aggregate_hazard(person_periods, weights, arm_filter, PRIMARY_EVENT_COL, horizon)
        hazard_o = aggregate_hazard(person_periods, weights, arm_filter, COMPETING_EVENT_COL, horizon)

        curves[PRIMARY_EVENT_COL][arm] = cumulative_incidence(hazard_p, hazard_o)
        curves[COMPETING_EVENT_COL][arm] = cumulative_incidence(hazard_p, hazard_o, competing=True)

    return curves


def direct_effect(
    person_periods: pd.DataFrame,
    models: Dict[str, PooledLogisticHazard],
    horizon: int = DEFAULT_HORIZON,
    stabilized: bool = False,
) -> Dict[str, Dict[int, np.ndarray]]:
    """
    Cumulative incidence of the primary event per arm with competing events eliminated.

    Parameters
    ----------
    person_periods : pd.DataFrame
        Person-period data
    models : Dict[str, PooledLogisticHazard]
        Fitted censoring and competing event models
    horizon : int
        Last discrete interval K
    stabilized : bool
        Use stabilized weights

    Returns
    -------
    Dict[str, Dict[int, np.ndarray]]
        Curves keyed by 'prostate_death' and arm
    """
    weights = (
        censoring_weights(person_periods, models, stabilized=stabilized)
        * competing_event_weights(person_periods, models, stabilized=stabilized)
    ).values

    no_competing = np.zeros(horizon + 1)
    curves = {PRIMARY_EVENT_COL: {}}
    for arm in ARMS:
        hazard_p = aggregate_hazard(person_periods, weights, {'rx': arm}, PRIMARY_EVENT_COL, horizon)
        curves[PRIMARY_EVENT_COL][arm] = cumulative_incidence(hazard_p, no_competing)

    return curves


def baseline_cohort(person_periods: pd.DataFrame, id_col: str = 'id') -> pd.DataFrame:
    """One row per subject with the baseline covariates (first interval)."""
    first = person_periods.sort_values([id_col, TIME_COL]).groupby(id_col, sort=True).head(1)
    return first[[id_col] + BASELINE_COVARIATES].reset_index(drop=True)


def separable_effects(
    cohort: pd.DataFrame,
    model_p,
    model_o,
    horizon: int = DEFAULT_HORIZON,
    aggregation: str = 'cohort',
) -> Dict[Tuple[int, int], Dict[str, np.ndarray]]:
    """
    G-formula cumulative incidence for each separable treatment scenario.

    Parameters
    ----------
    cohort : pd.DataFrame
        One row per subject with baseline covariates
    model_p : PooledLogisticHazard or callable
        Prostate cancer death hazard model
    model_o : PooledLogisticHazard or callable
        Other death hazard model
    horizon : int
        Last discrete interval K
    aggregation : str
        'cohort' or 'subject', see simulate_counterfactual_incidence

    Returns
    -------
    Dict[Tuple[int, int], Dict[str, np.ndarray]]
        Curves for both events keyed by (a_primary, a_competing)
    """
    results = {}
    for scenario in SEPARABLE_SCENARIOS:
        results[scenario] = {
            event: simulate_counterfactual_incidence(
                cohort, scenario, model_p, model_o,
                horizon=horizon,
                competing=(event == COMPETING_EVENT_COL),
                aggregation=aggregation,
            )
            for event in (PRIMARY_EVENT_COL, COMPETING_EVENT_COL)
        }
        logger.info(
            f"Scenario (a_Y={scenario[0]}, a_D={scenario[1]}): "
            f"risk of prostate death {results[scenario][PRIMARY_EVENT_COL][-1]:.3f}"
        )

    return results


def collect_contrasts(
    total: Dict[str, Dict[int, np.ndarray]],
    direct: Dict[str, Dict[int, np.ndarray]],
    separable: Dict[Tuple[int, int], Dict[str, np.ndarray]],
) -> Dict[Tuple[str, str], Tuple[np.ndarray, np.ndarray]]:
    """
    Pair treated and control curves for every reported contrast.

    Returns
    -------
    Dict[(estimand, event), (curve_treated, curve_control)]
    """
    contrasts = {}

    for event, arms in total.items():
        contrasts[('Total effect', event)] = (arms[1], arms[0])

    for event, arms in direct.items():
        contrasts[('Direct effect', event)] = (arms[1], arms[0])

    for event in (PRIMARY_EVENT_COL, COMPETING_EVENT_COL):
        contrasts[('G-formula total effect', event)] = (
            separable[(1, 1)][event], separable[(0, 0)][event]
        )
        contrasts[('Separable direct effect (a_D=0)', event)] = (
            separable[(1, 0)][event], separable[(0, 0)][event]
        )
        contrasts[('Separable direct effect (a_D=1)', event)] = (
            separable[(1, 1)][event], separable[(0, 1)][event]
        )
        contrasts[('Separable indirect effect (a_Y=1)', event)] = (
            separable[(1, 1)][event], separable[(1, 0)][event]
        )
        contrasts[('Separable indirect effect (a_Y=0)', event)] = (
            separable[(0, 1)][event], separable[(0, 0)][event]
        )

    return contrasts


def run_analysis(
    subjects: pd.DataFrame,
    horizon: int = DEFAULT_HORIZON,
    backend: str = 'statsmodels',
    stabilized: bool = False,
    aggregation: str = 'cohort',
) -> dict:
    """
    Run the complete analysis on recoded subject data.

    Parameters
    ----------
    subjects : pd.DataFrame
        Output of prostate_data.utils.recode_subjects
    horizon : int
        Last discrete interval K
    backend : str
        Hazard model backend
    stabilized : bool
        Use stabilized inverse probability weights
    aggregation : str
        Cohort aggregation for the g-formula

    Returns
    -------
    dict
        Keys 'person_periods', 'models', 'total', 'direct', 'separable',
        'summary'
    """
    summarize_subjects(subjects, "Analysis cohort")

    person_periods = expand_person_periods(subjects, horizon=horizon)
    logger.info(f"Expanded to {len(person_periods):,} person-period records")

    logger.info(f"Fitting pooled logistic hazard models ({backend})")
    models = fit_hazard_models(person_periods, backend=backend)

    logger.info("Estimating total effect")
    total = total_effect(person_periods, models, horizon=horizon, stabilized=stabilized)

    logger.info("Estimating direct effect")
    direct = direct_effect(person_periods, models, horizon=horizon, stabilized=stabilized)

    logger.info("Estimating separable effects")
    separable = separable_effects(
        baseline_cohort(person_periods),
        models['primary'],
        models['competing'],
        horizon=horizon,
        aggregation=aggregation,
    )

    summary = summarize_estimands(collect_contrasts(total, direct, separable))
    logger.info(f"Summarized {len(summary)} contrasts at interval {horizon}")

    return {
        'person_periods': person_periods,
        'models': models,
        'total': total,
        'direct': direct,
        'separable': separable,
        'summary': summary,
    }
