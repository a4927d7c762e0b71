"""
Separable Effects Analysis for Competing Risks.

Replicating Young et al. (2020) and Stensrud et al. (2022) on the
Byar & Greene prostate cancer trial, with prostate cancer death as the
event of interest and death from other causes as the competing event.

Estimands:
----------
- Total effect: competing deaths allowed, censoring removed by IPW
- Direct effect: competing deaths eliminated by IPW
- Separable effects: g-formula with treatment split by causal pathway

Modules:
--------
data_prep : Person-period records and inverse probability weights
hazard_models : Pooled logistic hazard models
cumulative_incidence : Hazard aggregation and CIF integration
simulation : G-formula synthetic cohort simulation
evaluation : Risk summaries and contrasts
estimands : Total, direct and separable effect drivers
"""

from .validation import InvalidInputError

from .data_prep import (
    expand_person_periods,
    compute_ip_weights,
    calculate_model_terms,
)

from .hazard_models import (
    PooledLogisticHazard,
    fit_hazard_models,
)

from .cumulative_incidence import (
    aggregate_hazard,
    survival_from_hazards,
    cumulative_incidence,
    incidence_curve_frame,
)

from .simulation import (
    build_synthetic_cohort,
    simulate_counterfactual_incidence,
)

from .evaluation import (
    risk_at,
    risk_contrast,
    summarize_estimands,
    format_results_table,
)

from .estimands import (
    configure_logging,
    total_effect,
    direct_effect,
    separable_effects,
    baseline_cohort,
    run_analysis,
    SEPARABLE_SCENARIOS,
)

__all__ = [
    'InvalidInputError',
    # Data preparation
    'expand_person_periods',
    'compute_ip_weights',
    'calculate_model_terms',
    # Hazard models
    'PooledLogisticHazard',
    'fit_hazard_models',
    # Cumulative incidence
    'aggregate_hazard',
    'survival_from_hazards',
    'cumulative_incidence',
    'incidence_curve_frame',
    # Simulation
    'build_synthetic_cohort',
    'simulate_counterfactual_incidence',
    # Evaluation
    'risk_at',
    'risk_contrast',
    'summarize_estimands',
    'format_results_table',
    # Estimands
    'configure_logging',
    'total_effect',
    'direct_effect',
    'separable_effects',
    'baseline_cohort',
    'run_analysis',
    'SEPARABLE_SCENARIOS',
]

__version__ = '0.1.0'
