"""
Pooled logistic regression models for discrete-time hazards.

Each model treats every person-period row as a binary outcome, so the
predicted probability for a row is the hazard of the event in that
interval among those still at risk. The fitted models are the prediction
collaborators consumed by the weighting and g-formula routines.

References:
-----------
D'Agostino, R.B. et al. (1990). "Relation of pooled logistic regression to
time dependent Cox regression analysis." Statistics in Medicine, 9(12),
1501-1515.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.linear_model import LogisticRegression
from sklearn.preprocessing import StandardScaler

from prostate_data.columns import (
    BASELINE_COVARIATES,
    CENSORING_COL,
    PRIMARY_EVENT_COL,
    COMPETING_EVENT_COL,
)
from .data_prep import TIME_COL, calculate_model_terms

# Prostate cancer death: treatment effect allowed to vary over time
PRIMARY_EVENT_FEATURES = [
    'rx', TIME_COL, 'time2', 'time3', 'rx_time', 'rx_time2', 'rx_time3',
] + BASELINE_COVARIATES

COMPETING_EVENT_FEATURES = ['rx', TIME_COL, 'time2'] + BASELINE_COVARIATES

CENSORING_FEATURES = ['rx', TIME_COL, 'time2'] + BASELINE_COVARIATES

# Numerator models for stabilized weights
MARGINAL_FEATURES = ['rx', TIME_COL, 'time2']

BACKENDS = ('statsmodels', 'sklearn')


class PooledLogisticHazard:
    """
    Pooled logistic model for the hazard of one outcome indicator.

    Rows where the outcome indicator is missing (after an earlier outcome
    in the same interval) are not part of the risk set and are dropped
    before fitting.

    Parameters
    ----------
    outcome_col : str
        Binary outcome indicator column
    feature_cols : List[str]
        Feature columns; derived time terms are added automatically
    backend : str
        'statsmodels' (unpenalized Logit) or 'sklearn' (L2 penalized)
    alpha : float
        Regularization strength for the sklearn backend
    standardize : bool
        Whether to standardize features for the sklearn backend

    Attributes
    ----------
    model_ : fitted model
        statsmodels results or sklearn LogisticRegression
    scaler_ : StandardScaler
        Fitted scaler (sklearn backend with standardize=True)
    n_obs_ : int
        Number of person-period rows used in fitting
    """

    def __init__(
        self,
        outcome_col: str,
        feature_cols: List[str],
        backend: str = 'statsmodels',
        alpha: float = 0.01,
        standardize: bool = True,
    ):
        if backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {backend}")

        self.outcome_col = outcome_col
        self.feature_cols = list(feature_cols)
        self.backend = backend
        self.alpha = alpha
        self.standardize = standardize

        self.model_ = None
        self.scaler_ = None
        self.n_obs_ = None

    def _design(self, df: pd.DataFrame) -> pd.DataFrame:
        return calculate_model_terms(df)[self.feature_cols].astype(float)

    def fit(
        self,
        df: pd.DataFrame,
        sample_weight: Optional[np.ndarray] = None,
    ) -> 'PooledLogisticHazard':
        """
        Fit the model on person-period data.

        Parameters
        ----------
        df : pd.DataFrame
            Person-period data
        sample_weight : np.ndarray, optional
            Per-row weights aligned with df

        Returns
        -------
        self
        """
        X = self._design(df)
        y = df[self.outcome_col].astype(float)

        valid_mask = (y.notna() & X.notna().all(axis=1)).values
        X = X[valid_mask]
        y = y[valid_mask]

        if sample_weight is not None:
            sample_weight = np.asarray(sample_weight, dtype=float)[valid_mask]

        if self.backend == 'statsmodels':
            exog = sm.add_constant(X, has_constant='add')
            if sample_weight is None:
                self.model_ = sm.Logit(y, exog).fit(disp=False)
            else:
                self.model_ = sm.GLM(
                    y, exog,
                    family=sm.families.Binomial(),
                    var_weights=sample_weight,
                ).fit()
        else:
            X_vals = X.values
            if self.standardize:
                self.scaler_ = StandardScaler()
                X_vals = self.scaler_.fit_transform(X_vals)

            self.model_ = LogisticRegression(
                C=1.0 / self.alpha,
                solver='lbfgs',
                max_iter=1000,
            )
            self.model_.fit(X_vals, y.values, sample_weight=sample_weight)

        self.n_obs_ = int(valid_mask.sum())
        return self

    def predict_hazard(self, df: pd.DataFrame) -> np.ndarray:
        """
        Predict interval hazard probabilities.

        Parameters
        ----------
        df : pd.DataFrame
            Person-period or synthetic cohort rows

        Returns
        -------
        np.ndarray
            Predicted hazard for each row
        """
        if self.model_ is None:
            raise ValueError("Model not fitted yet")

        X = self._design(df)

        if self.backend == 'statsmodels':
            exog = sm.add_constant(X, has_constant='add')
            return np.asarray(self.model_.predict(exog), dtype=float)

        X_vals = X.values
        if self.scaler_ is not None:
            X_vals = self.scaler_.transform(X_vals)
        return self.model_.predict_proba(X_vals)[:, 1]

    def get_odds_ratios(self) -> pd.DataFrame:
        """
        Get odds ratios (exp of coefficients) with feature names.

        Returns
        -------
        pd.DataFrame
            DataFrame with feature names, coefficients, and odds ratios
        """
        if self.model_ is None:
            raise ValueError("Model not fitted yet")

        if self.backend == 'statsmodels':
            params = self.model_.params.drop('const')
            coef = params.values
        else:
            coef = self.model_.coef_[0]

        return pd.DataFrame({
            'feature': self.feature_cols,
            'coefficient': coef,
            'odds_ratio': np.exp(coef),
        })


def fit_hazard_models(
    person_periods: pd.DataFrame,
    backend: str = 'statsmodels',
) -> Dict[str, PooledLogisticHazard]:
    """
    Fit the outcome, competing event and censoring hazard models.

    Parameters
    ----------
    person_periods : pd.DataFrame
        Person-period data from expand_person_periods
    backend : str
        Model backend passed to PooledLogisticHazard

    Returns
    -------
    Dict[str, PooledLogisticHazard]
        Models keyed 'primary', 'competing', 'censoring',
        'competing_marginal' and 'censoring_marginal'
    """
    specs = {
        'primary': (PRIMARY_EVENT_COL, PRIMARY_EVENT_FEATURES),
        'competing': (COMPETING_EVENT_COL, COMPETING_EVENT_FEATURES),
        'censoring': (CENSORING_COL, CENSORING_FEATURES),
        'competing_marginal': (COMPETING_EVENT_COL, MARGINAL_FEATURES),
        'censoring_marginal': (CENSORING_COL, MARGINAL_FEATURES),
    }

    return {
        name: PooledLogisticHazard(outcome, features, backend=backend).fit(person_periods)
        for name, (outcome, features) in specs.items()
    }
