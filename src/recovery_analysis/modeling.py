"""
Recovery-curve models over time since fire.

The main model is a quadratic mixed-effects regression,
``metric ~ b0 + b1*t + b2*t^2`` with a random intercept per fire event,
fitted to fire-affected records only. Its goodness of fit is the squared
correlation between fitted and observed values, which is not the same thing
as the model's own (REML) log-likelihood; both are kept on the result.
"""

import logging
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy.stats import linregress

from src.survey_data.config.settings import SurveyConfig
from src.survey_data.derivation import FIRE_STATUS_AFFECTED
from src.survey_data.errors import InsufficientDataError, SchemaError

logger = logging.getLogger(__name__)

TIME_COLUMN = "years_since_fire"
MIN_CURVE_OBSERVATIONS = 4
MIN_FIRE_EVENTS = 2
MIN_TREND_OBSERVATIONS = 3


@dataclass
class CurveEstimate:
    """Raw output of a recovery-curve fitter."""

    fixed_effects: tuple[float, float, float]  # intercept, linear, quadratic
    fitted: np.ndarray
    log_likelihood: float
    converged: bool = True


@dataclass
class RecoveryCurveFit:
    """Quadratic mixed-effects recovery curve for one metric."""

    metric: str
    intercept: float
    linear: float
    quadratic: float
    time: np.ndarray
    observed: np.ndarray
    fitted: np.ndarray
    fit_r_squared: float
    log_likelihood: float
    n_observations: int
    n_fire_events: int
    converged: bool

    @property
    def time_range(self) -> tuple[float, float]:
        return float(np.min(self.time)), float(np.max(self.time))


@dataclass
class LinearTrendResult:
    """Ordinary least-squares trend of a metric over years since fire."""

    metric: str
    slope: float
    intercept: float
    r_squared: float
    p_value: float
    n_observations: int


class RecoveryCurveFitter(ABC):
    """Fits ``y ~ t + t^2`` with a random intercept per ``group``."""

    @abstractmethod
    def fit(self, data: pd.DataFrame) -> CurveEstimate:
        """
        Fit the recovery curve.

        Parameters
        ----------
        data : pd.DataFrame
            Columns ``y`` (response), ``t`` (years since fire) and ``group``
            (fire event), no missing values, default integer index.

        Returns
        -------
        CurveEstimate
            Fitted values must be aligned with the rows of ``data``.
        """
        pass


class MixedLMFitter(RecoveryCurveFitter):
    """Linear mixed model via ``statsmodels.formula.api.mixedlm``."""

    formula = "y ~ t + I(t ** 2)"

    def __init__(self, reml: bool = True):
        self.reml = reml

    def fit(self, data):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            model = smf.mixedlm(self.formula, data=data, groups=data["group"])
            result = model.fit(reml=self.reml)

        for w in caught:
            logger.warning(f"MixedLM warning: {w.message}")

        fe = result.fe_params
        logger.debug(f"MixedLM fixed effects: {fe.to_dict()}, llf={result.llf:.3f}")

        return CurveEstimate(
            fixed_effects=(float(fe["Intercept"]), float(fe["t"]), float(fe["I(t ** 2)"])),
            fitted=np.asarray(result.fittedvalues, dtype=float),
            log_likelihood=float(result.llf),
            converged=bool(result.converged),
        )


def squared_correlation(observed, fitted) -> float:
    """Squared Pearson correlation; NaN when either side is constant."""
    observed = np.asarray(observed, dtype=float)
    fitted = np.asarray(fitted, dtype=float)
    if len(observed) < 2 or np.std(observed) == 0 or np.std(fitted) == 0:
        return float("nan")
    return float(np.corrcoef(observed, fitted)[0, 1] ** 2)


def _fire_affected_rows(df: pd.DataFrame, metric: str) -> pd.DataFrame:
    if metric not in df.columns:
        raise SchemaError(f"Metric column '{metric}' not found")
    return df[df["fire_status"] == FIRE_STATUS_AFFECTED]


def fit_recovery_curve(
    df: pd.DataFrame,
    metric: str,
    config: SurveyConfig,
    fitter: RecoveryCurveFitter | None = None,
) -> RecoveryCurveFit:
    """
    Fit the quadratic mixed-effects recovery curve of one metric.

    Parameters
    ----------
    df : pd.DataFrame
        Derived survey table (see ``derive_fire_fields``).
    metric : str
        Response column.
    config : SurveyConfig
        Supplies the fire event column.
    fitter : RecoveryCurveFitter, optional
        Defaults to ``MixedLMFitter()``.

    Raises
    ------
    InsufficientDataError
        If fewer than four usable fire-affected rows or two fire events remain.
    SchemaError
        If the metric or fire event column is missing.
    """
    event_col = config.fire_event_column
    if event_col not in df.columns:
        raise SchemaError(f"Fire event column '{event_col}' not found")

    affected = _fire_affected_rows(df, metric)
    data = pd.DataFrame(
        {
            "y": pd.to_numeric(affected[metric], errors="coerce"),
            "t": affected[TIME_COLUMN].astype(float),
            "group": affected[event_col],
        }
    ).dropna()
    data = data.reset_index(drop=True)

    n_events = data["group"].nunique()
    if len(data) < MIN_CURVE_OBSERVATIONS or n_events < MIN_FIRE_EVENTS:
        raise InsufficientDataError(
            f"Recovery curve of '{metric}' needs at least {MIN_CURVE_OBSERVATIONS} "
            f"fire-affected observations across {MIN_FIRE_EVENTS} fire events, "
            f"got {len(data)} across {n_events}"
        )

    fitter = fitter or MixedLMFitter()
    estimate = fitter.fit(data)

    observed = data["y"].to_numpy(dtype=float)
    fitted = np.asarray(estimate.fitted, dtype=float)
    r_squared = squared_correlation(observed, fitted)
    b0, b1, b2 = estimate.fixed_effects

    logger.info(
        f"Recovery curve {metric}: {b0:.3f} + {b1:.3f}*t + {b2:.4f}*t^2, "
        f"r^2(fitted, observed)={r_squared:.3f}"
    )
    if not estimate.converged:
        logger.warning(f"Recovery curve of '{metric}' did not converge")

    return RecoveryCurveFit(
        metric=metric,
        intercept=b0,
        linear=b1,
        quadratic=b2,
        time=data["t"].to_numpy(dtype=float),
        observed=observed,
        fitted=fitted,
        fit_r_squared=r_squared,
        log_likelihood=estimate.log_likelihood,
        n_observations=len(data),
        n_fire_events=int(n_events),
        converged=estimate.converged,
    )


def predict_recovery_curve(fit: RecoveryCurveFit, n_points: int = 100) -> pd.DataFrame:
    """
    Evaluate the population-level (fixed effects only) curve.

    The grid spans the observed years-since-fire range in ``n_points``
    evenly spaced steps.
    """
    if n_points < 2:
        raise ValueError("n_points must be at least 2")
    t_min, t_max = fit.time_range
    t = np.linspace(t_min, t_max, n_points)
    return pd.DataFrame(
        {
            TIME_COLUMN: t,
            "predicted": fit.intercept + fit.linear * t + fit.quadratic * t**2,
        }
    )


def fit_linear_trend(df: pd.DataFrame, metric: str) -> LinearTrendResult:
    """
    Least-squares line of a metric against years since fire.

    Uses fire-affected records only.

    Raises
    ------
    InsufficientDataError
        If fewer than three usable rows remain or every row has the same time.
    """
    affected = _fire_affected_rows(df, metric)
    data = pd.DataFrame(
        {
            "t": affected[TIME_COLUMN].astype(float),
            "y": pd.to_numeric(affected[metric], errors="coerce"),
        }
    ).dropna()

    if len(data) < MIN_TREND_OBSERVATIONS or data["t"].nunique() < 2:
        raise InsufficientDataError(
            f"Linear trend of '{metric}' needs {MIN_TREND_OBSERVATIONS} fire-affected "
            f"observations at two or more times, got {len(data)}"
        )

    fit = linregress(data["t"], data["y"])
    return LinearTrendResult(
        metric=metric,
        slope=float(fit.slope),
        intercept=float(fit.intercept),
        r_squared=float(fit.rvalue**2),
        p_value=float(fit.pvalue),
        n_observations=len(data),
    )
