import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy.stats import f_oneway, ttest_ind

from src.recovery_analysis.aggregation import group_keys
from src.survey_data.derivation import FIRE_STATUS_AFFECTED, FIRE_STATUS_CONTROL
from src.survey_data.errors import InsufficientDataError, SchemaError

logger = logging.getLogger(__name__)


@dataclass
class AnovaResult:
    """One-way ANOVA of one metric across the levels of one grouping column."""

    metric: str
    group_col: str
    f_statistic: float
    p_value: float
    df_between: int
    df_within: int
    group_sizes: dict[str, int] = field(default_factory=dict)


@dataclass
class StatusComparison:
    """Welch t-test of fire-affected against control records for one metric."""

    metric: str
    n_control: int
    n_fire_affected: int
    mean_control: float
    mean_fire_affected: float
    t_statistic: float
    p_value: float


class AnovaFitter(ABC):
    """Computes a between-groups F test from per-level samples."""

    @abstractmethod
    def fit(self, metric: str, samples: dict[str, np.ndarray]) -> tuple[float, float]:
        """
        Fit a one-way ANOVA.

        Parameters
        ----------
        metric : str
            Name of the dependent variable (for logging only).
        samples : dict
            {level: 1-d array of observations}, one entry per level, none empty.

        Returns
        -------
        tuple
            (F statistic, p-value)
        """
        pass


class ScipyAnovaFitter(AnovaFitter):
    """One-way ANOVA with ``scipy.stats.f_oneway``."""

    def fit(self, metric, samples):
        f_stat, p_value = f_oneway(*samples.values())
        logger.debug(f"f_oneway on '{metric}': F={f_stat:.4f}, p={p_value:.4g}")
        return float(f_stat), float(p_value)


def one_way_anova(
    df: pd.DataFrame,
    metric: str,
    group_col: str,
    categories: list[str],
    fitter: AnovaFitter | None = None,
) -> AnovaResult:
    """
    Run a one-way ANOVA of ``metric`` across every level of ``group_col``.

    Rows with a missing metric value or a missing group key are dropped.

    Raises
    ------
    InsufficientDataError
        If fewer than two levels are given, or any level has no observations.
        The message names the empty level.
    UnknownCategoryError
        If the grouping column holds a value outside ``categories``.
    SchemaError
        If the metric column is missing.
    """
    categories = list(categories)
    if len(categories) < 2:
        raise InsufficientDataError(
            f"ANOVA of '{metric}' needs at least two levels of '{group_col}', got {categories}"
        )
    if metric not in df.columns:
        raise SchemaError(f"Metric column '{metric}' not found")

    keys = group_keys(df, group_col, categories)
    values = pd.to_numeric(df[metric], errors="coerce")

    samples = {}
    for level in categories:
        sample = values[(keys == level) & values.notna()].to_numpy(dtype=float)
        if len(sample) == 0:
            raise InsufficientDataError(
                f"ANOVA of '{metric}': level '{level}' of '{group_col}' has no observations"
            )
        samples[level] = sample

    fitter = fitter or ScipyAnovaFitter()
    f_stat, p_value = fitter.fit(metric, samples)

    n_total = sum(len(s) for s in samples.values())
    result = AnovaResult(
        metric=metric,
        group_col=group_col,
        f_statistic=f_stat,
        p_value=p_value,
        df_between=len(samples) - 1,
        df_within=n_total - len(samples),
        group_sizes={level: len(s) for level, s in samples.items()},
    )

    logger.info(
        f"ANOVA {metric} ~ {group_col}: F({result.df_between}, {result.df_within})="
        f"{f_stat:.3f}, p={p_value:.4f}"
    )
    return result


def compare_fire_status(df: pd.DataFrame, metric: str) -> StatusComparison:
    """
    Welch's t-test of a metric between fire-affected and control records.

    Records with no fire status (inconsistent fire data) are ignored.

    Raises
    ------
    InsufficientDataError
        If either side has fewer than two observations.
    """
    if metric not in df.columns:
        raise SchemaError(f"Metric column '{metric}' not found")

    values = pd.to_numeric(df[metric], errors="coerce")
    control = values[(df["fire_status"] == FIRE_STATUS_CONTROL) & values.notna()]
    affected = values[(df["fire_status"] == FIRE_STATUS_AFFECTED) & values.notna()]

    for label, sample in ((FIRE_STATUS_CONTROL, control), (FIRE_STATUS_AFFECTED, affected)):
        if len(sample) < 2:
            raise InsufficientDataError(
                f"t-test of '{metric}': '{label}' has {len(sample)} observation(s), need 2"
            )

    t_stat, p_value = ttest_ind(affected, control, equal_var=False)

    return StatusComparison(
        metric=metric,
        n_control=len(control),
        n_fire_affected=len(affected),
        mean_control=float(control.mean()),
        mean_fire_affected=float(affected.mean()),
        t_statistic=float(t_stat),
        p_value=float(p_value),
    )
