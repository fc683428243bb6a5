import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.survey_data.errors import SchemaError, UnknownCategoryError

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["group", "metric", "mean", "sd", "n", "se"]


@dataclass(frozen=True)
class GroupSummary:
    """Summary statistics for one metric within one group."""

    group: str
    metric: str
    mean: float
    sd: float
    n: int
    se: float


def group_keys(df: pd.DataFrame, group_col: str, categories) -> pd.Series:
    """
    Return the grouping column as strings, checked against a closed vocabulary.

    Missing keys stay missing.

    Raises
    ------
    SchemaError
        If ``group_col`` is not a column of ``df``.
    UnknownCategoryError
        If a non-missing key is not in ``categories``.
    """
    if group_col not in df.columns:
        raise SchemaError(f"Grouping column '{group_col}' not found")

    keys = df[group_col].astype(object).map(lambda v: v if pd.isna(v) else str(v))
    unknown = set(keys.dropna()) - set(categories)
    if unknown:
        raise UnknownCategoryError(group_col, unknown)
    return keys


def summarize_by_group(df, group_col, metrics, categories):
    """
    Compute mean, SD, count and standard error per group and metric.

    Rows missing a metric value are left out of that metric's summaries only.
    Rows with a missing group key are left out entirely. Every (category,
    metric) pair gets a row, including categories with no observations.

    Parameters
    ----------
    df : pd.DataFrame
        Cleaned and derived survey table.
    group_col : str
        Categorical column to group by.
    metrics : list of str
        Numeric metric columns.
    categories : list of str
        Ordered, closed vocabulary for ``group_col``.

    Returns
    -------
    pd.DataFrame
        Columns ``group, metric, mean, sd, n, se``. ``sd`` and ``se`` are NaN
        when n < 2, ``mean`` is NaN when n == 0.

    Raises
    ------
    SchemaError
        If the grouping column or a metric column is missing.
    UnknownCategoryError
        If the grouping column holds a value outside ``categories``.
    """
    categories = list(categories)
    metrics = list(metrics)

    keys = group_keys(df, group_col, categories)

    missing = [m for m in metrics if m not in df.columns]
    if missing:
        raise SchemaError(f"Metric column(s) not found: {missing}")

    frame = df[metrics].apply(pd.to_numeric, errors="coerce")
    frame["group"] = pd.Categorical(keys, categories=categories, ordered=True)

    long = frame.melt(id_vars="group", value_vars=metrics, var_name="metric")
    long["metric"] = pd.Categorical(long["metric"], categories=metrics, ordered=True)
    long = long.dropna(subset=["value"])

    summary = (
        long.groupby(["group", "metric"], observed=False)["value"]
        .agg(mean="mean", sd="std", n="count")
        .reset_index()
    )
    summary["n"] = summary["n"].astype(int)
    # std is already NaN for n < 2; keep it that way rather than dividing by zero
    summary["se"] = summary["sd"] / np.sqrt(summary["n"].where(summary["n"] > 0))

    logger.debug(
        f"Summarized {len(metrics)} metric(s) over {len(categories)} level(s) of '{group_col}'"
    )
    return summary[SUMMARY_COLUMNS]


def get_group_summary(summary: pd.DataFrame, group: str, metric: str) -> GroupSummary:
    """Look up one GroupSummary row from a ``summarize_by_group`` table."""
    row = summary[(summary["group"] == group) & (summary["metric"] == metric)]
    if row.empty:
        raise KeyError(f"No summary for group '{group}' and metric '{metric}'")
    r = row.iloc[0]
    return GroupSummary(
        group=str(r["group"]),
        metric=str(r["metric"]),
        mean=float(r["mean"]),
        sd=float(r["sd"]),
        n=int(r["n"]),
        se=float(r["se"]),
    )


def summary_matrix(summary: pd.DataFrame, value: str = "mean") -> pd.DataFrame:
    """Pivot a summary table to groups x metrics for one statistic."""
    return summary.pivot(index="group", columns="metric", values=value)
