import logging

import numpy as np
import pandas as pd

from src.survey_data.config.settings import BinScheme, SurveyConfig
from src.survey_data.errors import SchemaError, UnknownCategoryError

logger = logging.getLogger(__name__)

FIRE_STATUS_CONTROL = "control"
FIRE_STATUS_AFFECTED = "fire_affected"
FIRE_STATUS_CATEGORIES = [FIRE_STATUS_CONTROL, FIRE_STATUS_AFFECTED]


def assign_recovery_bin(years_since_fire, bins: BinScheme) -> pd.Series:
    """
    Map years-since-fire to recovery-stage bins.

    Intervals are ``[edge_i, edge_i+1)`` with the last bin unbounded, so every
    value in ``[0, inf)`` lands in exactly one bin. Negative and missing
    values get no bin.

    Parameters
    ----------
    years_since_fire : array-like
        Years between the fire and the survey.
    bins : BinScheme
        Breakpoints and labels.

    Returns
    -------
    pd.Series
        Ordered categorical of bin labels (NaN where unbinned).
    """
    years = pd.Series(years_since_fire, dtype=float)
    binned = pd.cut(
        years,
        bins=[*bins.edges, np.inf],
        right=False,
        labels=list(bins.labels),
        ordered=True,
    )
    return pd.Series(binned, index=years.index, name="recovery_bin")


def _survey_years(dates: pd.Series) -> pd.Series:
    """Extract the survey year from a date column (or pass through plain years)."""
    if pd.api.types.is_numeric_dtype(dates):
        return dates.astype(float)
    parsed = pd.to_datetime(dates, errors="coerce", format="mixed")
    return parsed.dt.year.astype(float)


def derive_fire_fields(df: pd.DataFrame, config: SurveyConfig) -> pd.DataFrame:
    """
    Add time-since-fire fields to a cleaned survey table.

    Adds ``survey_year``, ``years_since_fire``, ``fire_status``,
    ``fire_record_inconsistent``, ``recovery_bin`` and ``recovery_stage``.

    A record without a fire year is a control. A record with a fire year is
    fire-affected when the survey happened in or after the fire year. Any
    other record with a fire year (survey predates the fire, the survey date
    is unreadable, or the fire year itself is not a number) is flagged as
    inconsistent and left without a status, bin or stage so it drops out of
    grouped analyses.

    Raises
    ------
    SchemaError
        If the survey date column is missing.
    """
    date_col = config.survey_date_column
    fire_col = config.fire_year_column

    if date_col not in df.columns:
        raise SchemaError(
            f"Required column '{date_col}' not found; available columns: {list(df.columns)}"
        )

    out = df.copy()

    if fire_col in out.columns:
        # A present but unparseable fire year is not an absent one
        has_fire = out[fire_col].notna()
        fire_year = pd.to_numeric(out[fire_col], errors="coerce")
        n_bad_years = int((has_fire & fire_year.isna()).sum())
        if n_bad_years:
            examples = out.loc[has_fire & fire_year.isna(), fire_col].unique()[:3].tolist()
            logger.warning(
                f"Column '{fire_col}': {n_bad_years} fire year(s) could not be parsed "
                f"(e.g. {examples}); those records are flagged as inconsistent"
            )
    else:
        # Cleaning drops an all-missing fire year column, so every record is a control
        logger.warning(f"Column '{fire_col}' not found; treating all records as controls")
        has_fire = pd.Series(False, index=out.index)
        fire_year = pd.Series(np.nan, index=out.index)

    survey_year = _survey_years(out[date_col])
    n_bad_dates = int((out[date_col].notna() & survey_year.isna()).sum())
    if n_bad_dates:
        logger.warning(f"Column '{date_col}': {n_bad_dates} date(s) could not be parsed")

    years = survey_year - fire_year

    is_control = ~has_fire
    is_affected = has_fire & (years >= 0)
    is_inconsistent = has_fire & ~is_affected

    status = pd.Series(np.nan, index=out.index, dtype=object)
    status[is_control] = FIRE_STATUS_CONTROL
    status[is_affected] = FIRE_STATUS_AFFECTED

    recovery_bin = assign_recovery_bin(years.where(is_affected), config.bins)

    stage = recovery_bin.astype(object)
    stage[is_control] = config.bins.control_label

    out["survey_year"] = survey_year
    out["years_since_fire"] = years
    out["fire_status"] = status
    out["fire_record_inconsistent"] = is_inconsistent
    out["recovery_bin"] = recovery_bin
    out["recovery_stage"] = pd.Categorical(
        stage, categories=config.bins.stage_categories, ordered=True
    )

    n_inconsistent = int(is_inconsistent.sum())
    if n_inconsistent:
        logger.warning(
            f"{n_inconsistent} record(s) have a fire year but no valid years-since-fire "
            "(survey before fire, or unreadable date or fire year); excluded from stage analyses"
        )

    logger.info(
        f"Derived fire fields: {int(is_control.sum())} control, "
        f"{int(is_affected.sum())} fire-affected, {n_inconsistent} inconsistent"
    )

    return out


def validate_prebinned_column(
    df: pd.DataFrame, column: str, categories: list[str]
) -> pd.Series:
    """
    Check a pre-binned stage column against a closed vocabulary.

    Returns the column as an ordered categorical.

    Raises
    ------
    SchemaError
        If the column is missing.
    UnknownCategoryError
        If any non-missing value is not in ``categories``.
    """
    if column not in df.columns:
        raise SchemaError(
            f"Pre-binned column '{column}' not found; available columns: {list(df.columns)}"
        )

    values = df[column].map(lambda v: v if pd.isna(v) else str(v).strip())
    unknown = set(values.dropna()) - set(categories)
    if unknown:
        raise UnknownCategoryError(column, unknown)

    return pd.Series(
        pd.Categorical(values, categories=categories, ordered=True),
        index=df.index,
        name=column,
    )
