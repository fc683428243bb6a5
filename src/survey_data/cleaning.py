import logging
import re

import pandas as pd

from src.survey_data.config.settings import SurveyConfig
from src.survey_data.errors import SchemaError

logger = logging.getLogger(__name__)

_SEPARATOR_RUN = re.compile(r"[^0-9a-z]+")


def normalize_column_name(name) -> str:
    """
    Canonical column name: lowercase, runs of whitespace/punctuation become "_".

    >>> normalize_column_name("Date of Visit")
    'date_of_visit'
    >>> normalize_column_name(" Bird: Total (Individuals) ")
    'bird_total_individuals'
    """
    return _SEPARATOR_RUN.sub("_", str(name).strip().lower()).strip("_")


def normalize_columns(columns) -> list[str]:
    """
    Normalize a sequence of column names.

    Raises
    ------
    SchemaError
        If a name normalizes to an empty string or two names normalize to
        the same canonical name.
    """
    seen: dict[str, str] = {}
    normalized = []

    for raw in columns:
        name = normalize_column_name(raw)
        if not name:
            raise SchemaError(f"Column '{raw}' has no usable characters after normalization")
        if name in seen:
            raise SchemaError(
                f"Columns '{seen[name]}' and '{raw}' both normalize to '{name}'"
            )
        seen[name] = raw
        normalized.append(name)

    return normalized


def _blank_missing_tokens(column: pd.Series, missing_token: str) -> pd.Series:
    """Strip text cells and turn the sentinel token and empty strings into NaN."""
    if pd.api.types.is_numeric_dtype(column):
        return column
    stripped = column.map(lambda v: v.strip() if isinstance(v, str) else v)
    return stripped.mask(stripped.isin([missing_token, ""]))


def _coerce_numeric(df: pd.DataFrame, text_columns) -> pd.DataFrame:
    """Coerce every non-text column cell by cell; unparseable cells become NaN."""
    for col in df.columns:
        if col in text_columns:
            continue

        present = df[col].notna()
        coerced = pd.to_numeric(df[col], errors="coerce")
        n_failed = int((present & coerced.isna()).sum())

        if n_failed:
            examples = df.loc[present & coerced.isna(), col].unique()[:3].tolist()
            logger.warning(
                f"Column '{col}': {n_failed} value(s) could not be parsed as numbers "
                f"and were set to missing (e.g. {examples})"
            )

        df[col] = coerced

    return df


def clean_survey_table(df: pd.DataFrame, config: SurveyConfig) -> pd.DataFrame:
    """
    Clean a raw survey table.

    Steps, in order:

    1. Normalize column names (collisions raise SchemaError).
    2. Replace the missing-value sentinel and blank cells with NaN.
    3. Coerce every column not in ``config.exempt_columns`` to numbers.
    4. Drop rows that are entirely missing, then columns that are entirely
       missing.

    Running the function on its own output returns an identical table.

    Parameters
    ----------
    df : pd.DataFrame
        Raw table, typically from ``load_survey_table``.
    config : SurveyConfig
        Supplies the sentinel token and the text column names.

    Returns
    -------
    pd.DataFrame
        A cleaned copy; the input is not modified.
    """
    cleaned = df.copy()
    cleaned.columns = normalize_columns(cleaned.columns)

    for col in cleaned.columns:
        cleaned[col] = _blank_missing_tokens(cleaned[col], config.missing_token)
    cleaned = _coerce_numeric(cleaned, config.exempt_columns)

    n_rows, n_cols = cleaned.shape
    cleaned = cleaned.dropna(axis=0, how="all")
    cleaned = cleaned.dropna(axis=1, how="all")
    cleaned = cleaned.reset_index(drop=True)

    dropped_cols = n_cols - cleaned.shape[1]
    dropped_rows = n_rows - cleaned.shape[0]
    if dropped_rows or dropped_cols:
        logger.info(f"Dropped {dropped_rows} empty row(s) and {dropped_cols} empty column(s)")

    return cleaned
