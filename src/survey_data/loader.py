import logging
import pathlib
import re

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from src.survey_data.errors import FormatError

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xls"}
TAB_SUFFIXES = {".tsv", ".tab"}

_NUMERIC_HEADER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_GENERATED_HEADER = re.compile(r"^Unnamed: \d+$")


def _read_raw(path: pathlib.Path) -> pd.DataFrame:
    """Read a tabular file with every cell kept as text."""
    suffix = path.suffix.lower()
    options = dict(dtype=str, keep_default_na=False, na_filter=False)

    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(path, **options)
    if suffix in TAB_SUFFIXES:
        return pd.read_csv(path, sep="\t", **options)
    return pd.read_csv(path, **options)


def _validate_header(columns, path: pathlib.Path) -> None:
    """Raise FormatError if the parsed columns do not look like a header row."""
    names = [str(c).strip() for c in columns]

    if not names:
        raise FormatError(f"No header row found in {path}: file has no columns")

    if all(not n or _GENERATED_HEADER.match(n) for n in names):
        raise FormatError(f"No header row found in {path}: all header cells are blank")

    if all(_NUMERIC_HEADER.match(n) for n in names):
        raise FormatError(
            f"No header row found in {path}: first row looks like data ({names[:5]})"
        )


def load_survey_table(path) -> pd.DataFrame:
    """
    Load a raw survey spreadsheet into a DataFrame of strings.

    No type inference or NA parsing is applied, so tokens like "NA" or blank
    cells survive untouched until cleaning decides what they mean.

    Parameters
    ----------
    path : str or pathlib.Path
        CSV, TSV or Excel file with a header row.

    Returns
    -------
    pd.DataFrame
        Table with the file's header as column names and str cells.

    Raises
    ------
    OSError
        If the file does not exist or cannot be read.
    FormatError
        If no header row can be detected.
    """
    path = pathlib.Path(path)

    if not path.is_file():
        raise FileNotFoundError(f"Survey file does not exist: {path}")

    try:
        df = _read_raw(path)
    except EmptyDataError as e:
        raise FormatError(f"No header row found in {path}: file is empty") from e
    except ParserError as e:
        raise FormatError(f"Could not parse {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise OSError(f"Cannot read survey file {path}: {e}") from e

    _validate_header(df.columns, path)

    logger.info(f"Loaded {path.name}: {df.shape[0]} rows x {df.shape[1]} columns")
    return df
