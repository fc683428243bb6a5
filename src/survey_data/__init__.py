"""Loading, cleaning and deriving fire-recovery survey records."""

from src.survey_data.cleaning import clean_survey_table, normalize_column_name
from src.survey_data.config.settings import (
    BinScheme,
    SurveyConfig,
    get_default_config,
    load_config,
)
from src.survey_data.derivation import (
    FIRE_STATUS_AFFECTED,
    FIRE_STATUS_CATEGORIES,
    FIRE_STATUS_CONTROL,
    assign_recovery_bin,
    derive_fire_fields,
    validate_prebinned_column,
)
from src.survey_data.errors import (
    FormatError,
    InsufficientDataError,
    SchemaError,
    SurveyDataError,
    UnknownCategoryError,
)
from src.survey_data.loader import load_survey_table

__all__ = [
    # Loading and cleaning
    "load_survey_table",
    "clean_survey_table",
    "normalize_column_name",
    # Derived fields
    "derive_fire_fields",
    "assign_recovery_bin",
    "validate_prebinned_column",
    "FIRE_STATUS_CONTROL",
    "FIRE_STATUS_AFFECTED",
    "FIRE_STATUS_CATEGORIES",
    # Configuration
    "BinScheme",
    "SurveyConfig",
    "get_default_config",
    "load_config",
    # Errors
    "SurveyDataError",
    "FormatError",
    "SchemaError",
    "UnknownCategoryError",
    "InsufficientDataError",
]
