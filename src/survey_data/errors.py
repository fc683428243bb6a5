"""Exceptions raised while loading, cleaning and analysing survey data."""


class SurveyDataError(Exception):
    """Base class for survey data errors."""

    pass


class FormatError(SurveyDataError):
    """Raised when a survey file has no usable header row."""

    pass


class SchemaError(SurveyDataError):
    """Raised when column names collide after normalization."""

    pass


class UnknownCategoryError(SurveyDataError):
    """Raised when a grouping column holds a value outside its closed vocabulary."""

    def __init__(self, column: str, values):
        self.column = column
        self.values = sorted(str(v) for v in values)
        super().__init__(f"Column '{column}' contains unknown categories: {self.values}")


class InsufficientDataError(SurveyDataError):
    """Raised when a group or model has too few usable observations."""

    pass
