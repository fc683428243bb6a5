"""Grouped summaries, statistical models and figures for post-fire recovery."""

from src.recovery_analysis.aggregation import (
    GroupSummary,
    get_group_summary,
    summarize_by_group,
)
from src.recovery_analysis.modeling import (
    MixedLMFitter,
    RecoveryCurveFit,
    RecoveryCurveFitter,
    fit_linear_trend,
    fit_recovery_curve,
    predict_recovery_curve,
)
from src.recovery_analysis.pipeline import prepare_survey_table, run_recovery_pipeline
from src.recovery_analysis.report import ReportCollector, generate_text_report
from src.recovery_analysis.statistical_tests import (
    AnovaFitter,
    AnovaResult,
    ScipyAnovaFitter,
    compare_fire_status,
    one_way_anova,
)

__all__ = [
    # Main pipeline
    "run_recovery_pipeline",
    "prepare_survey_table",
    # Aggregation
    "GroupSummary",
    "summarize_by_group",
    "get_group_summary",
    # Statistical tests
    "AnovaFitter",
    "AnovaResult",
    "ScipyAnovaFitter",
    "one_way_anova",
    "compare_fire_status",
    # Models
    "RecoveryCurveFitter",
    "RecoveryCurveFit",
    "MixedLMFitter",
    "fit_recovery_curve",
    "predict_recovery_curve",
    "fit_linear_trend",
    # Report generation
    "ReportCollector",
    "generate_text_report",
]
