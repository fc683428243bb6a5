"""
Plain-text report of a recovery analysis run.

Collects ANOVA results, recovery-curve fits, linear trends and
fire-affected/control comparisons, then writes them as one text summary.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from src.recovery_analysis.modeling import LinearTrendResult, RecoveryCurveFit
from src.recovery_analysis.statistical_tests import AnovaResult, StatusComparison

logger = logging.getLogger(__name__)

SIGNIFICANCE_LEVEL = 0.05


@dataclass
class RunInfo:
    """Dataset-level facts about one analysis run."""

    source: str
    group_col: str
    n_records: int = 0
    n_control: int = 0
    n_fire_affected: int = 0
    n_inconsistent: int = 0
    skipped_metrics: list = field(default_factory=list)


def _fmt(value, spec=".4f"):
    """Format a number, showing NaN as 'n/a'."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "n/a"
    return format(value, spec)


class ReportCollector:
    """Collects results from one analysis run for report generation."""

    def __init__(self, info: RunInfo):
        self.info = info
        self.anova_results: list[AnovaResult] = []
        self.curve_fits: list[RecoveryCurveFit] = []
        self.linear_trends: list[LinearTrendResult] = []
        self.status_comparisons: list[StatusComparison] = []
        self.notes: list[str] = []

    def add_anova(self, result: AnovaResult):
        self.anova_results.append(result)

    def add_curve_fit(self, fit: RecoveryCurveFit):
        self.curve_fits.append(fit)

    def add_linear_trend(self, trend: LinearTrendResult):
        self.linear_trends.append(trend)

    def add_status_comparison(self, comparison: StatusComparison):
        self.status_comparisons.append(comparison)

    def add_note(self, note: str):
        """Record something the reader should know, e.g. a skipped model."""
        self.notes.append(note)

    def significant_metrics(self, alpha: float = SIGNIFICANCE_LEVEL) -> list[str]:
        """Metrics whose ANOVA p-value is below ``alpha``."""
        return [r.metric for r in self.anova_results if r.p_value < alpha]


def generate_text_report(collector: ReportCollector, output_path: str) -> str:
    """
    Write a plain-text summary of the collected results.

    Parameters
    ----------
    collector : ReportCollector
        Collector containing analysis results.
    output_path : str
        Path to save the report.

    Returns
    -------
    str
        Path to the generated report.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    info = collector.info
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    rule = "=" * 72

    lines = []

    # Header
    lines.append("FIRE RECOVERY SURVEY: ANOVA SUMMARY")
    lines.append(rule)
    lines.append(f"Generated: {timestamp}")
    lines.append(f"Source:    {info.source}")
    lines.append(f"Grouping:  {info.group_col}")
    lines.append("")
    lines.append(
        f"Records: {info.n_records} "
        f"(control {info.n_control}, fire-affected {info.n_fire_affected}, "
        f"inconsistent {info.n_inconsistent})"
    )
    if info.skipped_metrics:
        lines.append(f"Metrics not in data: {', '.join(info.skipped_metrics)}")
    lines.append("")

    # One-way ANOVA
    lines.append("ONE-WAY ANOVA")
    lines.append("-" * 72)
    if not collector.anova_results:
        lines.append("No ANOVA results.")
    for r in collector.anova_results:
        flag = " *" if r.p_value < SIGNIFICANCE_LEVEL else ""
        lines.append(
            f"{r.metric:<28} F({r.df_between}, {r.df_within}) = {_fmt(r.f_statistic, '.3f'):>8}"
            f"   p = {_fmt(r.p_value)}{flag}"
        )
        sizes = ", ".join(f"{level}: {n}" for level, n in r.group_sizes.items())
        lines.append(f"{'':<28} n per level: {sizes}")
    lines.append(f"(* p < {SIGNIFICANCE_LEVEL})")
    lines.append("")

    # Mixed-effects curves
    if collector.curve_fits:
        lines.append("QUADRATIC MIXED-EFFECTS RECOVERY CURVES (fire-affected only)")
        lines.append("-" * 72)
        lines.append("r2 is the squared correlation of fitted and observed values.")
        for f in collector.curve_fits:
            lines.append(
                f"{f.metric:<28} y = {_fmt(f.intercept, '.3f')} + {_fmt(f.linear, '.3f')}*t"
                f" + {_fmt(f.quadratic, '.4f')}*t^2"
            )
            converged = "" if f.converged else "  (did not converge)"
            lines.append(
                f"{'':<28} r2 = {_fmt(f.fit_r_squared, '.3f')}, "
                f"log-lik = {_fmt(f.log_likelihood, '.2f')}, "
                f"n = {f.n_observations}, fires = {f.n_fire_events}{converged}"
            )
        lines.append("")

    # Linear trends
    if collector.linear_trends:
        lines.append("LINEAR TRENDS OVER YEARS SINCE FIRE")
        lines.append("-" * 72)
        for t in collector.linear_trends:
            lines.append(
                f"{t.metric:<28} slope = {_fmt(t.slope, '.4f')}, "
                f"R2 = {_fmt(t.r_squared, '.3f')}, p = {_fmt(t.p_value)}, n = {t.n_observations}"
            )
        lines.append("")

    # Fire-affected vs control
    if collector.status_comparisons:
        lines.append("FIRE-AFFECTED vs CONTROL (Welch t-test)")
        lines.append("-" * 72)
        for c in collector.status_comparisons:
            lines.append(
                f"{c.metric:<28} fire {_fmt(c.mean_fire_affected, '.2f')} (n={c.n_fire_affected})"
                f" vs control {_fmt(c.mean_control, '.2f')} (n={c.n_control}), "
                f"t = {_fmt(c.t_statistic, '.3f')}, p = {_fmt(c.p_value)}"
            )
        lines.append("")

    if collector.notes:
        lines.append("NOTES")
        lines.append("-" * 72)
        lines.extend(f"- {note}" for note in collector.notes)
        lines.append("")

    output_path.write_text("\n".join(lines))

    logger.info(f"Report generated: {output_path}")
    return str(output_path)
