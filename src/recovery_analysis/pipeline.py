import logging
from pathlib import Path

from src.recovery_analysis.aggregation import summarize_by_group
from src.recovery_analysis.modeling import fit_linear_trend, fit_recovery_curve
from src.recovery_analysis.plotting import (
    plot_combined_figure,
    plot_recovery_curves,
    plot_stage_bars,
    plot_stage_composition,
    plot_stage_means,
)
from src.recovery_analysis.report import ReportCollector, RunInfo, generate_text_report
from src.recovery_analysis.statistical_tests import compare_fire_status, one_way_anova
from src.survey_data.cleaning import clean_survey_table
from src.survey_data.config.settings import DEFAULT_OUTPUT_DIR, SurveyConfig
from src.survey_data.derivation import (
    FIRE_STATUS_AFFECTED,
    FIRE_STATUS_CATEGORIES,
    FIRE_STATUS_CONTROL,
    derive_fire_fields,
    validate_prebinned_column,
)
from src.survey_data.errors import InsufficientDataError
from src.survey_data.loader import load_survey_table

logger = logging.getLogger(__name__)

GROUP_BY_STAGE = "stage"
GROUP_BY_PREBINNED = "correct_bin"
GROUP_BY_CHOICES = (GROUP_BY_STAGE, GROUP_BY_PREBINNED)

BIRD_FIGURE = "bird_abundance_by_stage.png"
DIVERSITY_FIGURE = "plant_diversity_by_stage.png"
COMPOSITION_FIGURE = "plant_abundance_composition.png"
CURVES_FIGURE = "recovery_curves.png"
COMBINED_FIGURE = "combined_recovery_figure.png"
REPORT_FILE = "anova_summary.txt"


def prepare_survey_table(path, config: SurveyConfig):
    """Load, clean and derive fire fields for one survey file."""
    raw = load_survey_table(path)
    cleaned = clean_survey_table(raw, config)
    return derive_fire_fields(cleaned, config)


def resolve_grouping(df, config: SurveyConfig, group_by: str = GROUP_BY_STAGE):
    """
    Pick the stage column to group by.

    Returns
    -------
    tuple
        (column name, ordered category list). For ``correct_bin`` the
        pre-binned column is validated and replaced by an ordered categorical.
    """
    categories = config.bins.stage_categories

    if group_by == GROUP_BY_STAGE:
        return "recovery_stage", categories
    if group_by == GROUP_BY_PREBINNED:
        column = config.prebinned_column
        df[column] = validate_prebinned_column(df, column, categories)
        return column, categories

    raise ValueError(f"Unknown grouping '{group_by}', expected one of {GROUP_BY_CHOICES}")


def available_metrics(df, config: SurveyConfig):
    """Configured metrics present in the table, and those that are not."""
    present = [m for m in config.metrics if m in df.columns]
    missing = [m for m in config.metrics if m not in df.columns]
    if missing:
        logger.warning(f"Configured metric(s) not found after cleaning, skipping: {missing}")
    if not present:
        raise InsufficientDataError(
            f"None of the configured metrics {config.metrics} are present in the data"
        )
    return present, missing


def _run_supplementary(name, metric, analysis, df, collector):
    """Run a trend or status comparison; too little data skips it with a report note."""
    try:
        return analysis(df, metric)
    except InsufficientDataError as e:
        logger.warning(f"{name} of '{metric}' skipped: {e}")
        collector.add_note(f"{name} of '{metric}' skipped: {e}")
        return None


def _save_figures(output, config, figures_dir, collector):
    """Render every figure whose inputs exist; plotting failures are logged, not raised."""
    summary = output["stage_summary"]
    categories = output["categories"]
    metrics = output["metrics"]
    fits = output["recovery_curves"]

    bird = [m for m in config.bird_metrics if m in metrics]
    diversity = [m for m in config.plant_diversity_metrics if m in metrics]
    abundance = [m for m in config.plant_abundance_metrics if m in metrics]
    numeric_stages = [c for c in categories if c != config.bins.control_label]

    jobs = [
        (BIRD_FIGURE, bird, lambda p: plot_stage_means(summary, bird, categories, config, p)),
        (
            DIVERSITY_FIGURE,
            diversity,
            lambda p: plot_stage_bars(summary, diversity, categories, config, p),
        ),
        (
            COMPOSITION_FIGURE,
            abundance,
            lambda p: plot_stage_composition(summary, abundance, numeric_stages, config, p),
        ),
        (CURVES_FIGURE, fits, lambda p: plot_recovery_curves(fits, config, p)),
        (
            COMBINED_FIGURE,
            metrics,
            lambda p: plot_combined_figure(
                summary,
                categories,
                config,
                bird_metric=bird[0] if bird else None,
                diversity_metrics=diversity,
                abundance_metrics=abundance,
                fit=next(iter(fits.values()), None),
                save_path=p,
            ),
        ),
    ]

    saved = []
    for filename, inputs, draw in jobs:
        if not inputs:
            logger.info(f"Skipping {filename}: no matching metrics")
            continue
        path = str(figures_dir / filename)
        try:
            draw(path)
            saved.append(path)
        except (RuntimeError, ValueError) as e:
            logger.error(f"Plotting {filename} failed: {e}")
            collector.add_note(f"Figure {filename} not generated: {e}")
    return saved


def run_recovery_pipeline(
    path,
    config: SurveyConfig,
    output_dir=None,
    group_by: str = GROUP_BY_STAGE,
    make_plots: bool = True,
    anova_fitter=None,
    curve_fitter=None,
):
    """
    Run the full recovery analysis on one survey file.

    load -> clean -> derive -> summarize -> ANOVA / mixed model / trends ->
    figures -> text report.

    Parameters
    ----------
    path : str or pathlib.Path
        Survey spreadsheet.
    config : SurveyConfig
        Bin scheme, column names, metrics and palette.
    output_dir : str or pathlib.Path, optional
        Where figures and the report go. Defaults to ``DEFAULT_OUTPUT_DIR``.
    group_by : str, optional
        "stage" to use the derived recovery stage, "correct_bin" to use the
        pre-binned column from the file.
    make_plots : bool, optional
        If False, skip figure generation.
    anova_fitter : AnovaFitter, optional
        Replaces the scipy ANOVA.
    curve_fitter : RecoveryCurveFitter, optional
        Replaces the statsmodels mixed model.

    Returns
    -------
    dict
        Keys: "table", "metrics", "group_col", "categories", "stage_summary",
        "status_summary", "anova", "recovery_curves", "linear_trends",
        "status_comparisons", "figures", "report_path".

    Raises
    ------
    SurveyDataError
        Any loading, schema or vocabulary failure aborts the run, as does too
        little data for ANOVA or the mixed model. A linear trend or fire status
        comparison without enough data is skipped and noted in the report.
    """
    output_dir = Path(output_dir) if output_dir is not None else DEFAULT_OUTPUT_DIR
    output_dir.mkdir(parents=True, exist_ok=True)

    df = prepare_survey_table(path, config)
    metrics, missing = available_metrics(df, config)
    group_col, categories = resolve_grouping(df, config, group_by)

    collector = ReportCollector(
        RunInfo(
            source=str(path),
            group_col=group_col,
            n_records=len(df),
            n_control=int((df["fire_status"] == FIRE_STATUS_CONTROL).sum()),
            n_fire_affected=int((df["fire_status"] == FIRE_STATUS_AFFECTED).sum()),
            n_inconsistent=int(df["fire_record_inconsistent"].sum()),
            skipped_metrics=missing,
        )
    )

    ##############################
    # Grouped summaries
    ##############################

    output = {
        "table": df,
        "metrics": metrics,
        "group_col": group_col,
        "categories": categories,
        "stage_summary": summarize_by_group(df, group_col, metrics, categories),
        "status_summary": summarize_by_group(df, "fire_status", metrics, FIRE_STATUS_CATEGORIES),
    }

    ##############################
    # Models
    ##############################

    anova_levels = (
        categories
        if config.anova_include_control
        else [c for c in categories if c != config.bins.control_label]
    )
    anova_df = df[df[group_col].isin(anova_levels)]

    output["anova"] = {}
    output["recovery_curves"] = {}
    output["linear_trends"] = {}
    output["status_comparisons"] = {}

    for metric in metrics:
        anova = one_way_anova(anova_df, metric, group_col, anova_levels, fitter=anova_fitter)
        output["anova"][metric] = anova
        collector.add_anova(anova)

        fit = fit_recovery_curve(df, metric, config, fitter=curve_fitter)
        output["recovery_curves"][metric] = fit
        collector.add_curve_fit(fit)

        trend = _run_supplementary("Linear trend", metric, fit_linear_trend, df, collector)
        if trend is not None:
            output["linear_trends"][metric] = trend
            collector.add_linear_trend(trend)

        comparison = _run_supplementary(
            "Fire status comparison", metric, compare_fire_status, df, collector
        )
        if comparison is not None:
            output["status_comparisons"][metric] = comparison
            collector.add_status_comparison(comparison)

    ##############################
    # Figures and report
    ##############################

    output["figures"] = _save_figures(output, config, output_dir, collector) if make_plots else []
    output["report_path"] = generate_text_report(collector, output_dir / REPORT_FILE)

    logger.info(
        f"Analysis of {path} complete: {len(metrics)} metric(s), "
        f"{len(output['figures'])} figure(s)"
    )
    return output
