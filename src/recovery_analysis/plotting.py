import logging

import matplotlib.pyplot as plt
import numpy as np

from src.recovery_analysis.aggregation import summary_matrix
from src.recovery_analysis.modeling import predict_recovery_curve

logger = logging.getLogger(__name__)


def _pretty(metric: str) -> str:
    return metric.replace("_", " ").capitalize()


def _metric_rows(summary, metric, categories):
    """Summary rows for one metric, in category order."""
    rows = summary[summary["metric"] == metric].set_index("group")
    return rows.reindex(categories)


def _render(fig, save_path, draw):
    """Draw onto a new figure, then save and close it or show it."""
    try:
        draw()
        plt.tight_layout()
        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches="tight")
            logger.info(f"Plot saved to {save_path}")
        else:
            plt.show()
    finally:
        if save_path:
            plt.close(fig)


def _plot_stage_means(ax, summary, metric, categories, color):
    """
    Plot group means with standard-error bars for one metric.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to plot on.
    summary : pd.DataFrame
        Output of ``summarize_by_group``.
    metric : str
        Metric to plot.
    categories : list of str
        Group order along the x axis.
    color : str
        Marker colour.
    """
    rows = _metric_rows(summary, metric, categories)
    x = np.arange(len(categories))
    ax.errorbar(
        x,
        rows["mean"].to_numpy(dtype=float),
        yerr=rows["se"].to_numpy(dtype=float),
        fmt="o",
        capsize=4,
        color=color,
        label=_pretty(metric),
    )
    ax.set_xticks(x)
    ax.set_xticklabels(categories)
    ax.set_xlabel("Recovery stage (years since fire)")
    ax.set_ylabel("Mean ± SE")
    ax.set_title(_pretty(metric))
    ax.grid(True, axis="y", alpha=0.3)


def _plot_stage_bars(ax, summary, metrics, categories, config):
    """
    Plot grouped bars (one bar per metric within each stage) with SE bars.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to plot on.
    summary : pd.DataFrame
        Output of ``summarize_by_group``.
    metrics : list of str
        Metrics to plot side by side.
    categories : list of str
        Group order along the x axis.
    config : SurveyConfig
        Supplies the taxon colours.
    """
    x = np.arange(len(categories))
    width = 0.8 / len(metrics)

    for i, metric in enumerate(metrics):
        rows = _metric_rows(summary, metric, categories)
        offset = (i - (len(metrics) - 1) / 2) * width
        ax.bar(
            x + offset,
            rows["mean"].to_numpy(dtype=float),
            width=width,
            yerr=rows["se"].to_numpy(dtype=float),
            capsize=3,
            color=config.color_for(metric),
            edgecolor="black",
            label=_pretty(metric),
        )

    ax.set_xticks(x)
    ax.set_xticklabels(categories)
    ax.set_xlabel("Recovery stage (years since fire)")
    ax.set_ylabel("Mean ± SE")
    ax.legend(fontsize="small")


def _plot_stage_composition(ax, summary, metrics, categories, config):
    """
    Stacked area of mean values per metric across stages.

    Stages where any metric has no mean are skipped.
    """
    means = (
        summary_matrix(summary, "mean")
        .reindex(index=categories, columns=metrics)
        .to_numpy(dtype=float)
        .T
    )
    keep = ~np.isnan(means).any(axis=0)
    if not keep.any():
        raise RuntimeError("No stage has a mean for every metric; cannot stack")
    if not keep.all():
        skipped = [c for c, k in zip(categories, keep) if not k]
        logger.warning(f"Skipping stage(s) {skipped} in composition plot: missing means")

    kept_labels = [c for c, k in zip(categories, keep) if k]
    x = np.arange(len(kept_labels))
    ax.stackplot(
        x,
        means[:, keep],
        labels=[_pretty(m) for m in metrics],
        colors=[config.color_for(m) for m in metrics],
        alpha=0.8,
    )
    ax.set_xticks(x)
    ax.set_xticklabels(kept_labels)
    ax.set_xlabel("Recovery stage (years since fire)")
    ax.set_ylabel("Mean abundance")
    ax.set_title("Composition by recovery stage")
    ax.legend(loc="upper left", fontsize="small")


def _plot_recovery_curve(ax, fit, color, n_points=100):
    """
    Scatter observed values and overlay the fixed-effects recovery curve.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to plot on.
    fit : RecoveryCurveFit
        Fitted recovery curve.
    color : str
        Colour for points and curve.
    n_points : int
        Number of grid points for the curve.
    """
    curve = predict_recovery_curve(fit, n_points=n_points)
    ax.scatter(fit.time, fit.observed, s=15, alpha=0.5, color=color, label="Observed")
    ax.plot(
        curve["years_since_fire"],
        curve["predicted"],
        color=color,
        linewidth=2,
        label=f"Fixed effects (r² = {fit.fit_r_squared:.2f})",
    )
    ax.set_xlabel("Years since fire")
    ax.set_ylabel(_pretty(fit.metric))
    ax.set_title(_pretty(fit.metric))
    ax.legend(fontsize="small")


def _axes_grid(n_plots, ncols=3, size=5):
    ncols = min(ncols, n_plots)
    nrows = int(np.ceil(n_plots / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(size * ncols, size * nrows), squeeze=False)
    axes = axes.flatten()
    for ax in axes[n_plots:]:
        ax.set_visible(False)
    return fig, axes


def plot_stage_means(summary, metrics, categories, config, save_path: str = None):
    """
    Point and error-bar plot of each metric across recovery stages.

    Parameters
    ----------
    summary : pd.DataFrame
        Output of ``summarize_by_group``.
    metrics : list of str
        One panel per metric.
    categories : list of str
        Stage order along the x axis.
    config : SurveyConfig
        Supplies the taxon colours.
    save_path : str, optional
        Path to save the plot image. If None, displays the plot interactively.

    Raises
    ------
    RuntimeError
        If no metrics are given.
    """
    if not metrics:
        raise RuntimeError("No metrics to plot")

    fig, axes = _axes_grid(len(metrics))

    def draw():
        for ax, metric in zip(axes, metrics):
            _plot_stage_means(ax, summary, metric, categories, config.color_for(metric))

    _render(fig, save_path, draw)


def plot_stage_bars(summary, metrics, categories, config, save_path: str = None):
    """Grouped bar plot with error bars, one bar per metric within each stage."""
    if not metrics:
        raise RuntimeError("No metrics to plot")

    fig, ax = plt.subplots(figsize=(max(6, 1.5 * len(categories)), 5))
    _render(fig, save_path, lambda: _plot_stage_bars(ax, summary, metrics, categories, config))


def plot_stage_composition(summary, metrics, categories, config, save_path: str = None):
    """Stacked-area plot of mean values per metric across stages."""
    if not metrics:
        raise RuntimeError("No metrics to plot")

    fig, ax = plt.subplots(figsize=(8, 5))
    _render(
        fig,
        save_path,
        lambda: _plot_stage_composition(ax, summary, metrics, categories, config),
    )


def plot_recovery_curves(fits, config, save_path: str = None):
    """
    Observed values with the fitted fixed-effects curve, one panel per metric.

    Parameters
    ----------
    fits : dict
        {metric: RecoveryCurveFit}
    config : SurveyConfig
        Supplies the taxon colours and the curve grid size.
    save_path : str, optional
        Path to save the plot image. If None, displays the plot interactively.
    """
    if not fits:
        raise RuntimeError("No recovery curves to plot")

    fig, axes = _axes_grid(len(fits))

    def draw():
        for ax, (metric, fit) in zip(axes, fits.items()):
            _plot_recovery_curve(ax, fit, config.color_for(metric), n_points=config.curve_points)

    _render(fig, save_path, draw)


def plot_combined_figure(
    summary,
    categories,
    config,
    bird_metric=None,
    diversity_metrics=None,
    abundance_metrics=None,
    fit=None,
    save_path: str = None,
):
    """
    Multi-panel overview figure.

    Panels, each included only when its input is given: bird metric by stage,
    plant diversity bars, plant abundance composition, one recovery curve.

    Raises
    ------
    RuntimeError
        If no panel can be drawn.
    """
    panels = []
    if bird_metric:
        panels.append(
            lambda ax: _plot_stage_means(
                ax, summary, bird_metric, categories, config.color_for(bird_metric)
            )
        )
    if diversity_metrics:
        panels.append(
            lambda ax: _plot_stage_bars(ax, summary, diversity_metrics, categories, config)
        )
    if abundance_metrics:
        numeric_stages = [c for c in categories if c != config.bins.control_label]
        panels.append(
            lambda ax: _plot_stage_composition(
                ax, summary, abundance_metrics, numeric_stages, config
            )
        )
    if fit is not None:
        panels.append(
            lambda ax: _plot_recovery_curve(
                ax, fit, config.color_for(fit.metric), n_points=config.curve_points
            )
        )

    if not panels:
        raise RuntimeError("No panels to plot in combined figure")

    fig, axes = _axes_grid(len(panels), ncols=2, size=6)

    def draw():
        for ax, panel in zip(axes, panels):
            panel(ax)

    _render(fig, save_path, draw)
