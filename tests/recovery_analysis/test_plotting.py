"""Tests for plotting module."""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from src.recovery_analysis.aggregation import summarize_by_group
from src.recovery_analysis.modeling import RecoveryCurveFit
from src.recovery_analysis.plotting import (
    plot_combined_figure,
    plot_recovery_curves,
    plot_stage_bars,
    plot_stage_composition,
    plot_stage_means,
)

METRICS = ["tree_abundance", "shrub_abundance", "herb_abundance"]


@pytest.fixture
def categories(config):
    return config.bins.stage_categories


@pytest.fixture
def summary(categories):
    rng = np.random.default_rng(0)
    rows = []
    for stage in categories:
        for _ in range(4):
            rows.append({"stage": stage, **{m: rng.uniform(1, 10) for m in METRICS}})
    return summarize_by_group(pd.DataFrame(rows), "stage", METRICS, categories)


@pytest.fixture
def fit():
    t = np.linspace(0, 20, 15)
    y = 2 + 1.5 * t - 0.05 * t**2
    return RecoveryCurveFit(
        metric="tree_abundance",
        intercept=2.0,
        linear=1.5,
        quadratic=-0.05,
        time=t,
        observed=y + 0.3,
        fitted=y,
        fit_r_squared=0.97,
        log_likelihood=-10.0,
        n_observations=15,
        n_fire_events=3,
        converged=True,
    )


def _assert_png(path):
    assert path.exists()
    assert path.stat().st_size > 0


def test_plot_stage_means_saves_figure(tmp_path, summary, categories, config):
    save_path = tmp_path / "means.png"
    plot_stage_means(summary, METRICS, categories, config, save_path=str(save_path))
    _assert_png(save_path)


def test_plot_stage_bars_saves_figure(tmp_path, summary, categories, config):
    save_path = tmp_path / "bars.png"
    plot_stage_bars(summary, METRICS, categories, config, save_path=str(save_path))
    _assert_png(save_path)


def test_plot_stage_composition_saves_figure(tmp_path, summary, categories, config):
    save_path = tmp_path / "composition.png"
    plot_stage_composition(summary, METRICS, categories[:-1], config, save_path=str(save_path))
    _assert_png(save_path)


def test_plot_recovery_curves_saves_figure(tmp_path, fit, config):
    save_path = tmp_path / "curves.png"
    plot_recovery_curves({fit.metric: fit}, config, save_path=str(save_path))
    _assert_png(save_path)


def test_plot_combined_figure_saves_figure(tmp_path, summary, categories, fit, config):
    save_path = tmp_path / "combined.png"
    plot_combined_figure(
        summary,
        categories,
        config,
        diversity_metrics=METRICS[:2],
        abundance_metrics=METRICS,
        fit=fit,
        save_path=str(save_path),
    )
    _assert_png(save_path)


def test_stage_with_missing_mean_is_tolerated(tmp_path, config):
    df = pd.DataFrame({"stage": ["0-2", "0-2", "2-5"], "tree_abundance": [1.0, 2.0, 3.0]})
    summary = summarize_by_group(df, "stage", ["tree_abundance"], ["0-2", "2-5", "5-10"])
    save_path = tmp_path / "sparse.png"

    plot_stage_means(summary, ["tree_abundance"], ["0-2", "2-5", "5-10"], config, str(save_path))
    _assert_png(save_path)


def test_empty_inputs_raise(config, summary, categories):
    with pytest.raises(RuntimeError):
        plot_stage_means(summary, [], categories, config)
    with pytest.raises(RuntimeError):
        plot_recovery_curves({}, config)
    with pytest.raises(RuntimeError):
        plot_combined_figure(summary, categories, config)


def test_failed_plot_closes_its_figure(tmp_path, config):
    df = pd.DataFrame(
        {"stage": ["0-2", "2-5"], "tree_abundance": [1.0, 2.0], "shrub_abundance": [np.nan] * 2}
    )
    stages = ["0-2", "2-5", "5-10"]
    summary = summarize_by_group(df, "stage", ["tree_abundance", "shrub_abundance"], stages)
    plt.close("all")

    # shrub_abundance has no mean in any stage, so nothing can be stacked
    with pytest.raises(RuntimeError, match="cannot stack"):
        plot_stage_composition(
            summary, ["tree_abundance", "shrub_abundance"], stages, config, str(tmp_path / "c.png")
        )
    assert plt.get_fignums() == []
    assert not (tmp_path / "c.png").exists()
