"""Shared fixtures for the survey analysis tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from src.survey_data.config.settings import get_default_config

# ─────────────────────────────────────────────────────────────────────────────
# Synthetic survey data
# ─────────────────────────────────────────────────────────────────────────────

RAW_HEADERS = {
    "location_name": "Location Name",
    "fire_name": "Fire Name",
    "date_of_visit": "Date of Visit",
    "year_of_fire": "Year of Fire",
    "bird_total_individuals": "Bird Total Individuals",
    "bird_total_species": "Bird Total Species",
    "tree_abundance": "Tree Abundance",
    "shrub_abundance": "Shrub Abundance",
    "herb_abundance": "Herb Abundance",
    "tree_diversity": "Tree Diversity",
    "shrub_diversity": "Shrub Diversity",
    "herb_diversity": "Herb Diversity",
}

FIRES = {"Ash Creek": 1995, "Bald Hill": 1998, "Cedar Ridge": 2001, "Dingo Flat": 2003}
SURVEY_AGES = [0, 1, 3, 4, 6, 8, 12, 15, 21, 23]
N_CONTROLS = 8

# (intercept, linear, quadratic) of each metric's recovery curve
CURVES = {
    "bird_total_individuals": (10.0, 3.0, -0.10),
    "bird_total_species": (4.0, 1.0, -0.03),
    "tree_abundance": (2.0, 1.5, -0.04),
    "shrub_abundance": (8.0, 2.0, -0.07),
    "herb_abundance": (20.0, -0.5, 0.01),
    "tree_diversity": (1.0, 0.4, -0.01),
    "shrub_diversity": (2.0, 0.5, -0.015),
    "herb_diversity": (5.0, 0.3, -0.01),
}


def make_survey_records(seed: int = 0) -> list[dict]:
    """
    Build raw survey rows (all values as text, raw column headers).

    Each fire event is surveyed at every age in SURVEY_AGES, and each event
    gets its own intercept offset so the random-intercept model has
    something to estimate. Control rows have a blank fire year.
    """
    rng = np.random.default_rng(seed)
    records = []

    for i, (fire, fire_year) in enumerate(FIRES.items()):
        offset = (i - 1.5) * 1.5
        for age in SURVEY_AGES:
            row = {
                "location_name": f"{fire} site {age}",
                "fire_name": fire,
                "date_of_visit": f"{fire_year + age}-10-15",
                "year_of_fire": str(fire_year),
            }
            for metric, (b0, b1, b2) in CURVES.items():
                value = b0 + b1 * age + b2 * age**2 + offset + rng.normal(0, 0.8)
                row[metric] = f"{max(value, 0.1):.2f}"
            records.append(row)

    for j in range(N_CONTROLS):
        row = {
            "location_name": f"Control site {j}",
            "fire_name": "",
            "date_of_visit": f"{2015 + j % 4}-11-02",
            "year_of_fire": "",
        }
        for metric, (b0, b1, b2) in CURVES.items():
            value = b0 + b1 * 30 + b2 * 900 + rng.normal(0, 0.8)
            row[metric] = f"{max(value, 0.1):.2f}"
        records.append(row)

    # Sentinels and blanks the cleaner has to handle
    records[2]["shrub_diversity"] = "x"
    records[5]["herb_abundance"] = ""
    records[7]["tree_diversity"] = "n/a"

    return records


def records_to_frame(records: list[dict]) -> pd.DataFrame:
    """Raw-header string DataFrame, as the loader would return it."""
    df = pd.DataFrame(records, dtype=str)
    return df.rename(columns=RAW_HEADERS)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def config():
    """Default survey configuration."""
    return get_default_config()


@pytest.fixture
def raw_survey_df():
    """Synthetic raw survey table (strings, raw headers)."""
    return records_to_frame(make_survey_records())


@pytest.fixture
def survey_csv(tmp_path, raw_survey_df):
    """Synthetic survey written to a CSV file."""
    path = tmp_path / "fire_survey.csv"
    raw_survey_df.to_csv(path, index=False)
    return path
