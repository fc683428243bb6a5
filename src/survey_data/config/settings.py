import os
import pathlib

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_OUTPUT_DIR = pathlib.Path(os.getenv("FIRE_SURVEY_OUTPUT_DIR", "outputs"))


# ---------- Recovery bins ----------


class BinScheme(BaseModel):
    """
    Breakpoint table for recovery-stage bins.

    Bins are left-closed and right-open, ``[edges[i], edges[i + 1])``, and the
    last bin is unbounded above. A years-since-fire value sitting exactly on a
    breakpoint therefore belongs to the later bin.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    edges: tuple[float, ...] = (0, 2, 5, 10, 20)
    labels: tuple[str, ...] = ("0-2", "2-5", "5-10", "10-20", "20+")
    control_label: str = "Control"

    @model_validator(mode="after")
    def _check_edges(self):
        if not self.edges:
            raise ValueError("edges must not be empty")
        if self.edges[0] != 0:
            raise ValueError(f"First bin edge must be 0, got {self.edges[0]}")
        if any(b <= a for a, b in zip(self.edges, self.edges[1:])):
            raise ValueError(f"Bin edges must be strictly increasing: {self.edges}")
        if len(self.labels) != len(self.edges):
            raise ValueError(
                f"Expected {len(self.edges)} bin labels for {len(self.edges)} edges, "
                f"got {len(self.labels)}"
            )
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"Bin labels must be unique: {self.labels}")
        if self.control_label in self.labels:
            raise ValueError(f"Control label '{self.control_label}' clashes with a bin label")
        return self

    @property
    def stage_categories(self) -> list[str]:
        """Ordered stage vocabulary: the numeric bins followed by the control label."""
        return [*self.labels, self.control_label]


# ---------- Survey configuration ----------


class SurveyConfig(BaseModel):
    """Constants for one analysis run, passed explicitly to each pipeline step."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    missing_token: str = "x"

    # Canonical (normalized) column names
    survey_date_column: str = "date_of_visit"
    fire_year_column: str = "year_of_fire"
    fire_event_column: str = "fire_name"
    site_column: str = "location_name"
    prebinned_column: str = "correct_bin"

    # Extra columns kept as text; see ``exempt_columns``
    text_columns: tuple[str, ...] = ("site_id", "notes")

    bird_metrics: tuple[str, ...] = ("bird_total_individuals", "bird_total_species")
    plant_abundance_metrics: tuple[str, ...] = (
        "tree_abundance",
        "shrub_abundance",
        "herb_abundance",
    )
    plant_diversity_metrics: tuple[str, ...] = (
        "tree_diversity",
        "shrub_diversity",
        "herb_diversity",
    )

    # Taxon prefix -> matplotlib colour
    palette: dict[str, str] = Field(
        default_factory=lambda: {
            "bird": "#1f77b4",
            "tree": "#2ca02c",
            "shrub": "#bcbd22",
            "herb": "#ff7f0e",
        }
    )
    default_color: str = "#7f7f7f"

    bins: BinScheme = Field(default_factory=BinScheme)
    anova_include_control: bool = True
    curve_points: int = Field(default=100, ge=2)

    @property
    def metrics(self) -> list[str]:
        """All metric columns, bird metrics first."""
        return [*self.bird_metrics, *self.plant_abundance_metrics, *self.plant_diversity_metrics]

    @property
    def exempt_columns(self) -> set[str]:
        """
        Columns cleaning leaves as text.

        The configured record columns are always included, so renaming one in
        a config file cannot get it coerced. The fire year stays text until
        ``derive_fire_fields`` so an unreadable year is not mistaken for a
        missing one.
        """
        return {
            self.survey_date_column,
            self.fire_year_column,
            self.fire_event_column,
            self.site_column,
            self.prebinned_column,
            *self.text_columns,
        }

    def color_for(self, metric: str) -> str:
        """Return the palette colour of the taxon a metric belongs to."""
        for taxon, color in self.palette.items():
            if metric.startswith(taxon):
                return color
        return self.default_color


def get_default_config() -> SurveyConfig:
    """Get the default survey configuration."""
    return SurveyConfig()


def load_config(path: str | pathlib.Path) -> SurveyConfig:
    """
    Load a survey configuration from a JSON file.

    Fields missing from the file keep their defaults.
    """
    text = pathlib.Path(path).read_text()
    return SurveyConfig.model_validate_json(text)
