import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from src.recovery_analysis.aggregation import summarize_by_group
from src.recovery_analysis.pipeline import (
    GROUP_BY_CHOICES,
    GROUP_BY_STAGE,
    available_metrics,
    prepare_survey_table,
    resolve_grouping,
    run_recovery_pipeline,
)
from src.survey_data.config.settings import DEFAULT_OUTPUT_DIR, get_default_config, load_config
from src.survey_data.errors import SurveyDataError

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(log_level: str):
    """Configure logging with the specified level."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    return logging.getLogger(__name__)


def get_config(config_path: str | None):
    """Load the survey configuration from a JSON file, or use the defaults."""
    if config_path:
        return load_config(config_path)
    return get_default_config()


def cmd_analyze(args):
    """Run the full recovery analysis and write figures plus the text report."""
    logger = configure_logging(args.log_level)
    config = get_config(args.config)

    output = run_recovery_pipeline(
        args.input,
        config,
        output_dir=args.output_dir,
        group_by=args.group_by,
        make_plots=not args.no_plots,
    )

    logger.info(f"Report: {output['report_path']}")
    for figure in output["figures"]:
        logger.info(f"Figure: {figure}")


def cmd_summarize(args):
    """Print mean/SD/n/SE per recovery stage and metric."""
    configure_logging(args.log_level)
    config = get_config(args.config)

    df = prepare_survey_table(args.input, config)
    metrics, _ = available_metrics(df, config)
    group_col, categories = resolve_grouping(df, config, args.group_by)
    summary = summarize_by_group(df, group_col, metrics, categories)

    print(summary.to_string(index=False, float_format=lambda v: f"{v:.3f}"))


def cmd_clean(args):
    """Write the cleaned table with derived fire fields to CSV."""
    logger = configure_logging(args.log_level)
    config = get_config(args.config)

    df = prepare_survey_table(args.input, config)
    df.to_csv(args.output, index=False)
    logger.info(f"Wrote {len(df)} cleaned record(s) to {args.output}")


def _add_common_arguments(parser, group_by=True):
    parser.add_argument("--input", required=True, help="Survey spreadsheet (CSV, TSV or XLSX)")
    parser.add_argument("--config", help="JSON file overriding the default survey configuration")
    if group_by:
        parser.add_argument(
            "--group-by",
            choices=GROUP_BY_CHOICES,
            default=GROUP_BY_STAGE,
            help="Derived recovery stage or the file's pre-binned column (default: stage)",
        )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Set logging level (default: INFO)",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Fire Recovery Survey - post-fire bird and plant survey analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Analyze command
    analyze_parser = subparsers.add_parser(
        "analyze", help="Run ANOVAs, recovery models and plots on a survey file"
    )
    _add_common_arguments(analyze_parser)
    analyze_parser.add_argument(
        "--output-dir",
        default=str(DEFAULT_OUTPUT_DIR),
        help=f"Directory for figures and the report (default: {DEFAULT_OUTPUT_DIR})",
    )
    analyze_parser.add_argument(
        "--no-plots",
        action="store_true",
        help="Skip figure generation",
    )
    analyze_parser.set_defaults(func=cmd_analyze)

    # Summarize command
    summarize_parser = subparsers.add_parser(
        "summarize", help="Print group summaries per recovery stage"
    )
    _add_common_arguments(summarize_parser)
    summarize_parser.set_defaults(func=cmd_summarize)

    # Clean command
    clean_parser = subparsers.add_parser(
        "clean", help="Write the cleaned table with derived fire fields"
    )
    _add_common_arguments(clean_parser, group_by=False)
    clean_parser.add_argument("--output", required=True, help="Output CSV path")
    clean_parser.set_defaults(func=cmd_clean)

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    if args.command is None:
        parser.print_help()
        return

    try:
        args.func(args)
    except (SurveyDataError, OSError) as e:
        logging.getLogger(__name__).error(f"{args.command} failed: {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
