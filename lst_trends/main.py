"""
LST Trend Pipeline - Main Entry Point

Provides CLI interface for running a trend study and inspecting the
environment.
"""

import argparse
import sys

from lst_trends.config.settings import Config
from lst_trends.core.errors import LSTTrendError
from lst_trends.data.sensors import SENSORS
from lst_trends.utils.logging import setup_logging, get_logger


def main(argv=None):
    """Main entry point for the LST trend pipeline."""
    parser = argparse.ArgumentParser(
        description="Multi-decadal land surface temperature trends",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a study over a GeoTIFF archive
  lst-trends run --config study.yaml --archive data/archive --output outputs/

  # Show environment and sensor table
  lst-trends info
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run a trend study")
    run_parser.add_argument("--config", type=str, required=True, help="Config file path (YAML or JSON)")
    run_parser.add_argument("--archive", type=str, required=True, help="GeoTIFF archive root")
    run_parser.add_argument("--output", type=str, help="Output directory (overrides config)")
    run_parser.add_argument("--log-level", type=str, help="Logging level (overrides config)")

    subparsers.add_parser("info", help="Show environment and sensor information")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "info":
        show_info()
        return 0
    elif args.command == "run":
        return run_study(args)


def show_info():
    """Display environment and sensor information."""
    print("\n" + "=" * 60)
    print("LST Trend Pipeline - System Information")
    print("=" * 60)

    print("\nInstalled Packages:")
    for module_name in ("numpy", "pandas", "rasterio", "shapely"):
        module = __import__(module_name)
        print(f"  {module_name}: {module.__version__}")

    print("\nSensors:")
    for sensor_id, spec in sorted(SENSORS.items()):
        print(f"  {sensor_id:<10} {spec.collection_id}")

    print("\n" + "=" * 60)


def run_study(args) -> int:
    """Run a full trend study from a config file."""
    from lst_trends.data.archive import GeoTIFFArchive
    from lst_trends.export.sinks import CSVTableSink, GeoTIFFRasterSink
    from lst_trends.pipeline import LSTTrendPipeline

    try:
        config = Config.from_file(args.config)
        config.update_from_env()
    except LSTTrendError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.output:
        config.export.output_dir = args.output
    if args.log_level:
        config.log_level = args.log_level

    setup_logging(level=config.log_level, log_dir=config.log_dir)
    logger = get_logger("main")
    logger.info(f"Running study with config: {args.config}")

    try:
        pipeline = LSTTrendPipeline(
            config,
            GeoTIFFArchive(args.archive, progress=True),
            raster_sink=GeoTIFFRasterSink(config.export),
            table_sink=CSVTableSink(config.export.output_dir),
        )
        pipeline.run()
    except LSTTrendError as e:
        logger.error(f"Run aborted: {e}")
        return 1

    logger.info(f"Outputs written to {config.export.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
