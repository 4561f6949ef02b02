#!/usr/bin/env python3
"""
Inpainting graph driver - Main Application

Feeds camera or video frames into an externally defined processing graph,
reads back the composited video plus corpus, face and selfie masks, and
overlays the resulting inpainting region on each frame:
- without --output_video_path the result is shown in a window (any key quits)
- with --output_video_path the first frames are recorded to a video file
"""

import sys
import argparse
import logging
from pathlib import Path

from inpainting.config import Config, apply_overrides, create_example_config, load_config
from inpainting.exceptions import InpaintingError
from inpainting.pipeline import InpaintingPipeline

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False, log_file: str = 'inpainting.log'):
    """Configure root logging to stdout and a log file."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run an inpainting graph on camera or video frames"
    )
    parser.add_argument(
        "--calculator_graph_config_file",
        type=str,
        help="Name of file containing text format CalculatorGraphConfig proto."
    )
    parser.add_argument(
        "--input_video_path",
        type=str,
        help="Full path of video to load. If not provided, attempt to use a webcam."
    )
    parser.add_argument(
        "--output_video_path",
        type=str,
        help="Full path of where to save result (.mp4 only). "
             "If not provided, show result in a window."
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Optional YAML settings file; flags above take precedence"
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate inputs without processing"
    )
    parser.add_argument(
        "--write-example-config",
        type=str,
        metavar="PATH",
        help="Write an example YAML settings file to PATH and exit"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Merge the settings file (if any) with command line flags."""
    config = load_config(args.config) if args.config else Config()
    return apply_overrides(
        config,
        calculator_graph_config_file=args.calculator_graph_config_file,
        input_video_path=args.input_video_path,
        output_video_path=args.output_video_path,
    )


def validate_inputs(config: Config) -> bool:
    """Check that the files named in ``config`` exist."""
    valid = True

    if config.calculator_graph_config_file is None:
        logger.error("No graph config specified (--calculator_graph_config_file)")
        valid = False
    elif not config.calculator_graph_config_file.exists():
        logger.error(f"Graph config not found: {config.calculator_graph_config_file}")
        valid = False

    if config.input_video_path is not None and not config.input_video_path.exists():
        logger.error(f"Input video not found: {config.input_video_path}")
        valid = False

    if valid:
        logger.info(f"Graph config: {config.calculator_graph_config_file}")
        logger.info(f"Input: {config.input_video_path or f'camera {config.camera_index}'}")
        logger.info(f"Output: {config.output_video_path or 'window'}")
    return valid


def main(argv=None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    if args.write_example_config:
        Path(args.write_example_config).write_text(create_example_config())
        logger.info(f"Example configuration saved to {args.write_example_config}")
        return 0

    try:
        config = resolve_config(args)

        if not validate_inputs(config):
            return 1

        if args.validate_only:
            logger.info("Input validation completed successfully")
            return 0

        InpaintingPipeline(config).run()

    except KeyboardInterrupt:
        logger.info("Processing interrupted by user")
        return 1
    except (InpaintingError, OSError) as e:
        logger.error(f"Failed to run the graph: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Failed to run the graph: {e}")
        return 1

    logger.info("Success!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
