"""
StoryReel Main Entry Point

Serve the API, or run a single generation from the command line.
"""

import asyncio
import sys
import argparse
import uuid
from pathlib import Path

from storyreel.core.logging_config import LogLevel, create_session_log, setup_logging, get_logger
from storyreel.core.config import load_config, set_config
from storyreel.core.exceptions import ConfigurationError, InputValidationError
from storyreel.core.startup import validate_environment


def main():
    """Main entry point for the StoryReel application."""
    parser = argparse.ArgumentParser(
        description="StoryReel - AI-generated videos from a story prompt"
    )

    parser.add_argument(
        "--prompt", "-p",
        type=str,
        help="Story prompt; runs one generation headless instead of serving the API"
    )

    parser.add_argument(
        "--duration", "-d",
        type=float,
        help="Video duration in seconds (default from configuration)"
    )

    parser.add_argument(
        "--fps",
        type=int,
        help="Frames per second (default from configuration)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port for the API server (default from configuration)"
    )

    parser.add_argument(
        "--skip-validation",
        action="store_true",
        help="Skip environment validation at startup"
    )

    args = parser.parse_args()

    # Setup logging
    if args.debug:
        log_level = LogLevel.DEBUG
    elif args.verbose:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.WARNING
    setup_logging(level=log_level, verbose=args.verbose)

    logger = get_logger("main")
    logger.info("Starting StoryReel...")

    # Load configuration
    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigurationError as e:
        print(f"Could not load configuration: {e}")
        sys.exit(1)

    if args.fps:
        config.generation.fps = args.fps
    if args.port:
        config.server.port = args.port
    set_config(config)

    # Validate environment (config values, API key, encoder)
    if not args.skip_validation:
        validation_result = validate_environment(config)
        if not validation_result.valid:
            logger.error("Environment validation failed:")
            for error in validation_result.errors:
                logger.error(f"  - {error}")
            print("\nEnvironment validation failed:")
            for error in validation_result.errors:
                print(f"  ✗ {error}")
            if validation_result.warnings:
                print("\nWarnings:")
                for warning in validation_result.warnings:
                    print(f"  ⚠ {warning}")
            print("\nRun with --skip-validation to bypass (not recommended)")
            sys.exit(1)

        for warning in validation_result.warnings:
            logger.warning(warning)

    if args.prompt is not None:
        log_file = create_session_log(config.paths.logs_dir, prefix="storyreel", level=log_level)
        logger.info(f"Session log: {log_file}")
        sys.exit(run_cli(args, config))
    else:
        run_web(args, config)


def run_web(args, config):
    """Run the API server (blocking)."""
    logger = get_logger("main")

    print("=" * 60)
    print("  StoryReel API")
    print("=" * 60)
    print()

    port = config.server.port
    print(f"Starting API server on http://localhost:{port}")
    logger.info(f"Starting API server on port {port}")

    from storyreel.api.main import start_server
    start_server(host=config.server.host, port=port, reload=args.debug)


def run_cli(args, config) -> int:
    """Run one generation headless. Returns the process exit code."""
    from storyreel.pipelines.story_video_pipeline import create_pipeline, validate_request

    logger = get_logger("main")

    try:
        request = validate_request(args.prompt, args.duration, config.generation)
    except InputValidationError as e:
        print(f"Invalid request: {e}")
        return 2

    def show_progress(progress):
        print(f"[{progress.percent:5.1f}%] {progress.stage.value}: {progress.message or ''}")

    config.paths.ensure_directories()
    frame_dir = config.paths.frames_dir / uuid.uuid4().hex
    pipeline = create_pipeline(config, frame_dir, on_progress=show_progress)

    try:
        result = asyncio.run(pipeline.run(request))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    finally:
        if frame_dir.exists():
            try:
                frame_dir.rmdir()
            except OSError as e:
                logger.warning(f"Could not remove frame directory {frame_dir}: {e}")

    if not result.success:
        print(f"\nGeneration failed: {result.error}")
        return 1

    print(f"\n{result.output.message}")
    print(f"Video: {result.output.video_path}")
    return 0


if __name__ == "__main__":
    main()
