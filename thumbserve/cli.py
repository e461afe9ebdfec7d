"""
Command Line Interface for the thumbnail server.
"""

import argparse
import logging
import signal
import urllib3
from typing import List, Optional, Tuple

from bottle import run

from .config import VARIANTS, ServerConfig
from .errors import ThumbnailError
from .generator import Generator
from .s3_config import S3Config
from .server import build_app, build_pipeline


def setup_logging(verbose: bool, level: str = 'INFO') -> logging.Logger:
    """
    Configure logging.

    Raises:
        ValueError: if level is not a logging level name
    """
    if verbose:
        level = logging.DEBUG
    else:
        name = level
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {name!r}")

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logging.getLogger('thumbserve')


def get_config(args: argparse.Namespace) -> ServerConfig:
    """Get server configuration from environment and CLI overrides."""
    config = ServerConfig.from_env()

    for name in ('width', 'height', 'extension', 'variant', 'source_root',
                 'thumbnail_root', 'cache_bytes', 'cache_name', 'self_url',
                 'prefix', 'cache_control', 'host', 'port', 'server'):
        value = getattr(args, name, None)
        if value is not None:
            setattr(config, name, value)
    if getattr(args, 'peer', None):
        config.peers = args.peer
    if getattr(args, 'debug', False):
        config.debug = True

    return config


def load_config(args: argparse.Namespace) -> Tuple[Optional[ServerConfig], logging.Logger]:
    """
    Read the configuration and set up logging from it.

    Returns:
        Tuple of (config, logger); config is None if the environment holds
        an unparseable value, after the error has been logged
    """
    try:
        config = get_config(args)
        logger = setup_logging(args.verbose, config.log_level)
    except ValueError as e:
        logger = setup_logging(args.verbose)
        logger.error(f"Invalid configuration: {e}")
        return None, logger
    return config, logger


def get_s3_config(args: argparse.Namespace) -> S3Config:
    """Get S3 configuration from environment and CLI overrides."""
    config = S3Config.from_env()

    if getattr(args, 's3_endpoint', None):
        config.endpoint = args.s3_endpoint
    if getattr(args, 's3_bucket', None):
        config.bucket = args.s3_bucket
    if getattr(args, 's3_prefix', None):
        config.prefix = args.s3_prefix

    return config


def check_config(config: ServerConfig, s3_config: S3Config, logger: logging.Logger) -> bool:
    """Log every configuration error; True if the config is usable."""
    errors = config.validate()
    if config.variant == 's3':
        errors.extend(s3_config.validate())
    for error in errors:
        logger.error(error)
    return not errors


def add_thumbnail_arguments(parser: argparse.ArgumentParser) -> None:
    """Add thumbnail and storage arguments to a parser."""
    thumb_group = parser.add_argument_group('Thumbnails')
    thumb_group.add_argument('--width', type=int, help='Thumbnail width (THUMB_WIDTH)')
    thumb_group.add_argument('--height', type=int, help='Thumbnail height (THUMB_HEIGHT)')
    thumb_group.add_argument('--extension', help='Output extension: jpg, jpeg or png (THUMB_EXTENSION)')
    thumb_group.add_argument('--variant', choices=VARIANTS, help='Cache variant (THUMB_VARIANT)')
    thumb_group.add_argument('--source-root', metavar='PATH', help='Original images (THUMB_SOURCE_ROOT)')
    thumb_group.add_argument('--thumbnail-root', metavar='PATH',
                             help='Persisted thumbnails (THUMB_THUMBNAIL_ROOT)')

    s3_group = parser.add_argument_group('S3 Storage')
    s3_group.add_argument('--s3-endpoint', help='Override S3_ENDPOINT')
    s3_group.add_argument('--s3-bucket', help='Override S3_BUCKET')
    s3_group.add_argument('--s3-prefix', help='Override S3_PREFIX')


def cmd_serve(args: argparse.Namespace) -> int:
    """Execute serve command."""
    config, logger = load_config(args)
    if config is None:
        return 1
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    s3_config = get_s3_config(args)
    if not check_config(config, s3_config, logger):
        return 1

    try:
        app = build_app(config, s3_config=s3_config, logger=logger)
    except (ThumbnailError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logger.info(f"Listening on {config.host}:{config.port}")
    run(
        app=app,
        host=config.host,
        port=config.port,
        server=config.server,
        debug=config.debug,
        quiet=not args.verbose,
    )
    logger.info("Exiting.")
    return 0


def cmd_warm(args: argparse.Namespace) -> int:
    """Execute warm command: fill the persisted cache ahead of requests."""
    config, logger = load_config(args)
    if config is None:
        return 1

    if config.variant == 'memory':
        logger.error("The memory variant has nothing to warm; use file or s3")
        return 1

    s3_config = get_s3_config(args)
    if not check_config(config, s3_config, logger):
        return 1

    try:
        pipeline = build_pipeline(config, s3_config=s3_config, logger=logger)
    except ThumbnailError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.limit:
        logger.info(f"Test mode: limiting to {args.limit} images")

    generator = Generator(
        pipeline.backend,
        cadence=args.cadence,
        dry_run=args.dry_run,
        logger=logger,
    )
    # SIGTERM finishes the current image, then stops
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: generator.stop())
    try:
        stats = generator.generate_all(limit=args.limit)
    except KeyboardInterrupt:
        logger.info(f"Interrupted by user ({generator.stats.remaining_count} remaining)")
        return 130
    except Exception as e:
        logger.exception(f"Generation failed: {e}")
        return 1
    finally:
        signal.signal(signal.SIGTERM, previous)

    if not args.quiet:
        print()
        print(f"Generated: {stats.processed}")
        print(f"Skipped: {stats.skipped}")
        print(f"Errors: {stats.errors}")
        print(f"Time: {stats.elapsed_seconds:.1f}s")
        print(f"Rate: {stats.rate_per_minute:.1f}/min")

    return 0 if stats.errors == 0 else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='thumbserve',
        description='On-demand thumbnail server',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  Serve:  python -m thumbserve serve --source-root images --thumbnail-root thumbs
  Warm:   python -m thumbserve warm --source-root images --thumbnail-root thumbs

Every option falls back to its THUMB_* environment variable.
Use --variant memory with --peer URL (repeated) and --self-url to share
the in-memory cache between processes.
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Run the thumbnail server')
    add_thumbnail_arguments(serve_parser)
    net_group = serve_parser.add_argument_group('Server')
    net_group.add_argument('--host', help='Address to bind (THUMB_HOST)')
    net_group.add_argument('-p', '--port', type=int, help='Port to bind (THUMB_PORT)')
    net_group.add_argument('--server', help='Bottle server adapter (THUMB_SERVER)')
    net_group.add_argument('--prefix', help='URL prefix for thumbnails (THUMB_PREFIX)')
    net_group.add_argument('--cache-control', help='Cache-Control header for thumbnails')
    net_group.add_argument('--debug', action='store_true', help='Run Bottle in debug mode')
    mem_group = serve_parser.add_argument_group('Memory Cache')
    mem_group.add_argument('--cache-bytes', type=int, help='Cache byte budget (THUMB_CACHE_BYTES)')
    mem_group.add_argument('--cache-name', help='Cache group name (THUMB_CACHE_NAME)')
    mem_group.add_argument('--self-url', help='URL peers use to reach this process (THUMB_SELF_URL)')
    mem_group.add_argument('--peer', action='append', metavar='URL', help='Peer base URL (THUMB_PEERS)')
    serve_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    # Warm command
    warm_parser = subparsers.add_parser('warm', help='Pre-generate persisted thumbnails')
    add_thumbnail_arguments(warm_parser)
    warm_parser.add_argument('-c', '--cadence', type=float, default=0.0, help='Seconds between images')
    warm_parser.add_argument('-n', '--dry-run', action='store_true', help='Show what would be done')
    warm_parser.add_argument('--limit', type=int, metavar='N', help='Limit to N images (for testing)')
    warm_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    warm_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'serve':
        return cmd_serve(parsed_args)
    elif parsed_args.command == 'warm':
        return cmd_warm(parsed_args)

    return 1
