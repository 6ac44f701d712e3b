#!/usr/bin/env python3
"""
Command-line interface for Quackdown - markdown blog generator.
"""

import sys
import argparse
import time
from typing import List, Optional

from . import __version__
from .core import Quackdown, setup_logging
from .errors import BuildError
from .settings import QuackdownSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Quackdown - Markdown Blog Generator')
    parser.add_argument('--content', type=str,
                        help='Content directory containing markdown files')
    parser.add_argument('--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('--max-image-width', type=int,
                        help='Images wider than this are resized')
    parser.add_argument('--timezone-offset', type=int,
                        help='UTC offset in hours used for post dates')
    parser.add_argument('--brand-name', type=str,
                        help='Site name shown in the header')
    parser.add_argument('--no-inline-css', dest='inline_css', action='store_false', default=None,
                        help='Link style.css instead of inlining it')
    parser.add_argument('--minify-css', action='store_true', default=None,
                        help='Minify the inlined stylesheet')
    parser.add_argument('--workers', type=int,
                        help='Number of worker threads')
    parser.add_argument('--log-dir', type=str,
                        help='Directory for the debug log file')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    settings_loader = QuackdownSettings()

    if args.init:
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        return 0

    try:
        settings_loader.load_settings()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    args_dict = {k: v for k, v in vars(args).items() if v is not None}
    settings = settings_loader.merge_with_args(args_dict)

    logger = setup_logging(settings['log_dir'])
    overall_start_time = time.time()

    try:
        generator = Quackdown(
            content_dir=settings['content'],
            output_dir=settings['output'],
            max_image_width=settings['max_image_width'],
            timezone_offset=settings['timezone_offset'],
            brand_name=settings['brand_name'],
            inline_css=settings['inline_css'],
            minify_css=settings['minify_css'],
            workers=settings['workers'],
        )
        summary = generator.build()
    except BuildError as e:
        kind = "Internal error (please report)" if e.internal else "Build failed"
        logger.error(f"{kind}: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Error: {e}")
        return 1

    summary.log_report(logger)
    logger.info(f"Site build completed in {time.time() - overall_start_time:.2f} seconds.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
