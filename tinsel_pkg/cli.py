#!/usr/bin/env python3
"""
Command-line interface for Tinsel.
"""

import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import Tinsel, create_config
from .settings import TinselSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Tinsel - mirror a directory tree, running embedded Python in text files')
    parser.add_argument('--input', '--in', dest='input', type=str,
                        help='Input directory to mirror')
    parser.add_argument('--output', '--out', dest='output', type=str,
                        help='Output directory')
    parser.add_argument('--watch', action='store_true', default=None,
                        help='Watch the input directory for changes and rebuild')
    parser.add_argument('--debug', action='store_true', default=None,
                        help='Write the compiled program of every file next to its output')
    parser.add_argument('--minify', action='store_true', default=None,
                        help='Minify CSS and JS output')
    parser.add_argument('--extension', dest='extensions', action='append',
                        help='Additional file extension to run templates in (repeatable)')
    parser.add_argument('--open-tag', dest='open_tag', type=str,
                        help='Opening tag of code regions (default <%%)')
    parser.add_argument('--close-tag', dest='close_tag', type=str,
                        help='Closing tag of code regions (default %%>)')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    settings_loader = TinselSettings()

    # Handle init command
    if args.init:
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        return

    try:
        settings_loader.load_settings()

        # Convert argparse Namespace to dict, excluding None values for proper merging
        args_dict = {k: v for k, v in vars(args).items() if v is not None and k != 'init'}

        # Command line arguments take precedence
        final_settings = settings_loader.merge_with_args(args_dict)

        generator = Tinsel(create_config(final_settings))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(generator.run())


if __name__ == '__main__':
    main()
