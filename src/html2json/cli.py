"""
CLI module for html2json.

Provides command-line interface and orchestration logic.
"""

import argparse
import difflib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .config import Config, load_config
from .errors import Html2JsonError
from .extractor import Extractor
from .loader import fetch_html, load_spec
from .spec import parse_spec

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration. Logs go to stderr; stdout carries JSON only."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )


def dump_json(value: Any, pretty: bool = True) -> str:
    return json.dumps(value, indent=2 if pretty else None, ensure_ascii=False)


def run_extraction(
    input_path: str,
    spec_path: str,
    config_path: Optional[str] = None,
    check_path: Optional[str] = None,
    render: bool = False,
    compact: bool = False,
    verbose: bool = False,
) -> int:
    """
    Main extraction orchestration function.

    Args:
        input_path: URL or path of the HTML document
        spec_path: Path to the JSON spec
        config_path: Optional configuration file
        check_path: Optional expected-output file to compare against
        render: Fetch URLs through a headless browser
        compact: Print JSON on a single line
        verbose: Enable verbose logging

    Returns:
        Process exit status
    """
    setup_logging(verbose)

    try:
        config = load_config(config_path) if config_path else Config()
        if render:
            config.http.render = True

        # Parse the spec before fetching anything
        spec = parse_spec(load_spec(spec_path, config))
        html = fetch_html(input_path, config)
        result = Extractor(html, config).extract(spec)

        print(dump_json(result, config.pretty and not compact))

        if check_path:
            return check_result(result, check_path)
        return 0

    except (Html2JsonError, OSError, ValueError) as e:
        logger.error(f"Extraction failed: {e}")
        return 1


def check_result(result: Any, expected_path: str) -> int:
    """
    Compare a result against the JSON stored in expected_path.

    Prints a unified diff to stderr on mismatch.
    """
    expected = json.loads(Path(expected_path).read_text(encoding="utf-8"))
    if result == expected:
        logger.info(f"Output matches {expected_path}")
        return 0

    diff = difflib.unified_diff(
        dump_json(expected).splitlines(),
        dump_json(result).splitlines(),
        fromfile=expected_path,
        tofile="actual",
        lineterm="",
    )
    print("\n".join(diff), file=sys.stderr)
    logger.error(f"Output does not match {expected_path}")
    return 1


def validate_spec(spec_path: str, verbose: bool = False) -> int:
    """Parse a spec file and report whether it is valid."""
    setup_logging(verbose)
    try:
        parse_spec(load_spec(spec_path))
    except Html2JsonError as e:
        logger.error(f"Invalid spec: {e}")
        return 1
    logger.info(f"Spec is valid: {spec_path}")
    return 0


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Extract JSON from HTML using CSS selectors and a JSON spec",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  html2json run page.html spec.json
  html2json run https://news.ycombinator.com spec.json --compact
  html2json run feed.xml spec.json --check expected.json
  html2json validate spec.json
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Run command
    run_parser = subparsers.add_parser('run', help='Extract JSON from a document')
    run_parser.add_argument('input', help='URL (http/https) or path to an HTML file')
    run_parser.add_argument('spec', help='Path to JSON extraction spec')
    run_parser.add_argument('--config', '-c', help='Path to JSON configuration file')
    run_parser.add_argument('--check', metavar='EXPECTED',
                            help='Compare output with an expected JSON file')
    run_parser.add_argument('--render', action='store_true',
                            help='Fetch URLs through a headless browser')
    run_parser.add_argument('--compact', action='store_true',
                            help='Print JSON on a single line')
    run_parser.add_argument('--verbose', '-v', action='store_true',
                            help='Enable verbose logging')

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Check that a spec parses')
    validate_parser.add_argument('spec', help='Path to JSON extraction spec')
    validate_parser.add_argument('--verbose', '-v', action='store_true',
                                 help='Enable verbose logging')

    args = parser.parse_args()

    if args.command == 'run':
        sys.exit(run_extraction(
            input_path=args.input,
            spec_path=args.spec,
            config_path=args.config,
            check_path=args.check,
            render=args.render,
            compact=args.compact,
            verbose=args.verbose,
        ))
    elif args.command == 'validate':
        sys.exit(validate_spec(args.spec, verbose=args.verbose))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
