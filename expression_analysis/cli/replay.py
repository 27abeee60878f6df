#!/usr/bin/env python3
"""
Replay recorded landmark frames through the expression engine.

Each input line is a JSON object:
    {"landmarks": [[x, y, z], ...], "expressions": {"happy": 0.8, ...}}
The "expressions" key is optional. One JSON metrics line is written per
processed frame; invalid frames are skipped and counted.

Usage:
    python -m expression_analysis.cli.replay frames.jsonl \
        --config expression_config.yaml \
        --output metrics.jsonl
"""

import argparse
import contextlib
import json
import logging
import sys
from typing import IO, Any, Dict, Iterator, Optional, Tuple

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Replay landmark frames through the expression engine",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "input",
        type=str,
        nargs="?",
        default=None,
        help="JSON Lines file of landmark frames ('-' for stdin)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="-",
        help="Output file for metrics ('-' for stdout)",
    )
    parser.add_argument(
        "--describe",
        action="store_true",
        help="Write text blocks instead of JSON metrics",
    )
    parser.add_argument(
        "--include-calibration",
        action="store_true",
        help="Also write the neutral records emitted while calibrating",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--create-config",
        type=str,
        default=None,
        metavar="PATH",
        help="Create a default config file and exit",
    )

    return parser.parse_args(argv)


def read_frames(
    stream: IO[str],
) -> Iterator[Tuple[int, Optional[Any], Optional[Dict[str, float]]]]:
    """
    Yield (line_number, landmarks, expressions) for each non-empty line.

    Lines that are not valid JSON objects yield ``None`` landmarks so the
    engine reports them as skipped frames.
    """
    for line_no, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Line {line_no}: invalid JSON ({e})")
            yield line_no, None, None
            continue
        if not isinstance(record, dict):
            logger.warning(f"Line {line_no}: expected a JSON object")
            yield line_no, None, None
            continue
        yield line_no, record.get("landmarks"), record.get("expressions")


def replay(engine, frames, out: IO[str], describe: bool = False,
           include_calibration: bool = False) -> Dict[str, int]:
    """
    Run frames through an engine and write results.

    Returns:
        Counts of processed, written, and skipped frames
    """
    from expression_analysis.describe import format_expression_block

    counts = {'processed': 0, 'written': 0, 'skipped': 0}

    for line_no, landmarks, expressions in frames:
        metrics, info = engine.process_frame(landmarks, expressions)
        counts['processed'] += 1

        if metrics is None:
            counts['skipped'] += 1
            logger.debug(f"Line {line_no}: skipped ({info.get('error')})")
            continue

        if info['calibrating'] and not include_calibration:
            continue

        if describe:
            out.write(format_expression_block(metrics) + "\n\n")
        else:
            out.write(json.dumps({'frame': line_no, **metrics.to_dict()}) + "\n")
        counts['written'] += 1

    return counts


def main(argv=None) -> int:
    """Main entry point for replay CLI."""
    args = parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    if args.create_config:
        from expression_analysis.config import create_default_config
        create_default_config(args.create_config)
        print(f"Created default config at: {args.create_config}")
        return 0

    if args.input is None:
        logger.error("No input file given")
        return 2

    from expression_analysis.config import load_config
    from expression_analysis.inference import EngineConfig, ExpressionEngine

    try:
        config = load_config(args.config) if args.config else EngineConfig()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load config: {e}")
        return 1

    engine = ExpressionEngine(config)

    with contextlib.ExitStack() as stack:
        in_stream, out_stream = sys.stdin, sys.stdout
        try:
            if args.input != "-":
                in_stream = stack.enter_context(open(args.input, 'r'))
            if args.output != "-":
                out_stream = stack.enter_context(open(args.output, 'w'))
        except OSError as e:
            logger.error(f"Failed to open file: {e}")
            return 1

        counts = replay(
            engine,
            read_frames(in_stream),
            out_stream,
            describe=args.describe,
            include_calibration=args.include_calibration,
        )

    stats = engine.get_performance_stats()
    logger.info(
        f"Replay done: processed={counts['processed']}, "
        f"written={counts['written']}, skipped={counts['skipped']}, "
        f"calibrated={engine.is_calibrated}, mean={stats['mean_ms']:.3f}ms"
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
