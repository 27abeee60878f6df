"""
CLI subpackage for command-line interface tools.

Available CLI scripts:
- replay: Run recorded landmark frames (JSON Lines) through the engine
- run: Live webcam analysis with MediaPipe landmarks

Usage:
    python -m expression_analysis.cli.replay --help
    python -m expression_analysis.cli.run --help
"""

__all__ = ["replay", "run"]
