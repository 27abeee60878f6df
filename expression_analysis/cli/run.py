#!/usr/bin/env python3
"""
Live webcam expression analysis CLI.

Captures frames with OpenCV, detects landmarks with MediaPipe, and feeds
them to the expression engine. No expression classifier is attached, so
smile level uses the geometric score only.

Usage:
    python -m expression_analysis.cli.run --camera 0 --show-video
"""

import argparse
import logging
import signal
import sys
import time

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run live expression analysis from a webcam",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=0,
        help="Camera device ID",
    )
    parser.add_argument(
        "--landmarker-model",
        type=str,
        default=None,
        help="Path to face_landmarker.task (downloaded if not given)",
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=30.0,
        help="Target frames per second",
    )
    parser.add_argument(
        "--show-video",
        action="store_true",
        help="Display video feed with overlay",
    )
    parser.add_argument(
        "--describe",
        action="store_true",
        help="Log the text block for each calibrated frame",
    )
    parser.add_argument(
        "--log-stats",
        action="store_true",
        help="Log performance statistics periodically",
    )
    parser.add_argument(
        "--stats-interval",
        type=float,
        default=5.0,
        help="Interval in seconds for logging stats",
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

    return parser.parse_args(argv)


class LiveRunner:
    """Main capture loop runner."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.engine = None
        self.source = None
        self.camera = None
        self.running = False
        self._last_stats_time = 0.0

    def setup(self) -> bool:
        """Initialize the engine, landmark source, and camera."""
        from expression_analysis.config import load_config
        from expression_analysis.errors import LandmarkSourceError
        from expression_analysis.inference import ExpressionEngine
        from expression_analysis.landmark_source import MediaPipeLandmarkSource

        try:
            config = load_config(self.args.config)
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Failed to load config: {e}")
            return False

        self.engine = ExpressionEngine(config)

        try:
            self.source = MediaPipeLandmarkSource(model_path=self.args.landmarker_model)
        except LandmarkSourceError as e:
            logger.error(f"Landmark source unavailable: {e}")
            return False

        import cv2
        self.camera = cv2.VideoCapture(self.args.camera)
        if not self.camera.isOpened():
            logger.error(f"Failed to open camera {self.args.camera}")
            return False
        logger.info(f"Camera {self.args.camera} initialized")

        return True

    def run(self) -> int:
        """Run the capture loop."""
        if self.engine is None or self.camera is None:
            return 1

        from expression_analysis.describe import expression_emojis, format_expression_block

        if self.args.show_video:
            import cv2

        self.running = True
        frame_interval = 1.0 / self.args.fps

        logger.info("Starting capture loop (Ctrl+C to stop)")
        logger.info(
            f"Calibrating over {self.engine.config.calibration_samples} frames, "
            "keep a neutral face"
        )

        try:
            while self.running:
                loop_start = time.perf_counter()

                ret, frame = self.camera.read()
                if not ret:
                    logger.warning("Failed to capture frame")
                    time.sleep(frame_interval)
                    continue

                landmarks = self.source.detect(frame)
                if landmarks is None:
                    metrics, info = None, {}
                else:
                    metrics, info = self.engine.process_frame(landmarks)

                if metrics is not None and info.get('calibrated') and not info.get('calibrating'):
                    if self.args.describe:
                        logger.info("\n" + format_expression_block(metrics))
                    elif self.args.debug:
                        logger.debug(
                            f"Frame: {info['latency_ms']:.2f}ms, "
                            f"{expression_emojis(metrics)}"
                        )

                if self.args.log_stats:
                    now = time.time()
                    if now - self._last_stats_time >= self.args.stats_interval:
                        self._log_stats()
                        self._last_stats_time = now

                if self.args.show_video:
                    frame = self._add_overlay(cv2, frame, metrics, info)
                    cv2.imshow('Expression Analysis', frame)
                    if cv2.waitKey(1) & 0xFF == ord('q'):
                        logger.info("Quit requested via keyboard")
                        break

                # Rate limiting
                elapsed = time.perf_counter() - loop_start
                sleep_time = frame_interval - elapsed
                if sleep_time > 0:
                    time.sleep(sleep_time)

        except KeyboardInterrupt:
            logger.info("Interrupted by user")

        finally:
            self.running = False
            if self.args.show_video:
                cv2.destroyAllWindows()

        return 0

    def _add_overlay(self, cv2, frame, metrics, info):
        """Add status overlay to video frame."""
        if metrics is None:
            status_lines = ["Face: No"]
        elif not info.get('calibrated'):
            status_lines = [f"Calibrating {info['calibration_progress'] * 100:.0f}%"]
        else:
            pose = metrics.head_pose
            status_lines = [
                f"Mouth: {metrics.mouth_openness:.2f}",
                f"Eyes: {metrics.eye_openness:.2f}",
                f"Smile: {metrics.smile_level:.2f}",
                f"Pose: {pose.pitch:.1f} / {pose.yaw:.1f} / {pose.roll:.1f}",
            ]

        y = 30
        for line in status_lines:
            cv2.putText(
                frame, line, (10, y),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 0), 2
            )
            y += 25

        return frame

    def _log_stats(self):
        """Log performance statistics."""
        if self.engine is None:
            return

        stats = self.engine.get_performance_stats()
        logger.info(
            f"Performance: mean={stats['mean_ms']:.2f}ms, "
            f"p95={stats['p95_ms']:.2f}ms, "
            f"frames={stats['frame_count']}, "
            f"skipped={stats['skipped_count']}"
        )

    def stop(self):
        """Stop the capture loop."""
        self.running = False

    def cleanup(self):
        """Clean up resources."""
        if self.camera is not None:
            self.camera.release()
            self.camera = None
        if self.source is not None:
            self.source.close()
            self.source = None
        self.engine = None


def main(argv=None) -> int:
    """Main entry point for live CLI."""
    args = parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    runner = LiveRunner(args)

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        runner.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if not runner.setup():
            return 1

        return runner.run()

    finally:
        runner.cleanup()


if __name__ == "__main__":
    sys.exit(main())
