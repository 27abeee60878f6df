"""
Configuration management for the expression engine.

This module provides configuration file loading and saving for the
expression engine, supporting YAML and JSON formats.
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .inference import EngineConfig
from .landmarks import LandmarkLayout
from .smile import SmileThresholds

logger = logging.getLogger(__name__)

# Default config file locations
DEFAULT_CONFIG_PATHS = [
    Path("expression_config.yaml"),
    Path("expression_config.json"),
    Path.home() / ".config" / "expression_analysis" / "config.yaml",
    Path.home() / ".config" / "expression_analysis" / "config.json",
]


def load_config(
    config_path: Optional[Union[str, Path]] = None
) -> EngineConfig:
    """
    Load engine configuration from file.

    Supports YAML and JSON formats. If no path is specified, searches
    default locations.

    Args:
        config_path: Path to config file, or None to search defaults

    Returns:
        EngineConfig instance

    Raises:
        FileNotFoundError: If an explicit config path does not exist
        ValueError: If config file is invalid
    """
    # Find config file
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        path = None
        for default_path in DEFAULT_CONFIG_PATHS:
            if default_path.exists():
                path = default_path
                break

        if path is None:
            logger.info("No config file found, using defaults")
            return EngineConfig()

    logger.info(f"Loading config from {path}")

    with open(path, 'r') as f:
        if path.suffix in ('.yaml', '.yml'):
            import yaml
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Failed to parse config file: {e}") from e
        else:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Failed to parse config file: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping, got {type(data).__name__}")

    return _dict_to_config(data)


def save_config(
    config: EngineConfig,
    config_path: Union[str, Path],
    format: str = "auto"
) -> None:
    """
    Save engine configuration to file.

    Args:
        config: Configuration to save
        config_path: Output file path
        format: "yaml", "json", or "auto" (detect from extension)
    """
    path = Path(config_path)

    # Determine format
    if format == "auto":
        if path.suffix in ('.yaml', '.yml'):
            format = "yaml"
        else:
            format = "json"

    data = _config_to_dict(config)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        if format == "yaml":
            import yaml
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, f, indent=2)

    logger.info(f"Saved config to {path}")


def _dict_to_config(data: Dict[str, Any]) -> EngineConfig:
    """Convert dictionary to EngineConfig."""
    defaults = EngineConfig()

    layout_data = data.get('layout') or {}
    smile_data = data.get('smile') or {}

    if not isinstance(layout_data, dict) or not isinstance(smile_data, dict):
        raise ValueError("Config sections 'layout' and 'smile' must be mappings")

    unknown = set(smile_data) - set(SmileThresholds.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown smile settings: {sorted(unknown)}")

    try:
        return EngineConfig(
            layout=LandmarkLayout.from_dict(layout_data),
            smile=SmileThresholds(**{k: float(v) for k, v in smile_data.items()}),
            window_size=int(data.get('window_size', defaults.window_size)),
            calibration_samples=int(
                data.get('calibration_samples', defaults.calibration_samples)
            ),
            openness_max=float(data.get('openness_max', defaults.openness_max)),
            epsilon=float(data.get('epsilon', defaults.epsilon)),
            log_performance=bool(data.get('log_performance', defaults.log_performance)),
        )
    except (TypeError, OverflowError) as e:
        raise ValueError(f"Invalid config value: {e}") from e


def _config_to_dict(config: EngineConfig) -> Dict[str, Any]:
    """Convert EngineConfig to dictionary."""
    return {
        'layout': asdict(config.layout),
        'smile': asdict(config.smile),
        'window_size': config.window_size,
        'calibration_samples': config.calibration_samples,
        'openness_max': config.openness_max,
        'epsilon': config.epsilon,
        'log_performance': config.log_performance,
    }


def create_default_config(output_path: Union[str, Path]) -> None:
    """
    Create a default configuration file with comments.

    Args:
        output_path: Path to write the config file
    """
    path = Path(output_path)

    if path.suffix in ('.yaml', '.yml'):
        content = """# Expression Analysis Configuration
# ================================

# Landmark indices of the face detector (MediaPipe Face Mesh topology).
# Change these when switching to a detector with a different mesh.
layout:
  mouth_top: 13
  mouth_bottom: 14
  mouth_left: 78
  mouth_right: 308
  left_eye_top: 159
  left_eye_bottom: 145
  right_eye_top: 386
  right_eye_bottom: 374
  nose_tip: 1
  left_cheek: 123
  right_cheek: 352

# Smile fusion calibration
smile:
  # Happy confidence below this contributes nothing
  minimal: 0.40
  # Descriptive band edges (do not change smile level)
  slight: 0.60
  moderate: 0.75
  broad: 0.85
  # Mouth width/height ratio where the geometric score starts, and its span
  mouth_ratio_base: 4.0
  mouth_ratio_scale: 4.0
  # Weight of the classifier signal when available
  neural_weight: 0.75
  epsilon: 0.0001

# Number of classifier outputs averaged (uniform weights)
window_size: 5

# Frames averaged into the neutral baseline before output starts
calibration_samples: 30

# Upper clamp for mouth and eye openness
openness_max: 2.0

# Lower bound for baseline denominators
epsilon: 0.0001

# Record per-frame latency statistics
log_performance: true
"""
    else:
        config = EngineConfig()
        content = json.dumps(_config_to_dict(config), indent=2)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        f.write(content)

    logger.info(f"Created default config at {path}")
