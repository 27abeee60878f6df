"""
Expression Analysis Package

Turns streams of 3D facial landmarks, and optionally an expression
classifier's confidence vector, into normalized expression metrics.
"""

__version__ = "0.1.0"

from expression_analysis.errors import (
    ExpressionAnalysisError,
    InvalidInputError,
    InvalidLandmarksError,
    LandmarkSourceError,
)
from expression_analysis.landmarks import LandmarkLayout, LandmarkPoint
from expression_analysis.features import ExpressionMetrics, FaceMeasurements, HeadPose
from expression_analysis.extractor import GeometryExtractor
from expression_analysis.calibrator import BaselineCalibrator, BaselineState
from expression_analysis.smoother import EXPRESSION_LABELS, TemporalSmoother
from expression_analysis.smile import SmileFusionModel, SmileThresholds
from expression_analysis.inference import EngineConfig, EngineState, ExpressionEngine
from expression_analysis.config import load_config, save_config
from expression_analysis.describe import enrich_message, format_expression_block

__all__ = [
    "ExpressionAnalysisError",
    "InvalidInputError",
    "InvalidLandmarksError",
    "LandmarkSourceError",
    "LandmarkLayout",
    "LandmarkPoint",
    "ExpressionMetrics",
    "FaceMeasurements",
    "HeadPose",
    "GeometryExtractor",
    "BaselineCalibrator",
    "BaselineState",
    "EXPRESSION_LABELS",
    "TemporalSmoother",
    "SmileFusionModel",
    "SmileThresholds",
    "EngineConfig",
    "EngineState",
    "ExpressionEngine",
    "load_config",
    "save_config",
    "enrich_message",
    "format_expression_block",
]
