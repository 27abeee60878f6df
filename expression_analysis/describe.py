"""
Text and display helpers for expression metrics.

Renders ExpressionMetrics as a text block that can be appended to an outbound
chat message, and buckets each metric into a coarse display level with a
matching emoji.
"""

from typing import Dict, Optional

from .features import ExpressionMetrics

EXPRESSION_BLOCK_HEADER = "[Facial Expression Data]"

MOUTH_EMOJIS = {"closed": "😐", "open": "😮", "wide": "😲"}
EYE_EMOJIS = {"closed": "😑", "open": "👁️", "wide": "👁️‍🗨️"}
SMILE_EMOJIS = {"none": "😐", "slight": "🙂", "smile": "😊", "broad": "😄"}


def format_expression_block(metrics: ExpressionMetrics) -> str:
    """
    Render metrics as a fixed-format text block, two decimals per value.

    Example:
        [Facial Expression Data]
        - Mouth openness: 1.05
        - Eye openness: 0.98
        - Smile level: 0.40
        - Head pose: pitch 3.20, yaw -1.10, roll 0.45
    """
    pose = metrics.head_pose
    return "\n".join([
        EXPRESSION_BLOCK_HEADER,
        f"- Mouth openness: {metrics.mouth_openness:.2f}",
        f"- Eye openness: {metrics.eye_openness:.2f}",
        f"- Smile level: {metrics.smile_level:.2f}",
        f"- Head pose: pitch {pose.pitch:.2f}, yaw {pose.yaw:.2f}, roll {pose.roll:.2f}",
    ])


def enrich_message(message: str, metrics: Optional[ExpressionMetrics] = None) -> str:
    """Append the expression block to a chat message, separated by a blank line."""
    if metrics is None:
        return message
    return f"{message}\n\n{format_expression_block(metrics)}"


def mouth_level(mouth_openness: float) -> str:
    if mouth_openness < 0.2:
        return "closed"
    if mouth_openness < 0.5:
        return "open"
    return "wide"


def eye_level(eye_openness: float) -> str:
    if eye_openness < 0.3:
        return "closed"
    if eye_openness < 0.7:
        return "open"
    return "wide"


def smile_level_name(smile_level: float) -> str:
    if smile_level < 0.3:
        return "none"
    if smile_level < 0.6:
        return "slight"
    if smile_level < 0.85:
        return "smile"
    return "broad"


def expression_emojis(metrics: ExpressionMetrics) -> Dict[str, str]:
    """
    Map each metric to a display emoji.

    Returns:
        Dictionary with keys "mouth", "eye", "smile"
    """
    return {
        "mouth": MOUTH_EMOJIS[mouth_level(metrics.mouth_openness)],
        "eye": EYE_EMOJIS[eye_level(metrics.eye_openness)],
        "smile": SMILE_EMOJIS[smile_level_name(metrics.smile_level)],
    }
