"""
Rule-based bar path feedback.

The analyzer returns one average horizontal bar offset per lift phase, in
the order of ``PHASE_NAMES``. Each value is classified against
``DEVIATION_THRESHOLD``; positive offsets mean the bar drifted forward.
"""

import logging
from typing import Sequence

from .config import DEVIATION_THRESHOLD, PHASE_NAMES
from .state import PhaseFeedback

logger = logging.getLogger(__name__)


def classify_offset(value: float) -> str:
    """Return ``"good"``, ``"forward"`` or ``"back"`` for one phase offset."""
    if abs(value) < DEVIATION_THRESHOLD:
        return "good"
    if value > 0:
        return "forward"
    return "back"


_MESSAGES: dict[str, str] = {
    "good": "Bar in good position during {phase}.",
    "forward": "Bar is too far forward during {phase}.",
    "back": "Bar is too far back during {phase}.",
}


def generate_feedback(phase_signal: Sequence[float]) -> list[PhaseFeedback]:
    """Turn the per-phase offset signal into one message per phase.

    Args:
        phase_signal: Exactly ``len(PHASE_NAMES)`` offsets, analyzer order.

    Returns:
        ``PhaseFeedback`` items in ``PHASE_NAMES`` order.

    Raises:
        ValueError: If the signal length does not match the phase count.
    """
    if len(phase_signal) != len(PHASE_NAMES):
        raise ValueError(
            f"Expected {len(PHASE_NAMES)} phase values, got {len(phase_signal)}."
        )

    feedback = [
        PhaseFeedback(
            phase=phase,
            message=_MESSAGES[classify_offset(value)].format(phase=phase),
        )
        for phase, value in zip(PHASE_NAMES, phase_signal)
    ]
    off_path = sum(1 for value in phase_signal if classify_offset(value) != "good")
    logger.info("Generated feedback: %d/%d phases off path.", off_path, len(feedback))
    return feedback
