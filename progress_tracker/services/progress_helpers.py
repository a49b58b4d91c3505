"""Colour coding for accuracy values."""

from progress_tracker.config import settings
from progress_tracker.schemas.progress import ProgressIndicator


def get_progress_color(accuracy: float | None, threshold: float) -> ProgressIndicator:
    """Green at or above threshold, yellow within ``ATTENTION_BAND`` below it, red otherwise."""
    if accuracy is None:
        return ProgressIndicator(color="red", status="No data")
    if accuracy >= threshold:
        return ProgressIndicator(color="green", status="On track")
    if accuracy >= threshold - settings.ATTENTION_BAND:
        return ProgressIndicator(color="yellow", status="Attention needed")
    return ProgressIndicator(color="red", status="Struggling")
