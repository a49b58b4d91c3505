"""User preferences and accuracy-threshold resolution."""

import logging
import math
import uuid

from progress_tracker.config import settings
from progress_tracker.core.errors import InvalidInput, StorageFailure
from progress_tracker.services.store import ProgressStore

logger = logging.getLogger(__name__)

ACCURACY_THRESHOLD_KEY = "accuracy_threshold"


def get_preference(
    store: ProgressStore, user_id: uuid.UUID, key: str, default: str | None = None
) -> str | None:
    """Stored value, or *default* when missing or the store is unavailable."""
    try:
        value = store.get_preference(user_id, key)
    except StorageFailure as e:
        logger.warning("Preference read failed for %s/%s (using default): %s", user_id, key, e)
        return default
    return value if value is not None else default


def set_preference(store: ProgressStore, user_id: uuid.UUID, key: str, value: str) -> None:
    store.set_preference(user_id, key, value)


def delete_preference(store: ProgressStore, user_id: uuid.UUID, key: str) -> None:
    """Remove a preference; deleting a missing key is a no-op."""
    store.delete_preference(user_id, key)


def _valid_threshold(value: float) -> bool:
    return math.isfinite(value) and 0 <= value <= 100


def get_accuracy_threshold(
    store: ProgressStore,
    user_id: uuid.UUID,
    default: float | None = None,
) -> float:
    """Stored ``accuracy_threshold``, falling back when missing, non-numeric or out of range."""
    if default is None:
        default = settings.DEFAULT_ACCURACY_THRESHOLD
    raw = get_preference(store, user_id, ACCURACY_THRESHOLD_KEY)
    if raw is None:
        return default
    try:
        threshold = float(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric threshold %r for %s", raw, user_id)
        return default
    return threshold if _valid_threshold(threshold) else default


def set_accuracy_threshold(store: ProgressStore, user_id: uuid.UUID, threshold: float) -> float:
    if not _valid_threshold(threshold):
        raise InvalidInput("Threshold must be between 0 and 100")
    set_preference(store, user_id, ACCURACY_THRESHOLD_KEY, repr(float(threshold)))
    return float(threshold)


def resolve_accuracy_threshold(
    store: ProgressStore,
    user_id: uuid.UUID,
    override: float | None = None,
) -> float:
    """Threshold for one request: a validated override, else the stored preference.

    The same value must drive both the alert check and the colour indicator.
    """
    if override is not None:
        if not _valid_threshold(override):
            raise InvalidInput("Threshold must be between 0 and 100")
        return float(override)
    return get_accuracy_threshold(store, user_id)
