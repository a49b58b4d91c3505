"""API route package; imports all routers for main.py."""

from progress_tracker.api.health import router as health_router  # noqa: F401
from progress_tracker.api.progress import router as progress_router  # noqa: F401
from progress_tracker.api.student import router as student_router  # noqa: F401
from progress_tracker.api.assignments import router as assignments_router  # noqa: F401
from progress_tracker.api.alerts import router as alerts_router  # noqa: F401
from progress_tracker.api.preferences import router as preferences_router  # noqa: F401
