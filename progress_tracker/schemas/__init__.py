"""Pydantic schemas, re-exported for convenience."""

from progress_tracker.schemas.common import ErrorResponse, NamedRef  # noqa: F401
from progress_tracker.schemas.progress import (  # noqa: F401
    DailyProgressRead,
    DualMetrics,
    DualMetricsResponse,
    LessonProgress,
    LessonProgressResponse,
    ProgressIndicator,
    ProgressLogCreate,
    ProgressLogRead,
    TopicProgress,
    TopicProgressResponse,
)
from progress_tracker.schemas.assignment import (  # noqa: F401
    AssignmentCreate,
    AssignmentRead,
    AssignmentUpdate,
)
from progress_tracker.schemas.alert import (  # noqa: F401
    AlertRead,
    ThresholdRead,
    ThresholdUpdate,
)
