from .course import (
    CourseDetailSerializer,
    CourseModuleSerializer,
    CourseSerializer,
    CourseSummarySerializer,
    LessonSerializer,
)
from .journey import (
    JourneyCourseAddSerializer,
    JourneyCourseSerializer,
    JourneySerializer,
)

__all__ = [
    "CourseSerializer",
    "CourseDetailSerializer",
    "CourseSummarySerializer",
    "CourseModuleSerializer",
    "LessonSerializer",
    "JourneySerializer",
    "JourneyCourseSerializer",
    "JourneyCourseAddSerializer",
]
