from .course import CourseViewSet
from .journey import JourneyViewSet

__all__ = ["CourseViewSet", "JourneyViewSet"]
