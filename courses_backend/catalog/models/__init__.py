# catalog/models/__init__.py

"""
CATALOG MODELS PACKAGE EXPORTS
"""

from .course import Course, CourseModule, Lesson
from .journey import Journey, JourneyCourse

__all__ = [
    "Course",
    "CourseModule",
    "Lesson",
    "Journey",
    "JourneyCourse",
]
