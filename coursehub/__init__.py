"""CourseHub feature flag targeting service."""

__version__ = "1.0.0"
