"""API middleware package."""

from src.sketch_review.api.middleware.cors import OpenCORSMiddleware
from src.sketch_review.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware", "OpenCORSMiddleware"]
