"""
API Middleware Module

Request correlation and the mapping of domain errors to JSON responses.
"""

from .correlation import CorrelationIdMiddleware
from .error_handlers import register_error_handlers

__all__ = ["CorrelationIdMiddleware", "register_error_handlers"]
