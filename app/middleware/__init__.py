"""
Middleware components for request processing.

- Request context (request ID bound into the log context)
- CORS for the staff dashboard
"""

from app.middleware.cors import CORSMiddleware
from app.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
]
