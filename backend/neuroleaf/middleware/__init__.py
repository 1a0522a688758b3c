"""
Neuroleaf Middleware Package

Contains:
- request_timing: response-time header and slow request logging
"""

from neuroleaf.middleware.request_timing import RequestTimingMiddleware

__all__ = ["RequestTimingMiddleware"]
