"""
API Middleware.
"""

from .auth import api_key_auth
from .metrics import ConversationMetrics, MetricsMiddleware, metrics_endpoint

__all__ = ["api_key_auth", "ConversationMetrics", "MetricsMiddleware", "metrics_endpoint"]
