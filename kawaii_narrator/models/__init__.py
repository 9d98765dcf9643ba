"""Avatar state and expression animation."""

from .avatar import Avatar
from .expression import ExpressionEngine, ExpressionSink, ExpressionState, ease_out_cubic

__all__ = ["Avatar", "ExpressionEngine", "ExpressionSink", "ExpressionState", "ease_out_cubic"]
