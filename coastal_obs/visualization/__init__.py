"""Terminal rendering helpers."""

from .coverage import print_completeness_chart, render_completeness_chart

__all__ = ["print_completeness_chart", "render_completeness_chart"]
