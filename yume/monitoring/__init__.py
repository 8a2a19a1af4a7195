"""
Monitoring package.
"""

from yume.monitoring.metrics import YumeMetrics, start_metrics_server

__all__ = ["YumeMetrics", "start_metrics_server"]
