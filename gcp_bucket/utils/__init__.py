"""
Utility modules for the GCP bucket helper.

- logging: Structured logging with entry/exit decorators
- config: Environment configuration
- config_loader: YAML resize presets
- metrics: Prometheus instrumentation
"""

from gcp_bucket.utils.logging import get_logger, log_function_call

__all__ = ["get_logger", "log_function_call"]
