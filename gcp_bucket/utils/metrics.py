"""
Prometheus metrics for upload monitoring.

Tracks upload success/failure rates, bytes and chunks written, variant
generation, and GCS API errors.

Metrics Provided:
    - upload_requests_total: Counter for object uploads by status
    - upload_bytes_total: Counter for uploaded bytes
    - upload_chunks_total: Counter for chunk writes
    - upload_duration_seconds: Histogram for per-object upload latency
    - variants_generated_total: Counter for derived image variants by format
    - gcs_api_errors_total: Counter for backing-store errors
    - active_requests: Gauge for in-flight operations

Usage:
    from gcp_bucket.utils.metrics import get_metrics

    metrics = get_metrics()
    with metrics.track_upload():
        ...
    metrics.record_upload_success(bytes_uploaded=2048, chunks=2)

    # Expose on :9090/metrics
    start_metrics_server(port=9090)
"""

import os
from contextlib import contextmanager, nullcontext
from typing import ContextManager, Iterator, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

from gcp_bucket import __version__
from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)


class PrometheusMetrics:
    """
    Centralized Prometheus metrics for the bucket helper.

    Example:
        >>> metrics = PrometheusMetrics(registry=CollectorRegistry())
        >>> metrics.record_upload_success(bytes_uploaded=1024, chunks=1)
    """

    def __init__(self, enabled: bool = True, registry: Optional[CollectorRegistry] = None) -> None:
        """
        Initialize metrics collectors.

        Args:
            enabled: Whether metrics collection is enabled
            registry: Prometheus registry (uses the default registry if None)
        """
        self.enabled = enabled
        self.registry = registry if registry is not None else REGISTRY

        if not self.enabled:
            logger.warning("Metrics collection disabled")
            return

        # ====================================================================
        # Upload Operations
        # ====================================================================

        self.upload_requests = Counter(
            name="upload_requests_total",
            documentation="Total number of object uploads",
            labelnames=["status"],  # success, failure
            registry=self.registry,
        )

        self.upload_bytes = Counter(
            name="upload_bytes_total",
            documentation="Total bytes uploaded to the bucket",
            registry=self.registry,
        )

        self.upload_chunks = Counter(
            name="upload_chunks_total",
            documentation="Total chunk writes issued",
            registry=self.registry,
        )

        self.upload_duration = Histogram(
            name="upload_duration_seconds",
            documentation="Time spent uploading one object",
            buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry,
        )

        # ====================================================================
        # Variant Generation
        # ====================================================================

        self.variants_generated = Counter(
            name="variants_generated_total",
            documentation="Total image variants derived",
            labelnames=["format"],  # target extension, or "source"
            registry=self.registry,
        )

        # ====================================================================
        # Backing Store
        # ====================================================================

        self.gcs_api_errors = Counter(
            name="gcs_api_errors_total",
            documentation="Total backing-store errors",
            labelnames=["operation", "error_type"],  # operation: upload/download/delete/exists
            registry=self.registry,
        )

        self.active_requests = Gauge(
            name="active_requests",
            documentation="Number of operations currently in flight",
            labelnames=["operation"],
            registry=self.registry,
        )

        self.app_info = Info(
            name="application",
            documentation="Application metadata",
            registry=self.registry,
        )
        self.app_info.info({"version": __version__, "name": "gcp-bucket-helper"})

        logger.debug("PrometheusMetrics initialized")

    def track_upload(self) -> ContextManager:
        """
        Context manager timing one object upload.

        Example:
            >>> with metrics.track_upload():
            ...     await uploader.upload(physical_file)
        """
        if not self.enabled:
            return nullcontext()
        return self.upload_duration.time()

    @contextmanager
    def track_active(self, operation: str) -> Iterator[None]:
        """Count an operation as in flight for the duration of the block."""
        if not self.enabled:
            yield
            return
        gauge = self.active_requests.labels(operation=operation)
        gauge.inc()
        try:
            yield
        finally:
            gauge.dec()

    def record_upload_success(self, bytes_uploaded: int, chunks: int = 0) -> None:
        if not self.enabled:
            return
        self.upload_requests.labels(status="success").inc()
        self.upload_bytes.inc(bytes_uploaded)
        if chunks > 0:
            self.upload_chunks.inc(chunks)

    def record_upload_failure(self) -> None:
        if not self.enabled:
            return
        self.upload_requests.labels(status="failure").inc()

    def record_variant(self, file_format: Optional[str]) -> None:
        """
        Record one derived image variant.

        Args:
            file_format: Target extension, None when the source format is kept
        """
        if not self.enabled:
            return
        self.variants_generated.labels(format=file_format or "source").inc()

    def record_gcs_error(self, operation: str, error_type: str) -> None:
        """
        Record backing-store error.

        Args:
            operation: Store operation (upload, download, delete, exists)
            error_type: Exception class name
        """
        if not self.enabled:
            return
        self.gcs_api_errors.labels(operation=operation, error_type=error_type).inc()


# ============================================================================
# Global Metrics Instance
# ============================================================================

_metrics_instance: Optional[PrometheusMetrics] = None


def get_metrics() -> PrometheusMetrics:
    """
    Get global metrics instance (singleton).

    Metrics are disabled when METRICS_ENABLED=false.
    """
    global _metrics_instance

    if _metrics_instance is None:
        enabled = os.getenv("METRICS_ENABLED", "true").lower() == "true"
        _metrics_instance = PrometheusMetrics(enabled=enabled)

    return _metrics_instance


def start_metrics_server(port: int = 9090, addr: str = "0.0.0.0") -> None:
    """
    Start the Prometheus metrics HTTP server in a background thread.

    Args:
        port: Port to listen on (default: 9090)
        addr: Address to bind to (default: all interfaces)
    """
    logger.info(f"Starting Prometheus metrics server on {addr}:{port}")
    start_http_server(port=port, addr=addr)
    logger.info(f"Metrics server running at http://{addr}:{port}/metrics")
