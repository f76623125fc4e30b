"""CloudWatch metrics for outbound Cal.com calls.

Every booking attempt records a request count (tagged success/failure),
its latency and, on failure, an error count keyed by error type.

Data points are buffered in memory.  The server lifespan passes
``Settings.metrics_enabled`` (``METRICS_ENABLED``) to :meth:`MetricsClient.start`;
when it is true a daemon thread pushes them to CloudWatch every ``FLUSH_INTERVAL_SECONDS`` and the
server lifespan flushes whatever is left at shutdown.  Otherwise they are
logged at DEBUG and dropped on flush.

>>> from retell_calcom.services.metrics import metrics
>>> metrics.record_success("calcom", "POST /bookings", latency_ms=231.0)
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "RetellCalcom"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # PutMetricData limit


def _datum(
    name: str,
    value: float,
    unit: str,
    dimensions: dict[str, str],
    timestamp: datetime,
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Buffered CloudWatch publisher for external API calls."""

    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None
        self._flush_thread: threading.Thread | None = None

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Recording ─────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        now = datetime.now(UTC)
        self._append(
            _datum(
                "Calls/RequestCount", 1, "Count",
                {"Service": service, "Status": "success"}, now,
            ),
            _datum(
                "Calls/Latency", latency_ms, "Milliseconds",
                {"Service": service, "Operation": operation}, now,
            ),
        )
        logger.debug("Metric: %s %s ok in %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        now = datetime.now(UTC)
        points = [
            _datum(
                "Calls/RequestCount", 1, "Count",
                {"Service": service, "Status": "failure"}, now,
            ),
            _datum(
                "Calls/ErrorCount", 1, "Count",
                {"Service": service, "ErrorType": error_type}, now,
            ),
        ]
        if latency_ms > 0:
            points.append(
                _datum(
                    "Calls/Latency", latency_ms, "Milliseconds",
                    {"Service": service, "Operation": operation}, now,
                )
            )
        self._append(*points)
        logger.debug(
            "Metric: %s %s failed (%s) in %.1fms",
            service, operation, error_type, latency_ms,
        )

    # ── Publishing ────────────────────────────────────────────────────

    def flush(self) -> int:
        """Push buffered data points to CloudWatch.  Returns the number sent."""
        with self._lock:
            batch, self._buffer = self._buffer, []

        if not batch:
            return 0
        if not self.enabled:
            logger.debug("Dropping %d metric data points (metrics disabled)", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metric data points to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def start(self, enabled: bool) -> None:
        """Apply the configured switch and start the periodic flush thread.

        No thread is started when *enabled* is false or one is already running.
        """
        self.enabled = enabled
        if not enabled or self._flush_thread is not None:
            return

        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                self.flush()

        self._flush_thread = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        self._flush_thread.start()
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)

    def _append(self, *points: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.extend(points)


metrics = MetricsClient()
