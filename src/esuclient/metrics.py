"""Prometheus metrics definitions for the ESU client.

All metrics use the ``esu_`` prefix. Collectors are only created by
``init_metrics()``; until then the module-level references stay ``None``
and the ``record_*`` helpers do nothing, so applications that do not
enable metrics register nothing in the global registry.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Request counter  (labels: method, status)
# ---------------------------------------------------------------------------
requests_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_sent_total: Counter | None = None
bytes_received_total: Counter | None = None

# ---------------------------------------------------------------------------
# Transfer counter  (labels: direction, outcome)
# ---------------------------------------------------------------------------
transfers_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; only the first call registers collectors.
    """
    global _initialized
    global requests_total, bytes_sent_total, bytes_received_total, transfers_total

    if _initialized:
        return

    requests_total = Counter(
        "esu_requests_total",
        "Total ESU requests by method and response status",
        ["method", "status"],
    )

    bytes_sent_total = Counter(
        "esu_bytes_sent_total",
        "Total bytes sent in request bodies",
    )

    bytes_received_total = Counter(
        "esu_bytes_received_total",
        "Total bytes received in response bodies",
    )

    transfers_total = Counter(
        "esu_transfers_total",
        "Chunked transfers by direction and outcome",
        ["direction", "outcome"],
    )

    _initialized = True


def record_request(method: str, status: int | str, bytes_sent: int = 0) -> None:
    """Count one request and the body bytes it sent."""
    if requests_total is not None:
        requests_total.labels(method=method, status=str(status)).inc()
    if bytes_sent > 0 and bytes_sent_total is not None:
        bytes_sent_total.inc(bytes_sent)


def record_bytes_received(count: int) -> None:
    if count > 0 and bytes_received_total is not None:
        bytes_received_total.inc(count)


def record_transfer(direction: str, outcome: str) -> None:
    """Count a finished transfer; outcome is ``complete`` or ``error``."""
    if transfers_total is not None:
        transfers_total.labels(direction=direction, outcome=outcome).inc()
