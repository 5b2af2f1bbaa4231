"""Prometheus metric definitions for the CMaaS console."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# ── Application info ────────────────────────────────────────────────
app_info = Info("cmaas_console", "CMaaS console application metadata")

# ── HTTP request metrics ────────────────────────────────────────────
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method"],
)

# ── Upstream CMS calls ──────────────────────────────────────────────
cms_requests_total = Counter(
    "cms_requests_total",
    "Total requests sent to the CMS REST backend",
    ["method", "endpoint", "status"],
)

cms_request_duration_seconds = Histogram(
    "cms_request_duration_seconds",
    "CMS REST backend call duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Engine ──────────────────────────────────────────────────────────
entry_toggle_rollbacks_total = Counter(
    "entry_toggle_rollbacks_total",
    "Optimistic visibility toggles rolled back after a backend failure",
)

schema_validation_failures_total = Counter(
    "schema_validation_failures_total",
    "Schema authoring submissions rejected by validation",
    ["rule"],
)
