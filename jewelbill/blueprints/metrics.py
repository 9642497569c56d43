"""
Prometheus metrics.

HTTP request instrumentation plus billing metrics, exposed at /metrics.
The endpoint is unauthenticated; restrict it to the monitoring network.
"""
import os
import time

from flask import Blueprint, Response, g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram,
    generate_latest, multiprocess
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are merged on scrape
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    multiprocess_mode='livesum'
)

bills_created_total = Counter(
    'bills_created_total',
    'Bills persisted',
    ['currency']
)

invoice_pdf_render_seconds = Histogram(
    'invoice_pdf_render_seconds',
    'Time spent rendering invoice PDFs',
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
)


def setup_metrics_instrumentation(app):
    """Register request hooks that record HTTP metrics."""

    @app.before_request
    def before_request_metrics():
        g._prometheus_metrics_start_time = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        try:
            if hasattr(g, '_prometheus_metrics_start_time'):
                duration = time.time() - g._prometheus_metrics_start_time
                endpoint = request.endpoint or 'unknown'

                http_request_duration_seconds.labels(
                    method=request.method,
                    endpoint=endpoint
                ).observe(duration)
                http_requests_total.labels(
                    method=request.method,
                    endpoint=endpoint,
                    http_status=response.status_code
                ).inc()
                http_requests_in_flight.dec()
        except Exception as e:
            # Metrics must never break a response
            app.logger.warning(f"Failed to record metrics: {e}")

        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus exposition (text format)."""
    if MULTIPROCESS_MODE:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        data = generate_latest(registry)
    else:
        data = generate_latest(REGISTRY)
    return Response(data, mimetype=CONTENT_TYPE_LATEST)
