import time

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests",
    ["service", "method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["service", "method", "route"],
)
ORDERS_CREATED = Counter(
    "orders_created_total",
    "Orders placed, by resulting status",
    ["status"],
)
ORDER_TRANSITIONS = Counter(
    "order_status_transitions_total",
    "Order status changes",
    ["from_status", "to_status"],
)
RATINGS_WRITTEN = Counter(
    "product_ratings_written_total",
    "Product rating writes",
    ["action"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, service_name: str):
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        # route template keeps label cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", "unmatched")
        REQUEST_LATENCY.labels(self.service_name, request.method, path).observe(
            time.perf_counter() - start
        )
        REQUEST_COUNT.labels(self.service_name, request.method, path, str(response.status_code)).inc()
        return response


def metrics_endpoint():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
