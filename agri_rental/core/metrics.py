"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

rate_limit_exceeded = Counter(
    'rate_limit_exceeded_total',
    'Total rate limit exceeded events',
    ['role'],
    registry=registry
)

orders_created = Counter(
    'orders_created_total',
    'Orders created, by derived kind',
    ['kind'],
    registry=registry
)

order_transitions = Counter(
    'order_transitions_total',
    'Committed order status transitions',
    ['from_status', 'to_status'],
    registry=registry
)

leases_created = Counter(
    'leases_created_total',
    'Leases created from approved orders',
    registry=registry
)

operator_assignments = Counter(
    'operator_assignments_total',
    'Operator assignments on leases',
    ['role'],
    registry=registry
)

event_subscriber_failures = Counter(
    'event_subscriber_failures_total',
    'Domain event subscriber failures (suppressed)',
    ['subscriber', 'event'],
    registry=registry
)

webhook_deliveries = Counter(
    'webhook_deliveries_total',
    'Total webhook delivery attempts',
    ['status', 'retry_count'],
    registry=registry
)

webhook_duration = Histogram(
    'webhook_delivery_duration_seconds',
    'Webhook delivery duration in seconds',
    ['status'],
    registry=registry
)

audit_logs_created = Counter(
    'audit_logs_created_total',
    'Total audit logs created',
    ['entity_type', 'action'],
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)

db_connected = Gauge(
    'db_connected',
    'Database connection status (1=connected, 0=disconnected)',
    registry=registry
)


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    return generate_latest(registry).decode('utf-8')
