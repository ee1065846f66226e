"""HTTP routers mounted under /api/v1."""

API_PREFIX = "/api/v1"
HEALTH_PATHS = frozenset({f"{API_PREFIX}/health/live", f"{API_PREFIX}/health/ready"})
