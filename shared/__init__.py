"""
Shared utilities for the Stock Opname sync layer.

This package aggregates common building blocks consumed by the backend
service and the field-device client:

- config: Service and client configuration via pydantic-settings
- logging: Structured logging with request/operator correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and failure envelopes
- base_service: FastAPI service skeleton (health, metrics, timing)

- test_helpers: Test data factories and stubs (imports the service store)

Apart from test_helpers, do not import from service_* or client_* packages
into shared/.
"""
