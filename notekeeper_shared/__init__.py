"""
Shared utilities for the Notekeeper service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application scaffolding

Service logic should not live here. Do not import from service_* packages
into notekeeper_shared/.
"""
