"""
Shared utilities for the Venue Portal.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorator for startup I/O
- circuit_breaker: Protection around credential store calls

Do not import from service_* packages into shared/.
"""
