"""
Infrastructure Package
======================

Adapters for the services the marketplace talks to but does not own.

Modules:
    - events: domain event bus (Redis pub/sub in production, in-memory for tests)
    - observability: OpenTelemetry tracing set-up
"""
