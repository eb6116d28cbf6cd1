"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure imports only error types and protocols from core/
    - Driver failures are mapped to domain errors before leaving this layer

Design Decisions:
    - Thin wrappers over SQLAlchemy; callers never see driver exceptions
"""
