"""Pydantic Schemas — request validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (user input)
    - Request bodies are camelCase on the wire, snake_case in Python

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence (ADR: DDD boundary)
    - Fields a route reports as "required" in its own wording stay Optional here,
      so the route can answer with that message instead of a generic 400
"""
