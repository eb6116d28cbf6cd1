"""Root conftest — shared test configuration."""

import os

# Settings are cached on first use; pin them before any conxion import
os.environ.setdefault("JWT_SECRET", "conxion-test-secret-0123456789abcdef")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
