"""Database-agnostic column types.

Models run against PostgreSQL in production and SQLite in the test suite.
"""
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# JSONB is PostgreSQL-only; JSON works on both backends.
JSONType = JSON

UUIDType = PG_UUID
