"""Multi-tenant support widget backend: knowledge search, visitor sessions and leads."""

__version__ = "1.0.0"
