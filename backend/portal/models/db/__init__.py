"""SQLAlchemy ORM models."""

from portal.models.db.application import Application

__all__ = ["Application"]
