"""SQLAlchemy declarative base shared by all Whisp models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all Whisp tables."""
