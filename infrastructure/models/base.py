"""
Declarative base for ORM models (SQLAlchemy 2.0 style)
"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Metadata used for create_all / migrations
metadata = Base.metadata
