"""Declarative base shared by all ORM models.

Tables are created by the SQL scripts in ``kitchen/migrations``, not by
``metadata.create_all``; the models only map onto them.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    __allow_unmapped__ = True
