# sehat_rakshak/models/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    Hospital-owned rows carry a hospital_id column; there is no per-tenant schema.
    """

    pass
