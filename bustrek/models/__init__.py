"""
models/__init__.py - imports all ORM models so Alembic's env.py
sees them via Base.metadata when generating migrations.
"""
from bustrek.models.user import UserORM
from bustrek.models.booking import BookingORM

__all__ = ["UserORM", "BookingORM"]
