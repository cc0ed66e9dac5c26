"""
Database models for orderflow.
"""

from sqlalchemy import Column, String, Integer, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class User(Base):
    """
    Minimal users table. Orders reference their owner here; user management
    itself lives in a separate service.
    """
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)


class Order(Base):
    """
    A work order. Identifiers are assigned by the database.
    """
    __tablename__ = "orders"

    order_id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    order_name = Column(String, nullable=False)
    order_type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    note = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="new")
    start_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    updated_at = Column(DateTime, nullable=True)


class Cache(Base):
    """
    Cache model for storing serialized responses with an absolute expiry.
    """
    __tablename__ = "cache"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(Integer, nullable=False)
