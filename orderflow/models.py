"""
Order data models exchanged over HTTP and stored in the page cache.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Order workflow status."""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


class Order(BaseModel):
    """A stored order."""
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    owner_id: Optional[int] = None
    order_name: str
    order_type: str
    quantity: int
    note: str = ""
    status: OrderStatus = OrderStatus.NEW
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    updated_at: Optional[datetime] = None


class OrderCreate(BaseModel):
    """Payload for creating an order. Status is always set to the default."""
    order_name: str = Field(min_length=1)
    order_type: str = Field(min_length=1)
    quantity: int = Field(ge=0)
    note: str = ""
    start_date: Optional[date] = None
    due_date: Optional[date] = None


class OrderUpdate(OrderCreate):
    """Payload for a full order update."""
    status: OrderStatus


class OrderStatusUpdate(BaseModel):
    """Payload for a status-only update."""
    status: OrderStatus


class OrderPage(BaseModel):
    """One page of orders, newest first."""
    page: int
    data: List[Order] = []


class MutationResult(BaseModel):
    """
    Outcome of a committed mutation.

    cache_invalidated is False when the store change committed but the
    cached pages could not be cleared, so list reads may be stale until
    the next successful mutation or TTL expiry.
    """
    order: Optional[Order] = None
    cache_invalidated: bool = True
