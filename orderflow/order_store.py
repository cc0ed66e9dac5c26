"""
Relational store adapter for the orders table.

Every method opens its own session, so calls are independent and safe to
issue from concurrent request handlers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderflow.database import get_db_context
from orderflow.db_models import Order as OrderRow
from orderflow.models import Order, OrderStatus

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The backing store rejected or failed an operation."""
    pass


class OrderNotFoundError(StoreError):
    """No order row matched the given identifier."""
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OrderStore:
    """
    CRUD over the orders table.

    Returns pydantic Order snapshots detached from the session.
    Raises OrderNotFoundError when a keyed operation matches no row and
    StoreError for any other database failure.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        """
        Initialize store.

        Args:
            session_factory: sessionmaker to use; defaults to the application's
                             SessionLocal
        """
        self.session_factory = session_factory

    def _run(self, operation: str, fn: Callable[[Session], Any]) -> Any:
        try:
            with get_db_context(self.session_factory) as db:
                return fn(db)
        except OrderNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Order store %s failed: %s", operation, e)
            raise StoreError(f"{operation} failed") from e

    def insert(self, owner_id: Optional[int], fields: Dict[str, Any]) -> Order:
        """
        Insert a new order with the default status.

        Args:
            owner_id: Identifier of the owning user
            fields: Order columns except order_id and status
        """
        def _insert(db: Session) -> Order:
            row = OrderRow(
                owner_id=owner_id,
                status=OrderStatus.NEW.value,
                updated_at=_utcnow(),
                **fields
            )
            db.add(row)
            db.flush()
            return Order.model_validate(row)

        return self._run("insert", _insert)

    def update(self, order_id: int, patch: Dict[str, Any]) -> Order:
        """
        Apply a column patch to one order and stamp updated_at.

        Args:
            order_id: Target order
            patch: Column name to new value
        """
        def _update(db: Session) -> Order:
            row = db.get(OrderRow, order_id)
            if row is None:
                raise OrderNotFoundError(order_id)
            for column, value in patch.items():
                setattr(row, column, value)
            row.updated_at = _utcnow()
            db.flush()
            return Order.model_validate(row)

        return self._run("update", _update)

    def update_status(self, order_id: int, status: OrderStatus) -> Order:
        return self.update(order_id, {"status": OrderStatus(status).value})

    def delete(self, order_id: int) -> None:
        def _delete(db: Session) -> None:
            row = db.get(OrderRow, order_id)
            if row is None:
                raise OrderNotFoundError(order_id)
            db.delete(row)

        self._run("delete", _delete)

    def select_range(self, offset: int, limit: int) -> List[Order]:
        """
        Select a contiguous window of orders, newest (highest id) first.

        Args:
            offset: Number of rows to skip
            limit: Maximum number of rows to return
        """
        def _select(db: Session) -> List[Order]:
            rows = (
                db.query(OrderRow)
                .order_by(OrderRow.order_id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [Order.model_validate(row) for row in rows]

        return self._run("select_range", _select)

    def select_one(self, order_id: int) -> Order:
        def _select(db: Session) -> Order:
            row = db.get(OrderRow, order_id)
            if row is None:
                raise OrderNotFoundError(order_id)
            return Order.model_validate(row)

        return self._run("select_one", _select)
