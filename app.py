from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from typing import Optional
import logging
import os
from dotenv import load_dotenv
from contextlib import asynccontextmanager
from orderflow.auth import AuthError, Identity, TokenVerifier
from orderflow.models import (
    Order,
    OrderCreate,
    OrderStatus,
    OrderStatusUpdate,
    OrderUpdate,
)
from orderflow.order_service import DEFAULT_TTL, OrderService
from orderflow.order_store import OrderNotFoundError, OrderStore, StoreError

if os.path.exists('.dev.env'):
    load_dotenv('.dev.env')

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("orderflow.app")

cache_backend = os.getenv("CACHE_BACKEND", "postgres")
cache_ttl = int(os.getenv("CACHE_TTL_SECONDS", str(DEFAULT_TTL)))
redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")

token_verifier = TokenVerifier(os.environ["JWT_SECRET"])


def _build_cache():
    if cache_backend == "redis":
        from orderflow.redis_cache import RedisCache
        return RedisCache(redis_url)
    if cache_backend == "postgres":
        from orderflow.postgres_cache import PostgresCache
        return PostgresCache()
    raise ValueError(f"Unknown CACHE_BACKEND: {cache_backend}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler - runs on startup and shutdown."""
    # Startup: create tables and wire the order service
    from orderflow.database import init_db
    init_db()

    cache = _build_cache()
    if hasattr(cache, "clear_expired"):
        cache.clear_expired()
    app.state.order_service = OrderService(OrderStore(), cache, ttl=cache_ttl)
    logger.info("Order service ready (cache backend: %s, ttl: %ss)", cache_backend, cache_ttl)

    yield

    if hasattr(cache, "close"):
        cache.close()


app = FastAPI(
    title="orderflow",
    description="Order management API with cached order listings",
    version="0.1.0",
    lifespan=lifespan
)


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_identity(authorization: Optional[str] = Header(None)) -> Identity:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    try:
        return token_verifier.verify_header(authorization)
    except AuthError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def _store_failure(message: str, e: StoreError) -> HTTPException:
    logger.exception("%s: %s", message, e)
    return HTTPException(status_code=500, detail=message)


@app.get("/")
def read_root():
    return {
        "message": "orderflow API",
        "docs": "/docs",
        "endpoints": {
            "orders": "/orders?page={page}",
            "order": "/orders/{order_id}",
            "order_status": "/orders/{order_id}/status",
            "statuses": "/orders/statuses",
        }
    }


@app.get("/orders/statuses")
def list_order_statuses() -> list:
    """List the statuses an order can take."""
    return [status.value for status in OrderStatus]


@app.get("/orders")
def list_orders(
    page: Optional[str] = Query(None, description="1-based page number"),
    service: OrderService = Depends(get_order_service)
) -> dict:
    """
    List orders newest first, 20 per page.

    Malformed page values are treated as page 1. Pages are served from the
    cache until the next order mutation.
    """
    try:
        return service.list_orders(page)
    except StoreError as e:
        raise _store_failure("Failed to fetch orders", e)


@app.post("/orders", status_code=201)
def create_order(
    payload: OrderCreate,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service)
) -> dict:
    """Create an order owned by the caller, with status "new"."""
    try:
        result = service.create_order(identity.user_id, payload)
    except StoreError as e:
        raise _store_failure("Failed to create order", e)

    return {
        "message": "Order created",
        "order": result.order.model_dump(mode="json"),
        "cache_invalidated": result.cache_invalidated,
    }


@app.get("/orders/{order_id}")
def get_order(
    order_id: int,
    service: OrderService = Depends(get_order_service)
) -> Order:
    """
    Get one order. Not cached.

    Raises:
        HTTPException: 404 if the order does not exist
    """
    try:
        return service.get_order(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except StoreError as e:
        raise _store_failure("Failed to fetch order", e)


@app.put("/orders/{order_id}")
def update_order(
    order_id: int,
    payload: OrderUpdate,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service)
) -> dict:
    """Replace every editable field of an order."""
    try:
        result = service.update_order(order_id, identity.user_id, payload)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except StoreError as e:
        raise _store_failure("Failed to update order", e)

    return {
        "message": "Order updated",
        "order": result.order.model_dump(mode="json"),
        "cache_invalidated": result.cache_invalidated,
    }


@app.patch("/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service)
) -> dict:
    """Change only the status of an order."""
    try:
        result = service.update_order_status(order_id, payload.status)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except StoreError as e:
        raise _store_failure("Failed to update order status", e)

    return {
        "message": "Order status updated",
        "order": result.order.model_dump(mode="json"),
        "cache_invalidated": result.cache_invalidated,
    }


@app.delete("/orders/{order_id}")
def delete_order(
    order_id: int,
    identity: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service)
) -> dict:
    """Delete an order permanently."""
    try:
        result = service.delete_order(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except StoreError as e:
        raise _store_failure("Failed to delete order", e)

    return {
        "message": "Order deleted",
        "cache_invalidated": result.cache_invalidated,
    }
