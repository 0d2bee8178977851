import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from shopfinity.backend.catalog import filter_products
from shopfinity.backend.models import OrderRequest, OrderUpdate, PaymentRequest, StockUpdate
from shopfinity.broker.service import MessageService
from shopfinity.common.cache import RedisCache
from shopfinity.common.ids import new_order_id, new_payment_id

logger = logging.getLogger(__name__)

router = APIRouter()


def get_messaging(request: Request) -> MessageService:
    return request.app.state.messaging


def get_cache(request: Request) -> RedisCache:
    return request.app.state.cache


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _find(store: dict, key: str, what: str) -> dict:
    item = store.get(key)
    if item is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return item


# -- health -----------------------------------------------------------------

@router.get("/health")
def health(request: Request) -> dict:
    # Liveness only; broker and cache state live under /health/dependencies.
    return {
        "status": "OK",
        "timestamp": _now(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }


@router.get("/health/dependencies")
def dependencies(
    messaging: MessageService = Depends(get_messaging),
    cache: RedisCache = Depends(get_cache),
) -> dict:
    return {
        "rabbitmq": messaging.health(),
        "redis": {"status": "healthy" if cache.is_connected else "unavailable", "isConnected": cache.is_connected},
    }


# -- products ---------------------------------------------------------------

@router.get("/api/products")
async def list_products(
    request: Request,
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort: Optional[str] = None,
    cache: RedisCache = Depends(get_cache),
) -> dict:
    cache_key = category.lower() if category else "all"
    products = await cache.get_cached_products(cache_key)
    if products is None:
        products = [
            p for p in request.app.state.products.values()
            if not category or category.lower() in p["category"].lower()
        ]
        await cache.cache_products(products, cache_key)

    products = filter_products(products, search, min_price, max_price, sort)
    return {"success": True, "products": products, "total": len(products)}


@router.get("/api/products/{product_id}")
def get_product(product_id: str, request: Request) -> dict:
    return {"success": True, "product": _find(request.app.state.products, product_id, "Product")}


@router.patch("/api/products/{product_id}/stock")
async def update_stock(
    product_id: str,
    payload: StockUpdate,
    request: Request,
    messaging: MessageService = Depends(get_messaging),
    cache: RedisCache = Depends(get_cache),
) -> dict:
    product = _find(request.app.state.products, product_id, "Product")
    product["stock_count"] = payload.stock_count
    product["in_stock"] = payload.stock_count > 0
    product["updated_at"] = _now()

    await cache.delete("products:all")
    await cache.delete(f"products:{product['category']}")
    published = await messaging.events.inventory_updated(product_id, payload.stock_count)
    return {"success": True, "product": product, "event_published": published}


# -- orders -----------------------------------------------------------------

@router.get("/api/orders")
def list_orders(request: Request, user_id: Optional[str] = None) -> dict:
    orders = list(request.app.state.orders.values())
    if user_id:
        orders = [o for o in orders if o["user_id"] == user_id]
    return {"success": True, "orders": orders}


@router.get("/api/orders/{order_id}")
def get_order(order_id: str, request: Request) -> dict:
    return {"success": True, "order": _find(request.app.state.orders, order_id, "Order")}


@router.post("/api/orders", status_code=201)
async def create_order(
    payload: OrderRequest,
    request: Request,
    messaging: MessageService = Depends(get_messaging),
) -> dict:
    order_id = new_order_id()
    items = [item.model_dump() for item in payload.items]
    total = payload.total if payload.total is not None else round(sum(i["price"] * i["quantity"] for i in items), 2)
    created_at = _now()
    order = {
        "id": order_id,
        "user_id": payload.user_id,
        "items": items,
        "total": total,
        "shipping_address": payload.shipping_address,
        "status": "pending",
        "payment_status": "pending",
        "created_at": created_at,
        "updated_at": created_at,
    }
    request.app.state.orders[order_id] = order

    # The order stands even if the broker is down; the event is best effort.
    published = await messaging.events.order_created(order_id, payload.user_id, total, items)
    if payload.email:
        await messaging.events.email_notification(
            to=payload.email,
            subject=f"Order {order_id} received",
            template="order-confirmation",
            data={"orderId": order_id, "total": total},
        )
    if not published:
        logger.warning("Order %s created without ORDER_CREATED event", order_id)
    return {"success": True, "order": order, "event_published": published}


@router.put("/api/orders/{order_id}")
async def update_order(
    order_id: str,
    payload: OrderUpdate,
    request: Request,
    messaging: MessageService = Depends(get_messaging),
) -> dict:
    order = _find(request.app.state.orders, order_id, "Order")
    order.update(payload.model_dump(exclude_none=True))
    order["updated_at"] = _now()
    published = await messaging.events.order_updated(order_id, order["status"], order["updated_at"])
    return {"success": True, "order": order, "event_published": published}


@router.delete("/api/orders/{order_id}")
async def cancel_order(
    order_id: str,
    request: Request,
    reason: str = "",
    messaging: MessageService = Depends(get_messaging),
) -> dict:
    order = _find(request.app.state.orders, order_id, "Order")
    order["status"] = "cancelled"
    order["updated_at"] = _now()
    published = await messaging.events.order_cancelled(order_id, reason)
    return {
        "success": True,
        "message": "Order cancelled successfully",
        "order": order,
        "event_published": published,
    }


# -- payments ---------------------------------------------------------------

@router.post("/api/payments/process")
async def process_payment(
    payload: PaymentRequest,
    request: Request,
    messaging: MessageService = Depends(get_messaging),
) -> dict:
    # Simulated gateway round trip; every payment succeeds.
    await asyncio.sleep(request.app.state.settings.payment_delay_s)
    payment = {
        "id": new_payment_id(),
        "order_id": payload.order_id,
        "amount": payload.amount,
        "currency": payload.currency,
        "status": "succeeded",
        "payment_method": payload.payment_method,
        "created_at": _now(),
    }
    order = request.app.state.orders.get(payload.order_id)
    if order is not None:
        order["payment_status"] = "paid"
        order["updated_at"] = payment["created_at"]

    published = await messaging.events.payment_processed(payload.order_id, payload.amount, payload.payment_method)
    return {"success": True, "payment": payment, "event_published": published}


# -- admin ------------------------------------------------------------------

@router.get("/api/admin/queues/{queue}")
async def queue_info(queue: str, messaging: MessageService = Depends(get_messaging)) -> dict:
    if not messaging.is_connected:
        raise HTTPException(status_code=503, detail="RabbitMQ not connected")
    info = await messaging.queue_info(queue)
    if info is None:
        raise HTTPException(status_code=404, detail="Queue not found")
    return {"success": True, "queue": info}
