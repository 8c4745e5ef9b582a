# app/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_cache_service, get_current_user
from app.data.database import get_db
from app.data.models.order import OrderModel
from app.data.models.user import UserModel
from app.domain.errors import (
    CartValidationError,
    OrderNotFoundError,
    OrderStateError,
    ProductValidationError,
)
from app.domain.schemas import ApiResponse, CancelOrderIn, CheckoutIn, OrderListOut, OrderOut
from app.services.cache_service import CacheService
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])

IN_TRANSIT_STATUSES = ("PENDING", "CONFIRMED", "PROCESSING", "SHIPPED")


def get_service(db: Session, cache: CacheService | None = None):
    return OrderService(db, cache_service=cache)


def order_out(order: OrderModel) -> OrderOut:
    out = OrderOut.model_validate(order)
    if order.status in IN_TRANSIT_STATUSES:
        out.estimated_delivery = OrderService.calculate_estimated_delivery(order.wilaya, order.created_at)
    return out


@router.post("", response_model=ApiResponse[OrderOut], status_code=201)
def create_order(
    payload: CheckoutIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    Crée la commande à partir du panier actif.
    Refus global (400) si une seule ligne n'est plus disponible.
    """
    svc = get_service(db, cache)
    try:
        order = svc.create_order_from_cart(user.id, payload)
    except CartValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "message": e.message,
                "errors": [err.model_dump(mode="json") for err in e.errors],
            },
        )
    except ProductValidationError as e:
        #stock modifie entre validation et reservation
        raise HTTPException(status_code=409, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Commande créée", "data": order_out(order)}


@router.get("", response_model=ApiResponse[OrderListOut])
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = get_service(db).list_orders(user_id=user.id, page=page, limit=limit)
    result["orders"] = [order_out(o) for o in result["orders"]]
    return {"success": True, "data": result}


@router.get("/{order_id}", response_model=ApiResponse[OrderOut])
def get_order(
    order_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        order = svc.get_order(order_id, user.id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": order_out(order)}


@router.post("/{order_id}/cancel", response_model=ApiResponse[OrderOut])
def cancel_order(
    order_id: str,
    payload: CancelOrderIn | None = None,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    svc = get_service(db, cache)
    try:
        order = svc.cancel_order(order_id, reason=payload.reason if payload else None, user_id=user.id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Commande annulée", "data": order_out(order)}
