# app/api/routers/admin.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_cache_service, require_admin
from app.api.routers.orders import order_out
from app.data.database import get_db
from app.domain.errors import OrderNotFoundError, OrderStateError
from app.domain.schemas import ApiResponse, OrderListOut, OrderOut, OrderStatsOut, OrderStatusIn
from app.services.cache_service import CacheService, order_stats_key
from app.services.order_service import OrderService

router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=ApiResponse[OrderStatsOut])
def order_stats(
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    key = order_stats_key(user_id)
    cached = cache.get_json(key)
    if cached is not None:
        return {"success": True, "data": cached}

    stats = OrderService(db).get_order_statistics(user_id)
    data = OrderStatsOut(**stats).model_dump(mode="json")
    cache.set_json(key, data)
    return {"success": True, "data": data}


@router.get("", response_model=ApiResponse[OrderListOut])
def list_orders(
    status: str | None = Query(None),
    user_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    result = OrderService(db).list_orders(user_id=user_id, status=status, page=page, limit=limit)
    result["orders"] = [order_out(o) for o in result["orders"]]
    return {"success": True, "data": result}


@router.patch("/{order_id}/status", response_model=ApiResponse[OrderOut])
def update_status(
    order_id: str,
    payload: OrderStatusIn,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    svc = OrderService(db, cache_service=cache)
    try:
        order = svc.update_order_status(order_id, payload.status, payload.notes)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "message": "Statut mis à jour", "data": order_out(order)}
