# app/api/routers/products.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_cache_service, require_admin
from app.data.database import get_db
from app.data.models.product import ProductModel
from app.domain.errors import ProductValidationError, ValidationErrorKind
from app.domain.schemas import (
    ApiResponse,
    InventoryAdjustIn,
    InventoryAdjustOut,
    LowStockOut,
    ProductCreate,
    ProductListOut,
    ProductOut,
    ProductUpdate,
    StockReportItem,
)
from app.repos.product_repo import ProductRepo
from app.services.cache_service import CacheService, OUT_OF_STOCK_KEY, low_stock_key
from app.services.product_validation_service import ProductValidationService
from app.utils.settings import LOW_STOCK_THRESHOLD

router = APIRouter(prefix="/products", tags=["products"])


def get_service(db: Session):
    return ProductValidationService(db)


#rapports admin, declares avant /{product_id}
@router.get("/reports/low-stock", response_model=ApiResponse[List[StockReportItem]])
def low_stock_report(
    threshold: int = Query(LOW_STOCK_THRESHOLD, ge=0),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    _admin=Depends(require_admin),
):
    key = low_stock_key(threshold)
    cached = cache.get_json(key)
    if cached is not None:
        return {"success": True, "data": cached}

    products = get_service(db).get_low_stock_products(threshold)
    data = [StockReportItem.model_validate(p).model_dump(mode="json") for p in products]
    cache.set_json(key, data)
    return {"success": True, "data": data}


@router.get("/reports/out-of-stock", response_model=ApiResponse[List[StockReportItem]])
def out_of_stock_report(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    _admin=Depends(require_admin),
):
    cached = cache.get_json(OUT_OF_STOCK_KEY)
    if cached is not None:
        return {"success": True, "data": cached}

    products = get_service(db).get_out_of_stock_products()
    data = [StockReportItem.model_validate(p).model_dump(mode="json") for p in products]
    cache.set_json(OUT_OF_STOCK_KEY, data)
    return {"success": True, "data": data}


@router.get("", response_model=ApiResponse[ProductListOut])
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    products, total = ProductRepo(db).list_active(offset=(page - 1) * limit, limit=limit)
    return {
        "success": True,
        "data": {"products": products, "total": total, "page": page, "limit": limit},
    }


@router.get("/{product_id}", response_model=ApiResponse[ProductOut])
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = ProductRepo(db).get_product(product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Produit non trouvé")
    return {"success": True, "data": product}


@router.get("/{product_id}/low-stock", response_model=ApiResponse[LowStockOut])
def is_low_stock(
    product_id: str,
    threshold: int = Query(LOW_STOCK_THRESHOLD, ge=0),
    db: Session = Depends(get_db),
):
    low = get_service(db).is_low_stock(product_id, threshold)
    return {
        "success": True,
        "data": {"product_id": product_id, "threshold": threshold, "is_low_stock": low},
    }


@router.post("", response_model=ApiResponse[ProductOut], status_code=201)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    _admin=Depends(require_admin),
):
    try:
        product = ProductRepo(db).create_product(ProductModel(**payload.model_dump()))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Le SKU {payload.sku} existe déjà")

    cache.invalidate_stock_cache()
    return {"success": True, "message": "Produit créé", "data": product}


@router.patch("/{product_id}", response_model=ApiResponse[ProductOut])
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    _admin=Depends(require_admin),
):
    repo = ProductRepo(db)
    product = repo.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produit non trouvé")

    product = repo.update_product(product, payload.model_dump(exclude_unset=True))
    cache.invalidate_stock_cache()
    return {"success": True, "message": "Produit mis à jour", "data": product}


@router.post("/{product_id}/inventory", response_model=ApiResponse[InventoryAdjustOut])
def adjust_inventory(
    product_id: str,
    payload: InventoryAdjustIn,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    _admin=Depends(require_admin),
):
    """Entrée, sortie ou inventaire physique, journalisés dans inventory_logs."""
    try:
        result = get_service(db).adjust_inventory(
            product_id, payload.type, payload.quantity, payload.reason
        )
    except ProductValidationError as e:
        status_code = 404 if e.kind == ValidationErrorKind.NOT_FOUND else 400
        raise HTTPException(status_code=status_code, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    cache.invalidate_stock_cache()
    return {"success": True, "message": "Inventaire mis à jour", "data": result}
