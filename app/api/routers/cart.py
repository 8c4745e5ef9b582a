#app/api/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.data.database import get_db
from app.data.models.user import UserModel
from app.domain.errors import CartValidationError, ProductValidationError, ValidationErrorKind
from app.domain.schemas import (
    ApiResponse,
    CartItemOut,
    CartOut,
    ItemIn,
    ItemUpdateIn,
    StockValidationResult,
    SyncCartIn,
    ValidateCartIn,
)
from app.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db=db)


def to_http_error(e: ProductValidationError) -> HTTPException:
    #branchement sur le type d'erreur, pas sur le texte
    if e.kind == ValidationErrorKind.NOT_FOUND:
        return HTTPException(status_code=404, detail=e.message)
    return HTTPException(status_code=400, detail=e.message)


@router.post("/validate", response_model=ApiResponse[StockValidationResult])
def validate_cart(payload: ValidateCartIn, db: Session = Depends(get_db)):
    """Vérifie les lignes d'un panier contre le stock réel, sans authentification."""
    svc = get_service(db)
    return {"success": True, "data": svc.validate_cart_items(payload.items)}


@router.get("", response_model=ApiResponse[CartOut])
def get_cart(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return {"success": True, "data": svc.get_cart(user.id)}


@router.post("/sync", response_model=ApiResponse[CartOut])
def sync_cart(
    payload: SyncCartIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        cart = svc.sync_cart(user.id, payload.items)
    except CartValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "message": e.message,
                "errors": [err.model_dump(mode="json") for err in e.errors],
            },
        )
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "message": "Panier synchronisé", "data": cart}


@router.delete("", response_model=ApiResponse[None])
def clear_cart(
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    svc.clear_cart(user.id)
    return {"success": True, "message": "Panier vidé"}


@router.post("/items", response_model=ApiResponse[CartItemOut], status_code=201)
def add_item(
    payload: ItemIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        item = svc.add_item(
            user_id=user.id,
            product_id=payload.product_id,
            quantity=payload.quantity,
        )
    except ProductValidationError as e:
        raise to_http_error(e)
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "message": "Produit ajouté au panier", "data": item}


@router.put("/items/{item_id}", response_model=ApiResponse[CartItemOut])
def update_item(
    item_id: str,
    payload: ItemUpdateIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)

    if payload.quantity == 0:
        if not svc.remove_item(user.id, item_id):
            raise HTTPException(status_code=404, detail="Article introuvable dans le panier")
        return {"success": True, "message": "Produit retiré du panier"}

    try:
        item = svc.update_item(user.id, item_id, payload.quantity)
    except ProductValidationError as e:
        raise to_http_error(e)
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not item:
        raise HTTPException(status_code=404, detail="Article introuvable dans le panier")
    return {"success": True, "message": "Panier mis à jour", "data": item}


@router.delete("/items/{item_id}", response_model=ApiResponse[None])
def remove_item(
    item_id: str,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    if not svc.remove_item(user.id, item_id):
        raise HTTPException(status_code=404, detail="Article introuvable dans le panier")
    return {"success": True, "message": "Produit retiré du panier"}
