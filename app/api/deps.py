# app/api/deps.py
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.data.models.user import UserModel
from app.services.cache_service import CacheService

_cache_service: CacheService | None = None


def get_current_user(
    x_user_id: int | None = Header(None),
    db: Session = Depends(get_db),
) -> UserModel:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Authentification requise")

    user = db.get(UserModel, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Authentification requise")

    return user


def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Accès réservé aux administrateurs")
    return user


def get_cache_service() -> CacheService:
    #client redis partage, connexion paresseuse
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
