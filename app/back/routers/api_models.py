# app/back/routers/api_models.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.back.core.deps import get_catalog
from app.back.models.admin_model import AdminModel
from app.back.services.catalog_service import CatalogRepository

router = APIRouter(prefix="/api/models", tags=["models-api"])


@router.get("/public", response_model=List[AdminModel])
async def list_public_models(catalog: CatalogRepository = Depends(get_catalog)):
    return await catalog.get_public_admin_models()


@router.get("/{model_id}", response_model=AdminModel)
async def get_public_model(
    model_id: str,
    catalog: CatalogRepository = Depends(get_catalog),
):
    model = await catalog.get_admin_model(model_id)
    # 숨김 모델도 "없음"과 똑같이 응답
    if not model or not model.visible:
        raise HTTPException(status_code=404, detail="Model not found")
    return model
