# app/back/routers/api_admin_models.py
import json
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from app.back.core.deps import get_catalog, get_lifecycle, require_admin
from app.back.models.admin_model import AdminModel, AdminModelUpdate, VisibilityUpdate
from app.back.models.configurator import (
    ConfiguratorData,
    ConfiguratorMetadataUpdate,
    ModelTexture,
)
from app.back.routers.api_upload import read_upload, read_uploads
from app.back.services.catalog_service import CatalogRepository
from app.back.services.lifecycle_service import LifecycleService

router = APIRouter(
    prefix="/api/admin/models",
    tags=["admin-models-api"],
    dependencies=[Depends(require_admin)],
)


# ===========================
# 폼 값 파싱
# ===========================
def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None or value.strip() == "":
        return None
    return value.strip().lower() in ("true", "1", "on", "yes")


def _parse_json(value: Optional[str], field: str, expected: type) -> Optional[Any]:
    """
    parts / colors / materials 는 JSON 문자열로 들어옴
    """
    if value is None or value.strip() == "":
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be valid JSON")
    if not isinstance(parsed, expected):
        raise HTTPException(status_code=400, detail=f"{field} must be a JSON {expected.__name__}")
    return parsed


def _configurator_fields(
    parts: Optional[str],
    colors: Optional[str],
    materials: Optional[str],
) -> dict:
    fields = {
        "parts": _parse_json(parts, "parts", list),
        "colors": _parse_json(colors, "colors", list),
        "materials": _parse_json(materials, "materials", dict),
    }
    return {k: v for k, v in fields.items() if v is not None}


# ===========================
# 조회
# ===========================
@router.get("", response_model=List[AdminModel])
async def list_admin_models(catalog: CatalogRepository = Depends(get_catalog)):
    return await catalog.get_all_admin_models()


@router.get("/{model_id}", response_model=AdminModel)
async def get_admin_model(
    model_id: str,
    catalog: CatalogRepository = Depends(get_catalog),
):
    model = await catalog.get_admin_model(model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return model


@router.get("/{model_id}/configurator")
async def get_configurator(
    model_id: str,
    catalog: CatalogRepository = Depends(get_catalog),
):
    metadata = await catalog.get_configurator_metadata(model_id)
    if not metadata:
        return ConfiguratorData(model_id=model_id)
    return metadata


@router.get("/{model_id}/textures", response_model=List[ModelTexture])
async def get_textures(
    model_id: str,
    catalog: CatalogRepository = Depends(get_catalog),
):
    if not await catalog.get_admin_model(model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    return await catalog.get_model_textures(model_id)


# ===========================
# 등록 / 수정 / 삭제
# ===========================
@router.post("", response_model=AdminModel)
async def create_admin_model(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    visible: Optional[str] = Form(None),
    parts: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    materials: Optional[str] = Form(None),
    model: Optional[UploadFile] = File(None),
    textures: Optional[List[UploadFile]] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    configurator = _configurator_fields(parts, colors, materials)

    return await lifecycle.create_admin_model(
        title=title,
        model_file=await read_upload(model),
        description=description,
        category=category,
        visible=_parse_bool(visible),
        parts=configurator.get("parts"),
        colors=configurator.get("colors"),
        materials=configurator.get("materials"),
        texture_files=await read_uploads(textures),
        thumbnail_file=await read_upload(thumbnail),
    )


@router.put("/{model_id}", response_model=AdminModel)
async def update_admin_model(
    model_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    visible: Optional[str] = Form(None),
    parts: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    materials: Optional[str] = Form(None),
    model: Optional[UploadFile] = File(None),
    textures: Optional[List[UploadFile]] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    fields: dict = {}
    if title and title.strip():
        fields["title"] = title.strip()
    # 폼에 description 이 없으면 기존 값 유지
    if description is not None:
        fields["description"] = description or None
    if category:
        fields["category"] = category
    is_visible = _parse_bool(visible)
    if is_visible is not None:
        fields["visible"] = is_visible

    configurator = _configurator_fields(parts, colors, materials)

    return await lifecycle.update_admin_model(
        model_id,
        AdminModelUpdate(**fields),
        model_file=await read_upload(model),
        configurator=ConfiguratorMetadataUpdate(**configurator) if configurator else None,
        texture_files=await read_uploads(textures),
        thumbnail_file=await read_upload(thumbnail),
    )


# 목록 화면에서 공개/숨김 토글
@router.patch("/{model_id}", response_model=AdminModel)
async def patch_admin_model(
    model_id: str,
    payload: VisibilityUpdate,
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    return await lifecycle.set_visibility(model_id, payload.visible)


@router.delete("/{model_id}")
async def delete_admin_model(
    model_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    await lifecycle.delete_admin_model(model_id)
    return {"success": True}
