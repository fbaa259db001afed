# app/back/models/admin_model.py
from datetime import datetime
from typing import Optional

from app.back.models.base import CamelModel


class AdminModel(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    category: str = "General"
    visible: bool = True

    # /uploads/... 로 시작하는 공개 경로
    glb_path: str
    usdz_path: Optional[str] = None
    thumbnail_path: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class AdminModelCreate(CamelModel):
    title: str
    description: Optional[str] = None
    category: str = "General"
    visible: bool = True
    glb_path: str
    usdz_path: Optional[str] = None
    thumbnail_path: Optional[str] = None


class AdminModelUpdate(CamelModel):
    """
    부분 수정용. 넘긴 필드만 반영된다 (model_fields_set 기준).
    - nullable 필드에 None 을 명시하면 값을 지움
    - title / category / visible / glb_path 는 None 이면 무시
    """
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    visible: Optional[bool] = None
    glb_path: Optional[str] = None
    usdz_path: Optional[str] = None
    thumbnail_path: Optional[str] = None


class VisibilityUpdate(CamelModel):
    visible: bool
