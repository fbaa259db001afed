# app/back/models/configurator.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from app.back.models.base import CamelModel


class ConfiguratorMetadata(CamelModel):
    id: str
    model_id: str
    parts: List[str] = Field(default_factory=list)
    textures: Dict[str, List[str]] = Field(default_factory=dict)
    materials: Dict[str, List[str]] = Field(default_factory=dict)
    colors: List[str] = Field(default_factory=list)


class ConfiguratorMetadataCreate(CamelModel):
    model_id: str
    parts: List[str] = Field(default_factory=list)
    textures: Dict[str, List[str]] = Field(default_factory=dict)
    materials: Dict[str, List[str]] = Field(default_factory=dict)
    colors: List[str] = Field(default_factory=list)


class ConfiguratorMetadataUpdate(CamelModel):
    parts: Optional[List[str]] = None
    textures: Optional[Dict[str, List[str]]] = None
    materials: Optional[Dict[str, List[str]]] = None
    colors: Optional[List[str]] = None


class ConfiguratorData(CamelModel):
    """
    아직 메타데이터가 없을 때 내려주는 빈 구조 (404 대신)
    """
    model_id: str
    parts: List[str] = Field(default_factory=list)
    textures: Dict[str, List[str]] = Field(default_factory=dict)
    materials: Dict[str, List[str]] = Field(default_factory=dict)
    colors: List[str] = Field(default_factory=list)


class ModelTexture(CamelModel):
    id: str
    model_id: str
    name: str
    type: str = "diffuse"
    file_path: str
    created_at: datetime


class ModelTextureCreate(CamelModel):
    model_id: str
    name: str
    type: str = "diffuse"
    file_path: str
