# app/back/models/temp_upload.py
import enum
from datetime import datetime
from typing import Optional

from app.back.models.base import CamelModel


class DeviceType(str, enum.Enum):
    IOS = "ios"
    ANDROID = "android"
    BOTH = "both"

    @property
    def needs_usdz(self) -> bool:
        return self in (DeviceType.IOS, DeviceType.BOTH)


class ConversionStatus(str, enum.Enum):
    PENDING = "pending"
    CONVERTING = "converting"
    READY = "ready"
    ERROR = "error"


class TempUpload(CamelModel):
    id: str
    session_id: str
    original_file_name: str
    # 서버 파일시스템 절대경로 (외부에 노출하지 않음)
    original_path: str
    glb_path: Optional[str] = None
    usdz_path: Optional[str] = None
    device_type: DeviceType
    status: ConversionStatus = ConversionStatus.PENDING
    created_at: datetime


class TempUploadCreate(CamelModel):
    session_id: str
    original_file_name: str
    original_path: str
    glb_path: Optional[str] = None
    usdz_path: Optional[str] = None
    device_type: DeviceType
    status: Optional[ConversionStatus] = None


class TempUploadUpdate(CamelModel):
    glb_path: Optional[str] = None
    usdz_path: Optional[str] = None
    status: Optional[ConversionStatus] = None


class UploadResponse(CamelModel):
    id: str
    status: ConversionStatus
    glb_path: Optional[str] = None
    usdz_path: Optional[str] = None
    device_type: DeviceType
