# app/back/services/session_service.py
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from app.back.models.temp_upload import (
    ConversionStatus,
    TempUpload,
    TempUploadCreate,
    TempUploadUpdate,
)


class SessionRepository:
    """
    브라우저 세션별 임시 업로드 레코드 (메모리 전용).
    디렉토리 정리는 FileStore 쪽 - 레코드와 디렉토리는 항상 같이 지워야 함.
    """

    def __init__(self):
        self._uploads: Dict[str, TempUpload] = {}
        self._lock = asyncio.Lock()

    async def get_temp_upload(self, upload_id: str) -> Optional[TempUpload]:
        return self._uploads.get(upload_id)

    async def get_by_session(self, session_id: str) -> List[TempUpload]:
        return [u for u in self._uploads.values() if u.session_id == session_id]

    async def create_temp_upload(self, data: TempUploadCreate) -> TempUpload:
        async with self._lock:
            upload = TempUpload(
                id=uuid.uuid4().hex,
                session_id=data.session_id,
                original_file_name=data.original_file_name,
                original_path=data.original_path,
                glb_path=data.glb_path,
                usdz_path=data.usdz_path,
                device_type=data.device_type,
                status=data.status or ConversionStatus.PENDING,
                created_at=datetime.now(timezone.utc),
            )
            self._uploads[upload.id] = upload
        return upload

    async def update_temp_upload(
        self,
        upload_id: str,
        data: TempUploadUpdate,
    ) -> Optional[TempUpload]:
        async with self._lock:
            upload = self._uploads.get(upload_id)
            if not upload:
                return None

            changes = data.model_dump(exclude_unset=True)
            if changes.get("status") is None:
                changes.pop("status", None)

            updated = upload.model_copy(update=changes)
            self._uploads[upload_id] = updated
        return updated

    async def delete_temp_upload(self, upload_id: str) -> bool:
        async with self._lock:
            return self._uploads.pop(upload_id, None) is not None

    async def delete_by_session(self, session_id: str) -> bool:
        # 없어도 True (멱등)
        async with self._lock:
            for upload_id in [u.id for u in self._uploads.values() if u.session_id == session_id]:
                del self._uploads[upload_id]
        return True

    async def get_expired(self, max_age: timedelta) -> List[TempUpload]:
        cutoff = datetime.now(timezone.utc) - max_age
        return [u for u in self._uploads.values() if u.created_at < cutoff]
