# app/back/services/lifecycle_service.py
import asyncio
import logging
import re
import time
import uuid
import weakref
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional

from app.back.core.config import Settings
from app.back.models.admin_model import AdminModel, AdminModelCreate, AdminModelUpdate
from app.back.models.configurator import (
    ConfiguratorMetadataCreate,
    ConfiguratorMetadataUpdate,
    ModelTextureCreate,
)
from app.back.models.temp_upload import (
    ConversionStatus,
    DeviceType,
    TempUpload,
    TempUploadCreate,
    UploadResponse,
)
from app.back.services.catalog_service import CatalogRepository
from app.back.services.conversion_service import convert_model, is_supported_format
from app.back.services.file_service import FileStore
from app.back.services.session_service import SessionRepository

logger = logging.getLogger(__name__)

SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class UploadValidationError(ValueError):
    """잘못된 요청 (400). 상태 변경 없음"""


class FileTooLargeError(UploadValidationError):
    """업로드 용량 초과 (413)"""


class ConversionFailedError(RuntimeError):
    """변환 실패 (500). 세션 레코드는 만들지 않음"""


class ModelNotFoundError(LookupError):
    pass


@dataclass
class IncomingFile:
    filename: str
    data: bytes


class _KeyedLocks:
    """
    키(세션 id / 모델 id)별 asyncio.Lock.
    아무도 안 쓰는 락은 weakref 라서 자동으로 사라짐
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class LifecycleService:
    def __init__(
        self,
        settings: Settings,
        file_store: FileStore,
        catalog: CatalogRepository,
        sessions: SessionRepository,
    ):
        self.settings = settings
        self.file_store = file_store
        self.catalog = catalog
        self.sessions = sessions

        self._session_locks = _KeyedLocks()
        self._model_locks = _KeyedLocks()

    @property
    def temp_max_age(self) -> timedelta:
        return timedelta(seconds=self.settings.TEMP_MAX_AGE_SECONDS)

    # ------------------------------------------------------------------
    # 검증
    # ------------------------------------------------------------------
    @staticmethod
    def validate_session_id(session_id: Optional[str]) -> str:
        if not session_id:
            raise UploadValidationError("Session ID is required")
        if not SESSION_ID_RE.match(session_id):
            raise UploadValidationError("Invalid session ID")
        return session_id

    @staticmethod
    def parse_device_type(device_type: Optional[str]) -> DeviceType:
        if not device_type:
            return DeviceType.ANDROID
        try:
            return DeviceType(device_type.lower())
        except ValueError:
            raise UploadValidationError(f"Invalid device type: {device_type}")

    def _check_size(self, file: IncomingFile) -> None:
        if len(file.data) > self.settings.MAX_UPLOAD_SIZE:
            raise FileTooLargeError(f"File too large: {file.filename}")

    def _check_model_file(self, file: Optional[IncomingFile], missing_message: str) -> IncomingFile:
        if file is None or not file.filename:
            raise UploadValidationError(missing_message)
        if not is_supported_format(file.filename):
            raise UploadValidationError("Unsupported file format")
        self._check_size(file)
        return file

    def _check_textures(self, texture_files: List[IncomingFile]) -> None:
        if len(texture_files) > self.settings.MAX_TEXTURE_FILES:
            raise UploadValidationError(
                f"Too many texture files (max {self.settings.MAX_TEXTURE_FILES})"
            )
        for texture in texture_files:
            self._check_size(texture)

    # ------------------------------------------------------------------
    # 세션 업로드
    # ------------------------------------------------------------------
    async def _clear_session(self, session_id: str) -> None:
        await self.file_store.cleanup_temp_session(session_id)
        await self.sessions.delete_by_session(session_id)

    async def handle_upload(
        self,
        file: Optional[IncomingFile],
        session_id: Optional[str],
        device_type: Optional[str] = None,
    ) -> UploadResponse:
        """
        1) 검증 (실패 시 아무것도 건드리지 않음)
        2) 같은 세션의 이전 업로드 레코드 + 디렉토리 삭제
        3) 원본 저장 -> 4) 변환 -> 5) 성공 시에만 TempUpload 생성
        """
        file = self._check_model_file(file, "No file uploaded")
        session_id = self.validate_session_id(session_id)
        device = self.parse_device_type(device_type)

        async with self._session_locks.get(session_id):
            await self._clear_session(session_id)

            input_path = await self.file_store.save_temp_file(file.data, file.filename, session_id)

            result = await convert_model(
                input_path,
                self.file_store.session_dir(session_id),
                device,
                f"model_{int(time.time() * 1000)}",
                self.file_store,
            )
            if not result.success:
                logger.warning("Upload conversion failed for session %s: %s", session_id, result.error)
                raise ConversionFailedError(result.error or "Conversion failed")

            upload = await self.sessions.create_temp_upload(
                TempUploadCreate(
                    session_id=session_id,
                    original_file_name=file.filename,
                    original_path=str(input_path),
                    glb_path=result.glb_path,
                    usdz_path=result.usdz_path,
                    device_type=device,
                    status=ConversionStatus.READY,
                )
            )

        logger.info("Session %s upload ready (%s)", session_id, upload.id)
        return UploadResponse(
            id=upload.id,
            status=upload.status,
            glb_path=upload.glb_path,
            usdz_path=upload.usdz_path,
            device_type=upload.device_type,
        )

    async def get_session_upload(self, session_id: str) -> Optional[TempUpload]:
        session_id = self.validate_session_id(session_id)
        uploads = await self.sessions.get_by_session(session_id)
        if not uploads:
            return None
        return max(uploads, key=lambda u: u.created_at)

    async def teardown_session(self, session_id: str) -> None:
        """탭 닫힘 / 새 업로드 시작. 여러 번 불러도 안전"""
        session_id = self.validate_session_id(session_id)
        async with self._session_locks.get(session_id):
            await self.sessions.delete_by_session(session_id)
            await self.file_store.cleanup_temp_session(session_id)

    async def sweep_expired(self) -> List[str]:
        """
        만료된 세션 레코드 + 디렉토리 삭제, 이어서 디렉토리 mtime 기준 정리.
        레코드가 없는 디렉토리도 같이 지워진다.
        """
        max_age = self.temp_max_age
        swept = set()

        expired = await self.sessions.get_expired(max_age)
        expired_ids = {u.id for u in expired}
        for session_id in {u.session_id for u in expired}:
            async with self._session_locks.get(session_id):
                remaining = await self.sessions.get_by_session(session_id)
                stale = [u for u in remaining if u.id in expired_ids]
                if len(stale) == len(remaining):
                    await self.sessions.delete_by_session(session_id)
                    await self.file_store.cleanup_temp_session(session_id)
                else:
                    for upload in stale:
                        await self.sessions.delete_temp_upload(upload.id)
            swept.add(session_id)

        candidates = await self.file_store.find_expired_temp_sessions(max_age)
        for session_id in candidates:
            async with self._session_locks.get(session_id):
                # 락 기다리는 동안 새 업로드가 들어왔으면 mtime 이 갱신돼 있음
                if not await self.file_store.is_temp_session_expired(session_id, max_age):
                    continue
                await self.file_store.cleanup_temp_session(session_id)
                await self.sessions.delete_by_session(session_id)
            swept.add(session_id)

        if swept:
            logger.info("Expiry sweep removed %d session(s)", len(swept))
        return sorted(swept)

    async def run_expiry_sweeper(self) -> None:
        interval = self.settings.CLEANUP_INTERVAL_SECONDS
        logger.info(
            "Temp upload sweeper started (interval=%ss, max_age=%ss)",
            interval,
            self.settings.TEMP_MAX_AGE_SECONDS,
        )
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_expired()
            except Exception:
                logger.exception("Temp upload sweep failed")

    # ------------------------------------------------------------------
    # 관리자 모델
    # ------------------------------------------------------------------
    async def _attach_textures(self, model_id: str, texture_files: Iterable[IncomingFile]) -> None:
        for texture in texture_files:
            file_path = await self.file_store.save_admin_file(
                texture.data, texture.filename, model_id, "texture"
            )
            await self.catalog.create_model_texture(
                ModelTextureCreate(
                    model_id=model_id,
                    name=texture.filename,
                    type="diffuse",
                    file_path=file_path,
                )
            )

    async def create_admin_model(
        self,
        title: Optional[str],
        model_file: Optional[IncomingFile],
        description: Optional[str] = None,
        category: Optional[str] = None,
        visible: Optional[bool] = None,
        parts: Optional[List[str]] = None,
        colors: Optional[List[str]] = None,
        materials: Optional[dict] = None,
        texture_files: Optional[List[IncomingFile]] = None,
        thumbnail_file: Optional[IncomingFile] = None,
    ) -> AdminModel:
        if not title or not title.strip():
            raise UploadValidationError("Title is required")
        model_file = self._check_model_file(model_file, "Model file is required")
        texture_files = list(texture_files or [])
        self._check_textures(texture_files)
        if thumbnail_file is not None:
            self._check_size(thumbnail_file)

        model_id = uuid.uuid4().hex

        async with self._model_locks.get(model_id):
            try:
                glb_path = await self.file_store.save_admin_file(
                    model_file.data, model_file.filename, model_id, "model"
                )
                thumbnail_path = None
                if thumbnail_file is not None:
                    thumbnail_path = await self.file_store.save_admin_file(
                        thumbnail_file.data, thumbnail_file.filename, model_id, "model"
                    )

                model = await self.catalog.create_admin_model(
                    AdminModelCreate(
                        title=title.strip(),
                        description=description or None,
                        category=category or "General",
                        visible=True if visible is None else visible,
                        glb_path=glb_path,
                        thumbnail_path=thumbnail_path,
                    ),
                    model_id=model_id,
                )
            except OSError:
                # 레코드가 생기기 전에 실패 -> 반쯤 쓴 파일 정리
                await self.file_store.cleanup_admin_model(model_id)
                raise

            await self.catalog.create_configurator_metadata(
                ConfiguratorMetadataCreate(
                    model_id=model.id,
                    parts=parts or [],
                    colors=colors or [],
                    materials=materials or {},
                )
            )
            try:
                await self._attach_textures(model.id, texture_files)
            except OSError:
                # 텍스처 일부만 붙은 모델은 남기지 않음
                logger.error("Texture save failed for new model %s, rolling back", model.id)
                await self.catalog.delete_admin_model(model.id)
                await self.file_store.cleanup_admin_model(model.id)
                raise

        return model

    async def update_admin_model(
        self,
        model_id: str,
        changes: AdminModelUpdate,
        model_file: Optional[IncomingFile] = None,
        configurator: Optional[ConfiguratorMetadataUpdate] = None,
        texture_files: Optional[List[IncomingFile]] = None,
        thumbnail_file: Optional[IncomingFile] = None,
    ) -> AdminModel:
        """
        전체 수정 (폼 재제출).
        - 새 모델 파일이 있으면 glb_path 교체, 없으면 유지
        - configurator 는 없으면 생성, 있으면 수정
        - 텍스처는 기존 목록에 추가
        """
        if model_file is not None:
            self._check_model_file(model_file, "Model file is required")
        texture_files = list(texture_files or [])
        self._check_textures(texture_files)
        if thumbnail_file is not None:
            self._check_size(thumbnail_file)

        async with self._model_locks.get(model_id):
            existing = await self.catalog.get_admin_model(model_id)
            if not existing:
                raise ModelNotFoundError(model_id)

            fields = changes.model_dump(exclude_unset=True)
            if model_file is not None:
                fields["glb_path"] = await self.file_store.save_admin_file(
                    model_file.data, model_file.filename, model_id, "model"
                )
            if thumbnail_file is not None:
                fields["thumbnail_path"] = await self.file_store.save_admin_file(
                    thumbnail_file.data, thumbnail_file.filename, model_id, "model"
                )

            updated = await self.catalog.update_admin_model(model_id, AdminModelUpdate(**fields))
            if updated is None:
                raise ModelNotFoundError(model_id)

            # 교체된 예전 파일 정리
            for old, new in (
                (existing.glb_path, updated.glb_path),
                (existing.thumbnail_path, updated.thumbnail_path),
            ):
                if old and old != new:
                    await self.file_store.remove_public_file(old)

            if configurator is not None and configurator.model_fields_set:
                meta = await self.catalog.update_configurator_metadata(model_id, configurator)
                if meta is None:
                    await self.catalog.create_configurator_metadata(
                        ConfiguratorMetadataCreate(
                            model_id=model_id,
                            **{k: v for k, v in configurator.model_dump(exclude_unset=True).items() if v is not None},
                        )
                    )

            await self._attach_textures(model_id, texture_files)

        return updated

    async def set_visibility(self, model_id: str, visible: bool) -> AdminModel:
        async with self._model_locks.get(model_id):
            updated = await self.catalog.update_admin_model(model_id, AdminModelUpdate(visible=visible))
        if updated is None:
            raise ModelNotFoundError(model_id)
        return updated

    async def delete_admin_model(self, model_id: str) -> None:
        async with self._model_locks.get(model_id):
            if not await self.catalog.delete_admin_model(model_id):
                raise ModelNotFoundError(model_id)
            await self.file_store.cleanup_admin_model(model_id)
