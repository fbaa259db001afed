# app/back/services/catalog_service.py
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from app.back.models.admin_model import AdminModel, AdminModelCreate, AdminModelUpdate
from app.back.models.configurator import (
    ConfiguratorMetadata,
    ConfiguratorMetadataCreate,
    ConfiguratorMetadataUpdate,
    ModelTexture,
    ModelTextureCreate,
)
from app.back.services.file_service import FileStore

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
CONFIGURATOR_FILE = "configurator.json"
TEXTURES_FILE = "textures.json"

# None 으로 지울 수 없는 필드 (None 이 오면 기존 값 유지)
_NON_NULLABLE_FIELDS = ("title", "category", "visible", "glb_path")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CatalogRepository:
    """
    관리자 모델 카탈로그 (메모리) + 모델 디렉토리별 JSON 미러.

    - admin-models/<id>/metadata.json      AdminModel
    - admin-models/<id>/configurator.json  ConfiguratorMetadata
    - admin-models/<id>/textures.json      ModelTexture 목록

    메모리 쪽이 기준이고, 디스크 미러 쓰기 실패는 로그만 남긴다.
    재시작 시 load_from_disk() 로 복구.
    """

    def __init__(self, file_store: FileStore):
        self.file_store = file_store

        self._models: Dict[str, AdminModel] = {}
        self._configurators: Dict[str, ConfiguratorMetadata] = {}
        # model_id -> configurator id
        self._configurator_index: Dict[str, str] = {}
        self._textures: Dict[str, ModelTexture] = {}

        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # 디스크 미러
    # ------------------------------------------------------------------
    async def _write_mirror(self, model_id: str, filename: str, data) -> None:
        path = self.file_store.model_dir(model_id) / filename
        try:
            await asyncio.to_thread(FileStore.write_json, path, data)
        except OSError as e:
            # 유일한 영속화 경로라서 크게 남김
            logger.error("Failed to persist %s for model %s: %s", filename, model_id, e)

    async def _mirror_model(self, model: AdminModel) -> None:
        await self._write_mirror(
            model.id, METADATA_FILE, model.model_dump(mode="json", by_alias=True)
        )

    async def _mirror_configurator(self, model_id: str) -> None:
        if model_id not in self._models:
            return
        meta_id = self._configurator_index.get(model_id)
        if meta_id is None:
            return
        meta = self._configurators[meta_id]
        await self._write_mirror(
            model_id, CONFIGURATOR_FILE, meta.model_dump(mode="json", by_alias=True)
        )

    async def _mirror_textures(self, model_id: str) -> None:
        if model_id not in self._models:
            return
        textures = [t for t in self._textures.values() if t.model_id == model_id]
        await self._write_mirror(
            model_id,
            TEXTURES_FILE,
            [t.model_dump(mode="json", by_alias=True) for t in textures],
        )

    # ------------------------------------------------------------------
    # AdminModel
    # ------------------------------------------------------------------
    async def get_all_admin_models(self) -> List[AdminModel]:
        # sorted 는 stable 이라 같은 시각이면 삽입 순서 유지
        return sorted(self._models.values(), key=lambda m: m.created_at, reverse=True)

    async def get_public_admin_models(self) -> List[AdminModel]:
        return [m for m in await self.get_all_admin_models() if m.visible]

    async def get_admin_model(self, model_id: str) -> Optional[AdminModel]:
        return self._models.get(model_id)

    async def create_admin_model(
        self,
        data: AdminModelCreate,
        model_id: Optional[str] = None,
    ) -> AdminModel:
        async with self._lock:
            if model_id is None:
                model_id = uuid.uuid4().hex
            elif model_id in self._models:
                raise ValueError(f"Admin model id already exists: {model_id}")

            now = _now()
            model = AdminModel(
                id=model_id,
                title=data.title,
                description=data.description,
                category=data.category or "General",
                visible=data.visible,
                glb_path=data.glb_path,
                usdz_path=data.usdz_path,
                thumbnail_path=data.thumbnail_path,
                created_at=now,
                updated_at=now,
            )
            self._models[model_id] = model
            await self._mirror_model(model)

        logger.info("Created admin model %s (%s)", model.id, model.title)
        return model

    async def update_admin_model(
        self,
        model_id: str,
        data: AdminModelUpdate,
    ) -> Optional[AdminModel]:
        async with self._lock:
            model = self._models.get(model_id)
            if not model:
                return None

            changes = data.model_dump(exclude_unset=True)
            for key in _NON_NULLABLE_FIELDS:
                if key in changes and changes[key] is None:
                    changes.pop(key)

            changes["updated_at"] = _now()
            updated = model.model_copy(update=changes)
            self._models[model_id] = updated
            await self._mirror_model(updated)

        return updated

    async def delete_admin_model(self, model_id: str) -> bool:
        """
        모델 + 연결된 configurator / texture 레코드 삭제.
        디스크 정리는 호출하는 쪽(lifecycle)에서 한다.
        """
        async with self._lock:
            if self._models.pop(model_id, None) is None:
                return False

            meta_id = self._configurator_index.pop(model_id, None)
            if meta_id is not None:
                self._configurators.pop(meta_id, None)

            for texture_id in [t.id for t in self._textures.values() if t.model_id == model_id]:
                del self._textures[texture_id]

        logger.info("Deleted admin model %s", model_id)
        return True

    # ------------------------------------------------------------------
    # ConfiguratorMetadata
    # ------------------------------------------------------------------
    async def get_configurator_metadata(self, model_id: str) -> Optional[ConfiguratorMetadata]:
        meta_id = self._configurator_index.get(model_id)
        if meta_id is None:
            return None
        return self._configurators.get(meta_id)

    async def create_configurator_metadata(
        self,
        data: ConfiguratorMetadataCreate,
    ) -> ConfiguratorMetadata:
        async with self._lock:
            # 모델당 하나: 기존 것이 있으면 교체
            old_id = self._configurator_index.get(data.model_id)
            if old_id is not None:
                self._configurators.pop(old_id, None)

            meta = ConfiguratorMetadata(
                id=uuid.uuid4().hex,
                model_id=data.model_id,
                parts=list(data.parts),
                textures=dict(data.textures),
                materials=dict(data.materials),
                colors=list(data.colors),
            )
            self._configurators[meta.id] = meta
            self._configurator_index[meta.model_id] = meta.id
            await self._mirror_configurator(meta.model_id)

        return meta

    async def update_configurator_metadata(
        self,
        model_id: str,
        data: ConfiguratorMetadataUpdate,
    ) -> Optional[ConfiguratorMetadata]:
        async with self._lock:
            meta_id = self._configurator_index.get(model_id)
            if meta_id is None:
                return None

            changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
            updated = self._configurators[meta_id].model_copy(update=changes)
            self._configurators[meta_id] = updated
            await self._mirror_configurator(model_id)

        return updated

    # ------------------------------------------------------------------
    # ModelTexture
    # ------------------------------------------------------------------
    async def get_model_textures(self, model_id: str) -> List[ModelTexture]:
        return [t for t in self._textures.values() if t.model_id == model_id]

    async def create_model_texture(self, data: ModelTextureCreate) -> Optional[ModelTexture]:
        async with self._lock:
            if data.model_id not in self._models:
                return None
            texture = ModelTexture(
                id=uuid.uuid4().hex,
                model_id=data.model_id,
                name=data.name,
                type=data.type,
                file_path=data.file_path,
                created_at=_now(),
            )
            self._textures[texture.id] = texture
            await self._mirror_textures(texture.model_id)

        return texture

    async def delete_model_textures(self, model_id: str) -> bool:
        async with self._lock:
            for texture_id in [t.id for t in self._textures.values() if t.model_id == model_id]:
                del self._textures[texture_id]
            await self._mirror_textures(model_id)
        return True

    # ------------------------------------------------------------------
    # 재시작 복구
    # ------------------------------------------------------------------
    def _read_model_dir(
        self,
        model_dir: Path,
    ) -> Optional[Tuple[AdminModel, Optional[ConfiguratorMetadata], List[ModelTexture]]]:
        metadata_path = model_dir / METADATA_FILE
        if not metadata_path.is_file():
            logger.warning("No %s in %s, skipping", METADATA_FILE, model_dir)
            return None

        try:
            model = AdminModel.model_validate(FileStore.read_json(metadata_path))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Unreadable metadata in %s: %s", model_dir, e)
            return None

        # 디렉토리 이름이 실제 id (파일 정리 기준)
        if model.id != model_dir.name:
            logger.info("Model id %s differs from directory %s, using directory name", model.id, model_dir.name)
            model = model.model_copy(update={"id": model_dir.name})

        asset = self.file_store.resolve_public_path(model.glb_path)
        if asset is None or not asset.is_file():
            logger.warning("Primary asset missing for model %s (%s), skipping", model.id, model.glb_path)
            return None

        configurator = None
        configurator_path = model_dir / CONFIGURATOR_FILE
        if configurator_path.is_file():
            try:
                configurator = ConfiguratorMetadata.model_validate(FileStore.read_json(configurator_path))
                configurator = configurator.model_copy(update={"model_id": model.id})
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Unreadable configurator metadata for %s: %s", model.id, e)

        textures: List[ModelTexture] = []
        textures_path = model_dir / TEXTURES_FILE
        if textures_path.is_file():
            try:
                textures = [
                    ModelTexture.model_validate(item).model_copy(update={"model_id": model.id})
                    for item in FileStore.read_json(textures_path)
                ]
            except (OSError, ValueError, TypeError, ValidationError) as e:
                logger.warning("Unreadable texture records for %s: %s", model.id, e)
                textures = []

        return model, configurator, textures

    def _scan_disk(self):
        loaded = []
        if not self.file_store.models_dir.is_dir():
            return loaded
        for entry in sorted(self.file_store.models_dir.iterdir()):
            if not entry.is_dir():
                continue
            result = self._read_model_dir(entry)
            if result is not None:
                loaded.append(result)
        return loaded

    async def load_from_disk(self) -> int:
        """
        admin-models/ 를 스캔해서 메모리 상태를 다시 구성.
        primary asset(glb) 파일이 없는 레코드는 건너뜀.
        """
        try:
            loaded = await asyncio.to_thread(self._scan_disk)
        except OSError as e:
            logger.error("Failed to scan admin models directory: %s", e)
            return 0

        loaded.sort(key=lambda item: item[0].created_at)

        async with self._lock:
            for model, configurator, textures in loaded:
                self._models[model.id] = model
                if configurator is not None:
                    self._configurators[configurator.id] = configurator
                    self._configurator_index[model.id] = configurator.id
                for texture in textures:
                    self._textures[texture.id] = texture

        logger.info("Loaded %d admin models from disk", len(loaded))
        return len(loaded)
