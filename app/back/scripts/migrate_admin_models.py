# scripts/migrate_admin_models.py
#
# metadata.json 이 생기기 전에 올라간 관리자 모델 복구용 (한 번만 실행)
#   python -m app.back.scripts.migrate_admin_models
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from app.back.core.config import settings
from app.back.models.admin_model import AdminModel
from app.back.services.catalog_service import METADATA_FILE
from app.back.services.file_service import FileStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(message)s",
)

logger = logging.getLogger(__name__)

# "<timestamp>_<name>.glb" -> name
_TITLE_RE = re.compile(r"^\d+_(.+)\.glb$", re.IGNORECASE)


def title_from_filename(filename: str, fallback: str) -> str:
    match = _TITLE_RE.match(filename)
    if match:
        return match.group(1)
    stem = Path(filename).stem
    return stem or fallback


def migrate_admin_models(file_store: FileStore) -> List[str]:
    """
    admin-models/<id>/ 중 metadata.json 이 없고 .glb 가 있는 디렉토리에 메타데이터 생성.
    반환: 새로 만든 모델 id 목록
    """
    created: List[str] = []
    models_dir = file_store.models_dir

    logger.info("=== Admin model migration START (%s) ===", models_dir)

    if not models_dir.is_dir():
        logger.info("No admin models directory found. Nothing to migrate.")
        return created

    for entry in sorted(models_dir.iterdir()):
        if not entry.is_dir():
            continue

        metadata_path = entry / METADATA_FILE
        if metadata_path.exists():
            logger.info("Metadata already exists for: %s", entry.name)
            continue

        glb_files = sorted(p for p in entry.iterdir() if p.suffix.lower() == ".glb")
        if not glb_files:
            logger.warning("No GLB file found in: %s", entry.name)
            continue

        glb_file = glb_files[0]
        now = datetime.now(timezone.utc)
        model = AdminModel(
            id=entry.name,
            title=title_from_filename(glb_file.name, entry.name),
            glb_path=file_store.public_path(glb_file),
            created_at=now,
            updated_at=now,
        )
        FileStore.write_json(metadata_path, model.model_dump(mode="json", by_alias=True))

        logger.info("Created metadata for: %s (%s)", entry.name, model.title)
        created.append(entry.name)

    logger.info("=== Admin model migration DONE (%d created) ===", len(created))
    return created


if __name__ == "__main__":
    migrate_admin_models(FileStore(settings.UPLOAD_DIR, settings.PUBLIC_UPLOAD_PREFIX))
