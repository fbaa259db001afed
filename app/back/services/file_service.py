# app/back/services/file_service.py
import asyncio
import json
import logging
import shutil
import time
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Literal, Optional

logger = logging.getLogger(__name__)

FileKind = Literal["model", "texture"]

TEMP_DIRNAME = "temp"
ADMIN_MODELS_DIRNAME = "admin-models"
ADMIN_TEXTURES_DIRNAME = "admin-textures"


def _safe_filename(original_name: str) -> str:
    # 경로 구분자 제거, 파일명만 남김
    name = Path(original_name.replace("\\", "/")).name
    return name or "upload.bin"


class FileStore:
    """
    업로드 루트 아래 디스크 레이아웃 담당

        <root>/temp/<sessionId>/...          세션별 임시 업로드
        <root>/admin-models/<modelId>/...    관리자 모델 파일 + metadata.json
        <root>/admin-textures/<modelId>/...  관리자 모델 텍스처

    소유권은 추적하지 않는다. (누가 언제 지울지는 호출하는 쪽 책임)
    저장 실패는 예외로 올려보내고, 정리(cleanup) 실패는 로그만 남긴다.
    """

    def __init__(self, root: Path, public_prefix: str = "/uploads"):
        self.root = Path(root).resolve()
        self.public_prefix = "/" + public_prefix.strip("/")
        self.temp_dir = self.root / TEMP_DIRNAME
        self.models_dir = self.root / ADMIN_MODELS_DIRNAME
        self.textures_dir = self.root / ADMIN_TEXTURES_DIRNAME

    # ------------------------------------------------------------------
    # 경로
    # ------------------------------------------------------------------
    def ensure_directories(self) -> None:
        for d in (self.temp_dir, self.models_dir, self.textures_dir):
            d.mkdir(parents=True, exist_ok=True)

    def session_dir(self, session_id: str) -> Path:
        return self.temp_dir / session_id

    def model_dir(self, model_id: str) -> Path:
        return self.models_dir / model_id

    def texture_dir(self, model_id: str) -> Path:
        return self.textures_dir / model_id

    def public_path(self, fs_path: Path) -> str:
        rel = Path(fs_path).resolve().relative_to(self.root)
        return f"{self.public_prefix}/{rel.as_posix()}"

    def resolve_public_path(self, public_path: str) -> Optional[Path]:
        """
        /uploads/admin-models/<id>/<file> -> 실제 파일 경로.
        업로드 루트 밖을 가리키면 None
        """
        rel = public_path.strip()
        prefix = self.public_prefix.lstrip("/")
        rel = rel.lstrip("/")
        if rel.startswith(prefix + "/"):
            rel = rel[len(prefix) + 1:]
        if not rel:
            return None

        candidate = (self.root / rel).resolve()
        if not candidate.is_relative_to(self.root):
            return None
        return candidate

    # ------------------------------------------------------------------
    # 저장
    # ------------------------------------------------------------------
    def _write_unique(self, directory: Path, original_name: str, data: bytes) -> Path:
        directory.mkdir(parents=True, exist_ok=True)

        safe_name = _safe_filename(original_name)
        dest = directory / f"{int(time.time() * 1000)}_{safe_name}"
        if dest.exists():
            dest = directory / f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{safe_name}"

        dest.write_bytes(data)
        return dest

    async def save_temp_file(self, data: bytes, original_name: str, session_id: str) -> Path:
        try:
            dest = await asyncio.to_thread(
                self._write_unique, self.session_dir(session_id), original_name, data
            )
        except OSError:
            logger.exception("Failed to save temp file for session %s", session_id)
            raise

        logger.info("Saved temp upload: %s (%d bytes)", dest, len(data))
        return dest

    async def save_admin_file(
        self,
        data: bytes,
        original_name: str,
        model_id: str,
        kind: FileKind,
    ) -> str:
        directory = self.model_dir(model_id) if kind == "model" else self.texture_dir(model_id)
        try:
            dest = await asyncio.to_thread(self._write_unique, directory, original_name, data)
        except OSError:
            logger.exception("Failed to save admin %s file for model %s", kind, model_id)
            raise

        logger.info("Saved admin %s file: %s (%d bytes)", kind, dest, len(data))
        return self.public_path(dest)

    # ------------------------------------------------------------------
    # metadata 미러 (카탈로그에서 사용)
    # ------------------------------------------------------------------
    @staticmethod
    def write_json(path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    @staticmethod
    def read_json(path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # 정리 (best-effort, 예외를 밖으로 던지지 않음)
    # ------------------------------------------------------------------
    @staticmethod
    def _remove_tree(path: Path) -> bool:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            logger.debug("Nothing to remove at %s", path)
            return False
        except OSError as e:
            logger.warning("Failed to remove %s: %s", path, e)
            return False
        return True

    async def cleanup_temp_session(self, session_id: str) -> None:
        removed = await asyncio.to_thread(self._remove_tree, self.session_dir(session_id))
        if removed:
            logger.info("Cleaned up temp session %s", session_id)

    async def cleanup_admin_model(self, model_id: str) -> None:
        await asyncio.to_thread(self._remove_tree, self.model_dir(model_id))
        await asyncio.to_thread(self._remove_tree, self.texture_dir(model_id))
        logger.info("Cleaned up admin model files for %s", model_id)

    async def remove_public_file(self, public_path: str) -> None:
        path = self.resolve_public_path(public_path)
        if path is None:
            logger.warning("Refusing to remove path outside upload root: %s", public_path)
            return
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove %s: %s", path, e)

    @staticmethod
    def _is_expired(entry: Path, now: float, max_age_s: float) -> bool:
        try:
            if not entry.is_dir():
                return False
            mtime = entry.stat().st_mtime
        except FileNotFoundError:
            # 요청 처리 중에 이미 지워진 경우
            return False
        return now - mtime > max_age_s

    def _list_expired(self, max_age: timedelta) -> List[str]:
        now = time.time()
        max_age_s = max_age.total_seconds()
        try:
            entries = list(self.temp_dir.iterdir())
        except FileNotFoundError:
            return []
        return sorted(e.name for e in entries if self._is_expired(e, now, max_age_s))

    def _sweep_expired(self, max_age: timedelta) -> List[str]:
        removed: List[str] = []
        for name in self._list_expired(max_age):
            if self._remove_tree(self.session_dir(name)):
                logger.info("Cleaned up expired temp directory: %s", name)
                removed.append(name)
        return removed

    async def find_expired_temp_sessions(self, max_age: timedelta) -> List[str]:
        """
        지우지 않고 후보 이름만 돌려줌. 실제 삭제는 세션 락 안에서
        """
        try:
            return await asyncio.to_thread(self._list_expired, max_age)
        except OSError as e:
            logger.warning("Failed to scan temp uploads: %s", e)
            return []

    async def is_temp_session_expired(self, session_id: str, max_age: timedelta) -> bool:
        return await asyncio.to_thread(
            self._is_expired, self.session_dir(session_id), time.time(), max_age.total_seconds()
        )

    async def cleanup_expired_temp_uploads(self, max_age: timedelta) -> List[str]:
        try:
            return await asyncio.to_thread(self._sweep_expired, max_age)
        except OSError as e:
            logger.warning("Failed to cleanup expired temp uploads: %s", e)
            return []
