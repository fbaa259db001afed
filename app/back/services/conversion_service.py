# app/back/services/conversion_service.py
import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from app.back.models.temp_upload import DeviceType
from app.back.services.file_service import FileStore

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".glb", ".gltf", ".obj", ".fbx", ".stl")


def get_file_extension(filename: str) -> str:
    return Path(filename).suffix.lower()


def is_supported_format(filename: str) -> bool:
    return get_file_extension(filename) in SUPPORTED_EXTENSIONS


@dataclass
class ConversionResult:
    success: bool
    glb_path: Optional[str] = None
    usdz_path: Optional[str] = None
    error: Optional[str] = None


async def convert_model(
    input_path: Path,
    output_dir: Path,
    device_type: DeviceType,
    base_name: str,
    file_store: FileStore,
) -> ConversionResult:
    """
    원본 3D 파일 -> AR 뷰어용 산출물.

    - 항상 <base_name>.glb 를 만든다 (지금은 원본을 그대로 복사)
    - iOS 가 포함된 device_type 이면 usdz_path 도 채운다 (GLB 산출물을 가리킴)
    - 실패해도 예외를 던지지 않고 success=False + error 로 돌려준다
    """
    ext = get_file_extension(str(input_path))
    if ext not in SUPPORTED_EXTENSIONS:
        return ConversionResult(success=False, error=f"Unsupported format: {ext or '(none)'}")

    glb_output = Path(output_dir) / f"{base_name}.glb"
    try:
        await asyncio.to_thread(_transcode_to_glb, Path(input_path), glb_output)
    except Exception as e:
        logger.warning("Conversion failed for %s: %s", input_path, e)
        return ConversionResult(success=False, error=str(e) or "Conversion failed")

    glb_path = file_store.public_path(glb_output)
    usdz_path = glb_path if device_type.needs_usdz else None

    logger.info("Converted %s -> %s (device=%s)", input_path, glb_output, device_type.value)
    return ConversionResult(success=True, glb_path=glb_path, usdz_path=usdz_path)


def _transcode_to_glb(input_path: Path, output_path: Path) -> None:
    # TODO: obj/fbx/stl 은 실제 glTF 바이너리로 변환해야 함 (지금은 컨테이너 복사만)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(input_path, output_path)
