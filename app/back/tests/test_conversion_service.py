import asyncio

import pytest

from app.back.models.temp_upload import DeviceType
from app.back.services.conversion_service import convert_model, is_supported_format


def _convert(file_store, filename, device_type, data=b"model-bytes"):
    async def run():
        input_path = await file_store.save_temp_file(data, filename, "sess-1")
        return await convert_model(
            input_path,
            file_store.session_dir("sess-1"),
            device_type,
            "model_1",
            file_store,
        )

    return asyncio.run(run())


@pytest.mark.parametrize("filename", ["a.glb", "a.gltf", "a.OBJ", "a.fbx", "a.Stl"])
def test_supported_formats_are_case_insensitive(filename):
    assert is_supported_format(filename)


@pytest.mark.parametrize("filename", ["a.psd", "a.zip", "noext"])
def test_unsupported_formats(filename):
    assert not is_supported_format(filename)


def test_android_gets_glb_only(file_store):
    result = _convert(file_store, "cube.obj", DeviceType.ANDROID)

    assert result.success
    assert result.glb_path == "/uploads/temp/sess-1/model_1.glb"
    assert result.usdz_path is None
    assert file_store.resolve_public_path(result.glb_path).read_bytes() == b"model-bytes"


@pytest.mark.parametrize("device_type", [DeviceType.IOS, DeviceType.BOTH])
def test_ios_profiles_also_get_usdz_reference(file_store, device_type):
    result = _convert(file_store, "cube.glb", device_type)

    assert result.success
    assert result.glb_path is not None
    assert result.usdz_path == result.glb_path


def test_unsupported_extension_fails_without_raising(file_store):
    result = _convert(file_store, "layers.psd", DeviceType.ANDROID)

    assert not result.success
    assert "Unsupported format" in result.error
    assert result.glb_path is None


def test_io_error_becomes_failed_result(file_store):
    missing = file_store.session_dir("sess-1") / "missing.glb"

    result = asyncio.run(
        convert_model(missing, file_store.session_dir("sess-1"), DeviceType.IOS, "model_1", file_store)
    )

    assert not result.success
    assert result.error
