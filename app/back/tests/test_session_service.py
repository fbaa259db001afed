import asyncio
from datetime import timedelta

from app.back.models.temp_upload import (
    ConversionStatus,
    DeviceType,
    TempUploadCreate,
    TempUploadUpdate,
)


def _create(sessions, session_id, **fields):
    data = TempUploadCreate(
        session_id=session_id,
        original_file_name="cube.glb",
        original_path=f"/tmp/{session_id}/cube.glb",
        device_type=DeviceType.ANDROID,
        **fields,
    )
    return asyncio.run(sessions.create_temp_upload(data))


def test_create_defaults_to_pending(sessions):
    upload = _create(sessions, "s1")

    assert upload.status == ConversionStatus.PENDING
    assert upload.glb_path is None
    assert asyncio.run(sessions.get_temp_upload(upload.id)) == upload


def test_get_by_session_filters_by_session(sessions):
    a = _create(sessions, "s1", status=ConversionStatus.READY)
    _create(sessions, "s2")

    assert asyncio.run(sessions.get_by_session("s1")) == [a]
    assert asyncio.run(sessions.get_by_session("nobody")) == []


def test_delete_by_session_is_idempotent(sessions):
    _create(sessions, "s1")
    _create(sessions, "s1")
    other = _create(sessions, "s2")

    assert asyncio.run(sessions.delete_by_session("s1")) is True
    assert asyncio.run(sessions.delete_by_session("s1")) is True
    assert asyncio.run(sessions.get_by_session("s1")) == []
    assert asyncio.run(sessions.get_by_session("s2")) == [other]


def test_update_keeps_status_when_not_given(sessions):
    upload = _create(sessions, "s1", status=ConversionStatus.CONVERTING)

    updated = asyncio.run(
        sessions.update_temp_upload(upload.id, TempUploadUpdate(glb_path="/uploads/temp/s1/model.glb"))
    )

    assert updated.status == ConversionStatus.CONVERTING
    assert updated.glb_path == "/uploads/temp/s1/model.glb"
    assert asyncio.run(sessions.update_temp_upload("nope", TempUploadUpdate())) is None


def test_get_expired_compares_created_at_against_max_age(sessions):
    upload = _create(sessions, "s1")

    assert asyncio.run(sessions.get_expired(timedelta(hours=1))) == []
    # 음수 max_age -> 기준 시각이 미래라 전부 만료
    assert asyncio.run(sessions.get_expired(timedelta(seconds=-1))) == [upload]
