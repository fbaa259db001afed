# app/back/routers/api_upload.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from app.back.core.deps import get_lifecycle
from app.back.models.temp_upload import UploadResponse
from app.back.services.lifecycle_service import IncomingFile, LifecycleService

router = APIRouter(prefix="/api/upload", tags=["upload-api"])


async def read_upload(file: Optional[UploadFile]) -> Optional[IncomingFile]:
    """
    UploadFile -> IncomingFile. 파일명이 비어 있으면 (빈 file input) None
    """
    if file is None or not file.filename:
        return None
    data = await file.read()
    return IncomingFile(filename=file.filename, data=data)


async def read_uploads(files: Optional[List[UploadFile]]) -> List[IncomingFile]:
    result = []
    for file in files or []:
        incoming = await read_upload(file)
        if incoming is not None:
            result.append(incoming)
    return result


@router.post("", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_model(
    model: Optional[UploadFile] = File(None),
    device_type: Optional[str] = Form(None, alias="deviceType"),
    session_id: Optional[str] = Form(None, alias="sessionId"),
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    incoming = await read_upload(model)
    return await lifecycle.handle_upload(incoming, session_id, device_type)


@router.get("/{session_id}", response_model=UploadResponse, response_model_exclude_none=True)
async def get_session_upload(
    session_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    upload = await lifecycle.get_session_upload(session_id)
    if upload is None:
        raise HTTPException(status_code=404, detail="No upload for this session")

    return UploadResponse(
        id=upload.id,
        status=upload.status,
        glb_path=upload.glb_path,
        usdz_path=upload.usdz_path,
        device_type=upload.device_type,
    )


@router.delete("/{session_id}")
async def delete_session_upload(
    session_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    await lifecycle.teardown_session(session_id)
    return {"success": True}


# 페이지 unload 시 sendBeacon 으로 호출됨 (응답은 아무도 안 읽음)
@router.post("/cleanup/{session_id}")
async def cleanup_session_upload(
    session_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle),
):
    await lifecycle.teardown_session(session_id)
    return {"success": True}
