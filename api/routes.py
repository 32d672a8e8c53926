"""
REST endpoints for still-image analysis and the headless live session.
"""
import logging
import os
import shutil
import tempfile

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from facefeed.config import Settings
from facefeed.errors import DeviceUnavailable
from facefeed.live import LiveSession, analyze_still_image

router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)

live_session = LiveSession(settings)


@router.post("/analyze/image")
async def analyze_image(file: UploadFile = File(...)):
    """
    Detect faces/landmarks and classify emotion on one uploaded image.

    Args:
        file: Uploaded image file (anything OpenCV can decode).

    Returns:
        JSONResponse: label, shapes (kind, geometry, style) in view coordinates.
    """
    logger.debug(f"[api] /analyze/image filename={file.filename}")
    try:
        suffix = os.path.splitext(file.filename or "")[1] or ".jpg"
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
            shutil.copyfileobj(file.file, tmp)
            tmp_path = tmp.name
    except Exception as e:
        logger.exception("[api] upload save failed")
        raise HTTPException(status_code=400, detail=f"Upload failed: {e}")

    try:
        payload = analyze_still_image(tmp_path, settings)
        return JSONResponse(payload)
    except DeviceUnavailable as e:
        # the upload could not be decoded as an image
        logger.warning(f"[api] unreadable image: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("[api] analyze_still_image failed")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.warning(f"[api] failed to cleanup tmp file: {tmp_path}")


@router.post("/live/start")
async def live_start():
    try:
        started = live_session.start()
    except DeviceUnavailable as e:
        logger.warning(f"[api] live start failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {"status": "started" if started else "already_running"}


@router.get("/live/status")
async def live_status():
    return live_session.status()


@router.post("/live/stop")
async def live_stop():
    stopped = live_session.stop()
    return {"status": "stopped" if stopped else "not_running"}
