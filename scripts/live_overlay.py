"""Run the camera (or still image) overlay window.

Usage:
    uvicorn api.main:app --reload          # (separate, for API)
    python scripts/live_overlay.py         # live camera window
    python scripts/live_overlay.py --image faces.jpg

Press 'q' to quit the live window, any key to close the still window.
"""
import argparse
import logging

from facefeed.config import Settings
from facefeed.errors import DeviceUnavailable
from facefeed.live import run_live_overlay, run_still_overlay

if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument("--image", default=None, help="Show a still image instead of the camera")
    p.add_argument("--camera", type=int, default=None, help="Camera index override")
    args = p.parse_args()

    s = Settings()
    logging.basicConfig(level=getattr(logging, s.LOG_LEVEL.upper(), logging.INFO))
    try:
        if args.image or s.STILL_IMAGE_PATH:
            run_still_overlay(s, args.image)
        else:
            run_live_overlay(s, camera_index=args.camera)
    except DeviceUnavailable as e:
        raise SystemExit(f"Camera/image unavailable: {e}")
