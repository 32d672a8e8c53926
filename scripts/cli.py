"""
CLI to analyze a still image -> JSON overlay payload.
"""
from __future__ import annotations
import argparse, json, logging, os
from facefeed.config import Settings
from facefeed.errors import DeviceUnavailable
from facefeed.live import analyze_still_image

def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("--image", required=True, help="Path to input image")
    p.add_argument("--out", default="output/overlay.json", help="Path to output JSON")
    p.add_argument("--view", default=None, help="View size WxH, e.g. 300x300")
    args = p.parse_args(argv)

    overrides = {}
    if args.view:
        w, h = args.view.lower().split("x")
        overrides = {"VIEW_WIDTH": int(w), "VIEW_HEIGHT": int(h)}
    settings = Settings(**overrides)
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    try:
        result = analyze_still_image(args.image, settings)
    except DeviceUnavailable as e:
        print(f"❌ {e}")
        return 2
    print(json.dumps(result, indent=2, ensure_ascii=False))

    # Also write to file
    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)
    print(f"✅ Overlay written to {args.out}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
