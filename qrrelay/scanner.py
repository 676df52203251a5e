"""
Camera scanner client: decode QR codes from a local camera with OpenCV and
publish them to the relay over /ws as a scanner.
"""
import argparse
import asyncio
import json
import logging
import time
from dataclasses import dataclass

import cv2
import numpy as np
import websockets

from .state import format_timestamp, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "ws://localhost:3001/ws"
DEFAULT_COOLDOWN = 1.0
SCAN_REGION = 0.7


@dataclass(frozen=True)
class Detection:
    content: str
    points: np.ndarray | None = None


class ScanCooldown:
    """Minimum interval between two emitted detections, whatever their content."""

    def __init__(self, interval: float = DEFAULT_COOLDOWN, clock=time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last: float | None = None

    def ready(self) -> bool:
        now = self._clock()
        if self._last is not None and now - self._last <= self.interval:
            return False
        self._last = now
        return True


_DETECTOR = None


def _get_detector():
    global _DETECTOR
    if _DETECTOR is None:
        _DETECTOR = cv2.QRCodeDetector()
    return _DETECTOR


def decode_frame(frame: np.ndarray | None, region: float = SCAN_REGION) -> Detection | None:
    """Decode a QR code from the centre ``region`` of a BGR/gray frame; corners in full-frame coordinates."""
    if frame is None or frame.size == 0:
        return None
    h, w = frame.shape[:2]
    cw, ch = int(w * region), int(h * region)
    x0, y0 = (w - cw) // 2, (h - ch) // 2
    crop = frame[y0 : y0 + ch, x0 : x0 + cw]
    try:
        data, points, _ = _get_detector().detectAndDecode(crop)
    except cv2.error as e:
        logger.debug("QR decode failed: %s", e)
        return None
    if not data:
        return None
    if points is not None:
        points = points.reshape(-1, 2) + np.array([x0, y0], dtype=points.dtype)
    return Detection(content=data, points=points)


def scan_message(content: str) -> str:
    return json.dumps({
        "event": "qr-scanned",
        "data": {"content": content, "timestamp": format_timestamp(utcnow())},
    })


async def _log_server_events(ws) -> None:
    async for raw in ws:
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if msg.get("event") == "scanner-count":
            logger.info("Active scanners: %s", msg.get("data"))


async def run_scanner(server: str, camera: int = 0, cooldown: float = DEFAULT_COOLDOWN, fps: float = 15.0) -> None:
    cap = cv2.VideoCapture(camera)
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open camera {camera}")
    throttle = ScanCooldown(cooldown)
    try:
        async with websockets.connect(server) as ws:
            await ws.send(json.dumps({"event": "join-as-scanner"}))
            logger.info("Connected to %s as scanner", server)
            reader = asyncio.create_task(_log_server_events(ws))
            try:
                while True:
                    ok, frame = await asyncio.to_thread(cap.read)
                    if not ok:
                        logger.warning("Camera %s returned no frame", camera)
                        await asyncio.sleep(0.5)
                        continue
                    detection = await asyncio.to_thread(decode_frame, frame)
                    if detection and throttle.ready():
                        logger.info("Detected: %.60r", detection.content)
                        await ws.send(scan_message(detection.content))
                    await asyncio.sleep(1.0 / fps)
            finally:
                reader.cancel()
    finally:
        cap.release()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(message)s", datefmt="%H:%M:%S")
    parser = argparse.ArgumentParser(description="Camera QR scanner -> relay server")
    parser.add_argument("--server", default=DEFAULT_SERVER, help=f"Relay WebSocket URL (default: {DEFAULT_SERVER})")
    parser.add_argument("--camera", type=int, default=0, help="OpenCV camera index")
    parser.add_argument("--cooldown", type=float, default=DEFAULT_COOLDOWN, help="Seconds between emitted scans")
    parser.add_argument("--fps", type=float, default=15.0, help="Frames sampled per second")
    args = parser.parse_args(argv)
    try:
        asyncio.run(run_scanner(args.server, args.camera, args.cooldown, args.fps))
    except KeyboardInterrupt:
        pass
    except (OSError, RuntimeError, websockets.exceptions.WebSocketException) as e:
        logger.error("Scanner stopped: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
