import json

import cv2
import numpy as np
import pytest

from qrrelay.scanner import ScanCooldown, decode_frame, scan_message


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_cooldown_blocks_repeats_inside_interval():
    clock = FakeClock()
    cooldown = ScanCooldown(1.0, clock=clock)

    assert cooldown.ready()
    clock.now += 0.5
    assert not cooldown.ready()
    clock.now += 0.5
    assert not cooldown.ready()
    clock.now += 0.01
    assert cooldown.ready()


def _qr_frame(text: str) -> tuple[np.ndarray, int, int]:
    """White frame with a QR code centred in it; returns (frame, offset, code_size)."""
    code = cv2.QRCodeEncoder.create().encode(text)
    scale = max(1, 200 // code.shape[0])
    code = cv2.resize(code, None, fx=scale, fy=scale, interpolation=cv2.INTER_NEAREST)
    code = cv2.copyMakeBorder(code, 4 * scale, 4 * scale, 4 * scale, 4 * scale, cv2.BORDER_CONSTANT, value=255)
    size = code.shape[0]
    frame = np.full((size * 2, size * 2), 255, dtype=np.uint8)
    offset = size // 2
    frame[offset : offset + size, offset : offset + size] = code
    return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR), offset, size


def test_decode_frame_finds_centred_code():
    frame, offset, size = _qr_frame("https://example.com")

    detection = decode_frame(frame)

    assert detection is not None
    assert detection.content == "https://example.com"
    assert detection.points.shape == (4, 2)
    assert detection.points.min() >= offset - 2
    assert detection.points.max() <= offset + size + 2


@pytest.mark.parametrize("frame", [None, np.zeros((0, 0, 3), np.uint8), np.full((240, 320, 3), 255, np.uint8)])
def test_decode_frame_without_code(frame):
    assert decode_frame(frame) is None


def test_scan_message_envelope():
    msg = json.loads(scan_message("hello ☕"))
    assert msg["event"] == "qr-scanned"
    assert msg["data"]["content"] == "hello ☕"
    assert msg["data"]["timestamp"].endswith("Z")
