"""QR relay: share the latest scanned QR code from scanners to viewers."""

__version__ = "1.0.0"
