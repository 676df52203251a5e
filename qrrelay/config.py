"""Runtime settings read from the environment (and .env at the project root)."""
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent
STATIC_DIR = PACKAGE_DIR / "static"

DEFAULT_PORT = 3001
DEFAULT_HTTPS_PORT = 3443


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    https_port: int = DEFAULT_HTTPS_PORT
    ssl_dir: Path = PROJECT_ROOT / "ssl"
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    static_dir: Path = STATIC_DIR

    @property
    def key_path(self) -> Path:
        return self.ssl_dir / "key.pem"

    @property
    def cert_path(self) -> Path:
        return self.ssl_dir / "cert.pem"

    def tls_files(self) -> tuple[Path, Path] | None:
        """Return (key, cert) when both exist, else None (plaintext only)."""
        if self.key_path.is_file() and self.cert_path.is_file():
            return self.key_path, self.cert_path
        return None

    @classmethod
    def from_env(cls, env: dict | None = None) -> "Settings":
        if env is None:
            load_dotenv(PROJECT_ROOT / ".env")
            env = os.environ
        return cls(
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", DEFAULT_PORT)),
            https_port=int(env.get("HTTPS_PORT", DEFAULT_HTTPS_PORT)),
            ssl_dir=Path(env.get("QRRELAY_SSL_DIR", PROJECT_ROOT / "ssl")),
            log_level=env.get("QRRELAY_LOG_LEVEL", "INFO").upper(),
            cors_origins=_split_origins(env.get("QRRELAY_CORS_ORIGINS", "*")),
        )
