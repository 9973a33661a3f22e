from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import sys
from urllib.parse import urlparse


LOCAL_BACKEND_URL = "http://localhost:3001/api"


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class ClientSettings:
    base_url: str = LOCAL_BACKEND_URL
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    retry_multiplier: float = 2.0
    timeout_seconds: float = 10.0
    cache_timeout_seconds: float = 300.0
    health_check_interval_seconds: float = 30.0
    health_check_timeout_seconds: float = 5.0
    token_path: str | None = None
    offline_data_path: str | None = None

    @staticmethod
    def from_env() -> "ClientSettings":
        _load_dotenv_if_present()

        explicit_base_url = os.getenv("OPTOHUB_BASE_URL", "").strip()
        if explicit_base_url:
            base_url = explicit_base_url.rstrip("/")
        else:
            base_url = derive_base_url(os.getenv("OPTOHUB_ORIGIN", "").strip() or None)

        data_dir = os.path.join(os.getenv("LOCALAPPDATA", os.getcwd()), "OptoHubClient")
        token_path = os.getenv(
            "OPTOHUB_TOKEN_PATH",
            os.path.join(data_dir, "admin_token.bin"),
        )
        offline_data_path = os.getenv(
            "OPTOHUB_OFFLINE_DATA_PATH",
            os.path.join(data_dir, "admin_panel_data.json"),
        )

        settings = ClientSettings(
            base_url=base_url,
            max_retries=_env_number("OPTOHUB_MAX_RETRIES", "3", int),
            retry_delay_seconds=_env_number("OPTOHUB_RETRY_DELAY_SECONDS", "1", float),
            retry_multiplier=_env_number("OPTOHUB_RETRY_MULTIPLIER", "2", float),
            timeout_seconds=_env_number("OPTOHUB_TIMEOUT_SECONDS", "10", float),
            cache_timeout_seconds=_env_number("OPTOHUB_CACHE_TIMEOUT_SECONDS", "300", float),
            health_check_interval_seconds=_env_number(
                "OPTOHUB_HEALTH_CHECK_INTERVAL_SECONDS", "30", float
            ),
            health_check_timeout_seconds=_env_number(
                "OPTOHUB_HEALTH_CHECK_TIMEOUT_SECONDS", "5", float
            ),
            token_path=token_path,
            offline_data_path=offline_data_path,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"OPTOHUB_BASE_URL must be an absolute http(s) URL, got {self.base_url!r}"
            )

        if self.max_retries < 0:
            raise ConfigurationError("OPTOHUB_MAX_RETRIES must be 0 or greater")

        if self.retry_delay_seconds < 0:
            raise ConfigurationError("OPTOHUB_RETRY_DELAY_SECONDS must be 0 or greater")

        if self.retry_multiplier < 1:
            raise ConfigurationError("OPTOHUB_RETRY_MULTIPLIER must be 1 or greater")

        positive_fields = {
            "OPTOHUB_TIMEOUT_SECONDS": self.timeout_seconds,
            "OPTOHUB_CACHE_TIMEOUT_SECONDS": self.cache_timeout_seconds,
            "OPTOHUB_HEALTH_CHECK_INTERVAL_SECONDS": self.health_check_interval_seconds,
            "OPTOHUB_HEALTH_CHECK_TIMEOUT_SECONDS": self.health_check_timeout_seconds,
        }
        invalid = [name for name, value in positive_fields.items() if value <= 0]
        if invalid:
            raise ConfigurationError(
                "Settings must be greater than 0: " + ", ".join(invalid)
            )

    def retry_delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows the 0-based ``attempt``."""
        return self.retry_delay_seconds * (self.retry_multiplier ** attempt)


def derive_base_url(origin: str | None) -> str:
    """Map the origin the admin pages are served from to the backend API root.

    Pages opened from disk or served locally talk to the development backend on
    port 3001; anything else uses the same origin with an ``/api`` prefix.
    """
    if not origin:
        return LOCAL_BACKEND_URL

    parsed = urlparse(origin)
    hostname = parsed.hostname or ""
    if parsed.scheme == "file" or not hostname:
        return LOCAL_BACKEND_URL
    if hostname in ("localhost", "127.0.0.1"):
        return LOCAL_BACKEND_URL

    port = parsed.port
    port_suffix = f":{port}" if port and port not in (80, 443) else ""
    return f"{parsed.scheme}://{hostname}{port_suffix}/api"


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default).strip() or default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _load_dotenv_if_present(file_name: str = ".env") -> None:
    for candidate in _candidate_env_files(file_name):
        _load_env_file(candidate)


def _candidate_env_files(file_name: str) -> list[Path]:
    candidates: list[Path] = []

    explicit = os.getenv("OPTOHUB_ENV_FILE", "").strip()
    if explicit:
        candidates.append(Path(explicit).expanduser())

    candidates.append(Path.cwd() / file_name)

    if getattr(sys, "frozen", False):
        exe_dir = Path(sys.executable).resolve().parent
        candidates.append(exe_dir / file_name)
    else:
        project_root = Path(__file__).resolve().parent.parent
        candidates.append(project_root / file_name)

    unique_candidates: list[Path] = []
    seen: set[str] = set()
    for path in candidates:
        normalized = str(path.resolve()) if path.exists() else str(path)
        if normalized in seen:
            continue
        seen.add(normalized)
        unique_candidates.append(path)
    return unique_candidates


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    try:
        with path.open("r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue

                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")

                if key and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        return
