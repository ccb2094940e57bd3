import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import requests
import yaml
from dotenv import load_dotenv

from ..clients.errors import InvalidRequestError
from ..clients.http import DEFAULT_TIMEOUT, RetryPolicy

DEFAULT_DATASET = "production"

# API host for skipping the CDN
API_HOST = "api.sanity.io"

# API host which connects through the CDN
API_CDN_HOST = "apicdn.sanity.io"

_VERSION_RE = re.compile(r"^(1|X|\d{4}-\d{2}-\d{2})$")
_TRUTHY = {"1", "true", "yes", "on"}


class ConfigurationError(InvalidRequestError):
    """Raised when required configuration is missing or invalid."""

    pass


class Version(str):
    """An API version: an ISO date, "1" for backwards compatibility, or "X"."""

    def validate(self) -> None:
        if self == "":
            raise ConfigurationError("no version given")
        if not _VERSION_RE.match(self):
            raise ConfigurationError(f"invalid version format {str(self)!r}")


V1 = Version("1")
EXPERIMENTAL = Version("X")
V20210325 = Version("2021-03-25")


@dataclass(frozen=True)
class Callbacks:
    on_error_will_retry: Optional[Callable[[Exception], None]] = None
    on_query_result: Optional[Callable[[Any], None]] = None


@dataclass(frozen=True)
class ClientConfig:
    """Read-only client configuration.

    Derive variants with ``dataclasses.replace``; instances are never
    modified in place, so one config can back clients on many threads.
    """

    project_id: str
    dataset: str = DEFAULT_DATASET
    api_version: Version = V20210325
    token: str = ""
    use_cdn: bool = False
    api_host: Optional[str] = None
    headers: Tuple[Tuple[str, str], ...] = ()
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    callbacks: Callbacks = field(default_factory=Callbacks)
    default_tag: str = ""
    timeout: float = DEFAULT_TIMEOUT
    session: Optional[requests.Session] = field(default=None, compare=False, repr=False)

    def validate(self) -> None:
        if not self.project_id:
            raise ConfigurationError("project ID cannot be empty")
        if not self.dataset:
            raise ConfigurationError("dataset must be set")
        Version(self.api_version).validate()

    def _base_url(self, host: str) -> str:
        if self.api_host:
            base = self.api_host.rstrip("/")
        else:
            base = f"https://{self.project_id}.{host}"
        return f"{base}/v{self.api_version}"

    @property
    def api_url(self) -> str:
        return self._base_url(API_HOST)

    @property
    def query_url(self) -> str:
        # The CDN is skipped whenever a custom host is configured.
        if self.use_cdn and not self.api_host:
            return self._base_url(API_CDN_HOST)
        return self.api_url


def _as_header_pairs(raw: Optional[Dict[str, Any]]) -> Tuple[Tuple[str, str], ...]:
    pairs = []
    for name, value in (raw or {}).items():
        values = value if isinstance(value, (list, tuple)) else [value]
        pairs.extend((str(name), str(v)) for v in values)
    return tuple(pairs)


def _load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(path: Optional[str] = None) -> ClientConfig:
    """Load and validate client configuration from the environment and YAML.

    Args:
        path: Optional YAML settings file; defaults to ``SANITY_CONFIG_FILE``.

    Returns:
        A validated ClientConfig instance.

    Raises:
        ConfigurationError: If required environment variables are missing or invalid.
        FileNotFoundError: If the YAML settings file is not found.
        yaml.YAMLError: If the YAML file contains invalid syntax.
    """
    load_dotenv()

    required_env = {
        "SANITY_PROJECT_ID": os.getenv("SANITY_PROJECT_ID", "").strip(),
        "SANITY_DATASET": os.getenv("SANITY_DATASET", DEFAULT_DATASET).strip(),
    }

    missing = [key for key, value in required_env.items() if not value]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(sorted(missing))}"
        )

    settings: Dict[str, Any] = {}
    path = path or os.getenv("SANITY_CONFIG_FILE", "").strip()
    if path:
        settings = _load_yaml(path)

    retry_settings = settings.get("retry") or {}
    max_attempts_raw = retry_settings.get("max_attempts")
    try:
        max_attempts = int(max_attempts_raw) if max_attempts_raw is not None else None
    except (TypeError, ValueError):
        raise ConfigurationError(f"retry.max_attempts must be an integer, got {max_attempts_raw!r}")
    if max_attempts is not None and max_attempts < 1:
        raise ConfigurationError(f"retry.max_attempts must be at least 1, got {max_attempts}")

    retry_policy = RetryPolicy(
        min_wait=float(retry_settings.get("min_wait", RetryPolicy.min_wait)),
        max_wait=float(retry_settings.get("max_wait", RetryPolicy.max_wait)),
        factor=float(retry_settings.get("factor", RetryPolicy.factor)),
        jitter=bool(retry_settings.get("jitter", RetryPolicy.jitter)),
        max_attempts=max_attempts,
    )

    timeout_raw = os.getenv("SANITY_TIMEOUT", "").strip()
    try:
        timeout = float(timeout_raw) if timeout_raw else float(DEFAULT_TIMEOUT)
    except ValueError:
        raise ConfigurationError(f"SANITY_TIMEOUT must be a number, got {timeout_raw!r}")

    config = ClientConfig(
        project_id=required_env["SANITY_PROJECT_ID"],
        dataset=required_env["SANITY_DATASET"],
        api_version=Version(os.getenv("SANITY_API_VERSION", V20210325).strip()),
        token=os.getenv("SANITY_TOKEN", "").strip(),
        use_cdn=os.getenv("SANITY_USE_CDN", "").strip().lower() in _TRUTHY,
        api_host=os.getenv("SANITY_API_HOST", "").strip() or None,
        headers=_as_header_pairs(settings.get("headers")),
        retry_policy=retry_policy,
        default_tag=os.getenv("SANITY_TAG", "").strip(),
        timeout=timeout,
    )
    config.validate()
    return config
