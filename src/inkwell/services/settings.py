"""AI configuration dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "AISettings",
    "LogSettings",
    "OpenAISettings",
    "ProviderSettings",
    "RateLimitSettings",
    "SecretVault",
    "SettingsProvider",
    "SettingsStore",
    "StreamingSettings",
    "UISettings",
    "redact_secret",
    "static_settings",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".inkwell"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "ai_settings.json"
_SETTINGS_VERSION = 1
_API_KEY_PATH = "providers.openai.api_key"
_API_KEY_FIELD = "api_key_ciphertext"
_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_DEFAULT_TEXT_PROVIDER": "providers.default_text_provider_id",
    "INKWELL_DEFAULT_IMAGE_PROVIDER": "providers.default_image_provider_id",
    "INKWELL_OPENAI_API_KEY": "providers.openai.api_key",
    "INKWELL_OPENAI_BASE_URL": "providers.openai.base_url",
    "INKWELL_OPENAI_TEXT_MODEL": "providers.openai.text_model",
    "INKWELL_OPENAI_IMAGE_MODEL": "providers.openai.image_model",
    "INKWELL_LOG_LEVEL": "log.level",
    "INKWELL_LOG_DIR": "log.log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_AI_ENABLED": "enabled",
    "INKWELL_AI_STREAMING": "streaming.enabled",
    "INKWELL_ALLOW_PROVIDER_FALLBACK": "providers.allow_provider_fallback",
    "INKWELL_OPENAI_ENABLED": "providers.openai.enabled",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_REQUESTS_PER_MINUTE": "rate_limiting.requests_per_minute",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKWELL_OPENAI_TIMEOUT": "providers.openai.request_timeout",
}
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class OpenAISettings:
    """Connection settings for the OpenAI-backed provider."""

    enabled: bool = False
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    organization: str | None = None
    text_model: str = "gpt-4.1-mini"
    image_model: str = "gpt-image-1"
    image_size: str = "1024x1024"
    request_timeout: float = 60.0
    max_output_tokens: int = 800
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0


@dataclass(slots=True)
class ProviderSettings:
    default_text_provider_id: str = "mock-text"
    default_image_provider_id: str = "mock-image"
    allow_provider_fallback: bool = True
    openai: OpenAISettings = field(default_factory=OpenAISettings)


@dataclass(slots=True)
class StreamingSettings:
    enabled: bool = False


@dataclass(slots=True)
class UISettings:
    show_ai_menu: bool = True


@dataclass(slots=True)
class RateLimitSettings:
    requests_per_minute: int = 100


@dataclass(slots=True)
class LogSettings:
    """Where and how verbosely the core writes its log."""

    level: str = "INFO"
    log_dir: str = ""
    console: bool = True
    max_bytes: int = 1_000_000
    backup_count: int = 3
    component_levels: Dict[str, str] = field(
        default_factory=lambda: {"inkwell.ai": "INFO", "inkwell.editor": "INFO"}
    )


@dataclass(slots=True)
class AISettings:
    """Options read by the orchestrator, router, and usage policy."""

    enabled: bool = False
    providers: ProviderSettings = field(default_factory=ProviderSettings)
    streaming: StreamingSettings = field(default_factory=StreamingSettings)
    ui: UISettings = field(default_factory=UISettings)
    rate_limiting: RateLimitSettings = field(default_factory=RateLimitSettings)
    log: LogSettings = field(default_factory=LogSettings)


SettingsProvider = Callable[[], AISettings]


def static_settings(settings: AISettings) -> SettingsProvider:
    """Wrap a fixed settings object as a provider callable."""

    def _provider() -> AISettings:
        return settings

    return _provider


class SecretVault:
    """Encrypts secrets with a Fernet key stored next to the settings file."""

    strategy = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "ai_settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{self.strategy}:{token}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if not payload:
            payload, prefix = prefix, self.strategy
        if prefix != self.strategy:
            raise ValueError(f"Unknown secret backend '{prefix}'")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`AISettings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> AISettings:
        """Load settings from disk, then apply runtime and environment overrides."""

        payload = self._read_payload()
        settings = AISettings()
        if payload:
            ciphertext = payload.pop(_API_KEY_FIELD, None)
            payload.pop("version", None)
            payload.pop("secret_backend", None)
            try:
                settings = _build_dataclass(AISettings, payload)
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = AISettings()
            api_key = self._decrypt_api_key(ciphertext)
            if api_key:
                settings = _replace_path(settings, _API_KEY_PATH, api_key)
            LOGGER.debug("AI settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")
        return self._apply_env_overrides(settings)

    def save(self, settings: AISettings) -> Path:
        """Persist settings to disk with an atomic replace."""

        payload = asdict(settings)
        api_key = payload["providers"]["openai"].pop("api_key", "") or ""
        if api_key:
            payload[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        payload["version"] = _SETTINGS_VERSION
        payload["secret_backend"] = self._vault.strategy
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("AI settings saved to %s", self._path)
        return self._path

    def provider(self) -> SettingsProvider:
        """Return a callable that reloads settings on every call."""

        return self.load

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}

    def _decrypt_api_key(self, ciphertext: str | None) -> str:
        if not ciphertext:
            return ""
        try:
            return self._vault.decrypt(ciphertext)
        except ValueError as exc:
            LOGGER.warning("Unable to decrypt API key: %s", exc)
            return ""

    def _apply_overrides(
        self,
        settings: AISettings,
        overrides: Mapping[str, Any],
        *,
        source: str,
    ) -> AISettings:
        applied: list[str] = []
        for path, value in overrides.items():
            if value is None:
                continue
            try:
                settings = _replace_path(settings, path, value)
            except AttributeError:
                LOGGER.debug("Ignoring unknown %s settings override %s", source, path)
                continue
            applied.append(path)
        if applied:
            LOGGER.debug("Applied %s settings overrides: %s", source, sorted(applied))
        return settings

    def _apply_env_overrides(self, settings: AISettings) -> AISettings:
        overrides: Dict[str, Any] = {}
        for env_name, path in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[path] = value
        for env_name, path in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[path] = value.strip().lower() in _TRUE_VALUES
        for env_name, path in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[path] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, path in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[path] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _build_dataclass(cls: type, payload: Mapping[str, Any]) -> Any:
    kwargs: Dict[str, Any] = {}
    for item in fields(cls):
        if item.name not in payload:
            continue
        value = payload[item.name]
        default = item.default_factory() if callable(item.default_factory) else None  # type: ignore[misc]
        if is_dataclass(default) and isinstance(value, Mapping):
            value = _build_dataclass(type(default), value)
        kwargs[item.name] = value
    return cls(**kwargs)


def _replace_path(obj: Any, path: str, value: Any) -> Any:
    head, _, rest = path.partition(".")
    if head not in {item.name for item in fields(obj)}:
        raise AttributeError(path)
    if not rest:
        return replace(obj, **{head: value})
    return replace(obj, **{head: _replace_path(getattr(obj, head), rest, value)})


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
