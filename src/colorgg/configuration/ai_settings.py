import os
from typing import Any, Dict

DEFAULT_BASE_URL = "https://text.pollinations.ai/openai"
DEFAULT_MODEL_NAME = "openai"
DEFAULT_API_KEY_ENV = "AI_API_KEY"


class AISettings:
    """Helper exposing typed accessors for the classifier service configuration.

    This class intentionally provides a minimal, explicit API (`get`,
    `as_dict`, and convenience properties) and does not implement the full
    mapping protocol.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping (shallow copy recommended by callers)."""
        return self.data

    @property
    def base_url(self) -> str:
        return str(self.data.get("base_url") or DEFAULT_BASE_URL)

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or DEFAULT_MODEL_NAME)

    @property
    def api_key(self) -> str:
        """Explicit ``api_key`` wins; otherwise read the variable named by ``api_key_env``."""
        explicit = self.data.get("api_key")
        if explicit:
            return str(explicit)
        env_name = str(self.data.get("api_key_env") or DEFAULT_API_KEY_ENV)
        # The OpenAI client refuses an empty key even for keyless endpoints
        return os.getenv(env_name) or "not-needed"

    @property
    def request_timeout_seconds(self) -> float:
        return float(self.data.get("request_timeout_seconds", 30.0))

    @property
    def bulk_timeout_seconds(self) -> float:
        return float(self.data.get("bulk_timeout_seconds", 45.0))

    @property
    def json_mode(self) -> bool:
        return bool(self.data.get("json_mode", True))

    @property
    def sampling_parameters(self) -> Dict[str, Any]:
        k = self.data.get("sampling_parameters", {})
        return k if isinstance(k, dict) else {}
