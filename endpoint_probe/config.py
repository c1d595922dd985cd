"""Environment-driven configuration for a probe run."""

from collections.abc import Mapping, Sequence
from typing import Any, Literal

from pydantic import (
    Field,
    NonNegativeInt,
    PositiveInt,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from endpoint_probe.models.base import Model

KEEPALIVE_INTERVAL_SECONDS = 30.0
CLOCK_SYSVAR = "SysvarC1ock11111111111111111111111111111111"

_FLAG = TypeAdapter(bool)

type Commitment = Literal["processed", "confirmed", "finalized"]

ENV_KEYS: Mapping[str, str] = {
    "grpc_url": "GRPC_URL",
    "grpc_api_key": "GRPC_API_KEY",
    "http_url": "HTTP_URL",
    "ws_url": "WS_URL",
    "test_duration": "TEST_DURATION",
    "test_interval": "TEST_INTERVAL",
    "test_grpc_stream": "TEST_GRPC_STREAM",
    "test_grpc_calls": "TEST_GRPC_CALLS",
    "test_websocket_stream": "TEST_WEBSOCKET_STREAM",
    "test_http_calls": "TEST_HTTP_CALLS",
    "verbose_errors": "VERBOSE_ERRORS",
    "copy_accounts": "COPY_ACCOUNTS",
    "commitment": "COMMITMENT_LEVEL",
    "ws_commitment": "WS_COMMITMENT_LEVEL",
    "maintenance_check": "MAINTENANCE_CHECK",
    "geyser_client": "GEYSER_CLIENT",
    "concurrent": "TEST_CONCURRENT",
}


class ConfigurationError(Exception):
    """Raised when required settings are absent."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(
            f"Missing environment variable(s): {', '.join(self.missing)}"
        )


class ProbeSettings(Model):
    """Settings shared by every probe of a run."""

    grpc_url: str | None = None
    grpc_api_key: SecretStr | None = None
    http_url: str | None = None
    ws_url: str | None = None
    test_duration: PositiveInt = Field(..., description="Probe duration in seconds")
    test_interval: NonNegativeInt = Field(
        ..., description="Countdown before each probe in seconds"
    )
    test_grpc_stream: bool = False
    test_grpc_calls: bool = False
    test_websocket_stream: bool = False
    test_http_calls: bool = False
    verbose_errors: bool = False
    copy_accounts: Sequence[str] = Field(
        default=(CLOCK_SYSVAR,), min_length=1, description="Match identifiers"
    )
    commitment: Commitment = "confirmed"
    ws_commitment: Commitment = "finalized"
    maintenance_check: bool = True
    geyser_client: str = "yellowstone"
    concurrent: bool = False

    @field_validator("copy_accounts", mode="before")
    @classmethod
    def split_accounts(cls, value: Any) -> Any:
        """Accept a comma-separated string as well as a sequence."""
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "ProbeSettings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If any required variable is absent, listing
                all of them at once.
            pydantic.ValidationError: If a present value is invalid.

        """
        data = {
            field: environ[key]
            for field, key in ENV_KEYS.items()
            if environ.get(key, "").strip()
        }

        missing = [
            ENV_KEYS[field]
            for field in required_fields(data)
            if field not in data
        ]
        if missing:
            raise ConfigurationError(missing)

        return cls.model_validate(data)


def required_fields(data: Mapping[str, Any]) -> Sequence[str]:
    """Return the fields required given which probes are enabled."""
    required = ["test_duration", "test_interval"]
    if _is_enabled(data, "test_grpc_stream") or _is_enabled(data, "test_grpc_calls"):
        required.append("grpc_url")
    if _is_enabled(data, "test_websocket_stream"):
        required.append("ws_url")
    if _is_enabled(data, "test_http_calls"):
        required.append("http_url")
    return required


def _is_enabled(data: Mapping[str, Any], field: str) -> bool:
    """Read an enable flag the way the model will.

    Unparseable values count as enabled so that validation reports them.
    """
    if field not in data:
        return False
    try:
        return _FLAG.validate_python(data[field])
    except ValidationError:
        return True
