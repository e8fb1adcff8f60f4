"""Configuration for the Freemind client."""

import json
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from freemind.errors import ConfigError

# Where the client configuration lives unless --config is passed.
CONFIG_PATH: Path = Path("~/.config/freemind/freemind-cli.config").expanduser()

# Identifies this client towards the registry server.
USER_AGENT: str = "Freemind CLI"

# Requests that take longer than this (seconds) are treated as transport failures.
REQUEST_TIMEOUT: float = 30.0


class AuthMethod(Enum):
    """How the secret is presented to the server.

    The value doubles as the name of the header carrying the secret.
    """

    TOKEN = "token"
    PASSWORD = "password"

    def __str__(self) -> str:
        return self.value.capitalize()


@dataclass
class AppConfig:
    """Connection settings for the registry server."""

    server_address: str
    username: str
    secret: str
    auth_method: AuthMethod = AuthMethod.TOKEN

    @classmethod
    def default(cls) -> "AppConfig":
        """Placeholder values written for a user to fill in."""
        return cls(
            server_address="<THE ADDRESS OF THE WEBSERVER>",
            username="<YOUR USERNAME>",
            secret="<YOUR TOKEN / SECRET>",
        )

    @classmethod
    def empty(cls) -> "AppConfig":
        return cls(server_address="", username="", secret="")

    def is_default(self) -> bool:
        return self == AppConfig.default()

    def is_empty(self) -> bool:
        return self == AppConfig.empty()

    def needs_setup(self) -> bool:
        """True if the config cannot possibly reach a server."""
        return self.is_default() or self.is_empty() or not self.server_address

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["auth_method"] = self.auth_method.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "AppConfig":
        try:
            return cls(
                server_address=data["server_address"],
                username=data["username"],
                secret=data["secret"],
                auth_method=AuthMethod(data.get("auth_method", AuthMethod.TOKEN.value).lower()),
            )
        except (KeyError, ValueError, AttributeError) as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigError(msg) from e

    def __str__(self) -> str:
        return (
            f"Server: {self.server_address}\n"
            f"Username: {self.username}\n"
            f"Secret: {'*' * len(self.secret)}\n"
            f"Auth Method: {self.auth_method}"
        )


def load_config(path: Path = CONFIG_PATH) -> AppConfig:
    """Read the configuration file.

    A missing file yields an empty config, so first runs can prompt for setup.

    Raises:
        ConfigError: If the file exists but is not a valid configuration.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No config file at {}, using empty config", path)
        return AppConfig.empty()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        msg = f"Config file {str(path)!r} is not valid JSON: {e}"
        raise ConfigError(msg) from e
    if not isinstance(data, dict):
        msg = f"Config file {str(path)!r} must contain a JSON object"
        raise ConfigError(msg)
    return AppConfig.from_dict(data)


def save_config(config: AppConfig, path: Path = CONFIG_PATH) -> None:
    """Write the configuration file, creating its directory if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=4) + "\n", encoding="utf-8")
    logger.debug("Saved config to {}", path)
