"""Project configuration.

The configuration lives in ``deployer.json`` at the project root (override
with ``DEPLOYER_CONFIG``). It declares compiler settings, the networks a
module can be deployed to, and the verification services. Private keys are
never stored in it: each network lists the *names* of environment variables
that hold its account keys, resolved once at process start.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from deployer.errors import ConfigurationError
from deployer.models.types import is_valid_private_key

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "deployer.json"

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NETWORK_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class OptimizerSettings(BaseModel):
    """Solidity optimizer settings used for the compiled artifacts."""

    enabled: bool = False
    runs: int = Field(default=200, ge=0)

    model_config = {"frozen": True, "extra": "forbid"}


class CompilerSettings(BaseModel):
    """Compiler the artifacts were built with; checked during verification."""

    version: str = Field(pattern=r"^\d+\.\d+\.\d+$")
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)

    model_config = {"frozen": True, "extra": "forbid"}


class NetworkConfig(BaseModel):
    """A target network endpoint and its submitting accounts."""

    url: str
    accounts: list[str] = Field(
        default_factory=list,
        description="Environment variable names holding account private keys.",
    )
    chain_id: int | None = Field(default=None, alias="chainId", gt=0)
    timeout: float = Field(default=120.0, gt=0, description="Seconds to wait for a receipt.")
    poll_latency: float = Field(default=0.5, alias="pollLatency", gt=0)

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Network url must be http(s): {value!r}")
        return value

    @field_validator("accounts")
    @classmethod
    def _check_accounts(cls, value: list[str]) -> list[str]:
        for name in value:
            if not _ENV_NAME.match(name):
                raise ValueError(
                    f"Account {name!r} must be the name of an environment variable, "
                    "not a key"
                )
        return value


class SourcifyConfig(BaseModel):
    """Sourcify verification service."""

    enabled: bool = False
    api_url: str = Field(default="https://sourcify.dev/server", alias="apiUrl")
    browser_url: str = Field(default="https://repo.sourcify.dev", alias="browserUrl")

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}


class EtherscanConfig(BaseModel):
    """Etherscan verification service (only the enabled flag is honoured)."""

    enabled: bool = False

    model_config = {"frozen": True, "extra": "forbid"}


class PathsConfig(BaseModel):
    """Project directories, relative to the configuration file."""

    artifacts: str = "artifacts"
    deployments: str = "deployments"

    model_config = {"frozen": True, "extra": "forbid"}


class ProjectConfig(BaseModel):
    """Validated project configuration.

    Attributes:
        compiler: Compiler version and optimizer settings
        default_network: Network used when none is selected explicitly
        networks: Network name -> endpoint configuration
        sourcify: Sourcify verification settings
        etherscan: Etherscan verification settings
        paths: Artifact and deployment directories
        root: Directory containing the configuration file
    """

    compiler: CompilerSettings
    default_network: str = Field(alias="defaultNetwork")
    networks: dict[str, NetworkConfig]
    sourcify: SourcifyConfig = Field(default_factory=SourcifyConfig)
    etherscan: EtherscanConfig = Field(default_factory=EtherscanConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    root: Path = Field(default=Path("."), exclude=True)

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    @field_validator("networks")
    @classmethod
    def _check_network_names(cls, value: dict[str, NetworkConfig]) -> dict[str, NetworkConfig]:
        if not value:
            raise ValueError("At least one network must be configured")
        for name in value:
            if not _NETWORK_NAME.match(name):
                raise ValueError(f"Invalid network name: {name!r}")
        return value

    @model_validator(mode="after")
    def _check_default_network(self) -> ProjectConfig:
        if self.default_network not in self.networks:
            raise ValueError(
                f"defaultNetwork {self.default_network!r} is not one of {sorted(self.networks)}"
            )
        return self

    @property
    def artifacts_dir(self) -> Path:
        return self.root / self.paths.artifacts

    @property
    def deployments_dir(self) -> Path:
        return self.root / self.paths.deployments

    def select_network(self, name: str | None = None) -> tuple[str, NetworkConfig]:
        """Pick a network by name, ``DEPLOYER_NETWORK``, or the default.

        Raises:
            ConfigurationError: If the network is not configured
        """
        selected = name or os.environ.get("DEPLOYER_NETWORK") or self.default_network
        network = self.networks.get(selected)
        if network is None:
            raise ConfigurationError(
                f"Unknown network {selected!r}; configured: {sorted(self.networks)}"
            )
        return selected, network


def parse_config(data: Mapping[str, object], root: Path | None = None) -> ProjectConfig:
    """Validate a configuration mapping.

    Raises:
        ConfigurationError: If the mapping does not describe a valid project
    """
    try:
        config = ProjectConfig.model_validate(data)
    except ValidationError as err:
        raise ConfigurationError(f"Invalid configuration:\n{err}") from err
    if root is not None:
        config = config.model_copy(update={"root": root})
    return config


def load_config(path: Path | str | None = None) -> ProjectConfig:
    """Load and validate the project configuration file.

    Args:
        path: Configuration file; defaults to ``DEPLOYER_CONFIG`` or
            ``deployer.json`` in the working directory

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    config_path = Path(path or os.environ.get("DEPLOYER_CONFIG", DEFAULT_CONFIG_FILE))
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with open(config_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"Configuration file {config_path} is not valid JSON: {err}") from err
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain an object")

    config = parse_config(data, root=config_path.resolve().parent)
    logger.debug(
        "config_loaded",
        path=str(config_path),
        networks=sorted(config.networks),
        compiler=config.compiler.version,
    )
    return config


def resolve_accounts(
    network_name: str, network: NetworkConfig, environ: Mapping[str, str] | None = None
) -> list[str]:
    """Read the private keys a network's accounts refer to.

    Args:
        network_name: Network name (for error messages)
        network: Network configuration listing environment variable names
        environ: Environment to read from (default: ``os.environ``)

    Returns:
        0x-prefixed private keys, in configuration order

    Raises:
        ConfigurationError: If no account is configured, a variable is unset,
            or its value is not a 32-byte hex key
    """
    env = os.environ if environ is None else environ
    if not network.accounts:
        raise ConfigurationError(f"Network {network_name!r} has no accounts configured")

    keys: list[str] = []
    for name in network.accounts:
        value = env.get(name, "").strip()
        if not value:
            raise ConfigurationError(
                f"Environment variable {name} (account for {network_name!r}) is not set"
            )
        if not value.startswith("0x"):
            value = "0x" + value
        if not is_valid_private_key(value):
            # Never echo the value
            raise ConfigurationError(
                f"Environment variable {name} does not hold a 32-byte hex private key"
            )
        keys.append(value)
    return keys


__all__ = [
    "CompilerSettings",
    "EtherscanConfig",
    "NetworkConfig",
    "OptimizerSettings",
    "PathsConfig",
    "ProjectConfig",
    "SourcifyConfig",
    "load_config",
    "parse_config",
    "resolve_accounts",
]
