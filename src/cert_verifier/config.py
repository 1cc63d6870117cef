"""
Runtime settings.

Everything is read from CERT_* environment variables. Command-line options
are passed to load_settings as overrides and go through the same parsing,
so a value is validated the same way whichever source it came from.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Literal, Mapping

from cert_verifier.content import DEFAULT_GATEWAY, ContentFetcher
from cert_verifier.errors import ConfigError
from cert_verifier.ledger import RegistryReader

LogLevel = Literal["debug", "info", "warning", "error"]

LOG_LEVELS = ("debug", "info", "warning", "error")


def _getenv(env: Mapping[str, str], name: str, default: str = "") -> str:
    return env.get(name, default).strip()


def _parse_int(name: str, raw: str, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _parse_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    """Connection and tuning settings shared by every command.

    rpc_url and contract_address are only checked when a registry reader is
    built, so commands that never touch the ledger run without them.
    """

    rpc_url: str | None = None
    contract_address: str | None = None
    deploy_block: int | None = None
    ipfs_gateway: str = DEFAULT_GATEWAY
    timeout: float = 30.0
    concurrency: int = 5
    max_block_range: int = 10_000
    log_level: LogLevel = "warning"

    def registry_reader(self) -> RegistryReader:
        """Build the shared registry reader.

        Raises:
            ConfigError: If the RPC URL or contract address is missing.
        """
        if not self.rpc_url:
            raise ConfigError("Missing RPC URL (set CERT_RPC_URL or --rpc-url)")
        if not self.contract_address:
            raise ConfigError("Missing contract address (set CERT_CONTRACT_ADDRESS or --contract)")
        return RegistryReader(
            rpc_url=self.rpc_url,
            contract_address=self.contract_address,
            deploy_block=self.deploy_block,
            timeout=self.timeout,
            max_block_range=self.max_block_range,
        )

    def content_fetcher(self) -> ContentFetcher:
        return ContentFetcher(gateway=self.ipfs_gateway, timeout=self.timeout)


def load_settings(env: Mapping[str, str] | None = None, **overrides: Any) -> Settings:
    """Load settings from the environment.

    Args:
        env: Variables to read. Defaults to os.environ.
        **overrides: Settings fields that take precedence over the
            environment, such as command-line options. None means not given.

    Raises:
        ValueError: If a value is malformed. The message names the variable.
        TypeError: If an override is not a Settings field.
    """
    env = os.environ if env is None else env
    given = {name: value for name, value in overrides.items() if value is not None}
    unknown = given.keys() - {f.name for f in fields(Settings)}
    if unknown:
        raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")

    def raw(field: str, name: str, default: str = "") -> str:
        if field in given:
            return str(given[field]).strip()
        return _getenv(env, name, default)

    log_level = raw("log_level", "CERT_LOG_LEVEL", "warning").lower()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"CERT_LOG_LEVEL must be debug|info|warning|error (got {log_level!r})")

    deploy_block_raw = raw("deploy_block", "CERT_DEPLOY_BLOCK")
    deploy_block = _parse_int("CERT_DEPLOY_BLOCK", deploy_block_raw, 0) if deploy_block_raw else None

    return Settings(  # type: ignore[arg-type]
        rpc_url=raw("rpc_url", "CERT_RPC_URL") or None,
        contract_address=raw("contract_address", "CERT_CONTRACT_ADDRESS") or None,
        deploy_block=deploy_block,
        ipfs_gateway=raw("ipfs_gateway", "CERT_IPFS_GATEWAY") or DEFAULT_GATEWAY,
        timeout=_parse_float("CERT_TIMEOUT", raw("timeout", "CERT_TIMEOUT", "30")),
        concurrency=_parse_int("CERT_CONCURRENCY", raw("concurrency", "CERT_CONCURRENCY", "5"), 1),
        max_block_range=_parse_int(
            "CERT_MAX_BLOCK_RANGE", raw("max_block_range", "CERT_MAX_BLOCK_RANGE", "10000"), 1
        ),
        log_level=log_level,
    )
