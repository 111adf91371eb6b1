"""
Configuration loading and normalization for the sandwich scanner.

Provides a centralized way to load, validate, and normalize configuration
files with proper defaults and read-only access. The resulting objects are
frozen and passed explicitly to the components that need them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config_schema import validate_scanner_config
from .exceptions import ConfigurationError, ValidationError
from .utils import sol_to_lamports

PUBLIC_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_RPC_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={api_key}"

ADVERSE_BASELINES = ("model", "limit_margin")


@dataclass(frozen=True)
class DetectorConfig:
    """Normalized pattern detector configuration (amounts in SOL)."""

    min_victim_trade_size: float = 0.01
    max_attack_slot_gap: int = 3
    min_bot_frequency: int = 2
    min_sandwich_profit: float = 0.00001
    min_frontrun_size: float = 0.0
    adverse_baseline: str = "model"
    limit_margin_bps: float = 50.0
    gas_per_tx_lamports: int = 5000

    def __post_init__(self):
        if self.adverse_baseline not in ADVERSE_BASELINES:
            raise ConfigurationError(
                f"adverse_baseline must be one of {ADVERSE_BASELINES}, "
                f"got '{self.adverse_baseline}'"
            )
        if self.max_attack_slot_gap < 0:
            raise ConfigurationError("max_attack_slot_gap cannot be negative")

    @property
    def min_victim_lamports(self) -> int:
        return sol_to_lamports(self.min_victim_trade_size)

    @property
    def min_frontrun_lamports(self) -> int:
        return sol_to_lamports(self.min_frontrun_size)

    @property
    def min_profit_lamports(self) -> int:
        return sol_to_lamports(self.min_sandwich_profit)


@dataclass(frozen=True)
class FetchConfig:
    """Normalized transaction source configuration."""

    rpc_url: str = PUBLIC_RPC_URL
    signature_limit: int = 50
    page_size: int = 1000
    concurrency: int = 5
    max_retries: int = 5
    backoff_base_sec: float = 0.5
    timeout_sec: float = 30.0


@dataclass(frozen=True)
class CurveConfig:
    """Initial bonding curve reserves in lamports / token base units."""

    virtual_sol: int = 30_000_000_000
    virtual_token: int = 1_073_000_000_000_000
    real_sol: int = 0
    real_token: int = 793_100_000_000_000
    fee_bps: int = 30


@dataclass(frozen=True)
class SimulationConfig:
    """Normalized simulation engine configuration."""

    front_run_divisor: int = 5
    front_run_lamports: Optional[int] = None
    gas_per_tx_lamports: int = 5000
    base_slot: int = 380_000_000


@dataclass(frozen=True)
class ScannerConfig:
    """Immutable runtime configuration object."""

    detector: DetectorConfig = field(default_factory=DetectorConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    curve: CurveConfig = field(default_factory=CurveConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)


def resolve_rpc_url(configured: Optional[str] = None) -> str:
    """
    Pick the RPC endpoint.

    Precedence: explicit config value, SOLANA_RPC_URL, HELIUS_API_KEY, public
    mainnet endpoint.
    """
    if configured:
        return configured
    env_url = os.getenv("SOLANA_RPC_URL")
    if env_url:
        return env_url
    api_key = os.getenv("HELIUS_API_KEY")
    if api_key:
        return HELIUS_RPC_TEMPLATE.format(api_key=api_key)
    return PUBLIC_RPC_URL


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration file must contain a YAML mapping: {config_path}"
        )

    return config_dict


def build_scanner_config(config_dict: Dict[str, Any]) -> ScannerConfig:
    """
    Validate a raw configuration mapping and normalize it.

    Raises:
        ValidationError: If the mapping fails schema validation
    """
    try:
        schema = validate_scanner_config(config_dict)
    except PydanticValidationError as e:
        raise ValidationError(f"Configuration validation failed: {e}") from e

    fetch = schema.fetch
    return ScannerConfig(
        detector=DetectorConfig(**schema.detector.model_dump()),
        fetch=FetchConfig(
            rpc_url=resolve_rpc_url(fetch.rpc_url),
            signature_limit=fetch.signature_limit,
            page_size=fetch.page_size,
            concurrency=fetch.concurrency,
            max_retries=fetch.max_retries,
            backoff_base_sec=fetch.backoff_base_sec,
            timeout_sec=fetch.timeout_sec,
        ),
        curve=CurveConfig(**schema.curve.model_dump()),
        simulation=SimulationConfig(**schema.simulation.model_dump()),
    )


def load_scanner_config(config_path: Union[str, Path]) -> ScannerConfig:
    """
    Load and normalize a scanner configuration file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Normalized and frozen scanner configuration

    Raises:
        ConfigurationError: If the configuration cannot be loaded
        ValidationError: If the configuration fails schema validation
    """
    return build_scanner_config(load_yaml_config(config_path))


def get_default_config() -> ScannerConfig:
    """Get a default configuration (RPC endpoint still taken from the environment)."""
    return ScannerConfig(fetch=FetchConfig(rpc_url=resolve_rpc_url()))
