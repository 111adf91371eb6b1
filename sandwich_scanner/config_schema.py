"""
Configuration schema validation using Pydantic
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class DetectorSection(BaseModel):
    """Pattern detector thresholds"""

    min_victim_trade_size: float = Field(
        ge=0, default=0.01, description="Minimum victim trade size in SOL"
    )
    max_attack_slot_gap: int = Field(
        ge=0, le=1000, default=3, description="Max front-run to back-run slot distance"
    )
    min_bot_frequency: int = Field(
        ge=1, le=10000, default=2, description="Trades needed before a signer is a bot candidate"
    )
    min_sandwich_profit: float = Field(
        default=0.00001, description="Net profit floor in SOL for a sandwich"
    )
    min_frontrun_size: float = Field(
        ge=0, default=0.0, description="Minimum bot buy in SOL that opens a window"
    )
    adverse_baseline: Literal["model", "limit_margin"] = "model"
    limit_margin_bps: float = Field(ge=0, le=10000, default=50)
    gas_per_tx_lamports: int = Field(ge=0, le=10**9, default=5000)


class FetchSection(BaseModel):
    """Transaction source configuration"""

    rpc_url: Optional[str] = None
    signature_limit: int = Field(ge=1, le=10000, default=50)
    page_size: int = Field(ge=1, le=1000, default=1000)
    concurrency: int = Field(ge=1, le=64, default=5)
    max_retries: int = Field(ge=1, le=20, default=5)
    backoff_base_sec: float = Field(ge=0, le=60, default=0.5)
    timeout_sec: float = Field(gt=0, le=300, default=30)

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v):
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"rpc_url must be an http(s) URL: {v}")
        return v


class CurveSection(BaseModel):
    """Initial bonding curve state (lamports / token base units)"""

    virtual_sol: int = Field(gt=0, default=30_000_000_000)
    virtual_token: int = Field(gt=0, default=1_073_000_000_000_000)
    real_sol: int = Field(ge=0, default=0)
    real_token: int = Field(ge=0, default=793_100_000_000_000)
    fee_bps: int = Field(ge=0, lt=10000, default=30)

    @model_validator(mode="after")
    def validate_offsets(self):
        if self.real_sol > self.virtual_sol:
            raise ValueError("real_sol cannot exceed virtual_sol")
        if self.real_token > self.virtual_token:
            raise ValueError("real_token cannot exceed virtual_token")
        return self


class SimulationSection(BaseModel):
    """Simulation engine configuration"""

    front_run_divisor: int = Field(ge=1, le=1000, default=5)
    front_run_lamports: Optional[int] = Field(gt=0, default=None)
    gas_per_tx_lamports: int = Field(ge=0, le=10**9, default=5000)
    base_slot: int = Field(ge=0, default=380_000_000)


class ScannerConfigSchema(BaseModel):
    """Top-level configuration file"""

    detector: DetectorSection = Field(default_factory=DetectorSection)
    fetch: FetchSection = Field(default_factory=FetchSection)
    curve: CurveSection = Field(default_factory=CurveSection)
    simulation: SimulationSection = Field(default_factory=SimulationSection)

    @model_validator(mode="after")
    def validate_page_size(self):
        if self.fetch.page_size > self.fetch.signature_limit:
            self.fetch.page_size = self.fetch.signature_limit
        return self


def validate_scanner_config(config_dict: dict) -> ScannerConfigSchema:
    """Validate a raw configuration dictionary against the schema."""
    return ScannerConfigSchema(**config_dict)
