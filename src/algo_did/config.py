"""Configuration for algo-did.

Store limits mirror the rules enforced by the on-chain program. They are kept
in one validated, immutable model so the planners never carry magic numbers,
and so a mismatch is reported before anything is submitted.
"""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .constants import (
    BASE_OPERATION_LIMIT,
    COST_PER_BOX,
    COST_PER_BYTE,
    DEFAULT_ALGOD_ADDRESS,
    DEFAULT_KMD_ADDRESS,
    DEFAULT_TOKEN,
    DEFAULT_WALLET_NAME,
    ENVELOPE_OVERHEAD,
    ERASE_FEE,
    MAX_BOX_SIZE,
    MAX_GROUP_SIZE,
    METADATA_FIXED_BYTES,
    NOOP_PADDING,
    REFERENCE_FLOOR,
    WRITE_OPS_PER_BATCH,
)
from .context import ProjectContext
from .errors import ConfigurationError


class ExactMultiplePolicy(str, Enum):
    """How to lay out a document whose size is a multiple of the box size."""
    TRAILING_SLOT = "trailing-slot"  # Extra empty final box, tail size 0
    EXACT = "exact"                  # Last box is full, tail size == box size


class StoreLimits(BaseModel):
    """Store-wide constants; must match the deployed program exactly."""

    model_config = ConfigDict(frozen=True)

    slot_capacity: int = MAX_BOX_SIZE
    per_byte_rate: int = COST_PER_BYTE
    per_slot_rate: int = COST_PER_BOX
    base_operation_limit: int = BASE_OPERATION_LIMIT
    envelope_overhead: int = ENVELOPE_OVERHEAD
    reference_floor: int = REFERENCE_FLOOR
    max_group_size: int = MAX_GROUP_SIZE
    write_ops_per_batch: int = WRITE_OPS_PER_BATCH
    noop_padding: int = NOOP_PADDING
    erase_fee: int = ERASE_FEE
    metadata_fixed_bytes: int = METADATA_FIXED_BYTES

    @model_validator(mode="after")
    def validate_consistency(self):
        """Reject limits the batch planner could never satisfy."""
        for name in (
            "slot_capacity",
            "base_operation_limit",
            "reference_floor",
            "max_group_size",
            "write_ops_per_batch",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"limits.{name} must be positive")
        for name in ("per_byte_rate", "per_slot_rate", "noop_padding", "erase_fee",
                     "envelope_overhead", "metadata_fixed_bytes"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"limits.{name} cannot be negative")

        if self.write_payload <= 0:
            raise ConfigurationError(
                f"Envelope overhead ({self.envelope_overhead}) leaves no room for data "
                f"within the operation limit ({self.base_operation_limit})"
            )
        if self.reference_floor < 2:
            raise ConfigurationError(
                "limits.reference_floor must allow the owner key and a box key"
            )
        if self.write_ops_per_batch > self.max_group_size:
            raise ConfigurationError(
                f"limits.write_ops_per_batch ({self.write_ops_per_batch}) exceeds "
                f"limits.max_group_size ({self.max_group_size})"
            )
        if 1 + self.noop_padding > self.max_group_size:
            raise ConfigurationError(
                f"Erase batch (1 + {self.noop_padding} no-ops) exceeds "
                f"limits.max_group_size ({self.max_group_size})"
            )
        return self

    @property
    def write_payload(self) -> int:
        """Maximum data bytes carried by one write operation."""
        return self.base_operation_limit - self.envelope_overhead

    def check_against(self, max_group_size: int, max_references: int) -> None:
        """Validate limits against what the ledger actually accepts.

        Raises:
            ConfigurationError: If a planned batch could exceed ledger limits
        """
        if self.max_group_size > max_group_size:
            raise ConfigurationError(
                f"limits.max_group_size ({self.max_group_size}) exceeds the ledger "
                f"group limit ({max_group_size})"
            )
        if self.reference_floor > max_references:
            raise ConfigurationError(
                f"limits.reference_floor ({self.reference_floor}) exceeds the ledger "
                f"reference limit ({max_references})"
            )


class StatusCodes(BaseModel):
    """Numeric metadata status values as defined by the deployed program."""

    model_config = ConfigDict(frozen=True)

    ready: int = 0
    pending: int = 1
    deleting: int = 2

    @model_validator(mode="after")
    def validate_distinct(self):
        if len({self.ready, self.pending, self.deleting}) != 3:
            raise ConfigurationError("status codes must be distinct")
        return self


class AlgodSettings(BaseModel):
    """Connection settings for the algod node."""
    address: str = DEFAULT_ALGOD_ADDRESS
    token: str = DEFAULT_TOKEN


class KmdSettings(BaseModel):
    """Connection settings for the key management daemon."""
    address: str = DEFAULT_KMD_ADDRESS
    token: str = DEFAULT_TOKEN
    wallet_name: str = DEFAULT_WALLET_NAME
    wallet_password: str = ""


class StoreConfig(BaseModel):
    """algo-did configuration (stored in .algo-did/config.yaml)."""

    app_id: int = 0
    algod: AlgodSettings = Field(default_factory=AlgodSettings)
    kmd: KmdSettings = Field(default_factory=KmdSettings)
    limits: StoreLimits = Field(default_factory=StoreLimits)
    status_codes: StatusCodes = Field(default_factory=StatusCodes)
    exact_multiple: ExactMultiplePolicy = ExactMultiplePolicy.TRAILING_SLOT
    parallel_slots: int = 1
    write_retries: int = 0

    @model_validator(mode="after")
    def validate_execution(self):
        if self.parallel_slots < 1:
            raise ConfigurationError("parallel_slots must be at least 1")
        if self.write_retries < 0:
            raise ConfigurationError("write_retries cannot be negative")
        return self


# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "ALGOD_ADDRESS": ("algod", "address"),
    "ALGOD_TOKEN": ("algod", "token"),
    "KMD_ADDRESS": ("kmd", "address"),
    "KMD_TOKEN": ("kmd", "token"),
    "KMD_WALLET_NAME": ("kmd", "wallet_name"),
    "KMD_WALLET_PASSWORD": ("kmd", "wallet_password"),
}


def apply_env_overrides(data: dict) -> dict:
    """Overlay environment variables onto raw config data."""
    data = dict(data)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value is not None:
            data[section] = {**(data.get(section) or {}), key: value}

    app_id = os.environ.get("ALGO_DID_APP_ID")
    if app_id is not None:
        try:
            data["app_id"] = int(app_id)
        except ValueError:
            raise ConfigurationError(f"ALGO_DID_APP_ID must be an integer, got {app_id!r}")
    return data


def build_config(data: Optional[dict] = None) -> StoreConfig:
    """Validate raw config data, wrapping validation failures."""
    try:
        return StoreConfig(**apply_env_overrides(data or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(ctx: Optional[ProjectContext] = None) -> StoreConfig:
    """Load configuration from .algo-did/config.yaml.

    Outside a project, or when the file is absent, localnet defaults are used
    (still subject to environment overrides).
    """
    if ctx is None:
        try:
            ctx = ProjectContext()
        except ValueError:
            return build_config()

    if not ctx.config_path.exists():
        return build_config()

    try:
        with ctx.config_path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {ctx.config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{ctx.config_path} must contain a mapping")
    return build_config(data)


def save_config(config: StoreConfig, ctx: Optional[ProjectContext] = None) -> None:
    """Save configuration atomically."""
    if ctx is None:
        ctx = ProjectContext.init()

    config_text = yaml.safe_dump(config.model_dump(mode="json"), default_flow_style=False)
    _atomic_write_text(ctx.config_path, config_text)


def _atomic_write_text(path: Path, text: str) -> None:
    """Atomically write text to file via temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        delete=False,
        dir=path.parent,
        prefix=f".{path.name}.tmp-",
    ) as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
        tmp = Path(f.name)

    try:
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
