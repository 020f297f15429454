"""
Configuration Schema (``warehouse_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every runtime setting of the warehouse
engine: the fallback packaging rate, transfer policy, and store wiring.
Each class validates itself in ``__post_init__`` and raises ``ValueError``
with a descriptive message; there are no silent corrections.

Architecture position
---------------------
**Config layer**.  Pure data, no I/O.  Parsed by ``warehouse_config.loader``
and consumed by ``warehouse_services.wiring``.  The kernel never imports
this package; the wiring hands plain values to kernel constructors.
"""

from __future__ import annotations

from dataclasses import dataclass, field

VALID_BATCH_POLICIES = {"best_effort", "all_or_nothing"}
VALID_WRITE_PATHS = {"gateway", "direct"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class DefaultRateConfig:
    """Packaging rate substituted for SKUs without a configuration."""

    level1_rate: int = 144
    level2_rate: int = 12
    level1_name: str = "carton"
    level2_name: str = "box"
    level3_name: str = "piece"

    def __post_init__(self) -> None:
        for name in ("level1_rate", "level2_rate"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"default {name} must be a positive integer, got {value!r}")
        for name in ("level1_name", "level2_name", "level3_name"):
            if not str(getattr(self, name) or "").strip():
                raise ValueError(f"default {name} is required")


@dataclass(frozen=True)
class TransferConfig:
    """How batch transfers behave."""

    batch_policy: str = "best_effort"
    merge_same_sku: bool = False
    record_events: bool = True

    def __post_init__(self) -> None:
        if self.batch_policy not in VALID_BATCH_POLICIES:
            raise ValueError(
                f"batch_policy must be one of {sorted(VALID_BATCH_POLICIES)}, "
                f"got '{self.batch_policy}'"
            )


@dataclass(frozen=True)
class StoreConfig:
    """
    Where stock lives and how it is written.

    ``write_paths`` is the ordered write chain; the first path that succeeds
    wins.  ``gateway`` requires a StockGateway client to be supplied at
    wiring time.
    """

    database_url: str = "sqlite://"
    echo: bool = False
    write_paths: tuple[str, ...] = ("direct",)
    conditional_updates: bool = True

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url is required")
        if not self.write_paths:
            raise ValueError("write_paths cannot be empty")
        unknown = [p for p in self.write_paths if p not in VALID_WRITE_PATHS]
        if unknown:
            raise ValueError(
                f"write_paths entries must be in {sorted(VALID_WRITE_PATHS)}, "
                f"got {unknown}"
            )
        if len(set(self.write_paths)) != len(self.write_paths):
            raise ValueError(f"write_paths contains duplicates: {list(self.write_paths)}")


@dataclass(frozen=True)
class WarehouseConfig:
    """Complete runtime configuration."""

    default_rate: DefaultRateConfig = field(default_factory=DefaultRateConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = "INFO"
    cache_rates: bool = True
    checksum: str | None = None
    source: str | None = None

    def __post_init__(self) -> None:
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
