"""
warehouse_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the way services obtain configuration.  The
    first call loads (explicit path, ``$WAREHOUSE_CONFIG``, or the bundled
    ``defaults.yaml``), validates and caches a frozen ``WarehouseConfig``;
    later calls return the cached object.

Architecture position:
    Configuration.  Sits beside ``warehouse_kernel`` and below
    ``warehouse_services``.  The kernel MUST NEVER import from this package.

Audit relevance:
    Every load emits a ``WAREHOUSE_CONFIG_TRACE`` log entry with the source
    file and checksum.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from warehouse_config.loader import compute_checksum, load_config, load_yaml_file, parse_config
from warehouse_config.schema import (
    DefaultRateConfig,
    StoreConfig,
    TransferConfig,
    WarehouseConfig,
)

_logger = logging.getLogger("warehouse_kernel.config")

_active: WarehouseConfig | None = None
_lock = threading.Lock()


def get_active_config(path: Path | str | None = None) -> WarehouseConfig:
    """
    Return the active configuration, loading it on first use.

    ``path`` is honoured only on the first (loading) call; call
    ``reset_active_config()`` to load a different file.
    """
    global _active
    with _lock:
        if _active is None:
            _active = load_config(path)
            _logger.info(
                "WAREHOUSE_CONFIG_TRACE",
                extra={
                    "trace_type": "WAREHOUSE_CONFIG_TRACE",
                    "source": _active.source,
                    "checksum": _active.checksum,
                    "batch_policy": _active.transfer.batch_policy,
                    "write_paths": list(_active.store.write_paths),
                },
            )
        return _active


def reset_active_config() -> None:
    """Forget the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "get_active_config",
    "reset_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
    "compute_checksum",
    "WarehouseConfig",
    "DefaultRateConfig",
    "TransferConfig",
    "StoreConfig",
]
