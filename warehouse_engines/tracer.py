"""
warehouse_engines.tracer -- WAREHOUSE_ENGINE_TRACE records for pure engines.

``@traced_engine`` emits one structured record per engine call: engine name
and version, a fingerprint of the named inputs, the outcome, and the
duration.  Arguments are bound against the engine's signature, so an input
passed positionally fingerprints the same as one passed by keyword.

Engines stay pure: the decorator reads its arguments and logs, nothing else.
An engine that raises still produces a record (``outcome="error"``) and the
exception propagates unchanged.

Usage:
    @traced_engine("picking", "1.0", fingerprint_fields=("need",))
    def plan_picking(need, items, rate_lookup):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

# Child of the kernel namespace so configure_logging() covers it.
_logger = logging.getLogger("warehouse_kernel.engines.tracer")

TRACE_MESSAGE = "WAREHOUSE_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, bool | int | float | str):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        # Slotted frozen dataclasses (TierQuantity, LocationCode) have no __dict__
        return _canonicalize({f.name: getattr(value, f.name) for f in fields(value)})
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, list | tuple):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over ``name=value`` pairs, in field order.

    Names missing from ``arguments`` contribute ``null``.
    """
    text = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def _arguments(args: tuple, kwargs: dict) -> Mapping[str, Any]:
            try:
                bound = signature.bind_partial(*args, **kwargs)
            except TypeError:
                return kwargs
            bound.apply_defaults()
            return bound.arguments

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, _arguments(args, kwargs))
                if fingerprint_fields else ""
            )
            outcome = "error"
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.info(
                    TRACE_MESSAGE,
                    extra={
                        "trace_type": TRACE_MESSAGE,
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fingerprint,
                        "outcome": outcome,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                        "function": func.__qualname__,
                    },
                )

        return wrapper

    return decorator
