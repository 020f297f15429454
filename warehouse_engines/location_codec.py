"""
Module: warehouse_engines.location_codec
Responsibility:
    Parse, validate and normalise the textual address of a storage slot, and
    decide whether two differently written addresses name the same slot.

Architecture position:
    Engines -- pure, zero I/O.  Used by the transfer orchestrator (same-slot
    and occupancy checks), the picking planner (walk order) and anything
    that writes a location to the store.

Grammar:
    Canonical    ``Row + Position "/" Level``   e.g. ``A12/3``
    Row          one letter ``A``-``Z``
    Position     integer 1-20
    Level        integer 1-4

    Accepted on input only, tried in this order after the canonical shape:
        zero-padded canonical   ``A01/4``    -> ``A1/4``
        legacy slashed          ``A/1/9``    -> ``A9/1``   (Row/Level/Position)
        legacy compact          ``H1/9``     -> ``H9/1``   (Row+Level/Position)
        concatenated digits     ``A14``      -> ``A1/4``,  ``A124`` -> ``A12/4``

    Legacy conversion swaps the fields, it never reformats digits.  When a
    text is valid in both canonical and legacy compact shape (``A1/2``), the
    canonical reading wins.  Separators ``-``, ``.``, ``\\`` and whitespace
    are read as ``/``.

Invariants enforced:
    - ``normalize`` output, when not None, always matches the canonical shape.
    - ``equals(a, b)`` is False whenever either side is unrecognised.

Failure modes:
    - None of the query functions raise.  ``require`` and ``format_location``
      raise LocationFormatError for callers that prefer an exception.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from string import ascii_uppercase

from warehouse_kernel.exceptions import LocationFormatError

MIN_POSITION = 1
MAX_POSITION = 20
MIN_LEVEL = 1
MAX_LEVEL = 4

DEFAULT_WAREHOUSE = "MAIN"

CANONICAL_PATTERN = re.compile(r"^([A-Z])([1-9]|1[0-9]|20)/([1-4])$")

_SEPARATORS = re.compile(r"[\s\-.\\/]+")
_WAREHOUSE_PREFIX = re.compile(r"^([A-Z0-9]+)-(.+)$")


@dataclass(frozen=True, slots=True)
class LocationCode:
    """A recognised storage slot."""

    row: str
    position: int
    level: int

    def __str__(self) -> str:
        return f"{self.row}{self.position}/{self.level}"

    @property
    def walk_key(self) -> tuple[str, int, int]:
        """Sort key matching the picking walk: row, then position, then level."""
        return (self.row, self.position, self.level)


def _in_range(position: int, level: int) -> bool:
    return MIN_POSITION <= position <= MAX_POSITION and MIN_LEVEL <= level <= MAX_LEVEL


def _slot(row: str, position: str | int, level: str | int) -> LocationCode | None:
    position, level = int(position), int(level)
    if not _in_range(position, level):
        return None
    return LocationCode(row, position, level)


# ---------------------------------------------------------------------------
# Parser rules (ordered)
# ---------------------------------------------------------------------------

_Rule = Callable[[str], "LocationCode | None"]


def _canonical(text: str) -> LocationCode | None:
    m = CANONICAL_PATTERN.match(text)
    return LocationCode(m.group(1), int(m.group(2)), int(m.group(3))) if m else None


# Zero-padded position only; unpadded 10-20 is canonical.
_PADDED = re.compile(r"^([A-Z])(0\d)/([1-4])$")


def _zero_padded(text: str) -> LocationCode | None:
    m = _PADDED.match(text)
    return _slot(m.group(1), m.group(2), m.group(3)) if m else None


_LEGACY_SLASHED = re.compile(r"^([A-Z])/([1-4])/(\d{1,2})$")


def _legacy_slashed(text: str) -> LocationCode | None:
    m = _LEGACY_SLASHED.match(text)
    return _slot(m.group(1), m.group(3), m.group(2)) if m else None


_LEGACY_COMPACT = re.compile(r"^([A-Z])([1-4])/(\d{1,2})$")


def _legacy_compact(text: str) -> LocationCode | None:
    m = _LEGACY_COMPACT.match(text)
    return _slot(m.group(1), m.group(3), m.group(2)) if m else None


_CONCATENATED = re.compile(r"^([A-Z])(\d{2,3})$")


def _concatenated(text: str) -> LocationCode | None:
    m = _CONCATENATED.match(text)
    if not m:
        return None
    digits = m.group(2)
    return _slot(m.group(1), digits[:-1], digits[-1])


PARSER_RULES: tuple[_Rule, ...] = (
    _canonical,
    _zero_padded,
    _legacy_slashed,
    _legacy_compact,
    _concatenated,
)


def _clean(raw: str | None) -> str:
    if not raw:
        return ""
    return _SEPARATORS.sub("/", raw.strip().upper()).strip("/")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(raw: str | None) -> LocationCode | None:
    """Recognise ``raw`` as a slot, or return None."""
    text = _clean(raw)
    if not text:
        return None
    for rule in PARSER_RULES:
        code = rule(text)
        if code is not None:
            return code
    return None


def normalize(raw: str | None) -> str | None:
    """Canonical text for ``raw`` (e.g. ``"h1/9"`` -> ``"H9/1"``), or None."""
    code = parse(raw)
    return str(code) if code is not None else None


def display(raw: str | None) -> str:
    """Canonical text if recognised, otherwise ``raw`` unchanged. Never raises."""
    if not raw:
        return ""
    canonical = normalize(raw)
    return canonical if canonical is not None else raw


def equals(a: str | None, b: str | None) -> bool:
    """True iff both sides are recognised and name the same slot."""
    left = normalize(a)
    if left is None:
        return False
    return left == normalize(b)


def is_valid(raw: str | None) -> bool:
    return parse(raw) is not None


def require(raw: str | None) -> LocationCode:
    """Like ``parse`` but raises LocationFormatError on unrecognised text."""
    code = parse(raw)
    if code is None:
        raise LocationFormatError(
            raw or "",
            reason=(
                f"expected Row(A-Z) + Position({MIN_POSITION}-{MAX_POSITION})"
                f"/Level({MIN_LEVEL}-{MAX_LEVEL})"
            ),
        )
    return code


def format_location(row: str, position: int, level: int) -> str:
    """Canonical text from parts. Raises LocationFormatError if out of range."""
    row = (row or "").upper()
    if len(row) != 1 or row not in ascii_uppercase or not _in_range(position, level):
        raise LocationFormatError(
            f"{row}{position}/{level}",
            reason=f"invalid parts row={row!r} position={position} level={level}",
        )
    return str(LocationCode(row, position, level))


def spellings(code: LocationCode | str) -> tuple[str, ...]:
    """
    Every stored spelling this module recognises as ``code``.

    Used to query stores that still hold un-normalised legacy text; callers
    filter the query result with ``equals`` afterwards.
    """
    if isinstance(code, str):
        parsed = parse(code)
        if parsed is None:
            return ()
        code = parsed
    r, p, lv = code.row, code.position, code.level
    forms = [
        f"{r}{p}/{lv}",
        f"{r}{p:02d}/{lv}",
        f"{r}/{lv}/{p}",
        f"{r}/{lv}/{p:02d}",
    ]
    # Legacy compact only when it does not read as a different canonical slot
    if p > MAX_LEVEL or lv > MAX_LEVEL:
        forms.append(f"{r}{lv}/{p}")
    out: list[str] = []
    for form in forms:
        for variant in (form, form.lower()):
            if variant not in out:
                out.append(variant)
    return tuple(out)


def walk_order(raw: str | None) -> tuple[int, str, int, int]:
    """Sort key placing recognised slots in walk order and the rest last."""
    code = parse(raw)
    if code is None:
        return (1, (raw or "").upper(), 0, 0)
    return (0, *code.walk_key)


# ---------------------------------------------------------------------------
# Multi-warehouse addresses
# ---------------------------------------------------------------------------


def split_warehouse(raw: str | None) -> tuple[str, str] | None:
    """
    Split ``WH001-A1/1`` into ``("WH001", "A1/1")``.

    A bare slot belongs to ``MAIN``.  Returns None when the slot part is not
    recognised.  ``A1-4`` is read as the bare slot ``A1/4``, not as warehouse
    ``A1``, because ``4`` alone is not a slot.
    """
    if not raw:
        return None
    cleaned = raw.strip().upper()
    m = _WAREHOUSE_PREFIX.match(cleaned)
    if m:
        slot = normalize(m.group(2))
        if slot is not None:
            return (m.group(1), slot)
    slot = normalize(cleaned)
    if slot is None:
        return None
    return (DEFAULT_WAREHOUSE, slot)


def format_warehouse_location(warehouse_code: str, location: str) -> str:
    """Prefix ``location`` with its warehouse; ``MAIN`` stays unprefixed."""
    slot = require(location)
    code = (warehouse_code or DEFAULT_WAREHOUSE).strip().upper()
    if code == DEFAULT_WAREHOUSE:
        return str(slot)
    return f"{code}-{slot}"


def iter_locations(
    rows: str = ascii_uppercase,
    max_position: int = MAX_POSITION,
    max_level: int = MAX_LEVEL,
) -> Iterator[str]:
    """Every slot in walk order; 2,080 for the full A-Z grid."""
    for row in rows:
        for position in range(MIN_POSITION, min(max_position, MAX_POSITION) + 1):
            for level in range(MIN_LEVEL, min(max_level, MAX_LEVEL) + 1):
                yield format_location(row, position, level)
