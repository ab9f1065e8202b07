"""
Mass quantities with unit auto-scaling.

All arithmetic happens in milligrams (the reference unit) using Decimal, so
accumulating many small doses never drifts. The display unit is re-derived
from the base quantity after every mutation.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Union

MASS_PATTERN = re.compile(r"^(\d+\.?\d*)([a-zA-Zµ]+)$")

# Display units chosen by magnitude of the base (mg) quantity
DISPLAY_SCALE = [
    (Decimal("1000000"), "kg"),
    (Decimal("1000"), "g"),
    (Decimal("1"), "mg"),
]
MICROGRAM_UNIT = "mcg"


class InvalidMassFormat(ValueError):
    """Raised when a mass string is not `<number><unit letters>`."""


def get_multiplier(unit: str) -> Decimal:
    """
    Scale factor of a unit relative to milligrams.

    Prefixes are matched case-insensitively: µ/mc/u -> 0.001, m -> 1,
    g -> 1000, k -> 1,000,000. Anything else defaults to 1.
    """
    check = (unit or "").lower()
    if check.startswith(("µ", "mc", "u")):
        return Decimal("0.001")
    if check.startswith("m"):
        return Decimal("1")
    if check.startswith("g"):
        return Decimal("1000")
    if check.startswith("k"):
        return Decimal("1000000")
    return Decimal("1")


def format_decimal(value: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros."""
    text = format(value.normalize(), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class Mass:
    """
    A mass quantity.

    Attributes:
        base: quantity in milligrams
        unit: current display unit (kg, g, mg, mcg)
        adjusted: quantity expressed in `unit`
        multiplier: scale of `unit` relative to milligrams
    """

    def __init__(self, mass_string: str):
        value, unit = self._split(mass_string)
        self.base: Decimal = value * get_multiplier(unit)
        self.unit: str = unit.lower()
        self.multiplier: Decimal = get_multiplier(self.unit)
        self.adjusted: Decimal = value
        self._rescale()

    @staticmethod
    def _split(mass_string: str):
        if not isinstance(mass_string, str):
            raise InvalidMassFormat(
                f"Invalid mass format. Expected a string like '100mg', got {mass_string!r}"
            )
        match = MASS_PATTERN.match(mass_string.strip())
        if not match:
            raise InvalidMassFormat(
                f"Invalid mass format. Expected number followed by units (e.g. '100mg'), got {mass_string!r}"
            )
        try:
            value = Decimal(match.group(1))
        except InvalidOperation:
            raise InvalidMassFormat(f"Invalid mass number in {mass_string!r}")
        return value, match.group(2)

    @classmethod
    def parse(cls, mass_string: str) -> "Mass":
        return cls(mass_string)

    @classmethod
    def zero(cls) -> "Mass":
        return cls("0mg")

    @classmethod
    def from_record(cls, record: Optional[Dict]) -> "Mass":
        """
        Rebuild a Mass from its stored `{base, multiplier, adjusted, unit}` shape.

        The adjusted value and unit are re-parsed, so a record with a missing
        or non-numeric quantity raises InvalidMassFormat.
        """
        if not record:
            raise InvalidMassFormat("Missing dose record")
        adjusted = record.get("adjusted")
        unit = record.get("unit")
        if adjusted is None or not unit:
            raise InvalidMassFormat(f"Incomplete dose record: {record!r}")
        try:
            number = format_decimal(Decimal(str(adjusted)))
        except InvalidOperation:
            raise InvalidMassFormat(f"Invalid dose quantity: {adjusted!r}")
        return cls(f"{number}{unit}")

    def _rescale(self) -> str:
        """Pick the display unit from the magnitude of the base quantity."""
        for threshold, unit in DISPLAY_SCALE:
            if self.base >= threshold:
                self.unit = unit
                break
        else:
            self.unit = MICROGRAM_UNIT
        self.multiplier = get_multiplier(self.unit)
        self.adjusted = self.base / self.multiplier
        return self.unit

    def add(self, mass_string: Union[str, "Mass"]) -> Decimal:
        """Add another mass string to this one. Returns the updated base (mg)."""
        other = mass_string if isinstance(mass_string, Mass) else Mass(mass_string)
        self.base += other.base
        self._rescale()
        return self.base

    def copy(self) -> "Mass":
        return Mass(self.mass_string("mg"))

    def mass_number(self, desired_unit: str) -> Decimal:
        """The base quantity expressed in `desired_unit`."""
        return self.base / get_multiplier(desired_unit)

    def mass_string(self, desired_unit: str) -> str:
        return f"{format_decimal(self.mass_number(desired_unit))}{desired_unit}"

    def to_display_string(self) -> str:
        return f"{format_decimal(self.adjusted)}{self.unit}"

    def to_dict(self) -> dict:
        return {
            "base": float(self.base),
            "multiplier": float(self.multiplier),
            "adjusted": float(self.adjusted),
            "unit": self.unit,
        }

    def __str__(self) -> str:
        return self.to_display_string()

    def __repr__(self) -> str:
        return f"Mass({self.to_display_string()!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, Mass):
            return self.base == other.base
        return NotImplemented

    def __lt__(self, other: "Mass") -> bool:
        return self.base < other.base

    def __le__(self, other: "Mass") -> bool:
        return self.base <= other.base

    def __hash__(self) -> int:
        return hash(self.base)


def entered_unit(mass_string: str) -> str:
    """The unit as written in a mass string, before any rescaling."""
    return Mass._split(mass_string)[1].lower()
