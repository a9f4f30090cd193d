"""Number formatting shared by alert messages and trace lines."""

from __future__ import annotations


def format_decimal(value: float) -> str:
    """Shortest round-trip decimal, integral values without a fraction.

    ``1.5`` -> ``"1.5"``, ``2.0`` -> ``"2"``, ``0.001`` -> ``"0.001"``.
    """
    if value == int(value):
        return str(int(value))
    return repr(float(value))
