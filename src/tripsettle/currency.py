"""Currency precision helpers.

Every amount the engine handles is converted to an integer count of the
currency's minor unit before any division, and converted back afterwards.
"""

from decimal import ROUND_HALF_UP, Decimal

# ISO 4217 minor units for currencies that don't use two decimal places
_MINOR_UNITS: dict[str, int] = {
    # Zero decimal currencies
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "ISK": 0,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "PYG": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    # Three decimal currencies
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
}

DEFAULT_MINOR_UNITS = 2


def decimal_places(currency: str) -> int:
    """
    Number of decimal places in the currency's minor unit.

    Unknown codes fall back to two decimal places.

    Example:
        decimal_places("USD") -> 2
        decimal_places("JPY") -> 0
        decimal_places("BHD") -> 3
    """
    return _MINOR_UNITS.get(currency.upper(), DEFAULT_MINOR_UNITS)


def minor_unit(currency: str) -> Decimal:
    """Smallest representable amount, e.g. Decimal('0.01') for USD."""
    return Decimal(1).scaleb(-decimal_places(currency))


def is_minor_exact(amount: Decimal, currency: str) -> bool:
    """True if the amount has no precision finer than the minor unit."""
    scaled = amount.scaleb(decimal_places(currency))
    return scaled == scaled.to_integral_value()


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convert a Decimal amount to an integer count of minor units.

    Raises:
        ValueError: If the amount is finer than the currency's minor unit
    """
    if not is_minor_exact(amount, currency):
        raise ValueError(
            f"{amount} has more precision than {currency.upper()} allows "
            f"({decimal_places(currency)} decimal places)"
        )
    return int(amount.scaleb(decimal_places(currency)))


def from_minor_units(units: int, currency: str) -> Decimal:
    """Convert an integer count of minor units back to a quantized Decimal."""
    return Decimal(units).scaleb(-decimal_places(currency)).quantize(
        minor_unit(currency)
    )


def round_to_minor(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's minor unit."""
    return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def quantize(amount: Decimal, currency: str) -> Decimal:
    """Normalize an exact amount to the currency exponent (10 -> 10.00)."""
    return from_minor_units(to_minor_units(amount, currency), currency)
