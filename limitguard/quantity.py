"""
Arbitrary precision resource quantities.

A Quantity pairs an exact decimal value with the suffix family used to
render it (BinarySI: Ki, Mi, Gi...; DecimalSI: m, k, M, G...). The format
never takes part in comparisons.

All arithmetic except division runs in an exact decimal context, so values
far beyond 2**63 keep every digit. Division always takes an explicit
output scale and rounding direction.
"""

import decimal
import enum
import functools
import math
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_DOWN, ROUND_UP
from fractions import Fraction
from typing import Optional, Tuple, Union

from kubernetes.utils import parse_quantity

from .config import CANONICAL_KI_THRESHOLD
from .errors import InvalidScalarError, QuantityParseError

Scalar = Union[int, float, Decimal, Fraction]

# prec=MAX_PREC makes add, subtract and multiply exact
EXACT = decimal.Context(
    prec=decimal.MAX_PREC,
    Emax=decimal.MAX_EMAX,
    Emin=decimal.MIN_EMIN,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow, decimal.Inexact],
)

# Extra digits granted to the parse context on top of the input length
_PARSE_HEADROOM = 40

# Mantissas longer than this render in exponent notation
_MAX_MANTISSA_ZEROS = 30

_DECIMAL_SUFFIXES = {
    -9: "n",
    -6: "u",
    -3: "m",
    0: "",
    3: "k",
    6: "M",
    9: "G",
    12: "T",
    15: "P",
    18: "E",
}

_BINARY_SUFFIXES = ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei")


class Format(enum.Enum):
    """Suffix family used when rendering a quantity."""
    BINARY_SI = "BinarySI"
    DECIMAL_SI = "DecimalSI"


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Quantity:
    """An exact decimal value with a display format."""
    value: Decimal = Decimal(0)
    format: Format = Format.DECIMAL_SI

    @classmethod
    def parse(cls, text: Union[str, Scalar]) -> "Quantity":
        """
        Parse a Kubernetes quantity string.

        Examples:
            "64Mi"  -> 67108864 (BinarySI)
            "2.5Gi" -> 2684354560 (BinarySI)
            "500m"  -> 0.5 (DecimalSI)

        Raises:
            QuantityParseError: text is not a finite quantity
        """
        if isinstance(text, (int, float, Decimal, Fraction)) and not isinstance(text, bool):
            return cls.from_scalar(text)

        text = str(text).strip()
        if not text:
            raise QuantityParseError("empty quantity")

        # parse_quantity accepts any SI prefix before "i", e.g. "64mi"
        if len(text) >= 2 and text[-1] == "i" and text[-2:] not in _BINARY_SUFFIXES:
            raise QuantityParseError(f"invalid quantity {text!r}: unknown suffix {text[-2:]!r}")

        context = EXACT.copy()
        context.prec = len(text) + _PARSE_HEADROOM
        context.traps[decimal.Inexact] = False
        try:
            with decimal.localcontext(context):
                value = parse_quantity(text)
        except (ValueError, ArithmeticError) as e:
            raise QuantityParseError(f"invalid quantity {text!r}: {e}") from e

        if not value.is_finite():
            raise QuantityParseError(f"invalid quantity {text!r}: not a finite number")

        fmt = Format.BINARY_SI if text.endswith("i") else Format.DECIMAL_SI
        return cls(value, fmt)

    @classmethod
    def from_scalar(cls, scalar: Scalar) -> "Quantity":
        """
        Convert a number to a DecimalSI quantity through its decimal string.

        Raises:
            InvalidScalarError: scalar is NaN, infinite or has no finite
                decimal expansion
        """
        return cls(_scalar_to_decimal(scalar), Format.DECIMAL_SI)

    def is_zero(self) -> bool:
        return self.value.is_zero()

    def with_format(self, fmt: Format) -> "Quantity":
        return replace(self, format=fmt)

    def __eq__(self, other):
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other):
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value < other.value

    def __hash__(self):
        return hash(self.value)

    def __str__(self) -> str:
        if self.value.is_zero():
            return "0"
        if self.format is Format.BINARY_SI:
            text = _format_binary(self.value)
            if text is not None:
                return text
        return _format_decimal(self.value)

    def __repr__(self) -> str:
        return f"Quantity('{self}', {self.format.value})"


ZERO = Quantity()
ONE_KI = Quantity.parse("1Ki")
ONE_MI = Quantity.parse("1Mi")
TEN_MI = Quantity.parse(CANONICAL_KI_THRESHOLD)


def add(x: Quantity, y: Quantity) -> Quantity:
    """Return x + y. A zero x takes y's format."""
    fmt = y.format if x.is_zero() else x.format
    return Quantity(EXACT.add(x.value, y.value), fmt)


def sub(x: Quantity, y: Quantity) -> Quantity:
    """Return x - y. A zero x takes y's format."""
    fmt = y.format if x.is_zero() else x.format
    return Quantity(EXACT.subtract(x.value, y.value), fmt)


def mul(x: Quantity, y: Quantity) -> Quantity:
    """Return x * y in x's format."""
    return Quantity(EXACT.multiply(x.value, y.value), x.format)


def mul_scalar(x: Quantity, scalar: Scalar) -> Quantity:
    return mul(x, Quantity.from_scalar(scalar))


def div(x: Quantity, y: Quantity, scale: int, rounding: str = ROUND_UP) -> Quantity:
    """
    Return x / y rounded to `scale` digits after the decimal point.

    A larger scale keeps more fractional digits; a negative scale rounds to
    tens, hundreds and so on. ROUND_UP rounds the magnitude up (away from
    zero), ROUND_DOWN truncates it (toward zero).

    Args:
        x: Dividend, its format is kept
        y: Divisor
        scale: Number of fractional digits in the result
        rounding: decimal.ROUND_UP or decimal.ROUND_DOWN

    Raises:
        ZeroDivisionError: y is zero
    """
    if rounding not in (ROUND_UP, ROUND_DOWN):
        raise ValueError(f"unsupported rounding mode: {rounding}")
    if y.is_zero():
        raise ZeroDivisionError(f"division of {x} by zero")

    x_coeff, x_exp = _coefficient(x.value)
    y_coeff, y_exp = _coefficient(y.value)

    # x/y * 10^scale == x_coeff/y_coeff * 10^shift
    shift = x_exp - y_exp + scale
    numerator, denominator = x_coeff, y_coeff
    if shift >= 0:
        numerator *= 10 ** shift
    else:
        denominator *= 10 ** -shift

    quotient, remainder = divmod(abs(numerator), abs(denominator))
    if remainder and rounding == ROUND_UP:
        quotient += 1
    if (numerator < 0) != (denominator < 0):
        quotient = -quotient

    return Quantity(Decimal(quotient).scaleb(-scale, EXACT), x.format)


def div_scalar(x: Quantity, scalar: Scalar, scale: int, rounding: str = ROUND_UP) -> Quantity:
    return div(x, Quantity.from_scalar(scalar), scale, rounding)


def minimum(x: Quantity, y: Quantity) -> Quantity:
    """Return the smaller of x and y; x on a tie."""
    if y < x:
        return y
    return x


def maximum(x: Quantity, y: Quantity) -> Quantity:
    """Return the larger of x and y; x on a tie."""
    if x < y:
        return y
    return x


def round_to_unit(q: Quantity, unit: Quantity, rounding: str) -> Quantity:
    """Round q to a whole number of `unit`."""
    return mul(div(q, unit, 0, rounding), unit)


def round_to_canonical_binary_unit(q: Quantity, rounding: str) -> Quantity:
    """
    Round q to whole Ki at or below 10Mi, whole Mi above it.

    The result is always BinarySI so computed defaults render as 64Mi rather
    than a byte count.
    """
    unit = ONE_MI if q > TEN_MI else ONE_KI
    return round_to_unit(q, unit, rounding).with_format(Format.BINARY_SI)


def _scalar_to_decimal(scalar: Scalar) -> Decimal:
    if isinstance(scalar, bool):
        raise InvalidScalarError(f"invalid scalar: {scalar!r}")

    if isinstance(scalar, int):
        return Decimal(scalar)

    if isinstance(scalar, float):
        if not math.isfinite(scalar):
            raise InvalidScalarError(f"invalid scalar: {scalar!r}")
        # shortest round-tripping string, not the binary expansion
        return Decimal(repr(scalar))

    if isinstance(scalar, Decimal):
        if not scalar.is_finite():
            raise InvalidScalarError(f"invalid scalar: {scalar!r}")
        return scalar

    if isinstance(scalar, Fraction):
        # only denominators of the form 2^a * 5^b terminate
        denominator = scalar.denominator
        digits = 0
        while 10 ** digits % denominator:
            digits += 1
            if digits > denominator.bit_length():
                raise InvalidScalarError(f"scalar {scalar} has no finite decimal representation")
        numerator = scalar.numerator * (10 ** digits // denominator)
        return Decimal(numerator).scaleb(-digits, EXACT)

    raise InvalidScalarError(f"invalid scalar type: {type(scalar).__name__}")


def _coefficient(value: Decimal) -> Tuple[int, int]:
    """Split value into an integer coefficient and a power of ten."""
    sign, digits, exponent = value.as_tuple()
    coefficient = int("".join(str(d) for d in digits) or "0")
    if sign:
        coefficient = -coefficient
    return coefficient, exponent


def _normalized(value: Decimal) -> Tuple[int, int, int]:
    """Return (sign, coefficient, exponent) with trailing zeros removed."""
    sign, digits, exponent = value.as_tuple()
    digits = list(digits)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    return sign, int("".join(str(d) for d in digits)), exponent


def _format_binary(value: Decimal) -> Optional[str]:
    sign, coefficient, exponent = _normalized(value)
    # fractional or too large to spell out as an integer
    if exponent < 0 or value.adjusted() > 60:
        return None

    amount = coefficient * 10 ** exponent
    power = 0
    while power + 1 < len(_BINARY_SUFFIXES) and amount % 1024 ** (power + 1) == 0:
        power += 1

    prefix = "-" if sign else ""
    return f"{prefix}{amount // 1024 ** power}{_BINARY_SUFFIXES[power]}"


def _format_decimal(value: Decimal) -> str:
    sign, coefficient, exponent = _normalized(value)
    prefix = "-" if sign else ""

    if exponent < -9:
        # sub-nano precision is rounded up to the next nano
        nanos = -(-coefficient // 10 ** (-9 - exponent))
        return _format_decimal(Decimal((sign, tuple(int(d) for d in str(nanos)), -9)))

    suffix_exponent = min(18, (exponent // 3) * 3)
    zeros = exponent - suffix_exponent
    if zeros > _MAX_MANTISSA_ZEROS:
        return f"{prefix}{coefficient}e{exponent}"

    mantissa = coefficient * 10 ** zeros
    return f"{prefix}{mantissa}{_DECIMAL_SUFFIXES[suffix_exponent]}"
