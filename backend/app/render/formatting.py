import math
from dataclasses import dataclass
from collections.abc import Sequence

Number = int | float


@dataclass(frozen=True)
class ChartStats:
    max: Number
    min: Number
    sum: Number
    mean: float
    max_index: int
    min_index: int


def compute_stats(values: Sequence[Number]) -> ChartStats:
    if not values:
        raise ValueError("cannot compute statistics of an empty series")
    total = sum(values)
    max_value = max(values)
    min_value = min(values)
    return ChartStats(
        max=max_value,
        min=min_value,
        sum=total,
        mean=total / len(values),
        # First occurrence wins on ties.
        max_index=list(values).index(max_value),
        min_index=list(values).index(min_value),
    )


def slice_percentages(values: Sequence[Number]) -> list[float]:
    """Share of the total per value, in percent."""
    total = sum(values)
    if total == 0:
        return [0.0 for _ in values]
    return [value / total * 100 for value in values]


def format_axis_tick(raw_value: Number, decimal_separator: str = ",") -> str:
    """
    Compact tick label of at most four digits plus an optional K/M/B suffix.

    Display only: stored values are never rounded through this.
    """
    if raw_value is None or (isinstance(raw_value, float) and math.isnan(raw_value)):
        return ""
    sign = "-" if raw_value < 0 else ""
    abs_value = abs(raw_value)

    scaled = abs_value
    suffix = ""
    if abs_value >= 1_000_000_000:
        scaled = abs_value / 1_000_000_000
        suffix = "B"
    elif abs_value >= 1_000_000:
        scaled = abs_value / 1_000_000
        suffix = "M"
    elif abs_value >= 10_000:
        scaled = abs_value / 1_000
        suffix = "K"

    digits = 0 if scaled >= 10 else 1
    formatted = f"{scaled:.{digits}f}"
    if len(formatted.replace(".", "")) > 4:
        formatted = str(int(scaled + 0.5))[:4]
    formatted = formatted.replace(".", decimal_separator)

    return f"{sign}{formatted}{suffix}"


def format_full_number(value: Number, thousands_separator: str = ".", decimal_separator: str = ",") -> str:
    """Grouped number with at most two decimals, e.g. 1234567.5 -> '1.234.567,5'."""
    text = f"{value:,.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    # Swap through a placeholder so "," and "." can trade places.
    return (
        text.replace(",", "\0")
        .replace(".", decimal_separator)
        .replace("\0", thousands_separator)
    )
