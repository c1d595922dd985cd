"""Human-readable duration formatting."""

from collections.abc import Sequence

TIME_UNITS: Sequence[tuple[str, int]] = (
    ("year", 31_536_000),
    ("month", 2_592_000),
    ("week", 604_800),
    ("day", 86_400),
    ("hour", 3_600),
    ("minute", 60),
    ("second", 1),
)


def format_elapsed_time(seconds: int) -> str:
    """Break a duration into unit segments, largest first.

    Zero-valued units are omitted, so ``format_elapsed_time(0)`` is ``""``
    and ``format_elapsed_time(3600)`` is ``"1 hour"``.
    """
    remaining = max(int(seconds), 0)
    parts: list[str] = []

    for label, unit_seconds in TIME_UNITS:
        value, remaining = divmod(remaining, unit_seconds)
        if value:
            parts.append(f"{value} {label}{'' if value == 1 else 's'}")

    return ", ".join(parts)
