import math
from dataclasses import asdict, dataclass
from typing import Any


def round_half_up(value: float) -> int:
    """Round .5 upwards, unlike the banker's rounding of round()."""
    return math.floor(value + 0.5)


@dataclass(slots=True)
class Check:
    """One pass/fail item of a weighted checklist."""

    key: str
    label: str
    weight: int
    passed: bool
    current: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.current is None:
            data.pop("current")
        return data


def weighted_score(checks: list[Check]) -> int:
    return sum(check.weight for check in checks if check.passed)
