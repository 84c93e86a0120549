"""Declared storage capacity of a vault, in binary kilo/mega/gigabytes."""

from dataclasses import dataclass
from typing import ClassVar

from .errors import InvalidInput


@dataclass(frozen=True)
class CapacityUnit:
    count: int
    unit: ClassVar[str] = ""
    power: ClassVar[int] = 0

    def __post_init__(self):
        if UNITS.get(self.unit) is not type(self):
            raise InvalidInput(f"Capacity must be one of {', '.join(cls.__name__ for cls in UNITS.values())}")
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 0:
            raise InvalidInput(f"Capacity must be a non-negative integer, got {self.count!r}")

    def byte_size(self) -> int:
        return self.count * 1024 ** self.power

    def to_dict(self) -> dict:
        return {"unit": self.unit, "count": self.count}

    def __str__(self):
        return f"{self.count}{self.unit}"


class Kilobytes(CapacityUnit):
    unit = "KB"
    power = 1


class Megabytes(CapacityUnit):
    unit = "MB"
    power = 2


class Gigabytes(CapacityUnit):
    unit = "GB"
    power = 3


UNITS = {cls.unit: cls for cls in (Kilobytes, Megabytes, Gigabytes)}


def capacity_from_dict(data: dict) -> CapacityUnit:
    try:
        unit_cls = UNITS[data["unit"]]
        count = data["count"]
    except (KeyError, TypeError) as exc:
        raise InvalidInput(f"Bad capacity value: {data!r}") from exc
    return unit_cls(count)
