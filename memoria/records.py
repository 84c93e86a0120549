"""The closed set of record types a vault can hold.

Every record reports ``byte_size()``, the figure the vault uses for capacity
bookkeeping. It is an accounting number, not the size a record takes once
serialized: a log batch counts only the bytes of its entries.
"""

from dataclasses import dataclass
from numbers import Real
from collections.abc import Sequence
from typing import ClassVar, Tuple, Union

from .errors import InvalidInput


def _check_utf8(text: str, what: str):
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidInput(f"{what} is not valid UTF-8 text: {exc.reason}") from exc


@dataclass(frozen=True)
class TextMessage:
    text: str
    kind: ClassVar[str] = "text"

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise InvalidInput(f"Text message must be a string, got {type(self.text).__name__}")
        _check_utf8(self.text, "Text message")

    def byte_size(self) -> int:
        return len(self.text.encode("utf-8"))

    def payload(self):
        return self.text


@dataclass(frozen=True)
class SensorReading:
    value: float
    kind: ClassVar[str] = "sensor"

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, Real):
            raise InvalidInput(f"Sensor reading must be a number, got {self.value!r}")
        try:
            value = float(self.value)
        except OverflowError as exc:
            raise InvalidInput("Sensor reading is out of range for a 64-bit float") from exc
        object.__setattr__(self, "value", value)

    def byte_size(self) -> int:
        # stored as a 64-bit float
        return 8

    def payload(self):
        return self.value


@dataclass(frozen=True)
class SystemLogBatch:
    entries: Tuple[str, ...]
    kind: ClassVar[str] = "log"

    def __post_init__(self):
        if isinstance(self.entries, str):
            raise InvalidInput("Log batch entries must be a sequence of strings, not a string")
        try:
            entries = tuple(self.entries)
        except TypeError as exc:
            raise InvalidInput(f"Log batch entries must be a sequence of strings, got {self.entries!r}") from exc
        for entry in entries:
            if not isinstance(entry, str):
                raise InvalidInput(f"Log entry must be a string, got {entry!r}")
            _check_utf8(entry, "Log entry")
        object.__setattr__(self, "entries", entries)

    def byte_size(self) -> int:
        return sum(len(entry.encode("utf-8")) for entry in self.entries)

    def payload(self):
        return list(self.entries)


Record = Union[TextMessage, SensorReading, SystemLogBatch]
RECORD_TYPES = (TextMessage, SensorReading, SystemLogBatch)
_BY_NAME = {cls.__name__: cls for cls in RECORD_TYPES}
_BY_KIND = {cls.kind: cls for cls in RECORD_TYPES}


def is_record(obj) -> bool:
    return type(obj) in RECORD_TYPES


def record_to_dict(record: Record) -> dict:
    return {"type": type(record).__name__, "payload": record.payload()}


def record_from_dict(data: dict) -> Record:
    try:
        cls = _BY_NAME[data["type"]]
        payload = data["payload"]
    except (KeyError, TypeError) as exc:
        raise InvalidInput(f"Bad record value: {data!r}") from exc
    if cls is SystemLogBatch and not isinstance(payload, Sequence):
        raise InvalidInput(f"Log batch payload must be a list, got {payload!r}")
    return cls(payload)


def parse_record(kind: str, raw: str) -> Record:
    """Build a record from text typed by a user.

    ``kind`` is one of ``text``, ``sensor`` or ``log`` (any case). Log text is
    split on commas and each entry is stripped.
    """
    cls = _BY_KIND.get(kind.strip().lower())
    if cls is None:
        raise InvalidInput("Invalid type")
    if cls is SensorReading:
        try:
            return SensorReading(float(raw.strip()))
        except ValueError as exc:
            raise InvalidInput("Invalid number") from exc
    if cls is SystemLogBatch:
        return SystemLogBatch([entry.strip() for entry in raw.split(",")])
    return TextMessage(raw)
