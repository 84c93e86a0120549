import logging
from typing import Dict, Generic, Hashable, List, NamedTuple, Optional, TypeVar

from .capacity import CapacityUnit
from .errors import DuplicateKey, InvalidInput, ResourceNotFound, VaultFull
from .records import Record, SensorReading, SystemLogBatch, TextMessage, is_record

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)


class VaultSummary(NamedTuple):
    text_messages: int
    sensor_readings: int
    log_batches: int


class VaultMetadata(NamedTuple):
    location: str
    storage_capacity: CapacityUnit
    current_usage: int
    resource_count: int


class Vault(Generic[K]):
    """Keyed record store bounded by a byte budget.

    Usage never exceeds ``storage_capacity.byte_size()`` and keys are unique.
    A rejected ``add`` leaves the vault untouched.
    """

    __slots__ = {"location", "storage_capacity", "resources"}

    def __init__(self, location: str, storage_capacity: CapacityUnit):
        if not isinstance(storage_capacity, CapacityUnit):
            raise InvalidInput(f"Not a storage capacity: {storage_capacity!r}")
        self.location = location
        self.storage_capacity = storage_capacity
        self.resources: Dict[K, Record] = {}
        log.info(f"Vault created at '{location}' with capacity {storage_capacity}.")

    def current_usage(self) -> int:
        return sum(record.byte_size() for record in self.resources.values())

    def __check_capacity__(self, size: int):
        current = self.current_usage()
        capacity = self.storage_capacity.byte_size()
        if current + size > capacity:
            log.warning(f"Rejected {size} bytes: vault '{self.location}' holds {current} of {capacity} bytes.")
            raise VaultFull(capacity, current, size)

    def add(self, key: K, record: Record):
        if not is_record(record):
            raise InvalidInput(f"Not a vault record: {record!r}")
        log.debug(f"Adding key: {key} ({type(record).__name__}) to vault.")
        self.__check_capacity__(record.byte_size())
        if key in self.resources:
            log.warning(f"Key '{key}' already present in vault '{self.location}'.")
            raise DuplicateKey(key)
        self.resources[key] = record
        log.info(f"Key '{key}' stored in vault.")

    def get(self, key: K) -> Optional[Record]:
        record = self.resources.get(key)
        if record is None:
            log.warning(f"Key '{key}' not found in vault.")
        else:
            log.info(f"Retrieved key '{key}' from vault.")
        return record

    def remove(self, key: K) -> Record:
        try:
            record = self.resources.pop(key)
        except KeyError:
            log.warning(f"Key '{key}' not found for remove operation.")
            raise ResourceNotFound(key) from None
        log.info(f"Key '{key}' removed from vault.")
        return record

    def summary(self) -> VaultSummary:
        counts = {TextMessage: 0, SensorReading: 0, SystemLogBatch: 0}
        for record in self.resources.values():
            counts[type(record)] += 1
        return VaultSummary(counts[TextMessage], counts[SensorReading], counts[SystemLogBatch])

    def metadata(self) -> VaultMetadata:
        return VaultMetadata(self.location, self.storage_capacity, self.current_usage(), len(self.resources))

    def list_keys(self) -> List[K]:
        keys = list(self.resources)
        log.info(f"Listed {len(keys)} keys from vault '{self.location}'.")
        return keys

    def get_all_items(self) -> List[Record]:
        return list(self.resources.values())

    def __len__(self):
        return len(self.resources)

    def __contains__(self, key):
        return key in self.resources

    def __repr__(self):
        return f"Vault(location={self.location!r}, storage_capacity={self.storage_capacity!r}, resources={len(self.resources)})"
