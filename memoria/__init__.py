"""Capacity-bounded keyed store for typed records, with file persistence."""

from .log import set_log_file, set_log_level
from .errors import VaultError, VaultFull, DuplicateKey, ResourceNotFound, InvalidInput, IoFailure
from .capacity import CapacityUnit, Kilobytes, Megabytes, Gigabytes
from .records import Record, TextMessage, SensorReading, SystemLogBatch, parse_record
from .vault import Vault, VaultSummary, VaultMetadata
from .persistence import save, load, load_or_create, delete_vault_file
from .config import VaultConfig, load_config, open_vault, close_vault, set_root_path

__all__ = [
    "Vault", "VaultSummary", "VaultMetadata",
    "VaultError", "VaultFull", "DuplicateKey", "ResourceNotFound", "InvalidInput", "IoFailure",
    "CapacityUnit", "Kilobytes", "Megabytes", "Gigabytes",
    "Record", "TextMessage", "SensorReading", "SystemLogBatch", "parse_record",
    "save", "load", "load_or_create", "delete_vault_file",
    "VaultConfig", "load_config", "open_vault", "close_vault", "set_root_path",
    "set_log_file", "set_log_level",
]
