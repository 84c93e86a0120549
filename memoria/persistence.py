"""Saving and loading whole vaults.

A vault is written as a single document holding ``location``,
``storage_capacity`` and ``resources``. Paths ending in ``.db`` or ``.sqlite``
are written to an SQLite database instead, with one row per record. Every save
replaces what was there; there is no versioning and no partial update.
"""

import os, json, pickle, logging
from typing import Callable, Dict, NamedTuple

from sqlalchemy import Column, Integer, String, Text, BigInteger, BINARY, select, delete, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from .capacity import CapacityUnit, capacity_from_dict
from .errors import InvalidInput, IoFailure
from .records import Record, record_from_dict, record_to_dict
from .vault import Vault

log = logging.getLogger(__name__)

SQLITE_SUFFIXES = (".db", ".sqlite")
SNAPSHOT_FIELDS = {"location", "storage_capacity", "resources"}
Base = declarative_base()


class VaultSnapshot(NamedTuple):
    location: str
    storage_capacity: CapacityUnit
    resources: Dict


class VaultEntry(Base):
    __tablename__ = "vault"
    id = Column(Integer, primary_key=True)
    location = Column(String, nullable=False)
    capacity_unit = Column(String(2), nullable=False)
    capacity_count = Column(BigInteger, nullable=False)


class ResourceEntry(Base):
    __tablename__ = "resources"
    key = Column(BINARY, primary_key=True, nullable=False)
    kind = Column(String, nullable=False)
    payload = Column(Text, nullable=False)


def _is_sqlite(path) -> bool:
    return os.fspath(path).lower().endswith(SQLITE_SUFFIXES)


def _malformed(path, exc: Exception) -> IoFailure:
    return IoFailure(exc, f"Malformed vault data in '{path}': {exc}")


def _check_usage(snap: VaultSnapshot):
    usage = sum(record.byte_size() for record in snap.resources.values())
    if usage > snap.storage_capacity.byte_size():
        raise ValueError(f"{usage} bytes of resources exceed capacity {snap.storage_capacity}")


def snapshot(vault: Vault) -> VaultSnapshot:
    return VaultSnapshot(vault.location, vault.storage_capacity, dict(vault.resources))


def restore(snap: VaultSnapshot) -> Vault:
    vault = Vault(snap.location, snap.storage_capacity)
    vault.resources.update(snap.resources)
    return vault


# ── JSON document ─────────────────────────────────────────────


def _encode_document(snap: VaultSnapshot) -> str:
    resources = {str(key): record_to_dict(record) for key, record in snap.resources.items()}
    if len(resources) != len(snap.resources):
        raise ValueError("Two keys share the same text form and cannot be stored together")
    document = {
        "location": snap.location,
        "storage_capacity": snap.storage_capacity.to_dict(),
        "resources": resources,
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def _decode_document(text: str, key_type: Callable) -> VaultSnapshot:
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("Top-level value is not an object")
    if set(document) != SNAPSHOT_FIELDS:
        raise ValueError(f"Expected fields {sorted(SNAPSHOT_FIELDS)}, found {sorted(document)}")
    if not isinstance(document["location"], str) or not isinstance(document["resources"], dict):
        raise ValueError("Wrong type for 'location' or 'resources'")
    resources = {}
    for key, value in document["resources"].items():
        decoded = key_type(key)
        if decoded in resources:
            raise ValueError(f"Keys '{key}' and another stored key both decode to {decoded!r}")
        resources[decoded] = record_from_dict(value)
    snap = VaultSnapshot(document["location"], capacity_from_dict(document["storage_capacity"]), resources)
    _check_usage(snap)
    return snap


def _write_document(snap: VaultSnapshot, destination):
    try:
        text = _encode_document(snap)
    except (TypeError, ValueError) as exc:
        raise IoFailure(exc, f"Could not serialize vault '{snap.location}': {exc}") from exc
    tmp_path = f"{os.fspath(destination)}.tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_path, destination)
    except OSError as exc:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise IoFailure(exc) from exc


def _read_document(source, key_type: Callable) -> VaultSnapshot:
    try:
        with open(source, "r", encoding="utf-8") as fh:
            text = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise IoFailure(exc) from exc
    try:
        return _decode_document(text, key_type)
    except (ValueError, TypeError, ArithmeticError, InvalidInput) as exc:
        raise _malformed(source, exc) from exc


# ── SQLite database ───────────────────────────────────────────


def _engine_for(path):
    return create_engine(f"sqlite:///{os.fspath(path)}", echo=False, future=True)


def _write_database(snap: VaultSnapshot, destination):
    try:
        rows = [
            ResourceEntry(key=pickle.dumps(key), kind=type(record).__name__,
                          payload=json.dumps(record_to_dict(record)["payload"]))
            for key, record in snap.resources.items()
        ]
    except (pickle.PicklingError, TypeError, AttributeError, ValueError) as exc:
        raise IoFailure(exc, f"Could not serialize vault '{snap.location}': {exc}") from exc
    engine = _engine_for(destination)
    try:
        Base.metadata.create_all(engine)
        session_factory = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)
        with session_factory() as session:
            with session.begin():
                session.execute(delete(ResourceEntry))
                session.execute(delete(VaultEntry))
                session.add(VaultEntry(id=1, location=snap.location,
                                       capacity_unit=snap.storage_capacity.unit,
                                       capacity_count=snap.storage_capacity.count))
                session.add_all(rows)
    except SQLAlchemyError as exc:
        raise IoFailure(exc) from exc
    finally:
        engine.dispose()


def _read_database(source) -> VaultSnapshot:
    if not os.path.isfile(source):
        raise IoFailure(FileNotFoundError(f"No such vault file: '{source}'"))
    engine = _engine_for(source)
    try:
        with Session(engine) as session:
            header = session.scalars(select(VaultEntry)).one_or_none()
            entries = session.scalars(select(ResourceEntry)).all()
            if header is None:
                raise ValueError("Missing vault header row")
            capacity = capacity_from_dict({"unit": header.capacity_unit, "count": header.capacity_count})
            resources = {
                pickle.loads(entry.key): record_from_dict({"type": entry.kind, "payload": json.loads(entry.payload)})
                for entry in entries
            }
            snap = VaultSnapshot(header.location, capacity, resources)
            _check_usage(snap)
            return snap
    except SQLAlchemyError as exc:
        raise IoFailure(exc) from exc
    except (ValueError, TypeError, ArithmeticError, InvalidInput, pickle.UnpicklingError, EOFError) as exc:
        raise _malformed(source, exc) from exc
    finally:
        engine.dispose()


# ── Public API ────────────────────────────────────────────────


def save(vault: Vault, destination):
    """Write the full state of ``vault`` to ``destination``, replacing it."""
    log.debug(f"Saving vault '{vault.location}' to {destination}.")
    parent = os.path.dirname(os.fspath(destination))
    try:
        if parent:
            os.makedirs(parent, exist_ok=True)
    except OSError as exc:
        raise IoFailure(exc) from exc
    snap = snapshot(vault)
    try:
        if _is_sqlite(destination):
            _write_database(snap, destination)
        else:
            _write_document(snap, destination)
    except IoFailure as exc:
        log.error(f"Failed to save vault '{vault.location}' to {destination}: {exc}")
        raise
    log.info(f"Vault '{vault.location}' saved to {destination} ({len(snap.resources)} resources).")


def load(source, key_type: Callable = str) -> Vault:
    """Rebuild a vault from ``source``.

    ``key_type`` turns the stored text form of each key back into a key. It is
    not used for SQLite files, whose keys are pickled.
    """
    log.debug(f"Loading vault from {source}.")
    try:
        snap = _read_database(source) if _is_sqlite(source) else _read_document(source, key_type)
    except IoFailure as exc:
        log.error(f"Failed to load vault from {source}: {exc}")
        raise
    log.info(f"Vault '{snap.location}' loaded from {source} ({len(snap.resources)} resources).")
    return restore(snap)


def load_or_create(path, location: str, capacity: CapacityUnit, key_type: Callable = str) -> Vault:
    if os.path.exists(path):
        return load(path, key_type)
    log.info(f"No vault at {path}, creating a new one.")
    return Vault(location, capacity)


def delete_vault_file(path) -> bool:
    if os.path.exists(path):
        os.remove(path)
        log.info(f"Vault file '{path}' deleted successfully.")
        return True
    log.warning(f"Vault file '{path}' does not exist.")
    return False
