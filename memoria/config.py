"""Vault settings read from the environment and an optional .env file."""

import os, logging
from dataclasses import dataclass

from dotenv import load_dotenv

from .capacity import CapacityUnit, Gigabytes
from .persistence import load_or_create, save
from .vault import Vault

log = logging.getLogger(__name__)

DEFAULT_VAULT_NAME = "Global Vault"
DEFAULT_CAPACITY_GB = 50

root_path = os.getcwd()
vaults_folder = os.path.join(root_path, ".memoria")


def set_root_path(path: str):
    global root_path, vaults_folder
    root_path = path
    vaults_folder = os.path.join(root_path, ".memoria")
    log.info(f"Root path set to: {root_path}, vaults folder: {vaults_folder}")


@dataclass
class VaultConfig:
    location: str
    capacity: CapacityUnit
    vault_file: str
    persist: bool = False


def _capacity_gb() -> int:
    raw = os.getenv("VAULT_CAPACITY_GB", str(DEFAULT_CAPACITY_GB))
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if value < 0:
        log.warning(f"Invalid VAULT_CAPACITY_GB '{raw}', using {DEFAULT_CAPACITY_GB}.")
        return DEFAULT_CAPACITY_GB
    return value


def load_config(dotenv_path: str = None) -> VaultConfig:
    """Read vault settings; variables already set win over the .env file."""
    load_dotenv(dotenv_path)
    return VaultConfig(
        location=os.getenv("VAULT_NAME", DEFAULT_VAULT_NAME),
        capacity=Gigabytes(_capacity_gb()),
        vault_file=os.getenv("VAULT_FILE", os.path.join(vaults_folder, "vault.json")),
        persist=os.getenv("VAULT_PERSIST", "false").lower() == "true",
    )


def open_vault(config: VaultConfig) -> Vault:
    if config.persist:
        return load_or_create(config.vault_file, config.location, config.capacity)
    return Vault(config.location, config.capacity)


def close_vault(vault: Vault, config: VaultConfig):
    if config.persist:
        save(vault, config.vault_file)
