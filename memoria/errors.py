"""Error kinds raised by the vault and its persistence layer."""


class VaultError(Exception):
    """Base class for every failure the vault reports."""


class VaultFull(VaultError):
    def __init__(self, capacity: int, current: int, new_size: int):
        self.capacity = capacity
        self.current = current
        self.new_size = new_size
        super().__init__(
            f"Vault full! Capacity: {capacity} bytes, Current: {current} bytes, "
            f"New Resource: {new_size} bytes"
        )


class DuplicateKey(VaultError):
    def __init__(self, key):
        self.key = key
        super().__init__(f"Key '{key}' already exists")


class ResourceNotFound(VaultError):
    def __init__(self, key):
        self.key = str(key)
        super().__init__(f"Resource '{self.key}' not found")


class InvalidInput(VaultError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Input error: {message}")


class IoFailure(VaultError):
    """Read, write or decode failure while persisting a vault."""

    def __init__(self, cause: Exception, message: str = None):
        self.cause = cause
        super().__init__(message or f"I/O error: {cause}")
