"""Exception hierarchy for the storage kernel and its network layer."""

from __future__ import annotations


class KernelError(Exception):
    """Base class for every error raised by the storage kernel."""

    default_message = "Kernel error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message if message is not None else self.default_message
        super().__init__(self.message)


class KeyNotFoundError(KernelError):
    """Raised when removing or reading a key that does not exist."""

    default_message = "Key not found"


class DataEmptyError(KernelError):
    """Raised when an operation needs data that is not there."""

    default_message = "Data is empty"


class LevelOverError(KernelError):
    """Raised when a level number goes past the deepest level."""

    default_message = "Level Over"


class CrcMismatchError(KernelError):
    """Raised when a stored checksum does not match the data read back."""

    default_message = "CRC code does not match"


class FileNotFoundKernelError(KernelError):
    """Raised when a file the kernel expects is missing."""

    default_message = "File not found"


class ChannelClosedError(KernelError):
    """Raised when the background compaction worker is gone."""

    default_message = "Channel is closed"


class NotSupportedError(KernelError):
    """Raised for an operation that the object does not support."""

    default_message = "Not supported"


class RepeatedWriteError(KernelError):
    """Raised when two transactions write the same key concurrently."""

    default_message = "Same write in different transactions"


class ConnectionError_(Exception):
    """Error raised by the client/server connection layer."""

    default_message = "disconnected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message if message is not None else self.default_message
        super().__init__(self.message)