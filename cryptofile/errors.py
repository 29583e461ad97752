# cryptofile/errors.py

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class CryptoFileError(Exception):
    """Base error type for crypto file operations."""


class FileNotFound(CryptoFileError):
    """Thrown when the backing file of an artifact does not exist."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(f"The file {path} does not exist")
        self.path = Path(path)


class FileNotValid(CryptoFileError):
    """Thrown when a file is not the kind of artifact it was opened as."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(f"The file {path} is not a valid file")
        self.path = Path(path)


class FormatNotValid(CryptoFileError):
    """Thrown when a conversion target is not 'pem' or 'der'."""

    def __init__(self, format: str):
        super().__init__(f"The format {format!r} is not a valid format")
        self.format = format


class PassPhraseEmpty(CryptoFileError):
    """Thrown when an empty string is passed where a pass phrase gets written."""


class PrivateKeyPassPhraseEmpty(PassPhraseEmpty):
    def __init__(self) -> None:
        super().__init__("A private key cannot be written with an empty pass phrase")


class KeystorePassPhraseEmpty(PassPhraseEmpty):
    def __init__(self) -> None:
        super().__init__("A keystore cannot be written with an empty pass phrase")


class ProcessFailed(CryptoFileError):
    """
    Thrown when a toolkit step did not succeed.

    operation is the toolkit operation name, returncode the exit status
    (None when the process never ran or timed out) and diagnostic the
    error text reported by the toolkit.
    """

    def __init__(self, operation: str, returncode: Optional[int] = None, diagnostic: str = ""):
        summary = f"The toolkit operation {operation!r} failed"
        if returncode is not None:
            summary += f" (exit code {returncode})"
        super().__init__(f"{summary}\n{diagnostic.strip()}" if diagnostic.strip() else summary)
        self.operation = operation
        self.returncode = returncode
        self.diagnostic = diagnostic


class FileOperationError(CryptoFileError):
    """Thrown when a file could not be written or moved."""


class StaleFileHandle(CryptoFileError):
    """Thrown when a handle is used after a mutation replaced it."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(f"The handle for {path} is stale; use the handle returned by the last operation")
        self.path = Path(path)
