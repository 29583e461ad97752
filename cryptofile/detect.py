# cryptofile/detect.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Type, Union

from .artifact import ArtifactFile, ArtifactKind
from .errors import FileNotFound, FileNotValid
from .keystore import KeystoreFile
from .pem import PemFile
from .private_key import PrivateKeyFile
from .public_key import PublicKeyFile
from .toolkit import Toolkit, default_toolkit

logger = logging.getLogger(__name__)

# Order matters: a bundle also parses as a certificate.
ARTIFACT_TYPES: Tuple[Type[ArtifactFile], ...] = (
    PemFile,
    PublicKeyFile,
    PrivateKeyFile,
    KeystoreFile,
)

TYPES_BY_KIND: Dict[ArtifactKind, Type[ArtifactFile]] = {cls.kind: cls for cls in ARTIFACT_TYPES}


def open_artifact(path: Union[str, Path], toolkit: Optional[Toolkit] = None) -> ArtifactFile:
    """
    Open path as whichever artifact it holds.

    Raises FileNotFound for a missing path and FileNotValid when no
    artifact type accepts the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFound(path)

    toolkit = toolkit if toolkit is not None else default_toolkit()

    for cls in ARTIFACT_TYPES:
        try:
            artifact = cls(path, toolkit=toolkit)
        except FileNotValid:
            continue
        logger.debug("%s detected as %s", path, artifact.kind.value)
        return artifact

    raise FileNotValid(path)


def detect_kind(path: Union[str, Path], toolkit: Optional[Toolkit] = None) -> Optional[ArtifactKind]:
    """The kind of artifact in path, or None when it is none of them."""
    try:
        return open_artifact(path, toolkit).kind
    except FileNotValid:
        return None


def open_as(kind: Union[str, ArtifactKind], path: Union[str, Path], toolkit: Optional[Toolkit] = None) -> ArtifactFile:
    """Open path as the given kind, e.g. open_as("certificate", "site.crt")."""
    return TYPES_BY_KIND[ArtifactKind(kind)](path, toolkit=toolkit)
