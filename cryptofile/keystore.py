# cryptofile/keystore.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .artifact import ArtifactFile, ArtifactKind, reject_empty_pass_phrase
from .errors import KeystorePassPhraseEmpty
from .fileops import write_file
from .pem import PemFile
from .private_key import PrivateKeyFile
from .public_key import PublicKeyFile
from .toolkit import (
    DUMMY_PASS_PHRASES,
    Format,
    Toolkit,
    default_toolkit,
    looks_like_keystore_with_wrong_password,
)

logger = logging.getLogger(__name__)


def _require_keystore_pass_phrase(pass_phrase: Optional[str]) -> None:
    if not pass_phrase:
        raise KeystorePassPhraseEmpty()


class KeystoreFile(ArtifactFile):
    """
    A PKCS#12 keystore holding a certificate and its private key,
    protected as a whole by the keystore pass phrase.

    With pass_phrase given the keystore must open with it to be valid.
    Without it, a keystore that only fails on the password still counts
    as a keystore.
    """

    kind = ArtifactKind.KEYSTORE

    def __init__(
        self,
        path: Union[str, Path],
        pass_phrase: Optional[str] = None,
        toolkit: Optional[Toolkit] = None,
    ):
        self._pass_phrase = pass_phrase
        super().__init__(path, toolkit=toolkit)

    def validate(self) -> bool:
        if self._pass_phrase is not None:
            return self.toolkit.check_pkcs12(self.pathname, self._pass_phrase).success

        result = self.toolkit.check_pkcs12(self.pathname, DUMMY_PASS_PHRASES[1])
        return result.success or looks_like_keystore_with_wrong_password(result.diagnostic)

    def get_format(self) -> Format:
        return Format.DER

    @classmethod
    def create(
        cls,
        path: Union[str, Path],
        keystore_pass_phrase: str,
        public_key_file: PublicKeyFile,
        private_key_file: PrivateKeyFile,
        private_key_pass_phrase: Optional[str] = None,
        toolkit: Optional[Toolkit] = None,
    ) -> "KeystoreFile":
        """
        Creates a new keystore from a certificate and private key.
        private_key_pass_phrase opens the key when it is protected.
        """
        _require_keystore_pass_phrase(keystore_pass_phrase)
        toolkit = toolkit if toolkit is not None else default_toolkit()

        certificate = toolkit.export_certificate(
            public_key_file.pathname, public_key_file.get_format(), Format.PEM
        ).check()
        private_key = toolkit.export_rsa_key(
            private_key_file.pathname,
            private_key_file.get_format(),
            pass_in=private_key_pass_phrase or "",
        ).check()

        # the decrypted key is only held in memory on its way into the keystore
        result = toolkit.export_pkcs12(
            certificate.output + private_key.output, pass_in="", pass_out=keystore_pass_phrase
        ).check()

        write_file(path, result.output)
        return cls(path, keystore_pass_phrase, toolkit=toolkit)

    def verify_pass_phrase(self, pass_phrase: str) -> bool:
        """Verifies a pass phrase against the keystore."""
        return self.toolkit.check_pkcs12(self.pathname, pass_phrase).success

    def change_pass_phrase(self, pass_phrase: str, new_pass_phrase: str) -> "KeystoreFile":
        _require_keystore_pass_phrase(new_pass_phrase)

        certificate = self.toolkit.pkcs12_certificate(self.pathname, pass_phrase).check()
        private_key = self.toolkit.pkcs12_private_key(self.pathname, pass_phrase).check()
        result = self.toolkit.export_pkcs12(
            certificate.output + private_key.output, pass_in="", pass_out=new_pass_phrase
        ).check()

        path = self.pathname
        write_file(path, result.output)
        self._invalidate()
        return KeystoreFile(path, new_pass_phrase, toolkit=self.toolkit)

    def get_pem(
        self,
        path: Union[str, Path],
        keystore_pass_phrase: str,
        private_key_pass_phrase: Optional[str] = None,
    ) -> PemFile:
        """
        Gets a PEM file with the certificate and private key.
        private_key_pass_phrase protects the key in the PEM file.
        """
        reject_empty_pass_phrase(private_key_pass_phrase)

        certificate = self.toolkit.pkcs12_certificate(self.pathname, keystore_pass_phrase).check()
        private_key = self.toolkit.pkcs12_private_key(
            self.pathname, keystore_pass_phrase, pass_out=private_key_pass_phrase
        ).check()

        write_file(path, certificate.output + private_key.output)
        return PemFile(path, toolkit=self.toolkit)

    def get_public_key(self, path: Union[str, Path], keystore_pass_phrase: str) -> PublicKeyFile:
        result = self.toolkit.pkcs12_certificate(self.pathname, keystore_pass_phrase).check()

        write_file(path, result.output)
        return PublicKeyFile(path, toolkit=self.toolkit)

    def get_private_key(
        self,
        path: Union[str, Path],
        keystore_pass_phrase: str,
        private_key_pass_phrase: Optional[str] = None,
    ) -> PrivateKeyFile:
        reject_empty_pass_phrase(private_key_pass_phrase)

        result = self.toolkit.pkcs12_private_key(
            self.pathname, keystore_pass_phrase, pass_out=private_key_pass_phrase
        ).check()

        write_file(path, result.output)
        return PrivateKeyFile(path, toolkit=self.toolkit)

    def _reopen(self, path: Union[str, Path]) -> "KeystoreFile":
        return KeystoreFile(path, self._pass_phrase, toolkit=self.toolkit)
