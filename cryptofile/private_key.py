# cryptofile/private_key.py

from __future__ import annotations

import logging
from typing import Optional, Union

from .artifact import (
    ArtifactFile,
    ArtifactKind,
    key_accepts_pass_phrase,
    key_has_pass_phrase,
    probe_key,
    reject_empty_pass_phrase,
)
from .errors import FormatNotValid
from .toolkit import DUMMY_PASS_PHRASES, Format

logger = logging.getLogger(__name__)


class PrivateKeyFile(ArtifactFile):
    """
    An RSA private key, ascii 'pem' or binary 'der'.

    Only 'pem' keys can carry a pass phrase. Adding or changing a pass
    phrase on a 'der' key, or converting a protected key to 'der', raises
    FormatNotValid before anything is written.
    """

    kind = ArtifactKind.PRIVATE_KEY

    def validate(self) -> bool:
        """
        Validates that the file is actually a private key, and only that:
        a file that also parses as a certificate is a PemFile.
        """
        inform = self.get_format()

        if not probe_key(self.toolkit, self.pathname, inform):
            return False

        return not self.toolkit.check_certificate(self.pathname, inform).success

    def sanitize(self, pass_phrase: Optional[str] = None) -> "PrivateKeyFile":
        """
        Sanitizes the private key, removing malicious data.

        A protected key needs its pass phrase, which is also used to
        protect the sanitized key. Pass None for a key without one.
        """
        reject_empty_pass_phrase(pass_phrase)

        inform = self.get_format()
        if pass_phrase is not None and inform == Format.DER:
            raise FormatNotValid(Format.DER.value)

        result = self.toolkit.export_rsa_key(
            self.pathname, inform, pass_in=pass_phrase or "", pass_out=pass_phrase, outform=inform
        ).check()
        return self._rewrite(result.output)

    def has_pass_phrase(self) -> bool:
        """Checks if the private key is protected with a pass phrase."""
        return key_has_pass_phrase(self.toolkit, self.pathname, self.get_format())

    def verify_pass_phrase(self, pass_phrase: str) -> bool:
        """
        Verifies a pass phrase against the private key.

        Verifying a key without a pass phrase returns True for any pass
        phrase: there is nothing to verify against.
        """
        return key_accepts_pass_phrase(self.toolkit, self.pathname, self.get_format(), pass_phrase)

    def add_pass_phrase(self, pass_phrase: str) -> "PrivateKeyFile":
        reject_empty_pass_phrase(pass_phrase)
        self._require_pem()

        # fails when the key already has a pass phrase
        result = self.toolkit.export_rsa_key(
            self.pathname, Format.PEM, pass_in=DUMMY_PASS_PHRASES[0], pass_out=pass_phrase
        ).check()
        return self._rewrite(result.output)

    def remove_pass_phrase(self, pass_phrase: str) -> "PrivateKeyFile":
        inform = self.get_format()
        result = self.toolkit.export_rsa_key(
            self.pathname, inform, pass_in=pass_phrase, outform=inform
        ).check()
        return self._rewrite(result.output)

    def change_pass_phrase(self, pass_phrase: str, new_pass_phrase: str) -> "PrivateKeyFile":
        reject_empty_pass_phrase(new_pass_phrase)
        self._require_pem()

        result = self.toolkit.export_rsa_key(
            self.pathname, Format.PEM, pass_in=pass_phrase, pass_out=new_pass_phrase
        ).check()
        return self._rewrite(result.output)

    def convert_format(self, format: Union[str, Format]) -> "PrivateKeyFile":
        """Converts the private key to either ascii 'pem' or binary 'der'."""
        target = Format.parse(format)
        if target is None:
            raise FormatNotValid(str(format).lower())

        inform = self.get_format()
        if inform == target:
            return self

        if target == Format.DER and self.has_pass_phrase():
            raise FormatNotValid(Format.DER.value)

        logger.info("Converting %s from %s to %s", self.pathname, inform.value, target.value)
        result = self.toolkit.export_rsa_key(
            self.pathname,
            inform,
            pass_in="",
            outform=target,
        ).check()
        return self._rewrite(result.output)

    def _require_pem(self) -> None:
        if self.get_format() != Format.PEM:
            raise FormatNotValid(Format.DER.value)
