# cryptofile/public_key.py

from __future__ import annotations

import logging
from datetime import datetime
from typing import Union

from .artifact import ArtifactFile, ArtifactKind, parse_toolkit_date, probe_key
from .errors import FormatNotValid
from .toolkit import CertificateField, Format

logger = logging.getLogger(__name__)


class PublicKeyFile(ArtifactFile):
    """An X.509 certificate, ascii 'pem' or binary 'der'."""

    kind = ArtifactKind.CERTIFICATE

    def validate(self) -> bool:
        """
        Validates that the file is actually a certificate.

        A private key must be rejected outright: when the toolkit decrypts
        it with a dummy passphrase, or only fails on the passphrase, the
        file is a key and not a certificate.
        """
        inform = self.get_format()

        if not self.toolkit.check_certificate(self.pathname, inform).success:
            return False

        return not probe_key(self.toolkit, self.pathname, inform)

    def sanitize(self) -> "PublicKeyFile":
        """Re-encodes the certificate in its own format, dropping anything around it."""
        inform = self.get_format()
        result = self.toolkit.export_certificate(self.pathname, inform, inform).check()
        return self._rewrite(result.output)

    def get_subject(self) -> str:
        """
        The "subject" attribute as the toolkit prints it. Separators and
        ordering depend on the toolkit, compare it as an opaque string.
        """
        return self._field(CertificateField.SUBJECT, self.get_format())

    def get_issuer(self) -> str:
        return self._field(CertificateField.ISSUER, self.get_format())

    def get_not_before(self) -> datetime:
        return parse_toolkit_date(self._field(CertificateField.NOT_BEFORE, self.get_format()))

    def get_not_after(self) -> datetime:
        return parse_toolkit_date(self._field(CertificateField.NOT_AFTER, self.get_format()))

    def convert_format(self, format: Union[str, Format]) -> "PublicKeyFile":
        """
        Converts the certificate to either ascii 'pem' or binary 'der'.
        Returns self when it already is in that format.
        """
        target = Format.parse(format)
        if target is None:
            raise FormatNotValid(str(format).lower())

        inform = self.get_format()
        if inform == target:
            return self

        logger.info("Converting %s from %s to %s", self.pathname, inform.value, target.value)
        result = self.toolkit.export_certificate(self.pathname, inform, target).check()
        return self._rewrite(result.output)
