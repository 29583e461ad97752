# cryptofile/openssl.py

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import ProcessFailed
from .toolkit import (
    CERTIFICATE_LABELS,
    PRIVATE_KEY_LABELS,
    CertificateField,
    Format,
    Source,
    ToolkitResult,
    find_pem_block,
)

logger = logging.getLogger(__name__)

# Passphrases reach openssl through the environment so they never show
# up in the process list.
PASSIN_ENV = "CRYPTOFILE_PASSIN"
PASSOUT_ENV = "CRYPTOFILE_PASSOUT"


def run_process(
    operation: str,
    args: Sequence[str],
    input: Optional[bytes] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> ToolkitResult:
    """
    Run one command and capture stdout, stderr and the exit code.

    A non-zero exit code is reported in the result, not raised. A timeout
    counts as a failed run. A binary that cannot be started at all is a
    setup problem and raises ProcessFailed right away.
    """
    logger.debug("Running %s: %s", operation, " ".join(args))

    run_env = os.environ.copy()
    if env:
        run_env.update(env)

    try:
        proc = subprocess.run(
            list(args),
            input=input if input is not None else b"",
            capture_output=True,
            env=run_env,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("%s timed out after %s seconds", operation, timeout)
        return ToolkitResult(
            operation,
            diagnostic=f"timed out after {timeout} seconds",
            success=False,
            returncode=None,
        )
    except OSError as e:
        raise ProcessFailed(operation, None, f"could not start {args[0]}: {e}")

    diagnostic = proc.stderr.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        logger.debug("%s exited with %s: %s", operation, proc.returncode, diagnostic.strip())

    return ToolkitResult(
        operation,
        output=proc.stdout,
        diagnostic=diagnostic,
        success=proc.returncode == 0,
        returncode=proc.returncode,
    )


class OpensslToolkit:
    """Toolkit engine driving the openssl command line tool."""

    def __init__(self, openssl_path: str = "openssl", cipher: str = "aes256", timeout: Optional[float] = None):
        self.openssl_path = openssl_path
        self.cipher = cipher.lstrip("-")
        self.timeout = timeout

    # --- plumbing ---

    def _run(
        self,
        operation: str,
        args: List[str],
        input: Optional[bytes] = None,
        pass_in: Optional[str] = None,
        pass_out: Optional[str] = None,
    ) -> ToolkitResult:
        env: Dict[str, str] = {}
        if pass_in is not None:
            env[PASSIN_ENV] = pass_in
        if pass_out is not None:
            env[PASSOUT_ENV] = pass_out
        return run_process(operation, [self.openssl_path, *args], input, env, self.timeout)

    @staticmethod
    def _source(source: Source) -> Tuple[List[str], Optional[bytes]]:
        # Without -in openssl reads stdin.
        if isinstance(source, bytes):
            return [], source
        return ["-in", str(Path(source))], None

    def _pass_out_args(self, pass_out: Optional[str]) -> List[str]:
        if pass_out is None:
            return []
        return ["-passout", f"env:{PASSOUT_ENV}", f"-{self.cipher}"]

    # --- certificates ---

    def check_certificate(self, source: Source, inform: Format) -> ToolkitResult:
        in_args, data = self._source(source)
        return self._run(
            "check_certificate",
            ["x509", *in_args, "-inform", inform.value, "-noout"],
            data,
        )

    def export_certificate(self, source: Source, inform: Format, outform: Format) -> ToolkitResult:
        in_args, data = self._source(source)
        return self._run(
            "export_certificate",
            ["x509", *in_args, "-inform", inform.value, "-outform", outform.value],
            data,
        )

    def certificate_field(self, source: Source, inform: Format, field: CertificateField) -> ToolkitResult:
        in_args, data = self._source(source)
        return self._run(
            f"certificate_{field.value}",
            ["x509", *in_args, "-inform", inform.value, "-noout", f"-{field.value}"],
            data,
        )

    # --- private keys ---

    def check_rsa_key(self, source: Source, inform: Format, pass_in: str) -> ToolkitResult:
        in_args, data = self._source(source)
        return self._run(
            "check_rsa_key",
            ["rsa", *in_args, "-inform", inform.value, "-passin", f"env:{PASSIN_ENV}", "-check", "-noout"],
            data,
            pass_in=pass_in,
        )

    def export_rsa_key(
        self,
        source: Source,
        inform: Format,
        pass_in: str,
        pass_out: Optional[str] = None,
        outform: Format = Format.PEM,
    ) -> ToolkitResult:
        in_args, data = self._source(source)
        return self._run(
            "export_rsa_key",
            [
                "rsa", *in_args, "-inform", inform.value,
                "-passin", f"env:{PASSIN_ENV}",
                *self._pass_out_args(pass_out),
                "-outform", outform.value,
            ],
            data,
            pass_in=pass_in,
            pass_out=pass_out,
        )

    # --- keystores ---

    def export_pkcs12(self, source: Source, pass_in: str, pass_out: str) -> ToolkitResult:
        """
        Bundle a PEM certificate and key into a keystore.

        pkcs12 -export reads its input twice, once for the key and once
        for the certificates, so stdin can only carry one of them. For a
        bytes source the certificate goes to a temporary file and the key
        stays on the pipe.
        """
        if not isinstance(source, bytes):
            return self._export_pkcs12(["-in", str(Path(source))], None, pass_in, pass_out)

        certificate = find_pem_block(source, CERTIFICATE_LABELS)
        private_key = find_pem_block(source, PRIVATE_KEY_LABELS)
        if certificate is None or private_key is None:
            return ToolkitResult(
                "export_pkcs12",
                diagnostic="expected a PEM certificate and private key",
                success=False,
                returncode=None,
            )

        with tempfile.NamedTemporaryFile(prefix="cryptofile-", suffix=".crt") as cert_file:
            cert_file.write(certificate[1])
            cert_file.flush()
            return self._export_pkcs12(
                ["-in", cert_file.name, "-inkey", "/dev/stdin"], private_key[1], pass_in, pass_out
            )

    def _export_pkcs12(
        self, in_args: List[str], data: Optional[bytes], pass_in: str, pass_out: str
    ) -> ToolkitResult:
        return self._run(
            "export_pkcs12",
            ["pkcs12", *in_args, "-passin", f"env:{PASSIN_ENV}", "-passout", f"env:{PASSOUT_ENV}", "-export"],
            data,
            pass_in=pass_in,
            pass_out=pass_out,
        )

    def check_pkcs12(self, source: Source, password: str) -> ToolkitResult:
        in_args, data = self._source(source)
        return self._run(
            "check_pkcs12",
            ["pkcs12", *in_args, "-passin", f"env:{PASSIN_ENV}", "-noout"],
            data,
            pass_in=password,
        )

    def pkcs12_certificate(self, source: Source, password: str) -> ToolkitResult:
        in_args, data = self._source(source)
        bags = self._run(
            "pkcs12_certificate",
            ["pkcs12", *in_args, "-passin", f"env:{PASSIN_ENV}", "-nokeys", "-clcerts"],
            data,
            pass_in=password,
        )
        if not bags.success:
            return bags

        # strip the bag attributes openssl prints around the block
        return self._run("pkcs12_certificate", ["x509"], bags.output)

    def pkcs12_private_key(self, source: Source, password: str, pass_out: Optional[str] = None) -> ToolkitResult:
        in_args, data = self._source(source)
        bags = self._run(
            "pkcs12_private_key",
            ["pkcs12", *in_args, "-passin", f"env:{PASSIN_ENV}", "-nocerts", "-nodes"],
            data,
            pass_in=password,
        )
        if not bags.success:
            return bags

        # the decrypted key only ever travels through the pipe
        return self._run(
            "pkcs12_private_key",
            ["rsa", "-passin", f"env:{PASSIN_ENV}", *self._pass_out_args(pass_out)],
            bags.output,
            pass_in="",
            pass_out=pass_out,
        )
