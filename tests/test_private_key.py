"""Tests for PrivateKeyFile and its pass phrase lifecycle."""

from __future__ import annotations

import pytest

from cryptofile.errors import (
    FileNotValid,
    FormatNotValid,
    PrivateKeyPassPhraseEmpty,
    ProcessFailed,
    StaleFileHandle,
)
from cryptofile.private_key import PrivateKeyFile
from cryptofile.toolkit import Format

from conftest import PASS_PHRASE


class TestConstruction:

    @pytest.mark.parametrize("fixture", ["key_path", "key_der_path", "protected_key_path"])
    def test_accepts_keys(self, request, toolkit, fixture):
        path = request.getfixturevalue(fixture)
        assert PrivateKeyFile(path, toolkit=toolkit).pathname == path

    @pytest.mark.parametrize(
        "fixture", ["cert_path", "cert_der_path", "bundle_path", "keystore_path", "text_path"]
    )
    def test_rejects_other_artifacts(self, request, toolkit, fixture):
        with pytest.raises(FileNotValid):
            PrivateKeyFile(request.getfixturevalue(fixture), toolkit=toolkit)

    def test_format(self, key_path, key_der_path, toolkit):
        assert PrivateKeyFile(key_path, toolkit=toolkit).get_format() == Format.PEM
        assert PrivateKeyFile(key_der_path, toolkit=toolkit).get_format() == Format.DER


class TestPassPhrase:

    def test_unprotected_key(self, key_path, toolkit):
        private_key = PrivateKeyFile(key_path, toolkit=toolkit)

        assert not private_key.has_pass_phrase()
        # nothing to verify against
        assert private_key.verify_pass_phrase("anything")
        assert private_key.verify_pass_phrase("")

    def test_protected_key(self, protected_key_path, toolkit):
        private_key = PrivateKeyFile(protected_key_path, toolkit=toolkit)

        assert private_key.has_pass_phrase()
        assert private_key.verify_pass_phrase(PASS_PHRASE)
        assert not private_key.verify_pass_phrase("wrong")

    def test_add_pass_phrase(self, key_path, toolkit):
        private_key = PrivateKeyFile(key_path, toolkit=toolkit)

        protected = private_key.add_pass_phrase("s3cr3t")

        assert protected.has_pass_phrase()
        assert protected.verify_pass_phrase("s3cr3t")
        assert not protected.verify_pass_phrase("wrong")
        assert private_key.stale

    def test_add_pass_phrase_to_protected_key_fails(self, protected_key_path, protected_key_pem, toolkit):
        private_key = PrivateKeyFile(protected_key_path, toolkit=toolkit)

        with pytest.raises(ProcessFailed):
            private_key.add_pass_phrase("other")
        assert protected_key_path.read_bytes() == protected_key_pem
        assert not private_key.stale

    def test_remove_pass_phrase(self, protected_key_path, toolkit):
        unprotected = PrivateKeyFile(protected_key_path, toolkit=toolkit).remove_pass_phrase(PASS_PHRASE)

        assert not unprotected.has_pass_phrase()
        assert unprotected.verify_pass_phrase("whatever")

    def test_remove_with_wrong_pass_phrase(self, protected_key_path, protected_key_pem, toolkit):
        private_key = PrivateKeyFile(protected_key_path, toolkit=toolkit)

        with pytest.raises(ProcessFailed):
            private_key.remove_pass_phrase("wrong")
        assert protected_key_path.read_bytes() == protected_key_pem

    def test_change_pass_phrase(self, protected_key_path, toolkit):
        changed = PrivateKeyFile(protected_key_path, toolkit=toolkit).change_pass_phrase(PASS_PHRASE, "new")

        assert changed.has_pass_phrase()
        assert changed.verify_pass_phrase("new")
        assert not changed.verify_pass_phrase(PASS_PHRASE)

    def test_change_with_wrong_pass_phrase(self, protected_key_path, toolkit):
        with pytest.raises(ProcessFailed):
            PrivateKeyFile(protected_key_path, toolkit=toolkit).change_pass_phrase("wrong", "new")

    @pytest.mark.parametrize(
        "operation",
        [
            lambda key: key.add_pass_phrase(""),
            lambda key: key.change_pass_phrase(PASS_PHRASE, ""),
            lambda key: key.sanitize(""),
        ],
        ids=["add", "change", "sanitize"],
    )
    def test_empty_pass_phrase_leaves_file_untouched(self, protected_key_path, protected_key_pem, toolkit, operation):
        private_key = PrivateKeyFile(protected_key_path, toolkit=toolkit)

        with pytest.raises(PrivateKeyPassPhraseEmpty):
            operation(private_key)
        assert protected_key_path.read_bytes() == protected_key_pem

    def test_der_keys_cannot_be_protected(self, key_der_path, key_der, toolkit):
        private_key = PrivateKeyFile(key_der_path, toolkit=toolkit)

        with pytest.raises(FormatNotValid):
            private_key.add_pass_phrase(PASS_PHRASE)
        assert key_der_path.read_bytes() == key_der


class TestSanitize:

    def test_unprotected(self, write, key_pem, toolkit):
        path = write("dirty.key", b"garbage before\n" + key_pem + b"garbage after\n")

        sanitized = PrivateKeyFile(path, toolkit=toolkit).sanitize()

        assert not sanitized.has_pass_phrase()
        assert b"garbage" not in path.read_bytes()

    def test_protected_keeps_pass_phrase(self, protected_key_path, toolkit):
        sanitized = PrivateKeyFile(protected_key_path, toolkit=toolkit).sanitize(PASS_PHRASE)

        assert sanitized.has_pass_phrase()
        assert sanitized.verify_pass_phrase(PASS_PHRASE)

    def test_protected_without_pass_phrase_fails(self, protected_key_path, toolkit):
        with pytest.raises(ProcessFailed):
            PrivateKeyFile(protected_key_path, toolkit=toolkit).sanitize()


class TestConvertFormat:

    def test_pem_to_der_and_back(self, key_path, toolkit):
        der = PrivateKeyFile(key_path, toolkit=toolkit).convert_format("der")
        assert der.get_format() == Format.DER
        assert not der.has_pass_phrase()

        pem = der.convert_format("pem")
        assert pem.get_format() == Format.PEM
        assert key_path.read_bytes().startswith(b"-----BEGIN")

    def test_protected_key_stays_pem(self, protected_key_path, protected_key_pem, toolkit):
        with pytest.raises(FormatNotValid):
            PrivateKeyFile(protected_key_path, toolkit=toolkit).convert_format("der")
        assert protected_key_path.read_bytes() == protected_key_pem

    def test_unknown_format(self, key_path, toolkit):
        with pytest.raises(FormatNotValid):
            PrivateKeyFile(key_path, toolkit=toolkit).convert_format("jks")

    def test_stale_after_move(self, tmp_path, key_path, toolkit):
        private_key = PrivateKeyFile(key_path, toolkit=toolkit)
        moved = private_key.move(tmp_path / "keys")

        assert isinstance(moved, PrivateKeyFile)
        with pytest.raises(StaleFileHandle):
            private_key.has_pass_phrase()
