"""
Tests for the AES credential codec and credential stores.
"""

import pytest

from portal_agent.auth.credentials import (
    AesCredentialCodec,
    Credentials,
    EnvCredentialStore,
    StaticCredentialStore,
)


@pytest.fixture(scope="module")
def aes():
    return AesCredentialCodec("help-work-app-secret")


class TestAesCodec:

    def test_roundtrip_and_format(self, aes):
        ciphertext = aes.encrypt("pässwörd-123")
        iv_hex, data_hex = ciphertext.split(":")
        assert len(iv_hex) == 32
        assert len(data_hex) % 32 == 0
        assert aes.decrypt(ciphertext) == "pässwörd-123"

    def test_fresh_iv_per_encryption(self, aes):
        assert aes.encrypt("same") != aes.encrypt("same")

    def test_empty(self, aes):
        assert aes.encrypt("") == ""
        assert aes.decrypt("") == ""

    @pytest.mark.parametrize("ciphertext", [
        "no-separator",
        "a:b:c",
        "zz:yy",
        "00:",
        "00112233445566778899aabbccddeeff:0011",
    ])
    def test_malformed_yields_empty(self, aes, ciphertext):
        assert aes.decrypt(ciphertext) == ""


class TestCredentials:

    def test_completeness(self):
        assert Credentials("u1", "x").is_complete
        assert not Credentials("u1", "").is_complete
        assert not Credentials("", "x").is_complete

    def test_repr_hides_values(self):
        text = repr(Credentials("someone", "enc:secret"))
        assert "someone" not in text
        assert "secret=<hidden>" in text


class TestStores:

    def test_static(self):
        creds = Credentials("u1", "x")
        assert StaticCredentialStore(creds).load() is creds
        assert StaticCredentialStore().load() is None

    def test_env_primary_prefix(self):
        store = EnvCredentialStore(environ={"PORTAL_USER_ID": "u1", "PORTAL_SECRET": "c1"})
        assert store.load() == Credentials("u1", "c1")

    def test_env_falls_back_per_field(self):
        store = EnvCredentialStore(environ={"PORTAL_USER_ID": "u1", "UNIPOST_SECRET": "c2"})
        assert store.load() == Credentials("u1", "c2")

    def test_env_empty(self):
        assert EnvCredentialStore(environ={}).load() is None
