"""
Tests for key derivation and record encryption.
"""

import pytest
from cryptography.exceptions import InvalidTag

from credvault import config
from credvault.crypto import CryptoManager, KdfParams, derive_key
from credvault.errors import DerivationError


class TestDeriveKey:
    """Tests for Argon2id key derivation."""

    def test_deterministic_for_same_inputs(self, crypto):
        salt = crypto.generate_salt()
        assert crypto.derive_key("hunter2", salt) == crypto.derive_key("hunter2", salt)

    def test_key_length(self, crypto):
        key = crypto.derive_key("hunter2", crypto.generate_salt())
        assert len(key) == config.KEY_SIZE

    def test_different_salt_gives_different_key(self, crypto):
        assert crypto.derive_key("pw", crypto.generate_salt()) != \
            crypto.derive_key("pw", crypto.generate_salt())

    def test_different_passphrase_gives_different_key(self, crypto):
        salt = crypto.generate_salt()
        assert crypto.derive_key("pw-one", salt) != crypto.derive_key("pw-two", salt)

    def test_work_factor_changes_key(self, crypto, fast_params):
        salt = crypto.generate_salt()
        slower = KdfParams(time_cost=2, memory_cost=64, parallelism=1)
        assert crypto.derive_key("pw", salt, fast_params) != crypto.derive_key("pw", salt, slower)

    @pytest.mark.parametrize("passphrase", ["", "pässwörd", "\U0001F512 lock", "\ud800lone"])
    def test_any_passphrase_content_is_accepted(self, crypto, passphrase):
        key = crypto.derive_key(passphrase, crypto.generate_salt())
        assert len(key) == config.KEY_SIZE

    @pytest.mark.parametrize("salt", [b"", b"short", b"x" * (config.SALT_SIZE + 1)])
    def test_wrong_salt_length_raises(self, crypto, salt):
        with pytest.raises(DerivationError):
            crypto.derive_key("pw", salt)

    def test_non_bytes_salt_raises(self, crypto):
        with pytest.raises(DerivationError):
            crypto.derive_key("pw", "0123456789abcdef")

    @pytest.mark.parametrize("params", [
        KdfParams(time_cost=0, memory_cost=64, parallelism=1),
        KdfParams(time_cost=1, memory_cost=64, parallelism=0),
        KdfParams(time_cost=1, memory_cost=7, parallelism=1),
        KdfParams(time_cost=1, memory_cost=16, parallelism=4),
    ])
    def test_invalid_work_factor_raises(self, crypto, params):
        with pytest.raises(DerivationError):
            crypto.derive_key("pw", crypto.generate_salt(), params)

    def test_module_level_shortcut(self, crypto, fast_params):
        salt = crypto.generate_salt()
        assert derive_key("pw", salt, fast_params) == crypto.derive_key("pw", salt)


class TestEncryption:
    """Tests for AES-256-GCM sealing."""

    def test_roundtrip_with_associated_data(self, crypto):
        key = crypto.generate_salt() * 2
        ciphertext, nonce, tag = crypto.encrypt(b"secret", key, b"GitHub")
        assert crypto.decrypt(ciphertext, key, nonce, tag, b"GitHub") == b"secret"

    def test_fresh_nonce_per_call(self, crypto):
        key = bytes(32)
        first = crypto.encrypt(b"same", key)
        second = crypto.encrypt(b"same", key)
        assert first[1] != second[1]
        assert first[0] != second[0]

    def test_wrong_associated_data_fails(self, crypto):
        key = bytes(32)
        ciphertext, nonce, tag = crypto.encrypt(b"secret", key, b"GitHub")
        with pytest.raises(InvalidTag):
            crypto.decrypt(ciphertext, key, nonce, tag, b"GitLab")

    def test_flipped_bit_fails(self, crypto):
        key = bytes(32)
        ciphertext, nonce, tag = crypto.encrypt(b"secret", key)
        tampered = bytearray(ciphertext)
        tampered[0] ^= 0x01
        with pytest.raises(InvalidTag):
            crypto.decrypt(tampered, key, nonce, tag)

    def test_wrong_key_fails(self, crypto):
        ciphertext, nonce, tag = crypto.encrypt(b"secret", bytes(32))
        with pytest.raises(InvalidTag):
            crypto.decrypt(ciphertext, b"\x01" * 32, nonce, tag)


class TestHelpers:
    """Tests for sub-key expansion, comparison and wiping."""

    def test_expand_key_separates_contexts(self, crypto):
        master = bytes(range(32))
        assert crypto.expand_key(master, "a") != crypto.expand_key(master, "b")
        assert crypto.expand_key(master, "a") == crypto.expand_key(bytearray(master), "a")

    def test_secure_compare(self, crypto):
        assert crypto.secure_compare(b"abc", b"abc")
        assert crypto.secure_compare(bytearray(b"abc"), b"abc")
        assert not crypto.secure_compare(b"abc", b"abd")
        assert not crypto.secure_compare(b"abc", b"abcd")

    def test_clear_bytes_zeroes_bytearray(self, crypto):
        buf = bytearray(b"sensitive")
        crypto.clear_bytes(buf)
        assert buf == bytearray(len(b"sensitive"))

    def test_clear_bytes_ignores_immutable_and_none(self, crypto):
        crypto.clear_bytes(b"immutable")
        crypto.clear_bytes(None)

    def test_default_params_come_from_config(self):
        params = CryptoManager().kdf_params
        assert params.time_cost == config.ARGON2_TIME_COST
        assert params.memory_cost == config.ARGON2_MEMORY_COST
        assert params.parallelism == config.ARGON2_PARALLELISM
