"""
Tests for BIP32 HD key derivation.
"""

import pytest
from coincurve import PublicKey

from zipwallet.wallet.bip32 import HDKey

# BIP32 test vector 1
SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")


class TestMasterKey:
    def test_vector_1_master(self):
        master = HDKey.from_seed(SEED)
        assert master.get_private_key_bytes().hex() == (
            "e8f32e723decf4051aefac8e2c93c9c5b214313817cdb01a1494b917c8436b35"
        )
        assert master.chain_code.hex() == (
            "873dff81c02f525623fd1fe5167eac3a55a049de3d314bb42ee227ffed37d508"
        )
        assert master.depth == 0

    @pytest.mark.parametrize("length", [0, 15, 65])
    def test_seed_length(self, length):
        with pytest.raises(ValueError, match="Seed must be"):
            HDKey.from_seed(b"\x01" * length)


class TestDerivation:
    def test_hardened_child(self):
        key = HDKey.from_seed(SEED).derive("m/0'")
        assert key.get_private_key_bytes().hex() == (
            "edb2e14f9ee77d26dd93b4ecede8d16ed408ce149b6cd80b0715a2d911a0afea"
        )
        assert key.chain_code.hex() == (
            "47fdacbd0f1097043b78c63c20c34ef4ed9a111d980047ad16282c7ae6236141"
        )

    def test_normal_child(self):
        key = HDKey.from_seed(SEED).derive("m/0'/1")
        assert key.get_private_key_bytes().hex() == (
            "3c6cb8d0f6a264c91ea8b5030fadaa8e538b020f0a387421a12de9319dc93368"
        )
        assert key.get_public_key_bytes().hex() == (
            "03501e454bf00751f24b1b489aa925215d66af2234e3891c3b21a52bedb3cd711c"
        )
        assert key.depth == 2

    def test_h_suffix_is_hardened(self):
        master = HDKey.from_seed(SEED)
        assert (
            master.derive("m/0h/1").get_private_key_bytes()
            == master.derive("m/0'/1").get_private_key_bytes()
        )

    def test_stepwise_equals_path(self):
        master = HDKey.from_seed(SEED)
        stepwise = master.derive("m/0'").derive("m/1")
        assert stepwise.get_private_key_bytes() == master.derive("m/0'/1").get_private_key_bytes()

    def test_path_must_start_with_m(self):
        with pytest.raises(ValueError, match="start with 'm'"):
            HDKey.from_seed(SEED).derive("0/1")

    def test_index_out_of_range(self):
        with pytest.raises(ValueError, match="out of range"):
            HDKey.from_seed(SEED).derive(f"m/{2**31}")


class TestSignDigest:
    def test_signature_verifies(self):
        key = HDKey.from_seed(SEED).derive("m/44'/236'/0'/0/1")
        digest = bytes(range(32))
        signature = key.sign_digest(digest)

        pubkey = PublicKey(key.get_public_key_bytes())
        assert pubkey.verify(signature, digest, hasher=None)

    def test_deterministic(self):
        key = HDKey.from_seed(SEED)
        digest = b"\x11" * 32
        assert key.sign_digest(digest) == key.sign_digest(digest)

    def test_digest_length(self):
        with pytest.raises(ValueError, match="32 bytes"):
            HDKey.from_seed(SEED).sign_digest(b"\x00" * 31)
