"""Tests for private key loading and public key coordinates."""
import pytest

from metadata_vault.exceptions import InvalidPrivateKey
from metadata_vault.keys import (
    SECP256K1_N,
    KeyPair,
    PubKeyParams,
    load_private_key,
    public_key_params,
)

# Private key 1 maps to the generator point.
GX = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
GY = "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"


class TestLoadPrivateKey:

    def test_hex_string(self):
        assert load_private_key("01") == (1).to_bytes(32, "big")

    def test_hex_prefix_and_case(self):
        raw = load_private_key("0x" + "AB" * 32)
        assert raw == bytes.fromhex("ab" * 32)

    def test_raw_bytes(self):
        raw = bytes(range(1, 33))
        assert load_private_key(raw) == raw

    def test_int(self):
        assert load_private_key(5) == (5).to_bytes(32, "big")

    def test_key_pair(self):
        pair = KeyPair.generate()
        assert load_private_key(pair) == pair.private_key

    @pytest.mark.parametrize("value", [
        "", "zz", "1" * 65, 0, SECP256K1_N, -1, b"\x01" * 31, True, 1.5, "0" * 64,
    ])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidPrivateKey):
            load_private_key(value)

    def test_invalid_key_is_value_error(self):
        with pytest.raises(ValueError):
            load_private_key("not-a-key")


class TestPubKeyParams:

    def test_generator_point(self):
        params = public_key_params(1)
        assert params.pub_key_X == GX
        assert params.pub_key_Y == GY

    def test_coordinates_are_padded_lowercase(self):
        params = PubKeyParams(pub_key_X="0xABC", pub_key_Y="1")
        assert params.pub_key_X == "0" * 61 + "abc"
        assert len(params.pub_key_Y) == 64

    def test_rejects_non_hex(self):
        with pytest.raises(ValueError):
            PubKeyParams(pub_key_X="xyz", pub_key_Y="00")

    def test_bytes_round_trip(self):
        params = public_key_params(1)
        encoded = params.to_bytes()
        assert len(encoded) == 65
        assert encoded[0] == 0x04
        assert PubKeyParams.from_bytes(encoded) == params
        assert PubKeyParams.from_bytes(encoded[1:]) == params

    def test_from_bytes_rejects_bad_length(self):
        with pytest.raises(ValueError):
            PubKeyParams.from_bytes(b"\x04" * 33)


class TestKeyPair:

    def test_generate_is_random(self):
        assert KeyPair.generate() != KeyPair.generate()

    def test_public_key_matches_derivation(self):
        pair = KeyPair.generate()
        assert pair.public_key == public_key_params(pair.private_key_hex)

    def test_repr_hides_private_key(self):
        pair = KeyPair.generate()
        assert pair.private_key_hex not in repr(pair)
