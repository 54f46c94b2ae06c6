"""Tests for the canonical signing codec."""
import base64

import pytest
from eth_keys import keys

from metadata_vault.exceptions import InvalidPrivateKey
from metadata_vault.keys import KeyPair
from metadata_vault.signing import (
    SIGNATURE_SIZE,
    MetadataParams,
    SetData,
    build_signed_record,
    canonicalize,
    from_wire_signature,
    keccak256,
    make_timestamp,
    sign_hash,
    to_wire_signature,
    verify_signed_record,
)

NOW = 1700000000.25  # 0x6553f100 seconds


@pytest.fixture
def key():
    return KeyPair.generate()


class TestCanonicalize:

    def test_sorted_and_compact(self):
        assert canonicalize({"timestamp": "1", "data": "x"}) == b'{"data":"x","timestamp":"1"}'

    def test_nested_keys_sorted(self):
        assert canonicalize({"b": {"d": 1, "c": 2}, "a": []}) == b'{"a":[],"b":{"c":2,"d":1}}'

    def test_unicode_is_not_escaped(self):
        assert canonicalize({"data": "é"}) == '{"data":"é"}'.encode("utf-8")

    def test_keccak_is_not_sha3(self):
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )


class TestTimestamp:

    def test_hex_seconds(self):
        assert make_timestamp(0, now=NOW) == "6553f100"

    def test_offset_in_milliseconds(self):
        assert make_timestamp(1500, now=1700000000.0) == "6553f101"

    def test_negative_offset(self):
        assert make_timestamp(-1, now=1700000000.0) == "6553f0ff"

    def test_lowercase_without_prefix(self):
        stamp = make_timestamp()
        assert not stamp.startswith("0x")
        assert stamp == stamp.lower()
        int(stamp, 16)


class TestSignatureTranscoding:

    def test_wire_order_is_r_s_v(self):
        wire = to_wire_signature(1, 2, 3)
        assert len(wire) == SIGNATURE_SIZE
        assert wire[:32] == (2).to_bytes(32, "big")
        assert wire[32:64] == (3).to_bytes(32, "big")
        assert wire[64] == 1

    def test_unpack_returns_v_r_s(self):
        assert from_wire_signature(to_wire_signature(0, 7, 9)) == (0, 7, 9)

    def test_ethereum_recovery_id_folded(self):
        wire = to_wire_signature(1, 7, 9)[:64] + bytes([28])
        assert from_wire_signature(wire) == (1, 7, 9)

    def test_rejects_bad_recovery_id(self):
        with pytest.raises(ValueError):
            to_wire_signature(2, 1, 1)

    def test_rejects_bad_length(self):
        with pytest.raises(ValueError):
            from_wire_signature(b"\x00" * 64)

    def test_matches_native_signature(self, key):
        msg_hash = keccak256(b"payload")
        native = keys.PrivateKey(key.private_key).sign_msg_hash(msg_hash)
        wire = sign_hash(msg_hash, key)
        assert wire[:32] == native.r.to_bytes(32, "big")
        assert wire[32:64] == native.s.to_bytes(32, "big")
        assert wire[64] == native.v


class TestSignedRecord:

    def test_record_fields(self, key):
        record = build_signed_record("hello", key, now=NOW)
        assert record.pub_key_X == key.public_key.pub_key_X
        assert record.pub_key_Y == key.public_key.pub_key_Y
        assert record.set_data == SetData(data="hello", timestamp="6553f100")
        assert len(base64.b64decode(record.signature)) == SIGNATURE_SIZE

    def test_signature_verifies(self, key):
        record = build_signed_record('{"message":"x"}', key.private_key_hex)
        assert verify_signed_record(record)

    def test_deterministic_for_same_input(self, key):
        first = build_signed_record("same", key, now=NOW)
        second = build_signed_record("same", key, now=NOW)
        assert first.signature == second.signature

    def test_server_time_offset_applied(self, key):
        record = build_signed_record("x", key, server_time_offset=2000, now=NOW)
        assert record.set_data.timestamp == "6553f102"

    def test_tampered_data_fails(self, key):
        record = build_signed_record("original", key, now=NOW)
        forged = record.model_copy(update={"set_data": SetData(data="forged", timestamp="6553f100")})
        assert not verify_signed_record(forged)

    def test_other_key_fails(self, key):
        record = build_signed_record("x", key, now=NOW)
        other = KeyPair.generate().public_key
        forged = record.model_copy(update={"pub_key_X": other.pub_key_X, "pub_key_Y": other.pub_key_Y})
        assert not verify_signed_record(forged)

    def test_garbage_signature_fails(self, key):
        record = build_signed_record("x", key, now=NOW)
        forged = record.model_copy(update={"signature": "not base64!"})
        assert not verify_signed_record(forged)

    def test_invalid_private_key(self):
        with pytest.raises(InvalidPrivateKey):
            build_signed_record("x", "00")

    def test_payload_with_namespace(self, key):
        payload = build_signed_record("x", key, now=NOW).to_payload("ns")
        assert set(payload) == {"pub_key_X", "pub_key_Y", "set_data", "signature", "namespace"}
        assert payload["set_data"] == {"data": "x", "timestamp": "6553f100"}

    def test_payload_without_namespace(self, key):
        payload = build_signed_record("x", key, now=NOW).to_payload()
        assert "namespace" not in payload

    def test_payload_parses_back(self, key):
        record = build_signed_record("x", key, now=NOW)
        assert MetadataParams.model_validate(record.to_payload()) == record
