"""Webhook signature verification."""

import hashlib

import pytest

from mentora.payments.signature import compute_signature, is_valid_signature

KEY = "SB-Mid-server-test-key"
ORDER = "sub_u1_1760864400000"
CODE = "200"
AMOUNT = "30000.00"


def _flip(value: str, index: int) -> str:
    ch = value[index]
    repl = "1" if ch != "1" else "2"
    return value[:index] + repl + value[index + 1:]


class TestComputeSignature:
    def test_matches_sha512_of_concatenation(self):
        expected = hashlib.sha512(f"{ORDER}{CODE}{AMOUNT}{KEY}".encode()).hexdigest()
        assert compute_signature(ORDER, CODE, AMOUNT, KEY) == expected

    def test_is_lowercase_hex(self):
        sig = compute_signature(ORDER, CODE, AMOUNT, KEY)
        assert len(sig) == 128
        assert sig == sig.lower()


class TestIsValidSignature:
    def test_valid(self):
        sig = compute_signature(ORDER, CODE, AMOUNT, KEY)
        assert is_valid_signature(ORDER, CODE, AMOUNT, sig, KEY)

    def test_uppercase_hex_accepted(self):
        sig = compute_signature(ORDER, CODE, AMOUNT, KEY).upper()
        assert is_valid_signature(ORDER, CODE, AMOUNT, sig, KEY)

    @pytest.mark.parametrize("field", ["order_id", "status_code", "gross_amount", "key"])
    def test_any_changed_character_fails(self, field):
        sig = compute_signature(ORDER, CODE, AMOUNT, KEY)
        values = {"order_id": ORDER, "status_code": CODE, "gross_amount": AMOUNT, "key": KEY}
        for i in range(len(values[field])):
            changed = dict(values, **{field: _flip(values[field], i)})
            assert not is_valid_signature(
                changed["order_id"], changed["status_code"], changed["gross_amount"], sig, changed["key"]
            ), f"{field}[{i}]"

    def test_amount_is_not_reformatted(self):
        sig = compute_signature(ORDER, CODE, "30000", KEY)
        assert not is_valid_signature(ORDER, CODE, AMOUNT, sig, KEY)

    def test_tampered_signature_fails(self):
        sig = compute_signature(ORDER, CODE, AMOUNT, KEY)
        assert not is_valid_signature(ORDER, CODE, AMOUNT, _flip(sig, 0), KEY)

    @pytest.mark.parametrize("sig", ["", None])
    def test_missing_signature_fails(self, sig):
        assert not is_valid_signature(ORDER, CODE, AMOUNT, sig, KEY)

    def test_missing_server_key_fails(self):
        sig = compute_signature(ORDER, CODE, AMOUNT, "")
        assert not is_valid_signature(ORDER, CODE, AMOUNT, sig, "")

    @pytest.mark.parametrize("sig", ["é" * 128, "ß" + "0" * 127, " "])
    def test_non_ascii_signature_fails(self, sig):
        assert is_valid_signature(ORDER, CODE, AMOUNT, sig, KEY) is False
