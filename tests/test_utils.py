from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sui_ptb_resolver.converters import (
    address_to_bytes,
    bytes_to_address,
    bytes_to_digest,
    digest_to_bytes,
    hex_to_bytes,
    normalize_address,
    normalize_type_string,
    pack_object_ref,
    package_from_type,
    unpack_object_ref,
)
from sui_ptb_resolver.errors import MalformedEncoding, ValidationError
from sui_ptb_resolver.models import ObjectRef
from sui_ptb_resolver.utils import retry_with_backoff, safe_bool, safe_parse_float, safe_parse_int, validate_range


class TestRetry:
    def test_returns_first_success(self) -> None:
        sleeps: list[float] = []
        attempts = iter([ValueError("a"), ValueError("b"), "ok"])

        def fn():
            v = next(attempts)
            if isinstance(v, Exception):
                raise v
            return v

        assert retry_with_backoff(fn, max_attempts=3, base_delay=1.0, sleep=sleeps.append) == "ok"
        assert len(sleeps) == 2
        assert 1.0 <= sleeps[0] <= 2.0
        assert 2.0 <= sleeps[1] <= 3.0

    def test_non_retryable_propagates_immediately(self) -> None:
        calls = []

        def fn():
            calls.append(1)
            raise KeyError("x")

        with pytest.raises(KeyError):
            retry_with_backoff(fn, retryable_exceptions=(ValueError,), sleep=lambda _: None)
        assert len(calls) == 1

    def test_delay_is_capped(self) -> None:
        sleeps: list[float] = []

        def fn():
            raise ValueError("x")

        with pytest.raises(ValueError):
            retry_with_backoff(fn, max_attempts=6, base_delay=1.0, max_delay=3.0, sleep=sleeps.append)
        assert max(sleeps) <= 3.0


class TestSafeParsing:
    @given(st.integers(min_value=-10**6, max_value=10**6))
    def test_int_always_in_range(self, v: int) -> None:
        assert 1 <= safe_parse_int(str(v), 10, min_val=1, max_val=100) <= 100

    def test_float_default(self) -> None:
        assert safe_parse_float("nope", 2.5) == 2.5

    @pytest.mark.parametrize("raw,expected", [("yes", True), ("OFF", False), ("maybe", True), (None, True)])
    def test_bool(self, raw, expected: bool) -> None:
        assert safe_bool(raw, True) is expected

    def test_validate_range_rejects_bool(self) -> None:
        with pytest.raises(ValidationError):
            validate_range(True, 0, 10)  # type: ignore[arg-type]


class TestConverters:
    def test_normalize_address(self) -> None:
        assert normalize_address("0x2") == "0x" + "0" * 63 + "2"
        assert normalize_address("0xABC") == "0x" + "0" * 61 + "abc"
        with pytest.raises(ValidationError):
            normalize_address("0xzz")
        with pytest.raises(ValidationError):
            normalize_address("0x" + "1" * 65)

    def test_normalize_type_string(self) -> None:
        two = "0x" + "0" * 63 + "2"
        assert normalize_type_string("0x2::coin::Coin<0x2::sui::SUI>") == f"{two}::coin::Coin<{two}::sui::SUI>"

    def test_address_bytes(self) -> None:
        assert bytes_to_address(address_to_bytes("0x2")) == normalize_address("0x2")
        with pytest.raises(ValidationError):
            bytes_to_address(b"\x01")

    def test_hex(self) -> None:
        assert hex_to_bytes("0x0aff") == b"\x0a\xff"
        with pytest.raises(ValidationError):
            hex_to_bytes("0xabc")

    def test_digest(self) -> None:
        raw = bytes(range(32))
        assert digest_to_bytes(bytes_to_digest(raw)) == raw
        assert digest_to_bytes(list(raw)) == raw

    def test_object_ref_packing(self) -> None:
        ref = ObjectRef(bytes([1] * 32), 258, bytes([9] * 32))
        packed = pack_object_ref(ref)
        assert packed[32:40] == b"\x02\x01\x00\x00\x00\x00\x00\x00"
        assert unpack_object_ref(packed) == ref
        with pytest.raises(MalformedEncoding):
            unpack_object_ref(packed[:39])

    def test_package_from_type(self) -> None:
        assert package_from_type("0xabc::state::State<u8>") == normalize_address("0xabc")
