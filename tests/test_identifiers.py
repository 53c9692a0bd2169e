from __future__ import annotations

import pytest

from dynaload.errors import ValidationError
from dynaload.sql.identifiers import (
    is_safe_table_name,
    quote_identifier,
    safe_parameter_name,
    text_identifier,
    to_snake_case,
    validate_identifier,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("주문번호(쇼핑몰)", "주문번호_쇼핑몰"),
        ("Order No.", "Order_No"),
        ("a--b", "a_b"),
        ("__x__", "x"),
        ("1st", "p1st"),
        ("[qty]", "qty"),
        ("it's", "it_s"),
        ("!!!", "p"),
        ("plain", "plain"),
    ],
)
def test_safe_parameter_name(name: str, expected: str) -> None:
    assert safe_parameter_name(name) == expected


def test_safe_parameter_name_is_idempotent() -> None:
    once = safe_parameter_name("주문 번호/2")
    assert safe_parameter_name(once) == once


class TestQuoteIdentifier:
    def test_wraps_in_backticks(self) -> None:
        assert quote_identifier("수취인명") == "`수취인명`"

    def test_doubles_embedded_backticks(self) -> None:
        assert quote_identifier("a`b") == "`a``b`"

    def test_already_quoted_is_unchanged(self) -> None:
        assert quote_identifier("`qty`") == "`qty`"
        assert quote_identifier("`a``b`") == "`a``b`"

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("`a` BIGINT, `b`", "```a`` BIGINT, ``b```"),
            ("`a``", "```a`````"),
            ("`", "````"),
        ],
    )
    def test_wrapped_names_with_bare_inner_backticks_are_escaped(self, name: str, expected: str) -> None:
        """Test that a backtick-wrapped name only passes through when it is one valid identifier."""
        assert quote_identifier(name) == expected

    def test_text_identifier_escapes_colons(self) -> None:
        assert text_identifier("a:b") == "`a\\:b`"


class TestIsSafeTableName:
    @pytest.mark.parametrize("name", ["orders", "staging_orders", "주문", "Orders2024"])
    def test_accepts(self, name: str) -> None:
        assert is_safe_table_name(name)

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "   ",
            "orders; DROP TABLE users",
            "db.orders",
            "order-items",
            "my orders",
            "SelectedItems",
            "inserts",
            "order_updates",
            "soft_deleted",
        ],
    )
    def test_rejects(self, name: str) -> None:
        assert not is_safe_table_name(name)


class TestValidateIdentifier:
    def test_returns_valid_identifier(self) -> None:
        assert validate_identifier("sp_import_orders", "procedure") == "sp_import_orders"

    def test_accepts_unicode_letters(self) -> None:
        assert validate_identifier("주문_적재") == "주문_적재"

    @pytest.mark.parametrize("name", ["", "sp load", "sp;DROP", "db.sp", "`sp`", "sp-x"])
    def test_rejects_unsafe(self, name: str) -> None:
        with pytest.raises(ValidationError):
            validate_identifier(name, "procedure")

    def test_rejects_too_long(self) -> None:
        validate_identifier("x" * 64)
        with pytest.raises(ValidationError, match="64"):
            validate_identifier("x" * 65)

    def test_rejects_non_string(self) -> None:
        with pytest.raises(ValidationError, match="must be a string"):
            validate_identifier(None, "procedure")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "name, expected",
    [
        ("RecipientName", "recipient_name"),
        ("orderNo", "order_no"),
        ("qty", "qty"),
        ("Already_Snake", "already_snake"),
    ],
)
def test_to_snake_case(name: str, expected: str) -> None:
    assert to_snake_case(name) == expected
