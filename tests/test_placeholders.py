import pytest

from badgeforge.canvas.errors import UnresolvedPlaceholder
from badgeforge.canvas.placeholders import (
    display_name, make_token, merge_bindable_fields, normalize_header,
    placeholder_name, render_text, resolve, tokens_in,
)


def test_standard_field_reads_camel_case_key():
    assert resolve("{{firstName}}", {"firstName": "Ada"}) == "Ada"


def test_standard_field_accepts_snake_case_alias():
    assert resolve("{{firstName}}", {"first_name": "Ada"}) == "Ada"


def test_standard_match_wins_over_exact_key():
    record = {"firstName": "Ada", "FIRSTNAME": "Zed"}
    assert resolve("{{FIRSTNAME}}", record) == "Ada"


def test_exact_custom_key():
    assert resolve("{{company_name}}", {"company_name": "Acme"}) == "Acme"


def test_normalized_custom_key():
    assert resolve("{{CompanyName}}", {"company_name": "Acme"}) == "Acme"


def test_bare_name_resolves():
    assert resolve("lastName", {"lastName": "Lovelace"}) == "Lovelace"


def test_unresolved_raises_with_token():
    with pytest.raises(UnresolvedPlaceholder) as ei:
        resolve("{{badgeColor}}", {"firstName": "Ada"})
    assert ei.value.token == "badgeColor"


def test_none_value_is_empty():
    assert resolve("{{email}}", {"email": None}) == ""


def test_render_literal_text_unchanged():
    assert render_text("VISITOR", {}) == "VISITOR"


def test_render_mixed_text():
    record = {"firstName": "Ada", "lastName": "Lovelace"}
    assert render_text("Hello {{firstName}} {{ lastName }}!", record) == "Hello Ada Lovelace!"


def test_unresolved_stays_visible_in_preview():
    assert render_text("{{badgeColor}}", {}, preview=True) == "{{badgeColor}}"


def test_unresolved_is_blank_in_export():
    assert render_text("Level: {{badgeColor}}", {}, preview=False) == "Level: "


def test_token_helpers():
    assert make_token("city") == "{{city}}"
    assert placeholder_name("{{city}}") == "city"
    assert placeholder_name("City: {{city}}") is None
    assert tokens_in("{{a}} and {{b}}") == ["a", "b"]


def test_display_name():
    assert display_name("firstName") == "First Name"
    assert display_name("company_name") == "Company Name"


def test_normalize_header():
    assert normalize_header(" Company Name ") == "company_name"
    assert normalize_header("T-Shirt Size (US)") == "tshirt_size_us"


def test_merge_skips_aliases_of_standard_fields():
    merged = merge_bindable_fields(["first_name", "company_name", "company_name"])
    assert merged[:2] == ["firstName", "lastName"]
    assert merged.count("company_name") == 1
    assert "first_name" not in merged
