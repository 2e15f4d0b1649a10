from categories import (
    DEFAULT_COLOR,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    categories_by_type,
    color_of,
    display_label,
    lookup,
    normalize,
)
from models import TransactionType


def test_categories_by_type_keeps_display_order():
    income = categories_by_type(TransactionType.income)
    expense = categories_by_type("expense")

    assert [c.name for c in income][:3] == ["Salary", "Freelance", "Investment"]
    assert len(income) == len(INCOME_CATEGORIES) == 7
    assert len(expense) == len(EXPENSE_CATEGORIES) == 18
    assert all(c.type == TransactionType.expense for c in expense)


def test_lookup_matches_name_or_id_case_insensitive():
    assert lookup("food & dining").id == "food-dining"
    assert lookup("  GROCERIES ").name == "Groceries"
    assert lookup("home").name == "Home & Garden"
    assert lookup("Crypto") is None


def test_normalize_passes_unknown_names_through():
    assert normalize("groceries") == "Groceries"
    assert normalize("bills-utilities") == "Bills & Utilities"
    assert normalize("Crypto stuff") == "Crypto stuff"


def test_color_and_label():
    assert color_of("salary") == "#277C78"
    assert color_of("whatever") == DEFAULT_COLOR
    assert display_label("travel") == "✈️ Travel"
    assert display_label("whatever") == "whatever"
