from dataclasses import dataclass
from typing import Optional

from models import TransactionType

DEFAULT_COLOR = "#97A0AC"


@dataclass(frozen=True)
class CategoryItem:
    id: str
    name: str
    icon: str
    color: str
    type: TransactionType


def _income(id: str, name: str, icon: str, color: str) -> CategoryItem:
    return CategoryItem(id, name, icon, color, TransactionType.income)


def _expense(id: str, name: str, icon: str, color: str) -> CategoryItem:
    return CategoryItem(id, name, icon, color, TransactionType.expense)


INCOME_CATEGORIES: tuple[CategoryItem, ...] = (
    _income("salary", "Salary", "💼", "#277C78"),
    _income("freelance", "Freelance", "💻", "#82C9D7"),
    _income("investment", "Investment", "📈", "#3F82B2"),
    _income("business", "Business", "🏢", "#626070"),
    _income("gift", "Gift", "🎁", "#826CB0"),
    _income("refund", "Refund", "↩️", "#97A0AC"),
    _income("other-income", "Other Income", "💰", "#CAB361"),
)

EXPENSE_CATEGORIES: tuple[CategoryItem, ...] = (
    _expense("food-dining", "Food & Dining", "🍔", "#C94736"),
    _expense("groceries", "Groceries", "🛒", "#F2C94C"),
    _expense("transportation", "Transportation", "🚗", "#82C9D7"),
    _expense("shopping", "Shopping", "🛍️", "#826CB0"),
    _expense("entertainment", "Entertainment", "🎬", "#934F6F"),
    _expense("bills-utilities", "Bills & Utilities", "💡", "#626070"),
    _expense("healthcare", "Healthcare", "🏥", "#C94736"),
    _expense("education", "Education", "📚", "#3F82B2"),
    _expense("fitness", "Fitness", "💪", "#7F9161"),
    _expense("travel", "Travel", "✈️", "#597C7C"),
    _expense("insurance", "Insurance", "🛡️", "#626070"),
    _expense("personal-care", "Personal Care", "💅", "#934F6F"),
    _expense("home", "Home & Garden", "🏠", "#93674F"),
    _expense("pets", "Pets", "🐾", "#BE6C49"),
    _expense("gifts-donations", "Gifts & Donations", "🎁", "#826CB0"),
    _expense("savings", "Savings", "🏦", "#277C78"),
    _expense("bills", "Bills", "📄", "#626070"),
    _expense("other-expense", "Other Expense", "📦", "#97A0AC"),
)

ALL_CATEGORIES: tuple[CategoryItem, ...] = INCOME_CATEGORIES + EXPENSE_CATEGORIES


def categories_by_type(type: TransactionType) -> list[CategoryItem]:
    if TransactionType(type) == TransactionType.income:
        return list(INCOME_CATEGORIES)
    return list(EXPENSE_CATEGORIES)


def lookup(name: str) -> Optional[CategoryItem]:
    key = (name or "").strip().lower()
    for item in ALL_CATEGORIES:
        if item.name.lower() == key or item.id == key:
            return item
    return None


def normalize(name: str) -> str:
    """Canonical display name for known categories, free text passes through."""
    item = lookup(name)
    return item.name if item else name


def color_of(name: str) -> str:
    item = lookup(name)
    return item.color if item else DEFAULT_COLOR


def display_label(name: str) -> str:
    item = lookup(name)
    return f"{item.icon} {item.name}" if item else name
