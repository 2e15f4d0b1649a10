import csv
import re
from io import StringIO
from typing import Iterable, Optional

from models import Transaction

EXPORT_COLUMNS = ("Date", "Name", "Type", "Amount", "Category", "Recurring")

_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
_SHELL_LIKE = re.compile(r"^(cmd|powershell|bash|sh)\b|^\.|^https?://", re.IGNORECASE)


def sanitize_csv_value(value: Optional[str]) -> str:
    """Neutralise spreadsheet formulas by prefixing risky cells with a tab."""
    value = (value or "").strip()
    if not value:
        return ""
    if value.startswith(_FORMULA_PREFIXES) or _SHELL_LIKE.match(value):
        return "\t" + value
    return value


def export_transactions(transactions: Iterable[Transaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for txn in transactions:
        writer.writerow(
            [
                txn.date.isoformat(),
                sanitize_csv_value(txn.name),
                txn.type.value,
                f"{txn.amount:.2f}",
                sanitize_csv_value(txn.category),
                "1" if txn.recurring else "0",
            ]
        )
    return output.getvalue()
