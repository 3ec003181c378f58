from .base import Filters, Row, TableBackend
from .sql import ACCOUNT_BALANCES_VIEW, TABLES, SqlTableBackend

__all__ = [
    "ACCOUNT_BALANCES_VIEW",
    "Filters",
    "Row",
    "SqlTableBackend",
    "TABLES",
    "TableBackend",
]
