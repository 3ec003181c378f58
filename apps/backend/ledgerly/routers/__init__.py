"""Router aggregation: every feature router is mounted under ``/api``."""

from fastapi import Depends, FastAPI

from ledgerly.core.deps import require_api_key

from . import accounts, analytics, categories, donations, lend_borrow, purchases, savings_goals, transactions

_ROUTERS = (
    accounts.router,
    transactions.router,
    transactions.transfers_router,
    categories.router,
    purchases.router,
    purchases.categories_router,
    lend_borrow.router,
    donations.router,
    savings_goals.router,
    analytics.router,
)


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""
    for router in _ROUTERS:
        app.include_router(router, prefix="/api", dependencies=[Depends(require_api_key)])
