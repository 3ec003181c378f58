from fastapi import APIRouter

from ledgerly.api import accounts as handlers
from ledgerly.schemas import AccountOut, TransactionOut

router = APIRouter(prefix="/accounts", tags=["accounts"])

router.add_api_route(
    "",
    handlers.create_account,
    methods=["POST"],
    response_model=AccountOut,
    status_code=201,
)

router.add_api_route(
    "",
    handlers.list_accounts,
    methods=["GET"],
    response_model=list[AccountOut],
)

router.add_api_route(
    "/{account_id}",
    handlers.get_account,
    methods=["GET"],
    response_model=AccountOut,
)

router.add_api_route(
    "/{account_id}",
    handlers.update_account,
    methods=["PATCH"],
    response_model=AccountOut,
)

router.add_api_route(
    "/{account_id}",
    handlers.delete_account,
    methods=["DELETE"],
    status_code=204,
)

router.add_api_route(
    "/{account_id}/transactions",
    handlers.list_account_transactions,
    methods=["GET"],
    response_model=list[TransactionOut],
)
