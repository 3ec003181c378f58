from fastapi import APIRouter

from ledgerly.api import transactions as handlers
from ledgerly.schemas import DpsTransferOut, TransactionOut, TransactionRef, TransferResult

router = APIRouter(prefix="/transactions", tags=["transactions"])
transfers_router = APIRouter(prefix="/transfers", tags=["transfers"])

router.add_api_route(
    "",
    handlers.list_transactions,
    methods=["GET"],
    response_model=list[TransactionOut],
)

router.add_api_route(
    "",
    handlers.create_transaction,
    methods=["POST"],
    response_model=TransactionRef,
    status_code=201,
)

router.add_api_route(
    "/{txn_id}",
    handlers.update_transaction,
    methods=["PATCH"],
    response_model=TransactionOut,
)

router.add_api_route(
    "/{txn_id}",
    handlers.delete_transaction,
    methods=["DELETE"],
    status_code=204,
)

transfers_router.add_api_route(
    "",
    handlers.create_transfer,
    methods=["POST"],
    response_model=TransferResult,
    status_code=201,
)

transfers_router.add_api_route(
    "/dps",
    handlers.create_dps_transfer,
    methods=["POST"],
    response_model=TransferResult,
    status_code=201,
)

transfers_router.add_api_route(
    "/dps",
    handlers.list_dps_transfers,
    methods=["GET"],
    response_model=list[DpsTransferOut],
)
