from __future__ import annotations

from fastapi import APIRouter, Depends

from ledgerly.core.deps import get_store
from ledgerly.schemas import SaveToGoalRequest, SavingsGoalCreate, SavingsGoalOut, SavingsGoalUpdate
from ledgerly.store import FinanceStore

router = APIRouter(prefix="/savings-goals", tags=["savings-goals"])


@router.get("", response_model=list[SavingsGoalOut])
def list_goals(store: FinanceStore = Depends(get_store)):
    return list(store.fetch_savings_goals())


@router.post("", response_model=SavingsGoalOut, status_code=201)
def create_goal(payload: SavingsGoalCreate, store: FinanceStore = Depends(get_store)):
    return store.create_savings_goal(payload)


@router.patch("/{goal_id}", response_model=SavingsGoalOut)
def update_goal(goal_id: int, payload: SavingsGoalUpdate, store: FinanceStore = Depends(get_store)):
    return store.update_savings_goal(goal_id, payload)


@router.delete("/{goal_id}", status_code=204)
def delete_goal(goal_id: int, store: FinanceStore = Depends(get_store)):
    store.delete_savings_goal(goal_id)


@router.post("/{goal_id}/save", response_model=SavingsGoalOut)
def save_to_goal(goal_id: int, payload: SaveToGoalRequest, store: FinanceStore = Depends(get_store)):
    return store.save_to_savings_goal(goal_id, payload.amount)
