"""Read-only listing of persisted release check runs."""

from fastapi import APIRouter, Depends, Query

from backstage.api.dependencies import get_execution_ledger
from backstage.api.schemas.release_check import (
    ExecutionHistoryItem,
    ExecutionHistoryResponse,
)
from backstage.domain.ports import IExecutionLedger

router = APIRouter()


@router.get("/execution-history", response_model=ExecutionHistoryResponse)
async def list_execution_history(
    limit: int = Query(20, ge=1, le=100, description="Number of runs to return"),
    ledger: IExecutionLedger = Depends(get_execution_ledger),
) -> ExecutionHistoryResponse:
    """Most recent runs, newest first."""
    records = await ledger.list_recent(limit=limit)
    items = [ExecutionHistoryItem.from_record(record) for record in records]
    return ExecutionHistoryResponse(executions=items, count=len(items))
