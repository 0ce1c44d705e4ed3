from fastapi import APIRouter, Depends, status, BackgroundTasks
from typing import List
import uuid

from app.db.schema import User, ProductType
from app.core.dependencies import get_current_user, get_stage_service
from app.services.stage import StageService
from app.models.stage import (
    StageUpdate,
    StageChange,
    BatchStageRead,
    BatchHistoryRead
)

router = APIRouter()


def _apply_stage_update(
    batch_id: uuid.UUID,
    data: StageUpdate,
    product_type: ProductType,
    background_tasks: BackgroundTasks,
    current_user: User,
    service: StageService
) -> BatchStageRead:
    change = StageChange(**data.model_dump(), changed_by=current_user.id)
    return service.update_batch_stage(
        batch_id, change, background_tasks, product_type=product_type)


@router.put(
    "/coffee/{batch_id}",
    response_model=BatchStageRead,
    status_code=status.HTTP_200_OK,
    summary="Update Coffee Batch Stage",
    description="Move a coffee batch forward in the supply chain, or restate its current stage with new details."
)
def update_coffee_stage(
    batch_id: uuid.UUID,
    data: StageUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: StageService = Depends(get_stage_service)
):
    return _apply_stage_update(
        batch_id, data, ProductType.COFFEE, background_tasks, current_user, service)


@router.put(
    "/tea/{batch_id}",
    response_model=BatchStageRead,
    status_code=status.HTTP_200_OK,
    summary="Update Tea Batch Stage",
    description="Move a tea batch forward in the supply chain, or restate its current stage with new details."
)
def update_tea_stage(
    batch_id: uuid.UUID,
    data: StageUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: StageService = Depends(get_stage_service)
):
    return _apply_stage_update(
        batch_id, data, ProductType.TEA, background_tasks, current_user, service)


@router.get(
    "/{batch_id}/history",
    response_model=List[BatchHistoryRead],
    status_code=status.HTTP_200_OK,
    summary="Batch Stage History",
    description="The full stage audit trail of a batch, most recent first."
)
def get_batch_history(
    batch_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: StageService = Depends(get_stage_service)
):
    return service.get_batch_history(batch_id)


@router.get(
    "/{batch_id}/transactions",
    response_model=List[str],
    status_code=status.HTTP_200_OK,
    summary="Batch Ledger References",
    description="Distinct ledger transaction hashes recorded for a batch."
)
def get_batch_transactions(
    batch_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: StageService = Depends(get_stage_service)
):
    return service.get_transaction_history(batch_id)
