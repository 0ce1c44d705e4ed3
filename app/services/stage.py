import math
import uuid
from datetime import timedelta
from typing import List, Optional
from loguru import logger
from sqlmodel import Session, select, func
from fastapi import HTTPException, BackgroundTasks

from app.db.schema import (
    User, ProductBatch, BatchHistory, SupplyChainStage, ProductType
)
from app.models.stage import StageChange, BatchStageRead, BatchHistoryRead
from app.models.user import ParticipantRead
from app.core.exceptions import ValidationError, NotFoundError
from app.core.notarization import _perform_notarization
from app.services.notarization import LedgerNotarizer


STAGE_ORDER: List[SupplyChainStage] = [
    SupplyChainStage.FARMER,
    SupplyChainStage.WASHING_STATION,
    SupplyChainStage.FACTORY,
    SupplyChainStage.EXPORTER,
    SupplyChainStage.IMPORTER,
    SupplyChainStage.RETAILER,
]

# Participant column written when a stage is asserted.
# FARMER is absent: the farmer is fixed when the batch is registered.
STAGE_PARTICIPANT_FIELDS = {
    SupplyChainStage.WASHING_STATION: "washing_station_id",
    SupplyChainStage.FACTORY: "factory_id",
    SupplyChainStage.EXPORTER: "exporter_id",
    SupplyChainStage.IMPORTER: "importer_id",
    SupplyChainStage.RETAILER: "retailer_id",
}


def validate_stage_transition(
    current_stage: SupplyChainStage,
    new_stage: SupplyChainStage
) -> bool:
    """
    Forward moves and restating the current stage are allowed.
    Anything that goes back down the chain is not.
    """
    return STAGE_ORDER.index(new_stage) >= STAGE_ORDER.index(current_stage)


class StageService:
    def __init__(self, session: Session, notarizer: Optional[LedgerNotarizer] = None):
        self.session = session
        self.notarizer = notarizer

    def _participant(self, user: Optional[User]) -> Optional[ParticipantRead]:
        if user is None:
            return None
        return ParticipantRead.model_validate(user)

    def _to_read(self, batch: ProductBatch) -> BatchStageRead:
        return BatchStageRead(
            **batch.model_dump(),
            farmer=self._participant(batch.farmer),
            washing_station=self._participant(batch.washing_station),
            factory=self._participant(batch.factory),
            exporter=self._participant(batch.exporter),
            importer=self._participant(batch.importer),
            retailer=self._participant(batch.retailer)
        )

    # ==========================================================================
    # READ OPERATIONS
    # ==========================================================================

    def get_active_batch(
        self,
        batch_id: uuid.UUID,
        product_type: Optional[ProductType] = None
    ) -> ProductBatch:
        """
        Point lookup that ignores soft deleted batches.
        Optionally restricted to one commodity (coffee / tea routes).
        """
        statement = select(ProductBatch).where(
            ProductBatch.id == batch_id,
            ProductBatch.deleted_at == None
        )
        if product_type:
            statement = statement.where(
                ProductBatch.product_type == product_type)

        batch = self.session.exec(statement).first()

        if not batch:
            label = f"{product_type.value.capitalize()} batch" if product_type else "Product batch"
            raise NotFoundError(f"{label} not found")
        return batch

    def get_batch_history(self, batch_id: uuid.UUID) -> List[BatchHistoryRead]:
        """
        Full audit trail of a batch, most recent first.
        """
        self.get_active_batch(batch_id)

        entries = self.session.exec(
            select(BatchHistory)
            .where(BatchHistory.batch_id == batch_id)
            .order_by(BatchHistory.timestamp.desc())
        ).all()

        return [
            BatchHistoryRead(
                **entry.model_dump(),
                user=self._participant(entry.user)
            )
            for entry in entries
        ]

    def get_transaction_history(self, batch_id: uuid.UUID) -> List[str]:
        """
        Every distinct ledger reference known for a batch.
        The batch's current reference comes first, then history entries newest first.
        """
        batch = self.get_active_batch(batch_id)

        history_hashes = self.session.exec(
            select(BatchHistory.blockchain_tx_hash)
            .where(
                BatchHistory.batch_id == batch_id,
                BatchHistory.blockchain_tx_hash != None
            )
            .order_by(BatchHistory.timestamp.desc())
        ).all()

        tx_hashes = []
        if batch.blockchain_tx_hash:
            tx_hashes.append(batch.blockchain_tx_hash)

        for tx_hash in history_hashes:
            if tx_hash not in tx_hashes:
                tx_hashes.append(tx_hash)

        return tx_hashes

    # ==========================================================================
    # WRITE OPERATIONS
    # ==========================================================================

    def update_batch_stage(
        self,
        batch_id: uuid.UUID,
        data: StageChange,
        background_tasks: BackgroundTasks,
        product_type: Optional[ProductType] = None
    ) -> BatchStageRead:
        """
        Moves a batch forward (or restates its current stage).

        1. Batch row: current_stage, stage participant, tx hash if supplied.
        2. One new BatchHistory row.
        3. Ledger notarization, scheduled as a background task.

        All input checks run before the database is touched. Steps 1 and 2
        share one commit; step 3 can fail without affecting either.
        """
        if not batch_id:
            raise ValidationError("Batch ID is required")

        if not data.changed_by:
            raise ValidationError("Changed by user ID is required")

        if data.quantity is not None and not (math.isfinite(data.quantity) and data.quantity >= 0):
            raise ValidationError("Quantity must be a non-negative number")

        batch = self.get_active_batch(batch_id, product_type)
        old_stage = batch.current_stage

        if not validate_stage_transition(old_stage, data.stage):
            raise ValidationError(
                f"Invalid stage transition: cannot move from {old_stage.value} to {data.stage.value}"
            )

        latest = self.session.exec(
            select(func.max(BatchHistory.timestamp))
            .where(BatchHistory.batch_id == batch.id)
        ).one()

        # 1. Batch row
        batch.current_stage = data.stage
        if data.blockchain_tx_hash:
            batch.blockchain_tx_hash = data.blockchain_tx_hash

        participant_field = STAGE_PARTICIPANT_FIELDS.get(data.stage)
        if participant_field:
            setattr(batch, participant_field, data.changed_by)

        # 2. History entry
        entry = BatchHistory(
            batch_id=batch.id,
            stage=data.stage,
            changed_by=data.changed_by,
            notes=data.notes,
            quantity=data.quantity,
            quality=data.quality,
            location=data.location,
            blockchain_tx_hash=data.blockchain_tx_hash,
            details=data.details
        )

        # History is read newest first; the new entry must sort strictly after the last one.
        if latest is not None and entry.timestamp <= latest:
            entry.timestamp = latest + timedelta(microseconds=1)

        try:
            self.session.add(batch)
            self.session.flush()
            self.session.add(entry)
            self.session.commit()
            self.session.refresh(batch)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Stage update failed for batch {batch_id}: {e}")
            raise HTTPException(
                status_code=500, detail="Could not update batch stage.")

        logger.info(
            f"Batch {batch.id} moved {old_stage.value} -> {data.stage.value} by {data.changed_by}")

        # 3. Notarization (fire and forget)
        if self.notarizer:
            background_tasks.add_task(
                _perform_notarization,
                self.notarizer,
                batch_id=batch.id,
                new_stage=data.stage,
                old_stage=old_stage,
                actor_id=data.changed_by,
                supplied_tx_hash=data.blockchain_tx_hash
            )

        return self._to_read(batch)
