import uuid
from typing import Optional
from loguru import logger

from app.db.schema import SupplyChainStage


def _perform_notarization(
    notarizer,
    batch_id: uuid.UUID,
    new_stage: SupplyChainStage,
    old_stage: SupplyChainStage,
    actor_id: uuid.UUID,
    supplied_tx_hash: Optional[str] = None
):
    """
    Background worker.
    Runs after the response has been sent. The stage change and its history
    row are already committed, so whatever happens here is only logged.
    """
    try:
        tx_hash = notarizer.notarize(
            batch_id=batch_id,
            new_stage=new_stage,
            old_stage=old_stage,
            actor_id=actor_id,
            supplied_tx_hash=supplied_tx_hash
        )
        logger.info(
            f"Batch {batch_id} notarized ({old_stage.value} -> {new_stage.value}): {tx_hash}")
    except Exception as e:
        logger.error(f"NOTARIZATION FAILED for batch {batch_id}: {e}")
