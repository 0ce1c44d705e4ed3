import hashlib
import json
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.core.exceptions import NotarizationError
from app.db.schema import ProductBatch, SupplyChainStage


class LedgerNotarizer:
    """
    Records stage changes on the public ledger.

    When a relay is configured the CIP-20 metadata is handed to it for
    signing and submission, and the relay answers with the transaction hash.
    Without a relay (or when the relay is unreachable) a SHA-256 content hash
    of the metadata is used as the reference, so every stage change still gets
    a verifiable fingerprint.

    The resulting reference is written to the batch's blockchain_tx_hash,
    unless the caller already supplied one with the stage update: that hash
    was stored with the batch and is left as it is.
    """
    METADATA_LABEL = 674

    def __init__(
        self,
        engine: Engine,
        relay_url: Optional[str] = None,
        timeout: float = 10.0,
        network: str = "preprod"
    ):
        self.engine = engine
        self.relay_url = relay_url
        self.timeout = timeout
        self.network = network

    def build_metadata(
        self,
        batch_id: uuid.UUID,
        new_stage: SupplyChainStage,
        old_stage: SupplyChainStage,
        actor_id: uuid.UUID
    ) -> Dict[str, Any]:
        return {
            "batch_id": str(batch_id),
            "previous_stage": old_stage.value,
            "new_stage": new_stage.value,
            "changed_by": str(actor_id),
            "timestamp": datetime.utcnow().isoformat(),
            "action": "stage_update",
            "network": self.network,
        }

    @staticmethod
    def content_hash(metadata: Dict[str, Any]) -> str:
        """64 hex chars, same shape as a Cardano transaction hash."""
        payload = json.dumps(metadata, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def notarize(
        self,
        batch_id: uuid.UUID,
        new_stage: SupplyChainStage,
        old_stage: SupplyChainStage,
        actor_id: uuid.UUID,
        supplied_tx_hash: Optional[str] = None
    ) -> str:
        if supplied_tx_hash:
            logger.info(
                f"Batch {batch_id} already carries ledger reference {supplied_tx_hash}, not overwriting")
            return supplied_tx_hash

        metadata = self.build_metadata(batch_id, new_stage, old_stage, actor_id)

        tx_hash = None
        if self.relay_url:
            tx_hash = self._submit(metadata)

        if not tx_hash:
            tx_hash = self.content_hash(metadata)

        self._store_tx_hash(batch_id, tx_hash)
        return tx_hash

    def _submit(self, metadata: Dict[str, Any]) -> Optional[str]:
        """
        Hands the metadata to the signing relay. Returns None when the relay
        fails so the caller can fall back to the content hash.
        """
        try:
            resp = requests.post(
                self.relay_url,
                json={"label": self.METADATA_LABEL, "metadata": metadata},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()["tx_hash"]
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Ledger relay unavailable, using content hash for batch {metadata['batch_id']}: {e}")
            return None

    def _store_tx_hash(self, batch_id: uuid.UUID, tx_hash: str):
        # Own session: this runs detached from the request that triggered it.
        with Session(self.engine) as session:
            batch = session.exec(
                select(ProductBatch).where(
                    ProductBatch.id == batch_id,
                    ProductBatch.deleted_at == None
                )
            ).first()
            if not batch:
                raise NotarizationError(
                    f"Batch {batch_id} is gone or deleted, not notarizing.")

            batch.blockchain_tx_hash = tx_hash
            session.add(batch)
            session.commit()
