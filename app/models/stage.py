import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import SQLModel, Field

from app.db.schema import SupplyChainStage, ProductType
from app.models.user import ParticipantRead

# ==========================================
# Update Models
# ==========================================


class StageUpdate(SQLModel):
    """
    Payload for moving a batch to a stage (or restating its current one).

    The acting participant is taken from the access token, never from the body.
    """
    stage: SupplyChainStage = Field(
        description="Target stage. Must not be behind the batch's current stage."
    )
    blockchain_tx_hash: Optional[str] = Field(
        default=None,
        description="Ledger reference produced by the client, if it notarized the step itself."
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        schema_extra={"examples": ["Fermented 36h, sun dried on raised beds."]},
    )
    quantity: Optional[float] = Field(
        default=None,
        description="Quantity handled at this stage (kg). Must not be negative."
    )
    quality: Optional[str] = Field(
        default=None,
        max_length=100,
        schema_extra={"examples": ["AA"]},
    )
    location: Optional[str] = Field(
        default=None,
        max_length=200,
        schema_extra={"examples": ["Kigali warehouse 3"]},
    )
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Free-form metadata stored with the history entry."
    )


class StageChange(StageUpdate):
    """StageUpdate bound to the participant performing it."""
    changed_by: Optional[uuid.UUID] = None

# ==========================================
# Read Models
# ==========================================


class BatchStageRead(SQLModel):
    """
    A batch after a stage change, with every participant reached so far
    resolved to a display identity.
    """
    id: uuid.UUID
    lot_code: Optional[str] = None
    product_type: ProductType
    origin: Optional[str] = None
    current_stage: SupplyChainStage
    blockchain_tx_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    farmer_id: uuid.UUID
    washing_station_id: Optional[uuid.UUID] = None
    factory_id: Optional[uuid.UUID] = None
    exporter_id: Optional[uuid.UUID] = None
    importer_id: Optional[uuid.UUID] = None
    retailer_id: Optional[uuid.UUID] = None

    farmer: Optional[ParticipantRead] = None
    washing_station: Optional[ParticipantRead] = None
    factory: Optional[ParticipantRead] = None
    exporter: Optional[ParticipantRead] = None
    importer: Optional[ParticipantRead] = None
    retailer: Optional[ParticipantRead] = None


class BatchHistoryRead(SQLModel):
    id: uuid.UUID
    batch_id: uuid.UUID
    stage: SupplyChainStage
    changed_by: uuid.UUID
    notes: Optional[str] = None
    quantity: Optional[float] = None
    quality: Optional[str] = None
    location: Optional[str] = None
    blockchain_tx_hash: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime

    user: Optional[ParticipantRead] = None
