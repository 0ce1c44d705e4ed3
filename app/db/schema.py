from typing import Optional, List, Dict, Any
from datetime import datetime
import uuid
from sqlmodel import SQLModel, Field, Relationship, JSON
from enum import Enum


class SupplyChainStage(str, Enum):
    """
    The fixed, ordered supply chain a batch travels through.
    Declaration order IS the transition order (see app.services.stage.STAGE_ORDER).
    """
    FARMER = "farmer"
    WASHING_STATION = "washing_station"
    FACTORY = "factory"
    EXPORTER = "exporter"
    IMPORTER = "importer"
    RETAILER = "retailer"


class ProductType(str, Enum):
    COFFEE = "coffee"
    TEA = "tea"


class UserRole(str, Enum):
    FARMER = "farmer"
    WASHING_STATION = "washing_station"
    FACTORY = "factory"
    EXPORTER = "exporter"
    IMPORTER = "importer"
    RETAILER = "retailer"
    ADMIN = "admin"


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps for mutable records.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="The exact UTC timestamp when this record was first persisted. Example: '2025-03-02 08:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="The exact UTC timestamp when this record was last modified. Updates automatically."
    )


class User(TimestampMixin, SQLModel, table=True):
    """
    A supply chain participant (farmer, washing station operator, exporter, ...).
    Users are registered by the onboarding flows; the stage engine only
    references them as actors and stage owners.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="The unique identifier for the participant."
    )
    name: str = Field(
        index=True,
        description="Display name of the participant or organisation. Example: 'Nyamasheke Washing Station'"
    )
    email: str = Field(
        unique=True,
        index=True,
        description="Contact / login email. Example: 'ops@nyamasheke.rw'"
    )
    role: UserRole = Field(
        default=UserRole.FARMER,
        description="The supply chain role this participant acts in. Example: 'washing_station'"
    )
    is_active: bool = Field(
        default=True,
        description="Soft disable flag. Inactive users cannot act on batches."
    )


class ProductBatch(TimestampMixin, SQLModel, table=True):
    """
    The traceable unit of product (a coffee or tea lot).

    Created at the FARMER stage by the registration flow and afterwards moved
    forward only by the stage engine. Each stage reached records the
    participant who asserted it in the matching *_id column.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Opaque batch identifier."
    )
    lot_code: Optional[str] = Field(
        default=None,
        unique=True,
        index=True,
        description="Human readable lot code printed on sacks and QR labels. Example: 'RW-KIV-2025-0042'"
    )
    product_type: ProductType = Field(
        default=ProductType.COFFEE,
        index=True,
        description="Commodity of the lot. Example: 'coffee'"
    )
    origin: Optional[str] = Field(
        default=None,
        description="Free-text origin label. Example: 'Lake Kivu, Rwanda'"
    )
    current_stage: SupplyChainStage = Field(
        default=SupplyChainStage.FARMER,
        index=True,
        description="Where the batch currently sits in the supply chain."
    )

    # Stage participants
    farmer_id: uuid.UUID = Field(foreign_key="user.id")
    washing_station_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    factory_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    exporter_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    importer_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")
    retailer_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="user.id")

    blockchain_tx_hash: Optional[str] = Field(
        default=None,
        description="Last known ledger reference for this batch. Overwritten by every notarization."
    )
    deleted_at: Optional[datetime] = Field(
        default=None,
        index=True,
        description="Soft delete marker. Batches with a value here are invisible to the stage engine."
    )

    # Relationships
    farmer: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[ProductBatch.farmer_id]"})
    washing_station: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[ProductBatch.washing_station_id]"})
    factory: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[ProductBatch.factory_id]"})
    exporter: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[ProductBatch.exporter_id]"})
    importer: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[ProductBatch.importer_id]"})
    retailer: Optional["User"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "[ProductBatch.retailer_id]"})

    history: List["BatchHistory"] = Relationship(back_populates="batch")


class BatchHistory(SQLModel, table=True):
    """
    One immutable stage transition event.

    Rows are only ever inserted. Read in timestamp order, the rows of a batch
    reconstruct its full stage progression.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )
    batch_id: uuid.UUID = Field(
        foreign_key="productbatch.id",
        index=True,
        description="The batch this event belongs to."
    )
    stage: SupplyChainStage = Field(
        description="The stage asserted by this event."
    )
    changed_by: uuid.UUID = Field(
        foreign_key="user.id",
        description="The participant who performed the transition."
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
    quantity: Optional[float] = Field(
        default=None,
        description="Quantity handled at this stage (kg). Example: 120.5"
    )
    quality: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Quality grade label. Example: 'AA'"
    )
    location: Optional[str] = Field(default=None, max_length=200)
    blockchain_tx_hash: Optional[str] = Field(default=None)
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_type=JSON,
        description="Free-form metadata attached by the caller. Example: {'moisture': 11.5}"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        index=True,
        description="UTC time the event was appended."
    )

    batch: Optional[ProductBatch] = Relationship(back_populates="history")
    user: Optional[User] = Relationship()
