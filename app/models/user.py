from uuid import UUID
from sqlmodel import SQLModel

from app.db.schema import UserRole


class ParticipantRead(SQLModel):
    """Public identity of a supply chain participant."""
    id: UUID
    name: str
    email: str
    role: UserRole
