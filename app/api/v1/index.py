from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select, func
from loguru import logger

from app.core.config import settings
from app.db.core import get_session
from app.db.schema import ProductBatch

router = APIRouter()


@router.get("/", status_code=status.HTTP_200_OK)
def index():
    return {"service": settings.app_name, "status": "running"}


@router.get("/readiness", status_code=status.HTTP_200_OK)
def readiness_check(session: Session = Depends(get_session)):
    """
    Ready when the batch store answers. Also reports how stage changes
    get their ledger reference: through the signing relay, or as a local
    content hash when no relay is configured.
    """
    try:
        active_batches = session.exec(
            select(func.count())
            .select_from(ProductBatch)
            .where(ProductBatch.deleted_at == None)
        ).one()
    except Exception:
        logger.exception("Batch store readiness check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Batch store not ready"
        )

    return {
        "status": "ready",
        "database": "online",
        "active_batches": active_batches,
        "notarization": "relay" if settings.notary_relay_url else "content_hash",
        "network": settings.cardano_network,
    }
