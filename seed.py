from loguru import logger
from sqlmodel import Session, select
from app.db.core import engine
from app.db.schema import (
    User, UserRole, ProductBatch, ProductType
)


# 1. Demo participants, one per supply chain role
DEMO_PARTICIPANTS = [
    {"name": "Jean Bosco Habimana", "email": "farmer@cuptrace.demo",
        "role": UserRole.FARMER},
    {"name": "Nyamasheke Washing Station", "email": "station@cuptrace.demo",
        "role": UserRole.WASHING_STATION},
    {"name": "Kigali Dry Mill", "email": "factory@cuptrace.demo",
        "role": UserRole.FACTORY},
    {"name": "Rwanda Specialty Exports", "email": "exporter@cuptrace.demo",
        "role": UserRole.EXPORTER},
    {"name": "Hamburg Green Coffee Imports", "email": "importer@cuptrace.demo",
        "role": UserRole.IMPORTER},
    {"name": "Corner Roastery", "email": "retailer@cuptrace.demo",
        "role": UserRole.RETAILER},
]

# 2. Demo lots, registered at the farmer stage
DEMO_BATCHES = [
    {"lot_code": "RW-KIV-2025-0001", "product_type": ProductType.COFFEE,
        "origin": "Lake Kivu, Rwanda"},
    {"lot_code": "RW-NYU-2025-0001", "product_type": ProductType.TEA,
        "origin": "Nyungwe, Rwanda"},
]


def seed_participants(session: Session) -> dict[UserRole, User]:
    """Creates participants if they don't exist. Returns a map of role -> User."""
    logger.info("--- Seeding Participants ---")
    role_map = {}

    for data in DEMO_PARTICIPANTS:
        user = session.exec(
            select(User).where(User.email == data["email"])).first()
        if not user:
            user = User(**data)
            session.add(user)
            logger.info(f"Created Participant: {data['email']}")
        else:
            logger.info(f"Existing Participant: {data['email']}")

        session.flush()
        role_map[data["role"]] = user

    return role_map


def seed_batches(session: Session, farmer: User):
    """Registers demo lots owned by the demo farmer."""
    logger.info("--- Seeding Batches ---")

    for data in DEMO_BATCHES:
        batch = session.exec(select(ProductBatch).where(
            ProductBatch.lot_code == data["lot_code"])).first()

        if not batch:
            batch = ProductBatch(**data, farmer_id=farmer.id)
            session.add(batch)
            session.flush()
            logger.info(f"Created Batch: {data['lot_code']} ({batch.id})")
        else:
            logger.info(f"Existing Batch: {data['lot_code']} ({batch.id})")


def main():
    # Ensure tables exist (if not using Alembic)
    # SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        try:
            # 1. Participants
            role_map = seed_participants(session)

            # 2. Batches
            seed_batches(session, role_map[UserRole.FARMER])

            session.commit()
            logger.info("Database seeding completed successfully.")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
