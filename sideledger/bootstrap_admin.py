"""Bootstrap and seeding helpers.

Narrowly scoped helpers for the bootstrap admin lifecycle and for loading demo
principals, kept here so they are testable instead of living in ad-hoc shell
snippets.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sideledger.config import settings
from sideledger.models import Role, User, WorkerStatus
from sideledger.security import hash_password

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"
DEMO_ADMIN = {"name": "Aditya Verma", "email": "admin@sideledger.ai"}
DEMO_WORKERS = [
    {"name": "Rahul Sharma", "email": "rahul@sideledger.ai", "worker_role": "Mason", "specialty": "Brickwork", "daily_rate": 800},
    {"name": "Vikram Singh", "email": "vikram@sideledger.ai", "worker_role": "Electrician", "specialty": "Wiring", "daily_rate": 900},
    {"name": "Amit Kumar", "email": "amit@sideledger.ai", "worker_role": "Helper", "specialty": "General", "daily_rate": 500},
    {"name": "Rohan Gupta", "email": "rohan@sideledger.ai", "worker_role": "Carpenter", "specialty": "Formwork", "daily_rate": 850},
]


def ensure_bootstrap_admin(*, engine) -> bool:
    """Create the configured bootstrap admin when no admin exists yet.

    Returns True when an admin was created. Existing admin passwords are never
    touched, so changing BOOTSTRAP_ADMIN_PASSWORD later has no effect.
    """
    with Session(engine) as db:
        admin_exists = db.scalar(select(func.count(User.id)).where(User.role == Role.ADMIN))
        if admin_exists:
            logger.info("Admin account present; BOOTSTRAP_ADMIN_* settings ignored after initial bootstrap.")
            return False
        db.add(
            User(
                name=settings.bootstrap_admin_name,
                email=settings.bootstrap_admin_email.strip().lower(),
                hashed_password=hash_password(settings.bootstrap_admin_password),
                role=Role.ADMIN,
                status=WorkerStatus.ACTIVE,
            )
        )
        db.commit()
    logger.info("Created bootstrap admin %s", settings.bootstrap_admin_email)
    return True


def reset_bootstrap_admin_password(*, engine, new_password: str, bootstrap_email: str | None = None) -> bool:
    """Reset the configured bootstrap admin password using secure hashing.

    Returns True when the target bootstrap admin user is found and updated,
    otherwise False.
    """
    target_email = (bootstrap_email or settings.bootstrap_admin_email).strip().lower()
    with Session(engine) as db:
        bootstrap_admin = db.scalar(
            select(User).where(
                User.role == Role.ADMIN,
                func.lower(User.email) == target_email,
            )
        )
        if not bootstrap_admin:
            return False

        bootstrap_admin.hashed_password = hash_password(new_password)
        db.commit()

    return True


def seed_demo_data(*, engine, password: str = DEMO_PASSWORD) -> list[str]:
    """Create the demo admin and workers that do not exist yet.

    Returns the emails that were created; running it twice creates nothing the
    second time.
    """
    created: list[str] = []
    password_hash = hash_password(password)
    with Session(engine) as db:
        existing = set(db.scalars(select(func.lower(User.email))).all())
        if DEMO_ADMIN["email"] not in existing:
            db.add(User(**DEMO_ADMIN, hashed_password=password_hash, role=Role.ADMIN))
            created.append(DEMO_ADMIN["email"])
        for worker in DEMO_WORKERS:
            if worker["email"] in existing:
                continue
            db.add(User(**worker, phone="9000000000", hashed_password=password_hash, role=Role.WORKER))
            created.append(worker["email"])
        db.commit()
    logger.info("Seeded %d demo principals", len(created))
    return created
