import asyncio
from datetime import date
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import internmanage.models as models
from internmanage.database import Base
from internmanage.schemas import Actor
from internmanage.utils.sqlite import register_sqlite_transactions

TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
register_sqlite_transactions(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

COMPANY = "Acme"
OTHER_COMPANY = "Globex"


@pytest.fixture(autouse=True)
def db_session() -> Session:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


class FakeMailer:
    """Records every send; addresses in ``failing`` raise instead."""

    def __init__(self, failing=(), delay: float = 0):
        self.failing = set(failing)
        self.delay = delay
        self.attempts: List[str] = []
        self.sent: List[dict] = []

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        self.attempts.append(to_email)
        if self.delay:
            await asyncio.sleep(self.delay)
        if to_email in self.failing:
            raise ConnectionError(f"SMTP refused {to_email}")
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        return True


class RecordingScheduler:
    def __init__(self):
        self.calls = []

    def __call__(self, func, *args):
        self.calls.append((func, args))

    def run_all(self):
        for func, args in self.calls:
            asyncio.run(func(*args))


def make_user(
    session: Session,
    name: str,
    user_type: models.UserType,
    company: Optional[str] = COMPANY,
    verified: bool = True,
    is_approved: bool = True,
) -> models.User:
    user = models.User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com",
        type=user_type,
        company=company,
        verified=verified,
        is_approved=is_approved,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_project(
    session: Session,
    name: str = "Inventory Service",
    company: str = COMPANY,
    is_approved: bool = True,
    suggested_by: Optional[str] = None,
) -> models.Project:
    project = models.Project(
        name=name,
        company=company,
        description="Track stock levels across warehouses",
        skill_requirement=["python", "sql"],
        estimated_time_to_complete="3 months",
        is_approved=is_approved,
        suggested_by=suggested_by,
    )
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


def make_joined_intern(
    session: Session,
    intern: models.User,
    start: date,
    end: Optional[date] = None,
    status: models.ApplicationStatus = models.ApplicationStatus.JOINED,
) -> models.Application:
    internship = models.Internship(
        role="Backend Intern",
        company=intern.company or COMPANY,
        internship_start_date=start,
        internship_end_date=end,
    )
    session.add(internship)
    session.flush()
    application = models.Application(user_id=intern.id, internship_id=internship.id, status=status)
    session.add(application)
    session.commit()
    return application


def actor_for(user: models.User) -> Actor:
    return Actor(
        user_id=user.id,
        type=user.type,
        company=user.company,
        email=user.email,
        verified=user.verified,
        is_approved=user.is_approved,
    )
