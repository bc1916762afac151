"""Pytest configuration and fixtures for Nexus backend tests"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from dotenv import load_dotenv

from nexus.main import app
from nexus.config import get_settings
from nexus.models.database import build_engine, init_db
from nexus.models import (
    get_db,
    InvestorProfile,
    AccreditationResponse,
    AdminRole,
    CapTableEntry,
    Proposal,
)

load_dotenv()

# In-memory SQLite, one shared connection per engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SUBSIDIARY_ID = "5b7f3c1e-0000-4000-8000-00000000a001"
ADMIN_ID = "a0000000-0000-4000-8000-000000000001"
SUPER_ADMIN_ID = "a0000000-0000-4000-8000-000000000002"
INVESTOR_ID = "b0000000-0000-4000-8000-000000000001"
OTHER_INVESTOR_ID = "b0000000-0000-4000-8000-000000000002"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory database per test"""
    engine = build_engine(TEST_DATABASE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session for a single test"""
    session_factory = async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async test client sharing the test's session"""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def make_token(user_id: str) -> str:
    settings = get_settings()
    return jwt.encode({"sub": user_id}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user id"""
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _headers


@pytest.fixture
def seed(db_session: AsyncSession):
    """Helpers that insert fixture rows and flush"""

    class Seeder:
        async def profile(self, user_id: str = INVESTOR_ID, **overrides) -> InvestorProfile:
            values = dict(
                id=user_id,
                accreditation_status="non_accredited",
                residence_state="NM",
                residence_country="United States",
                is_us_person=True,
                total_invested=0,
            )
            values.update(overrides)
            profile = InvestorProfile(**values)
            db_session.add(profile)
            await db_session.flush()
            return profile

        async def accreditation(self, user_id: str = INVESTOR_ID, **overrides) -> AccreditationResponse:
            values = dict(
                investor_id=user_id,
                investor_type="individual",
                annual_income=50_000,
                net_worth=40_000,
                determination="non_accredited",
                verified_status="verified",
                created_at=datetime.utcnow(),
            )
            values.update(overrides)
            record = AccreditationResponse(**values)
            db_session.add(record)
            await db_session.flush()
            return record

        async def admin(self, user_id: str = ADMIN_ID, subsidiary_id: str = SUBSIDIARY_ID) -> AdminRole:
            role = AdminRole(user_id=user_id, role_type="subsidiary_admin", subsidiary_id=subsidiary_id)
            db_session.add(role)
            await db_session.flush()
            return role

        async def super_admin(self, user_id: str = SUPER_ADMIN_ID) -> AdminRole:
            role = AdminRole(user_id=user_id, role_type="super_admin")
            db_session.add(role)
            await db_session.flush()
            return role

        async def holder(
            self,
            user_id: str,
            ownership_percentage: float,
            shares: float = 0,
            subsidiary_id: str = SUBSIDIARY_ID,
        ) -> CapTableEntry:
            entry = CapTableEntry(
                user_id=user_id,
                subsidiary_id=subsidiary_id,
                share_class="Common",
                shares=shares,
                ownership_percentage=ownership_percentage,
                votes_per_share=1,
            )
            db_session.add(entry)
            await db_session.flush()
            return entry

        async def proposal(self, status: str = "voting", **overrides) -> Proposal:
            now = datetime.utcnow()
            values = dict(
                subsidiary_id=SUBSIDIARY_ID,
                proposal_type="equity_issuance",
                title="Issue 100,000 Series Seed shares",
                proposed_changes={"issue_shares": 100_000, "share_class": "Series Seed"},
                status=status,
                votes_for=0,
                votes_against=0,
                votes_abstain=0,
                proposed_by=ADMIN_ID,
                vote_start_at=now if status != "draft" else None,
                vote_end_at=now + timedelta(days=7) if status != "draft" else None,
                created_at=now,
            )
            values.update(overrides)
            proposal = Proposal(**values)
            db_session.add(proposal)
            await db_session.flush()
            return proposal

    return Seeder()


@pytest.fixture
def acknowledgments():
    return {
        "understandsDilution": True,
        "acknowledgedTerms": True,
        "reviewedFinancials": False,
    }


@pytest.fixture
def mock_proposal():
    """Proposal creation payload as sent by the portal"""
    return {
        "subsidiaryId": SUBSIDIARY_ID,
        "proposalType": "equity_issuance",
        "title": "Seed extension",
        "description": "Issue additional seed shares to new investors",
        "proposedChanges": {"issue_shares": 50_000, "price_per_share": 1.25},
        "approvalThresholdUsed": 66.7,
    }
