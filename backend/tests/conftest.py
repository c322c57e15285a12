import pytest
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from redis.exceptions import ConnectionError as RedisConnectionError
from api.base import SourceAdapter
from models.bill import Bill, BillStage, SourceName, Sponsor
from services.store import KeyValueStore
from utils.circuit_breaker import CircuitBreaker
from utils.rate_limiter import QuotaRateLimiter


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables before any imports."""
    env_vars = {
        "CONGRESS_API_KEY": "test_congress_key",
        "LEGISCAN_API_KEY": "test_legiscan_key",
    }
    for key, value in env_vars.items():
        os.environ[key] = value
    yield
    for key in env_vars.keys():
        os.environ.pop(key, None)


class FakeClock:
    """Manually advanced time source for breaker, limiter and cache tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedAdapter(SourceAdapter):
    """Adapter whose remote calls are scripted but still pass the real limiter and breaker.

    Each entry in ``responses`` is either a list of bills or an exception to
    raise from the "remote" call. The last entry repeats once the script runs out.
    ``routes`` maps a (role, target) pair to a fixed response for member queries.
    """

    def __init__(self, source: SourceName, responses=((),), limiter=None, breaker=None,
                 member_roles=("sponsored",), clock=None, routes=None):
        clock = clock or FakeClock()
        super().__init__(
            "https://example.invalid",
            "test_key",
            limiter or QuotaRateLimiter(source.value, 1000, period_seconds=3600, clock=clock),
            breaker or CircuitBreaker(source.value, clock=clock),
            timeout=1.0,
        )
        self.source = source
        self.member_roles = member_roles
        self.responses = list(responses)
        self.routes = routes or {}
        self.remote_calls = 0
        self.requests = []

    async def _remote(self, key=None):
        self.remote_calls += 1
        if key in self.routes:
            response = self.routes[key]
        else:
            response = self.responses[0] if len(self.responses) == 1 else self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return list(response)

    async def fetch_recent_bills(self, limit, offset):
        self.requests.append(("recent", limit, offset))
        return await self._guarded(self._remote)

    async def fetch_sponsored_bills(self, member_id, limit):
        self.requests.append(("sponsored", member_id, limit))
        return await self._guarded(lambda: self._remote(("sponsored", member_id)))

    async def fetch_cosponsored_bills(self, member_id, limit):
        self.requests.append(("cosponsored", member_id, limit))
        return await self._guarded(lambda: self._remote(("cosponsored", member_id)))

    async def fetch_committee_bills(self, committee_id, limit):
        self.requests.append(("committee", committee_id, limit))
        return await self._guarded(lambda: self._remote(("committee", committee_id)))


class UnreachableStore(KeyValueStore):
    """Store whose backend connection is down."""

    def __init__(self):
        self.attempts = 0
        self.closed = False

    async def get(self, key):
        self.attempts += 1
        raise RedisConnectionError("Connection refused")

    async def put(self, key, value):
        self.attempts += 1
        raise RedisConnectionError("Connection refused")

    async def close(self):
        self.closed = True


def make_bill(source="federal", native_id="hr-1-119", title=None, subjects=(), status=BillStage.INTRODUCED, **kwargs):
    return Bill(
        source=SourceName(source),
        native_id=native_id,
        bill_number=kwargs.pop("bill_number", native_id.upper()),
        title=title or f"Bill {native_id}",
        subjects=list(subjects),
        status=status,
        sponsor=kwargs.pop("sponsor", Sponsor(name="Jane Doe", party="D")),
        **kwargs,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_httpx_client():
    """Mock httpx.AsyncClient for API calls."""
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.raise_for_status = MagicMock()
    mock_client.get = AsyncMock(return_value=mock_response)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client, mock_response


@pytest.fixture
def sample_congress_response():
    """Sample Congress.gov bill list response."""
    return {
        "bills": [
            {
                "congress": 119,
                "type": "HR",
                "number": "1234",
                "title": "Clean Water Infrastructure Act",
                "originChamber": "House",
                "latestAction": {
                    "actionDate": "2025-02-10",
                    "text": "Referred to the House Committee on Transportation and Infrastructure."
                },
                "updateDate": "2025-02-11",
            },
            {
                "congress": 119,
                "type": "S",
                "number": 42,
                "title": "Rural Broadband Act",
                "latestAction": {
                    "actionDate": "2025-03-01",
                    "text": "Became Public Law No: 119-5."
                },
                "policyArea": {"name": "Science, Technology, Communications"},
                "sponsors": [
                    {"bioguideId": "S000001", "fullName": "Sen. Smith, Pat [D-CA]", "party": "D"}
                ],
            },
        ],
        "pagination": {"count": 2},
    }


@pytest.fixture
def sample_legiscan_masterlist():
    """Sample LegiScan getMasterList response."""
    return {
        "status": "OK",
        "masterlist": {
            "session": {"session_id": 2172, "session_name": "2025-2026 Regular Session"},
            "0": {
                "bill_id": 1900001,
                "number": "AB12",
                "status": 1,
                "status_date": "2025-01-06",
                "last_action_date": "2025-01-20",
                "last_action": "Referred to Com. on HOUSING.",
                "title": "Housing: tenant protections",
                "description": "An act relating to tenant protections.",
                "url": "https://legiscan.com/CA/bill/AB12/2025",
            },
            "1": {
                "bill_id": 1900002,
                "number": "SB7",
                "status": 4,
                "status_date": "2025-03-02",
                "last_action_date": "2025-03-02",
                "last_action": "Chaptered by Secretary of State.",
                "title": "Wildfire mitigation",
                "description": "An act relating to wildfire mitigation.",
                "url": "https://legiscan.com/CA/bill/SB7/2025",
            },
        },
    }


@pytest.fixture
def bill_service():
    """Stand-in BillService for router tests."""
    service = MagicMock()
    service.get_bills = AsyncMock()
    service.source_health = MagicMock(return_value=[])
    return service


@pytest.fixture
def test_client(bill_service):
    """Create a test client for the FastAPI app with the bill service overridden."""
    from fastapi.testclient import TestClient
    from main import app, get_bill_service

    app.dependency_overrides[get_bill_service] = lambda: bill_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
