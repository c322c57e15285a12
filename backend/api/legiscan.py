import asyncio
import time
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, ValidationError
from config import logger, CACHE_CONFIG
from exceptions import STORE_ERRORS, UpstreamException
from models.bill import Bill, BillStage, Chamber, SourceName, Sponsor
from api.base import SourceAdapter

# LegiScan progress codes.
STATUS_STAGES = {
    1: BillStage.INTRODUCED,
    2: BillStage.PASSED_CHAMBER,
    3: BillStage.PASSED_BOTH,
    4: BillStage.ENACTED,
    5: BillStage.VETOED,
    6: BillStage.FAILED,
}

class LegiScanEnvelope(BaseModel):
    status: str
    alert: Optional[Dict[str, Any]] = None

class LegiScanSponsor(BaseModel):
    people_id: Optional[int] = None
    name: Optional[str] = None
    party: Optional[str] = None

class LegiScanSubject(BaseModel):
    subject_name: Optional[str] = None

class LegiScanBillItem(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    bill_id: int
    number: Optional[str] = None
    bill_number: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[int] = None
    status_date: Optional[str] = None
    last_action_date: Optional[str] = None
    last_action: Optional[str] = None
    url: Optional[str] = None
    sponsors: List[LegiScanSponsor] = []
    subjects: List[LegiScanSubject] = []

class LegiScanMasterList(LegiScanEnvelope):
    masterlist: Dict[str, Any]

class LegiScanSponsoredBody(BaseModel):
    bills: List[LegiScanBillItem] = []

class LegiScanSponsoredList(LegiScanEnvelope):
    sponsoredbills: LegiScanSponsoredBody

COMMITTEE_KEYWORDS = ("committee", "referred")

def stage_from_action(last_action: str) -> BillStage:
    action = (last_action or "").lower()

    if "signed by governor" in action or "chaptered" in action:
        return BillStage.ENACTED
    if "vetoed" in action:
        return BillStage.VETOED
    if "failed" in action or "died" in action:
        return BillStage.FAILED
    if "enrolled" in action:
        return BillStage.PASSED_BOTH
    if "passed" in action or "floor" in action:
        return BillStage.PASSED_CHAMBER
    if any(word in action for word in COMMITTEE_KEYWORDS):
        return BillStage.COMMITTEE
    if "introduced" in action or "filed" in action:
        return BillStage.INTRODUCED
    return BillStage.COMMITTEE

def chamber_from_number(bill_number: str) -> Chamber:
    prefix = (bill_number or "").strip().upper()[:1]
    if prefix in ("A", "H"):
        return Chamber.HOUSE
    if prefix == "S":
        return Chamber.SENATE
    return Chamber.UNKNOWN

class LegiScanAdapter(SourceAdapter):
    """LegiScan state feed. The master list is one call for a whole session,
    so pagination is applied locally."""

    source = SourceName.STATE
    member_roles = ("sponsored",)

    def __init__(
        self,
        *args,
        state: str = "CA",
        store=None,
        masterlist_ttl: float = CACHE_CONFIG.MASTERLIST_TTL,
        clock: Callable[[], float] = time.time,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.state = state
        # Any object with async get/put (see services.store); None disables the list cache.
        self.store = store
        self.masterlist_ttl = masterlist_ttl
        self._clock = clock
        self._masterlist_lock = asyncio.Lock()

    @property
    def masterlist_key(self) -> str:
        return f"legiscan:masterlist:{self.state}"

    def _check_status(self, envelope: LegiScanEnvelope) -> None:
        if envelope.status != "OK":
            message = (envelope.alert or {}).get("message", "unknown error")
            logger.error("LegiScan returned status %s: %s", envelope.status, message)
            raise UpstreamException(self.name, 200, f"LegiScan status {envelope.status}")

    def to_bill(self, item: LegiScanBillItem) -> Bill:
        bill_number = item.number or item.bill_number or "Unknown"
        chamber = chamber_from_number(bill_number)

        if item.status in STATUS_STAGES:
            stage = STATUS_STAGES[item.status]
        else:
            stage = stage_from_action(item.last_action or "")
        if stage == BillStage.INTRODUCED and item.last_action:
            # Status 1 covers everything before a floor vote; only an explicit referral moves it on.
            action = item.last_action.lower()
            if any(word in action for word in COMMITTEE_KEYWORDS):
                stage = BillStage.COMMITTEE

        sponsor = Sponsor(chamber=chamber)
        if item.sponsors:
            lead = item.sponsors[0]
            sponsor = Sponsor(
                id=f"{lead.people_id}" if lead.people_id is not None else None,
                name=lead.name or "Unknown Sponsor",
                party=lead.party or "Unknown",
                chamber=chamber,
            )

        title = item.title or item.description or f"{self.state} {bill_number}"
        return Bill(
            source=self.source,
            native_id=str(item.bill_id),
            bill_number=bill_number,
            title=title,
            summary=item.description or title,
            sponsor=sponsor,
            status=stage,
            status_detail=item.last_action or "No action taken",
            subjects=[s.subject_name for s in item.subjects if s.subject_name],
            introduced_date=item.status_date if item.status == 1 else None,
            last_action_date=item.last_action_date or item.status_date,
            url=item.url,
        )

    def _parse_masterlist(self, masterlist: Dict[str, Any]) -> List[LegiScanBillItem]:
        items = []
        for key, value in masterlist.items():
            if key == "session":
                continue
            items.append(self._validate(LegiScanBillItem, value))
        # Most recent activity first; bill_id breaks ties so paging is stable.
        items.sort(key=lambda i: (i.last_action_date or "", i.bill_id), reverse=True)
        return items

    async def fetch_recent_bills(self, limit: int, offset: int) -> List[Bill]:
        async def call():
            data = await self._get_json("/", {"key": self.api_key, "op": "getMasterList", "state": self.state})
            envelope = self._validate(LegiScanEnvelope, data)
            self._check_status(envelope)
            return self._parse_masterlist(self._validate(LegiScanMasterList, data).masterlist)

        async with self._masterlist_lock:
            items = await self._cached_masterlist()
            if items is None:
                items = await self._guarded(call)
                await self._remember_masterlist(items)
        return [self.to_bill(item) for item in items[offset:offset + limit]]

    async def _cached_masterlist(self) -> Optional[List[LegiScanBillItem]]:
        if self.store is None:
            return None
        try:
            cached = await self.store.get(self.masterlist_key)
        except STORE_ERRORS as e:
            logger.error("LegiScan master list cache unavailable: %s", e)
            return None
        if not cached or self._clock() - cached.get("fetched_at", 0) >= self.masterlist_ttl:
            return None
        try:
            return [LegiScanBillItem.model_validate(item) for item in cached["items"]]
        except (KeyError, TypeError, ValidationError):
            logger.warning("Discarding malformed LegiScan master list cache entry")
            return None

    async def _remember_masterlist(self, items: List[LegiScanBillItem]) -> None:
        if self.store is None:
            return
        payload = {"fetched_at": self._clock(), "items": [item.model_dump() for item in items]}
        try:
            await self.store.put(self.masterlist_key, payload)
        except STORE_ERRORS as e:
            logger.error("Could not cache LegiScan master list: %s", e)

    async def fetch_sponsored_bills(self, member_id: str, limit: int) -> List[Bill]:
        async def call():
            data = await self._get_json("/", {"key": self.api_key, "op": "getSponsoredList", "id": member_id})
            envelope = self._validate(LegiScanEnvelope, data)
            self._check_status(envelope)
            return self._validate(LegiScanSponsoredList, data).sponsoredbills.bills

        items = await self._guarded(call)
        return [self.to_bill(item) for item in items[:limit]]
