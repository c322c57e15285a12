from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from config import logger
from models.bill import Bill, BillStage, Chamber, SourceName, Sponsor
from api.base import SourceAdapter

class CongressLatestAction(BaseModel):
    actionDate: Optional[str] = None
    text: Optional[str] = None

class CongressSponsor(BaseModel):
    bioguideId: Optional[str] = None
    fullName: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    party: Optional[str] = None

class CongressPolicyArea(BaseModel):
    name: Optional[str] = None

class CongressBillItem(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    congress: Optional[int] = None
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "billType"))
    number: Optional[str] = Field(default=None, validation_alias=AliasChoices("number", "billNumber"))
    title: Optional[str] = None
    introducedDate: Optional[str] = None
    latestAction: Optional[CongressLatestAction] = None
    sponsors: List[CongressSponsor] = []
    policyArea: Optional[CongressPolicyArea] = None

class CongressBillList(BaseModel):
    bills: List[CongressBillItem]

class CongressSponsoredList(BaseModel):
    sponsoredLegislation: List[CongressBillItem]

class CongressCosponsoredList(BaseModel):
    cosponsoredLegislation: List[CongressBillItem]

class CongressCommitteeBillsBody(BaseModel):
    bills: List[CongressBillItem]

class CongressCommitteeBills(BaseModel):
    committee_bills: CongressCommitteeBillsBody = Field(alias="committee-bills")

def determine_stage(action_text: str) -> BillStage:
    text = (action_text or "").lower()

    if "became public law" in text or "became law" in text or "signed by president" in text:
        return BillStage.ENACTED
    if "vetoed" in text or "veto message" in text:
        return BillStage.VETOED
    if "failed" in text or "not agreed to" in text:
        return BillStage.FAILED
    if "presented to president" in text or "resolving differences" in text or "cleared for white house" in text:
        return BillStage.PASSED_BOTH
    if ("passed house" in text and "passed senate" in text):
        return BillStage.PASSED_BOTH
    if "passed" in text or "agreed to" in text:
        return BillStage.PASSED_CHAMBER
    if "committee" in text or "referred" in text:
        return BillStage.COMMITTEE
    if "introduced" in text:
        return BillStage.INTRODUCED
    return BillStage.COMMITTEE

def determine_chamber(bill_type: str) -> Chamber:
    return Chamber.HOUSE if bill_type.lower().startswith("h") else Chamber.SENATE

class CongressAdapter(SourceAdapter):
    """Congress.gov v3 bill feed."""

    source = SourceName.FEDERAL
    member_roles = ("sponsored", "cosponsored", "committee")

    def __init__(self, *args, congress: int = 119, **kwargs):
        super().__init__(*args, **kwargs)
        self.congress = congress

    def _params(self, **extra: Any) -> Dict[str, Any]:
        params = {"api_key": self.api_key, "format": "json"}
        params.update(extra)
        return params

    def to_bill(self, item: CongressBillItem) -> Optional[Bill]:
        if not item.type or not item.number or not item.congress:
            return None

        bill_type = item.type
        bill_number = f"{bill_type.upper()} {item.number}"
        latest = item.latestAction or CongressLatestAction()
        chamber = determine_chamber(bill_type)

        lead = item.sponsors[0] if item.sponsors else None
        sponsor = Sponsor(chamber=chamber)
        if lead is not None:
            name = lead.fullName or f"{lead.firstName or ''} {lead.lastName or ''}".strip()
            sponsor = Sponsor(
                id=lead.bioguideId,
                name=name or "Unknown Sponsor",
                party=lead.party or "Unknown",
                chamber=chamber,
            )

        title = item.title or bill_number
        return Bill(
            source=self.source,
            native_id=f"{bill_type.lower()}-{item.number}-{item.congress}",
            bill_number=bill_number,
            title=title,
            summary=title,
            sponsor=sponsor,
            status=determine_stage(latest.text or ""),
            status_detail=latest.text or "No action taken",
            subjects=[item.policyArea.name] if item.policyArea and item.policyArea.name else [],
            introduced_date=item.introducedDate,
            last_action_date=latest.actionDate or item.introducedDate,
            url=(
                f"https://www.congress.gov/bill/{item.congress}th-congress/"
                f"{'house' if chamber == Chamber.HOUSE else 'senate'}-bill/{item.number}"
            ),
        )

    def _to_bills(self, items: List[CongressBillItem]) -> List[Bill]:
        bills = []
        for item in items:
            bill = self.to_bill(item)
            if bill is None:
                logger.debug("Skipping non-bill federal item: %s", item)
                continue
            bills.append(bill)
        return bills

    async def fetch_recent_bills(self, limit: int, offset: int) -> List[Bill]:
        async def call():
            data = await self._get_json(
                f"/bill/{self.congress}",
                self._params(limit=limit, offset=offset, sort="updateDate desc"),
            )
            return self._validate(CongressBillList, data).bills

        items = await self._guarded(call)
        return self._to_bills(items)

    async def fetch_sponsored_bills(self, member_id: str, limit: int) -> List[Bill]:
        async def call():
            data = await self._get_json(
                f"/member/{member_id}/sponsored-legislation", self._params(limit=limit)
            )
            return self._validate(CongressSponsoredList, data).sponsoredLegislation

        return self._to_bills(await self._guarded(call))

    async def fetch_cosponsored_bills(self, member_id: str, limit: int) -> List[Bill]:
        async def call():
            data = await self._get_json(
                f"/member/{member_id}/cosponsored-legislation", self._params(limit=limit)
            )
            return self._validate(CongressCosponsoredList, data).cosponsoredLegislation

        return self._to_bills(await self._guarded(call))

    async def fetch_committee_bills(self, committee_id: str, limit: int) -> List[Bill]:
        """``committee_id`` is ``{chamber}/{systemCode}``, e.g. ``house/hsag00``."""
        async def call():
            data = await self._get_json(f"/committee/{committee_id}/bills", self._params(limit=limit))
            return self._validate(CongressCommitteeBills, data).committee_bills.bills

        return self._to_bills(await self._guarded(call))
