import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from config import logger, SOURCE_PRIORITY

@dataclass(frozen=True, order=True)
class MemberRef:
    """One upstream member identity a representative query fans out to."""
    source: str
    member_id: str
    committees: Tuple[str, ...] = field(default=(), compare=False)

def order_refs(refs: Iterable[MemberRef]) -> List[MemberRef]:
    """Declared source priority first, then member id, so fan-out order is stable."""
    def rank(ref: MemberRef):
        try:
            priority = SOURCE_PRIORITY.index(ref.source)
        except ValueError:
            priority = len(SOURCE_PRIORITY)
        return (priority, ref.member_id)
    return sorted(set(refs), key=rank)

class RepresentativeResolver:
    """Maps a ZIP code or representative id to a bounded set of member refs."""

    max_refs: int = 12

    async def resolve_zip(self, zip_code: str) -> List[MemberRef]:
        raise NotImplementedError

    async def resolve_representative(self, representative_id: str) -> List[MemberRef]:
        raise NotImplementedError

class StaticRepresentativeResolver(RepresentativeResolver):
    """Resolver backed by a JSON document of the form::

        {
          "representatives": {
            "B001234": [{"source": "federal", "member_id": "B001234",
                          "committees": ["house/hsag00"]}]
          },
          "zips": {"95814": ["B001234", "ca-asm-7"]}
        }

    ZIP entries name representative keys; unknown keys are ignored.
    """

    def __init__(self, mapping: Optional[Dict] = None):
        mapping = mapping or {}
        self._representatives: Dict[str, List[MemberRef]] = {}
        for rep_id, entries in (mapping.get("representatives") or {}).items():
            self._representatives[rep_id.lower()] = [
                MemberRef(
                    source=str(e["source"]),
                    member_id=str(e["member_id"]),
                    committees=tuple(e.get("committees") or ()),
                )
                for e in entries
            ]
        self._zips: Dict[str, List[str]] = {
            z: [str(r) for r in reps] for z, reps in (mapping.get("zips") or {}).items()
        }

    @classmethod
    def from_file(cls, path: Optional[str]) -> "StaticRepresentativeResolver":
        if not path:
            return cls()
        try:
            return cls(json.loads(Path(path).read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not load representative map from %s: %s", path, e)
            return cls()

    async def resolve_representative(self, representative_id: str) -> List[MemberRef]:
        refs = self._representatives.get(representative_id.lower(), [])
        return order_refs(refs)[:self.max_refs]

    async def resolve_zip(self, zip_code: str) -> List[MemberRef]:
        refs: List[MemberRef] = []
        for rep_id in self._zips.get(zip_code[:5], []):
            refs.extend(self._representatives.get(rep_id.lower(), []))
        return order_refs(refs)[:self.max_refs]
