"""
Data Model
Typed records for exhibits, client identity, case analysis and damages.

Every record parses its wire form (camelCase JSON, usually produced by the
model or round-tripped by the browser) with `from_dict`, coercing each field
leniently, and serializes back with `to_dict`.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

NULL_STRINGS = {'', 'null', 'none', 'n/a', 'na', 'unknown', 'not found', 'not available'}

DEFAULT_SUMMARY = 'No summary available for this exhibit.'

# Used when damages arrive as free text instead of a breakdown
PAST_MEDICAL_DESCRIPTION = 'Past medical expenses (see exhibits for details)'
DEFAULT_GENERAL_DAMAGES_TOTAL = 300000.0
DEFAULT_GENERAL_DAMAGES_ITEMS = [
    'Pain and suffering',
    'Loss of enjoyment of life',
    'Emotional distress',
]


def now_iso() -> str:
    return datetime.now().isoformat()


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def clean_optional_str(value: Any) -> Optional[str]:
    """Return a stripped string, or None for missing and placeholder values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if value.lower() in NULL_STRINGS:
        return None
    return value


def coerce_str(value: Any, default: str = '') -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def keep_str(value: Any, default: str) -> str:
    """The string as sent, untouched. Default only for missing or non-string values."""
    if isinstance(value, str) and value:
        return value
    return default


def coerce_amount(value: Any) -> float:
    """Parse a monetary amount. Anything unusable, or negative, becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        cleaned = re.sub(r'[$,\s]', '', value)
        try:
            value = float(cleaned)
        except ValueError:
            return 0.0
    if not isinstance(value, (int, float)):
        return 0.0
    value = float(value)
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0.0
    return value


def coerce_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def wire_number(value: float) -> Union[int, float]:
    """Integral amounts serialize without a trailing .0"""
    return int(value) if float(value).is_integer() else value


# ---------------------------------------------------------------------------
# Client identity
# ---------------------------------------------------------------------------

CLIENT_INFO_FIELDS = {
    'client_name': 'clientName',
    'policy_number': 'policyNumber',
    'claim_number': 'claimNumber',
    'date_of_loss': 'dateOfLoss',
}


@dataclass
class ClientInfo:
    client_name: Optional[str] = None
    policy_number: Optional[str] = None
    claim_number: Optional[str] = None
    date_of_loss: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'ClientInfo':
        if not isinstance(data, dict):
            return cls()
        return cls(**{
            attr: clean_optional_str(data.get(key))
            for attr, key in CLIENT_INFO_FIELDS.items()
        })

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {key: getattr(self, attr) for attr, key in CLIENT_INFO_FIELDS.items()}

    def is_empty(self) -> bool:
        return all(getattr(self, attr) is None for attr in CLIENT_INFO_FIELDS)

    def overridden_by(self, other: Optional['ClientInfo']) -> 'ClientInfo':
        """Per-field merge where non-null values in `other` win."""
        if other is None:
            return ClientInfo(**{attr: getattr(self, attr) for attr in CLIENT_INFO_FIELDS})
        return ClientInfo(**{
            attr: getattr(other, attr) if getattr(other, attr) is not None else getattr(self, attr)
            for attr in CLIENT_INFO_FIELDS
        })


# ---------------------------------------------------------------------------
# Exhibits
# ---------------------------------------------------------------------------

@dataclass
class Exhibit:
    file_name: str
    heading: str
    summary: str
    expenses: float = 0.0
    client_info: Optional[ClientInfo] = None
    processed_at: str = field(default_factory=now_iso)
    file_hash: Optional[str] = None
    is_error: bool = False
    reprocessed: bool = False
    reprocessed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Exhibit':
        """Rebuild an exhibit the caller sent back from an earlier pass."""
        client_info = data.get('clientInfo')
        return cls(
            file_name=str(data.get('fileName', '')).strip(),
            heading=keep_str(data.get('heading'), 'Untitled Exhibit'),
            summary=keep_str(data.get('summary'), DEFAULT_SUMMARY),
            expenses=coerce_amount(data.get('expenses')),
            client_info=ClientInfo.from_dict(client_info) if isinstance(client_info, dict) else None,
            processed_at=coerce_str(data.get('processedAt'), now_iso()),
            file_hash=clean_optional_str(data.get('fileHash')),
            is_error=bool(data.get('isError', False)),
            reprocessed=bool(data.get('reprocessed', False)),
            reprocessed_at=clean_optional_str(data.get('reprocessedAt')),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'fileName': self.file_name,
            'heading': self.heading,
            'summary': self.summary,
            'expenses': wire_number(self.expenses),
            'clientInfo': self.client_info.to_dict() if self.client_info else None,
            'processedAt': self.processed_at,
            'fileHash': self.file_hash,
            'isError': self.is_error,
        }
        if self.reprocessed:
            data['reprocessed'] = True
            data['reprocessedAt'] = self.reprocessed_at
        return data


# ---------------------------------------------------------------------------
# Damages
# ---------------------------------------------------------------------------

@dataclass
class DamageItem:
    description: str
    amount: float = 0.0

    @classmethod
    def from_dict(cls, data: Any) -> Optional['DamageItem']:
        if not isinstance(data, dict):
            return None
        return cls(
            description=coerce_str(data.get('description'), 'Unspecified item'),
            amount=coerce_amount(data.get('amount')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'description': self.description, 'amount': wire_number(self.amount)}


@dataclass
class DamagesCategory:
    total: float = 0.0
    items: List[DamageItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Optional['DamagesCategory']:
        if not isinstance(data, dict):
            return None
        items = [DamageItem.from_dict(item) for item in data.get('items') or []]
        return cls(total=coerce_amount(data.get('total')), items=[i for i in items if i])

    def to_dict(self) -> Dict[str, Any]:
        return {'total': wire_number(self.total), 'items': [i.to_dict() for i in self.items]}


@dataclass
class GeneralDamages:
    total: float = 0.0
    items: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Optional['GeneralDamages']:
        if not isinstance(data, dict):
            return None
        return cls(total=coerce_amount(data.get('total')), items=coerce_str_list(data.get('items')))

    def to_dict(self) -> Dict[str, Any]:
        return {'total': wire_number(self.total), 'items': list(self.items)}


@dataclass
class PersonDamages:
    name: str
    special_damages: Optional[DamagesCategory] = None
    future_medical_expenses: Optional[DamagesCategory] = None
    general_damages: Optional[GeneralDamages] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional['PersonDamages']:
        if not isinstance(data, dict):
            return None
        return cls(
            name=coerce_str(data.get('name'), 'Claimant'),
            special_damages=DamagesCategory.from_dict(data.get('specialDamages')),
            future_medical_expenses=DamagesCategory.from_dict(data.get('futureMedicalExpenses')),
            general_damages=GeneralDamages.from_dict(data.get('generalDamages')),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name}
        if self.special_damages:
            data['specialDamages'] = self.special_damages.to_dict()
        if self.future_medical_expenses:
            data['futureMedicalExpenses'] = self.future_medical_expenses.to_dict()
        if self.general_damages:
            data['generalDamages'] = self.general_damages.to_dict()
        return data


@dataclass
class LegacyDamages:
    """Single-claimant breakdown."""

    special_damages: Optional[DamagesCategory] = None
    future_medical_expenses: Optional[DamagesCategory] = None
    general_damages: Optional[GeneralDamages] = None
    kind: str = field(default='legacy', init=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {'type': self.kind}
        if self.special_damages:
            data['specialDamages'] = self.special_damages.to_dict()
        if self.future_medical_expenses:
            data['futureMedicalExpenses'] = self.future_medical_expenses.to_dict()
        if self.general_damages:
            data['generalDamages'] = self.general_damages.to_dict()
        return data


@dataclass
class MultiPersonDamages:
    """Per-person breakdown with a case-wide settlement demand."""

    people: List[PersonDamages] = field(default_factory=list)
    total_settlement_demand: float = 0.0
    kind: str = field(default='multiPerson', init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.kind,
            'people': [p.to_dict() for p in self.people],
            'totalSettlementDemand': wire_number(self.total_settlement_demand),
        }


Damages = Union[LegacyDamages, MultiPersonDamages]


def damages_from_text(past_medical_total: float) -> LegacyDamages:
    return LegacyDamages(
        special_damages=DamagesCategory(
            total=past_medical_total,
            items=[DamageItem(PAST_MEDICAL_DESCRIPTION, past_medical_total)],
        ),
        general_damages=GeneralDamages(
            total=DEFAULT_GENERAL_DAMAGES_TOTAL,
            items=list(DEFAULT_GENERAL_DAMAGES_ITEMS),
        ),
    )


def parse_damages(value: Any, past_medical_total: float = 0.0) -> Damages:
    """
    Resolve a damages payload into one of the tagged variants.

    An explicit `type` wins; otherwise a `people` list marks the multi-person
    shape. Free-text damages fall back to a legacy breakdown built from the
    past medical total.
    """
    if isinstance(value, (LegacyDamages, MultiPersonDamages)):
        return value
    if isinstance(value, str):
        if not value.strip():
            return MultiPersonDamages()
        return damages_from_text(past_medical_total)
    if not isinstance(value, dict):
        return MultiPersonDamages()

    kind = value.get('type')
    if kind == 'multiPerson' or (kind != 'legacy' and isinstance(value.get('people'), list)):
        people = [PersonDamages.from_dict(p) for p in value.get('people') or []]
        return MultiPersonDamages(
            people=[p for p in people if p],
            total_settlement_demand=coerce_amount(value.get('totalSettlementDemand')),
        )
    return LegacyDamages(
        special_damages=DamagesCategory.from_dict(value.get('specialDamages')),
        future_medical_expenses=DamagesCategory.from_dict(value.get('futureMedicalExpenses')),
        general_damages=GeneralDamages.from_dict(value.get('generalDamages')),
    )


# ---------------------------------------------------------------------------
# Case analysis and the consolidated response
# ---------------------------------------------------------------------------

@dataclass
class GlobalAnalysis:
    nature_of_claim: str = ''
    facts: str = ''
    liability: str = ''
    injuries: List[str] = field(default_factory=list)
    damages: Damages = field(default_factory=MultiPersonDamages)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], past_medical_total: float = 0.0) -> 'GlobalAnalysis':
        return cls(
            nature_of_claim=coerce_str(data.get('natureOfClaim')),
            facts=coerce_str(data.get('facts')),
            liability=coerce_str(data.get('liability')),
            injuries=coerce_str_list(data.get('injuries')),
            damages=parse_damages(data.get('damages'), past_medical_total),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'natureOfClaim': self.nature_of_claim,
            'facts': self.facts,
            'liability': self.liability,
            'injuries': list(self.injuries),
            'damages': self.damages.to_dict(),
        }


@dataclass
class ProcessingInfo:
    total_exhibits: int
    existing_exhibits: int
    new_exhibits: int
    error_exhibits: int
    skipped_files: List[str] = field(default_factory=list)
    reprocessed: bool = False
    processed_at: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalExhibits': self.total_exhibits,
            'existingExhibits': self.existing_exhibits,
            'newExhibits': self.new_exhibits,
            'errorExhibits': self.error_exhibits,
            'skippedFiles': list(self.skipped_files),
            'reprocessed': self.reprocessed,
            'processedAt': self.processed_at,
        }


@dataclass
class ConsolidatedResponse:
    exhibits: List[Exhibit]
    total_expenses: float
    global_analysis: GlobalAnalysis
    client_info: ClientInfo
    processing_info: ProcessingInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'exhibits': [e.to_dict() for e in self.exhibits],
            'totalExpenses': wire_number(self.total_expenses),
            'globalAnalysis': self.global_analysis.to_dict(),
            'clientInfo': self.client_info.to_dict(),
            'processingInfo': self.processing_info.to_dict(),
        }
