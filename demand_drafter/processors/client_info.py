"""
Client-identity aggregation

Each exhibit may report the client's name, policy number, claim number and
date of loss. The case-level value for each field is the one reported most
often; ties go to the value seen first.
"""

from collections import Counter
from typing import Iterable, List, Optional

from ..models import CLIENT_INFO_FIELDS, ClientInfo


def most_frequent(candidates: List[str]) -> Optional[str]:
    """Plurality vote, first-seen wins ties. None when there are no candidates."""
    if not candidates:
        return None
    counts = Counter(candidates)
    best = max(counts.values())
    for value in candidates:
        if counts[value] == best:
            return value
    return None


def collect_candidates(infos: Iterable[Optional[ClientInfo]]) -> dict:
    """Per-field candidate lists, in the order the infos are given."""
    candidates = {attr: [] for attr in CLIENT_INFO_FIELDS}
    for info in infos:
        if info is None:
            continue
        for attr in CLIENT_INFO_FIELDS:
            value = getattr(info, attr)
            if value:
                candidates[attr].append(value)
    return candidates


def aggregate_client_info(infos: Iterable[Optional[ClientInfo]]) -> ClientInfo:
    candidates = collect_candidates(infos)
    return ClientInfo(**{attr: most_frequent(values) for attr, values in candidates.items()})
