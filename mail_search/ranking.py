from collections.abc import Iterable
from dataclasses import dataclass

from mail_search.config import settings
from mail_search.index import SearchIndex
from mail_search.models import SortBy, SortOrder


@dataclass(frozen=True)
class RelevanceWeights:
    subject: int = 10
    participant: int = 5
    body: int = 1

    @classmethod
    def from_settings(cls) -> "RelevanceWeights":
        return cls(
            subject=settings.subject_weight,
            participant=settings.participant_weight,
            body=settings.body_weight,
        )


def score(index: SearchIndex, message_id: str, terms: Iterable[str], weights: RelevanceWeights | None = None) -> int:
    content = index.get_content(message_id)
    if content is None:
        return 0
    weights = weights or RelevanceWeights()

    subject = content.subject.lower()
    sender = content.sender.lower()
    to = content.to.lower()
    body = content.body.lower()

    total = 0
    for term in terms:
        if term in subject:
            total += weights.subject
        if term in sender or term in to:
            total += weights.participant
        if term in body:
            total += weights.body
    return total


def rank(
    index: SearchIndex,
    message_ids: Iterable[str],
    terms: list[str],
    weights: RelevanceWeights | None = None,
) -> list[str]:
    """Order ids by descending score; equal scores keep their incoming order."""
    scored = [(mid, score(index, mid, terms, weights)) for mid in message_ids]
    scored.sort(key=lambda item: item[1], reverse=True)
    return [mid for mid, _ in scored]


def sort_results(index: SearchIndex, ranked_ids: list[str], sort_by: SortBy = "relevance", sort_order: SortOrder = "desc") -> list[str]:
    descending = sort_order == "desc"
    if sort_by == "relevance":
        return list(ranked_ids) if descending else list(reversed(ranked_ids))
    if sort_by == "date":
        return sorted(ranked_ids, key=lambda mid: index.get_day(mid) or "", reverse=descending)
    if sort_by == "sender":
        return sorted(ranked_ids, key=lambda mid: _sender_key(index, mid), reverse=descending)
    raise ValueError(f"Unknown sort field: {sort_by}")


def _sender_key(index: SearchIndex, message_id: str) -> str:
    content = index.get_content(message_id)
    return content.sender.lower() if content else ""
