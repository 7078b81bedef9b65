"""
Cross-section relations between cards.

Issue-like keys (``issue-N``, ``local-issue-N``) tie an issue to the
worktree, session and pull request working on it. Relations are derived on
demand from the current card lists and never stored.
"""

from typing import Iterable, Optional, Sequence, Set

from .models import Card, is_issue_key


def relation_key(card: Card) -> Optional[str]:
    """The issue-like key a card belongs to, if any."""
    if is_issue_key(card.id):
        return card.id
    for entry in card.related:
        if is_issue_key(entry):
            return entry
    return None


def related_card_ids(card: Card, sections: Iterable[Sequence[Card]]) -> Set[str]:
    """Ids of the cards related to ``card`` across all sections.

    With an issue-like key, every other card whose id is the key or whose
    ``related`` contains it; without one, the card's own ``related`` set.
    """
    key = relation_key(card)
    if key is None:
        return set(card.related)

    return {
        other.id
        for cards in sections
        for other in cards
        if other.id != card.id and (other.id == key or key in other.related)
    }
