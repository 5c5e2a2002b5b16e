"""Matching watches against catalog snapshots and applying the quantity gate."""
from __future__ import annotations

import re
from collections.abc import Callable, Collection, Iterable
from typing import Any

from ..models import CatalogItem, GateDecision, MatchResult, Watch

_NON_DIGITS = re.compile(r"\D")


def normalize_code(value: str) -> str:
    """Strip everything that is not a digit (``"504.878.57"`` -> ``"50487857"``)."""

    return _NON_DIGITS.sub("", value or "")


def normalize_desired_quantity(value: Any) -> int:
    """Coerce user input to a quantity of at least one."""

    if isinstance(value, bool):
        return 1
    try:
        quantity = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity if quantity >= 1 else 1


def match_article_number(criterion: str, article_numbers: Iterable[str]) -> bool:
    normalized = normalize_code(criterion)
    if not normalized:
        return False
    return any(normalize_code(number) == normalized for number in article_numbers)


def match_legacy_name(term: str, product_name: str) -> bool:
    """Free-text match used by watches created before article numbers.

    Either the whole term appears in the name, or every word of the term
    appears somewhere in it, in any order.
    """

    search = (term or "").lower().strip()
    if not search:
        return False
    name = (product_name or "").lower().strip()
    if search in name:
        return True
    return all(word in name for word in search.split())


def item_matches(watch: Watch, item: CatalogItem) -> bool:
    if match_article_number(watch.criterion, item.article_numbers):
        return True
    return watch.is_legacy and match_legacy_name(watch.criterion, item.name)


def match_watch(watch: Watch, items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """Return the items satisfying ``watch`` in catalog order."""

    return [item for item in items if item_matches(watch, item)]


def evaluate_watch(
    watch: Watch,
    items: Iterable[CatalogItem],
    notified_lookup: Callable[[list[str]], Collection[str]],
) -> MatchResult:
    """Match ``watch`` and split the matches into already-notified and new.

    ``notified_lookup`` receives the ids of the matching items and returns
    those that already have a notification record for this watch.
    """

    matches = match_watch(watch, items)
    notified = notified_lookup([item.item_id for item in matches]) if matches else set()
    new_matches = [item for item in matches if item.item_id not in notified]
    return MatchResult(watch=watch, matches=matches, new_matches=new_matches)


def apply_quantity_gate(result: MatchResult) -> GateDecision:
    """Decide whether ``result`` warrants a notification and what to include.

    The gate opens only once at least ``desired_quantity`` unnotified matches
    exist; exactly that many are then selected, in catalog order.
    """

    desired = max(result.desired_quantity, 1)
    if len(result.new_matches) < desired:
        return GateDecision(requirement_met=False)
    return GateDecision(requirement_met=True, selected=result.new_matches[:desired])
