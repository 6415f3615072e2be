"""
Duplicate Transaction Detection

Advisory only: a match never blocks a write, it is shown to the user.

Scoring, among stored transactions of the same kind as the candidate:
- Exact amount:                      +40
- Same category (both non-empty):    +20
- Same description:                  +20
  or one description contains the other: +10
- Dates within the window (48h):     +20

Matches scoring at least the threshold (60) are returned, best first,
at most three of them.

Dates carry no time of day, so both sides are anchored at noon before
the difference is taken. A 48 hour window therefore means two days apart
or closer.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from moneytrack.models.finance import Transaction, TransactionDraft
from moneytrack.models.results import DuplicateMatch, MatchReason


AMOUNT_POINTS = 40
CATEGORY_POINTS = 20
DESCRIPTION_POINTS = 20
SIMILAR_DESCRIPTION_POINTS = 10
DATE_POINTS = 20

DEFAULT_THRESHOLD = 60
DEFAULT_WINDOW = timedelta(hours=48)
DEFAULT_LIMIT = 3

# (thousands separator, decimal separator)
LOCALE_SEPARATORS = {
    "es-CO": (".", ","),
    "en-US": (",", "."),
}


def parse_amount(
    value: Union[str, int, float, Decimal, None],
    locale: str = "es-CO",
) -> Optional[Decimal]:
    """
    Parse a user-entered amount.

    Strings follow the locale's separators ("50.000,50" in es-CO);
    numbers are taken as they are.

    Returns:
        The amount, or None if it is unparsable or not positive
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        thousands, decimal_sep = LOCALE_SEPARATORS.get(locale, LOCALE_SEPARATORS["es-CO"])
        text = value.strip().replace(thousands, "").replace(decimal_sep, ".")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None

    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def _at_noon(day: date) -> datetime:
    return datetime.combine(day, time(12, 0))


def _score(
    candidate: TransactionDraft,
    amount: Decimal,
    candidate_at: datetime,
    txn: Transaction,
    window: timedelta,
) -> tuple[int, list[MatchReason]]:
    score = 0
    reasons = []

    if txn.amount == amount:
        score += AMOUNT_POINTS
        reasons.append(MatchReason.SAME_AMOUNT)

    if candidate.category and txn.category and candidate.category == txn.category:
        score += CATEGORY_POINTS
        reasons.append(MatchReason.SAME_CATEGORY)

    new_desc = candidate.description.strip().lower()
    old_desc = txn.description.strip().lower()
    if new_desc and old_desc:
        if new_desc == old_desc:
            score += DESCRIPTION_POINTS
            reasons.append(MatchReason.SAME_DESCRIPTION)
        elif new_desc in old_desc or old_desc in new_desc:
            score += SIMILAR_DESCRIPTION_POINTS
            reasons.append(MatchReason.SIMILAR_DESCRIPTION)

    if abs(candidate_at - _at_noon(txn.occurred_at)) <= window:
        score += DATE_POINTS
        reasons.append(MatchReason.NEAR_DATE)

    return score, reasons


def detect_duplicates(
    candidate: TransactionDraft,
    transactions: Iterable[Transaction],
    threshold: int = DEFAULT_THRESHOLD,
    window: timedelta = DEFAULT_WINDOW,
    limit: int = DEFAULT_LIMIT,
    locale: str = "es-CO",
) -> list[DuplicateMatch]:
    """
    Find stored transactions that look like the candidate.

    Args:
        candidate: Unsaved transaction as entered by the user
        transactions: Stored transactions to compare against
        threshold: Minimum score for a match
        window: Maximum date distance that still counts as near
        limit: Maximum number of matches returned

    Returns:
        Matches sorted by descending score
    """
    amount = parse_amount(candidate.amount, locale)
    if amount is None:
        return []

    # Minimal entries would match almost anything
    if not candidate.description.strip() and not candidate.category:
        return []

    candidate_at = _at_noon(candidate.occurred_on or date.today())

    matches = []
    for txn in transactions:
        if txn.kind != candidate.kind:
            continue

        score, reasons = _score(candidate, amount, candidate_at, txn, window)
        if score >= threshold:
            matches.append(DuplicateMatch(transaction=txn, score=score, reasons=reasons))

    # sorted() is stable, so equal scores keep history order
    matches = sorted(matches, key=lambda m: m.score, reverse=True)
    return matches[:limit]
