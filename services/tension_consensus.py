"""
Tension consensus: derives a review state from peer votes.

The state is never persisted; every read recomputes it from the current
vote list. "Resolved" is a manual status and is never produced here.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional

PROPOSED = "Proposed"
SINGLE_REVIEW = "Single review"
UNDER_REVIEW = "Under review"
ACCEPTED = "Accepted"
DISPUTED = "Disputed"

REVIEW_STATES = (PROPOSED, SINGLE_REVIEW, UNDER_REVIEW, ACCEPTED, DISPUTED)

VOTE_TYPES = ("agree", "disagree")
# Compared against the agree share rounded to two decimals, so 2 of 3 (0.67)
# is Accepted and 1 of 3 (0.33) is Disputed.
ACCEPT_THRESHOLD = 0.67
DISPUTE_THRESHOLD = 0.33


def _field(vote: Any, *names: str) -> Any:
    for name in names:
        if isinstance(vote, Mapping):
            value = vote.get(name)
        else:
            value = getattr(vote, name, None)
        if value is not None:
            return value
    return None


def valid_votes(votes: Optional[Iterable[Any]], created_by: Any = None) -> List[Dict[str, Any]]:
    """
    Votes that count toward consensus: well-formed (a user id and an
    agree/disagree vote type) and not cast by the tension's author.
    """
    if not votes or isinstance(votes, (str, bytes, Mapping)):
        return []
    try:
        items = list(votes)
    except TypeError:
        return []

    author = None if created_by is None else str(created_by)
    result = []
    for vote in items:
        user_id = _field(vote, "userId", "user_id")
        vote_type = _field(vote, "voteType", "vote_type")
        if user_id is None or str(user_id) == "":
            continue
        if vote_type not in VOTE_TYPES:
            continue
        if author is not None and str(user_id) == author:
            continue
        result.append({"userId": user_id, "voteType": vote_type})
    return result


def vote_counts(votes: Optional[Iterable[Any]], created_by: Any = None) -> Dict[str, Any]:
    """Agree/disagree tallies over the valid votes; agree_pct is a 0-1 fraction."""
    counted = valid_votes(votes, created_by)
    agree = sum(1 for v in counted if v["voteType"] == "agree")
    total = len(counted)
    return {
        "total": total,
        "agree": agree,
        "disagree": total - agree,
        "agree_pct": (agree / total) if total else 0.0,
    }


def compute_review_state(votes: Optional[Iterable[Any]], created_by: Any = None) -> str:
    """
    Proposed with no valid votes, Single review with one. From two votes on,
    the agree share (compared at two decimals, so 1 of 3 counts as 0.33)
    decides: >= 0.67 Accepted, <= 0.33 Disputed, otherwise Under review.
    """
    counts = vote_counts(votes, created_by)
    if counts["total"] < 2:
        return PROPOSED if counts["total"] == 0 else SINGLE_REVIEW

    agree_pct = round(counts["agree"] / counts["total"], 2)
    if agree_pct >= ACCEPT_THRESHOLD:
        return ACCEPTED
    if agree_pct <= DISPUTE_THRESHOLD:
        return DISPUTED
    return UNDER_REVIEW
