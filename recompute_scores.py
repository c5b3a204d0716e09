"""
Batch score recomputation.

Walks every (project, user, questionnaire) triple that has a submitted
Response and recomputes its Score. A failing triple is logged and skipped;
it never aborts the rest of the run.

    python recompute_scores.py                      # every project
    python recompute_scores.py --project 3 --questionnaire general-v1
"""
import argparse
import contextlib
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

import config
from db.session import get_db, init_db
from models.response import Response
from services.repositories import SqlStores
from services.score_aggregator import compute_scores

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def submitted_triples(db, project_id: Any = None, questionnaire_key: Optional[str] = None) -> Iterable[Tuple]:
    query = (
        db.query(Response.project_id, Response.user_id, Response.questionnaire_key)
        .filter(Response.status == "submitted")
        .distinct()
    )
    if project_id is not None:
        query = query.filter(Response.project_id == project_id)
    if questionnaire_key:
        query = query.filter(Response.questionnaire_key == questionnaire_key)
    return query.order_by(Response.project_id, Response.user_id, Response.questionnaire_key).all()


def recompute_all(stores, triples: Iterable[Tuple]) -> Dict[str, int]:
    """Recomputes each triple independently and returns computed/skipped/error counts."""
    summary = {"computed": 0, "skipped": 0, "errors": 0}
    for project_id, user_id, questionnaire_key in triples:
        try:
            result = compute_scores(stores, project_id, user_id, questionnaire_key)
        except Exception:
            stores.rollback()
            summary["errors"] += 1
            logger.exception(
                "Error computing scores for project=%s user=%s questionnaire=%s",
                project_id, user_id, questionnaire_key,
            )
            continue
        if result:
            summary["computed"] += 1
            logger.info("Computed %s scores for project=%s user=%s", questionnaire_key, project_id, user_id)
        else:
            summary["skipped"] += 1
    return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Recompute evaluator scores from submitted responses.")
    parser.add_argument("--project", type=int, default=None, help="only this project id")
    parser.add_argument("--questionnaire", default=None, help="only this questionnaire key")
    args = parser.parse_args(argv)

    init_db()
    with contextlib.closing(next(get_db())) as db:
        stores = SqlStores(db)
        summary = recompute_all(stores, submitted_triples(db, args.project, args.questionnaire))

    logger.info(
        "Score computation complete! computed=%d skipped=%d errors=%d",
        summary["computed"], summary["skipped"], summary["errors"],
    )
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
