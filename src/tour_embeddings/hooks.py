"""Save Hook Integration

Entry points the CMS calls after a tour is saved. Embedding is a best-effort
side task: the hook always hands the document back unchanged and a failure in
the pipeline never fails the save that triggered it.
"""

import logging
from typing import Any, Callable, Dict, List

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_ACTIONS_KEY = "_tour_embedding_actions"
_BOUND_KEY = "_tour_embedding_events_bound"


def generate_tour_embedding_on_save(doc: Dict[str, Any], operation, pipeline) -> Dict[str, Any]:
    """After-change hook: sync embeddings for ``doc`` and return it as is."""
    try:
        pipeline.sync(doc, operation)
    except Exception:
        tour_id = doc.get("id") if isinstance(doc, dict) else getattr(doc, "id", None)
        logger.exception("Embedding sync crashed for tour %s", tour_id)
    return doc


def _bind_session_events(session: Session) -> List[Callable[[], None]]:
    actions = session.info.get(_ACTIONS_KEY)
    if actions is None:
        actions = []
        session.info[_ACTIONS_KEY] = actions

    if session.info.get(_BOUND_KEY):
        return actions
    session.info[_BOUND_KEY] = True

    @event.listens_for(session, "after_commit")
    def _after_commit(_session: Session) -> None:
        pending = list(_session.info.get(_ACTIONS_KEY) or [])
        _session.info[_ACTIONS_KEY] = []
        for action in pending:
            action()

    @event.listens_for(session, "after_rollback")
    def _after_rollback(_session: Session) -> None:
        dropped = len(_session.info.get(_ACTIONS_KEY) or [])
        _session.info[_ACTIONS_KEY] = []
        if dropped:
            logger.debug("Dropped %d pending embedding sync(s) after rollback", dropped)

    return actions


def sync_after_commit(session: Session, doc: Dict[str, Any], operation, pipeline) -> None:
    """Run the save hook for ``doc`` once ``session`` commits.

    Nothing runs if the transaction rolls back instead.
    """
    _bind_session_events(session).append(
        lambda: generate_tour_embedding_on_save(doc, operation, pipeline)
    )
