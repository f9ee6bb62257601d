"""The project currently opened in the wiki viewer (session-scoped)."""

import logging
from typing import Optional

from pydantic import ValidationError

from glwiki.models import Project
from glwiki.store.base import KeyValueStore

logger = logging.getLogger(__name__)

SELECTED_PROJECT_KEY = "selected_project"


def remember_project(session_store: KeyValueStore, project: Project) -> None:
    session_store.set(SELECTED_PROJECT_KEY, project.model_dump_json())


def forget_project(session_store: KeyValueStore) -> None:
    session_store.remove(SELECTED_PROJECT_KEY)


def recall_project(session_store: KeyValueStore, project_id: int) -> Optional[Project]:
    """Return the remembered project if it is ``project_id``.

    Anything else (nothing stored, unreadable, another project) clears the
    entry and returns None so the caller goes back to the project list.
    """
    raw = session_store.get(SELECTED_PROJECT_KEY)
    if raw is None:
        return None

    try:
        project = Project.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Discarding unreadable selected project: %s", e)
        forget_project(session_store)
        return None

    if project.id != project_id:
        logger.info("Selected project %s does not match requested %s", project.id, project_id)
        forget_project(session_store)
        return None
    return project
