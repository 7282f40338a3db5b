"""
Project showcase: listing by votes, publication, voting and admin removal.
"""

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.events import NewProjectEvent, ProjectDeletedEvent, VoteUpdateEvent
from viralboost.services.broadcaster import Broadcaster
from viralboost.services.vote_service import VoteGuard, VoteResult
from viralboost.store.base import Document, DocumentStore
from viralboost.utils.ids import new_id, utc_now_iso

logger = get_logger(__name__)

LISTING_LIMIT = 50


async def list_projects(store: DocumentStore, limit: int = LISTING_LIMIT) -> list[Document]:
    """Most voted first; ties go to the newest project."""
    return await store.projects.list(
        order_by=("votes", "createdAt"), descending=True, limit=limit
    )


async def create_project(
    store: DocumentStore,
    broadcaster: Broadcaster,
    guard: VoteGuard,
    fields: Document,
    max_projects: int = 200,
) -> Document:
    """Publish a project. Reusing the id of an existing project raises Conflict."""
    project = await guard.register(
        {
            **fields,
            "views": 0,
            "createdAt": utc_now_iso(),
            "id": fields.get("id") or new_id("proj"),
        }
    )
    await store.projects.trim(max_projects)

    logger.info("Project published", project_id=project["id"])
    await broadcaster.publish(NewProjectEvent(project=project))
    return project


async def vote(
    guard: VoteGuard, broadcaster: Broadcaster, project_id: str, user_id: str
) -> VoteResult:
    result = await guard.try_vote(project_id, user_id)
    if result.accepted:
        await broadcaster.publish(VoteUpdateEvent(project_id=project_id, votes=result.votes))
    return result


async def delete_project(guard: VoteGuard, broadcaster: Broadcaster, project_id: str) -> None:
    """Remove a project and its votes. The deletion is broadcast even if it was already gone."""
    await guard.forget(project_id)
    logger.info("Project deleted", project_id=project_id)
    await broadcaster.publish(ProjectDeletedEvent(project_id=project_id))
