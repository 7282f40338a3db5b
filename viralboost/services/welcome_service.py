"""
Snapshots sent to a connection right after it joins the chat.
"""

from viralboost.errors import StoreError
from viralboost.infrastructure.observability.logging import get_logger
from viralboost.realtime.events import PostsHistoryEvent, ProjectsHistoryEvent, WireModel
from viralboost.services import feed_service, showcase_service
from viralboost.store.base import DocumentStore

logger = get_logger(__name__)


class WelcomeSnapshots:
    """Top projects and newest posts; a snapshot that fails to load is skipped."""

    def __init__(self, store: DocumentStore, size: int = 50):
        self.store = store
        self.size = size

    async def __call__(self) -> list[WireModel]:
        events: list[WireModel] = []

        try:
            projects = await showcase_service.list_projects(self.store, limit=self.size)
            events.append(ProjectsHistoryEvent(projects=projects))
        except StoreError as e:
            logger.warning("Projects snapshot unavailable", error=str(e))

        try:
            posts = await feed_service.list_posts(self.store, limit=self.size)
            events.append(PostsHistoryEvent(posts=posts))
        except StoreError as e:
            logger.warning("Posts snapshot unavailable", error=str(e))

        return events
