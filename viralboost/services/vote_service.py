"""
Vote guard: at most one vote per (project, voter).

The voter set is the source of truth. Under a per-project lock the guard
records the voter, then writes the set's cardinality into the project's
``votes`` counter, so the counter can never drift from the set.
"""

from dataclasses import dataclass

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.errors import Conflict
from viralboost.store.base import Document, DocumentStore
from viralboost.utils.locks import KeyedLock

logger = get_logger(__name__)

ALREADY_VOTED = "already_voted"


@dataclass(frozen=True)
class VoteResult:
    accepted: bool
    votes: int
    reason: str | None = None


class VoteGuard:
    def __init__(self, store: DocumentStore):
        self.store = store
        self._locks = KeyedLock()

    async def voters(self, target_id: str) -> list[str]:
        record = await self.store.votes.get(target_id)
        return list(record.get("voters", [])) if record else []

    async def try_vote(self, target_id: str, voter_id: str) -> VoteResult:
        """
        Record ``voter_id``'s vote on ``target_id``.

        Returns ``VoteResult(accepted=False, reason="already_voted")`` with the
        unchanged count for a repeat voter. Store failures propagate as
        ``StoreError`` and nothing is broadcast by the caller.
        """
        async with self._locks.hold(target_id):
            voters = await self.voters(target_id)
            if voter_id in voters:
                logger.info("Duplicate vote rejected", project_id=target_id, voter_id=voter_id)
                return VoteResult(accepted=False, votes=len(voters), reason=ALREADY_VOTED)

            voters.append(voter_id)
            await self.store.votes.upsert(target_id, {"id": target_id, "voters": voters})

            votes = len(voters)
            if await self.store.projects.get(target_id) is not None:
                await self.store.projects.merge(target_id, {"votes": votes})
            else:
                logger.warning("Vote recorded for unknown project", project_id=target_id)

        logger.info("Vote accepted", project_id=target_id, voter_id=voter_id, votes=votes)
        return VoteResult(accepted=True, votes=votes)

    async def register(self, project: Document) -> Document:
        """
        Store a new vote target. Its counter starts at the size of any voter
        set already recorded under the same id.

        Raises Conflict if a project with that id already exists.
        """
        target_id = project["id"]
        async with self._locks.hold(target_id):
            if await self.store.projects.get(target_id) is not None:
                raise Conflict("Projet déjà existant")
            project = {**project, "votes": len(await self.voters(target_id))}
            await self.store.projects.upsert(target_id, project)
        return project

    async def forget(self, target_id: str) -> None:
        """Remove a project together with its voter set."""
        async with self._locks.hold(target_id):
            await self.store.projects.remove(target_id)
            await self.store.votes.remove(target_id)
