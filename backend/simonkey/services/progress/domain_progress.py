"""
Domain Progress Calculator

Computes how many of a notebook's concepts a learner has dominated, is
learning, or has not started.

Learning states are read in sequential batches of
settings.DOMAIN_PROGRESS_BATCH_SIZE, each batch fanned out concurrently.
A failed or invalid read degrades only its own concept to NOT_STARTED and marks the
result PARTIAL; a failure of the concept listing returns a DEGRADED result.

Usage:
    from simonkey.services.progress.domain_progress import DomainProgressService

    service = DomainProgressService(ConceptStore(), LearningStateStore())
    progress = await service.compute_domain_progress("notebook-1", "user-1")
    print(progress.dominated, progress.percentage)
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from simonkey.config import settings
from simonkey.db.stores import ConceptStore, LearningStateStore
from simonkey.enums.progress import ComputationStatus, MasteryLevel
from simonkey.models.progress import DomainProgress, LearningSnapshot
from simonkey.services.progress.cancellation import (
    CancellationToken,
    ComputationCancelled,
    raise_if_cancelled,
)
from simonkey.services.progress.classification import classify_learning_state

logger = logging.getLogger(__name__)


class DomainProgressService:
    """
    Service for per-notebook mastery breakdowns.

    Never raises for data or store errors; cancellation propagates.
    """

    def __init__(
        self,
        concept_store: ConceptStore,
        learning_state_store: LearningStateStore,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the domain progress service.

        Args:
            concept_store: Source of a notebook's concepts.
            learning_state_store: Source of per-concept learning state.
            batch_size: Concurrent learning-state reads per batch.
        """
        self.concept_store = concept_store
        self.learning_state_store = learning_state_store
        self.batch_size = max(1, batch_size or settings.DOMAIN_PROGRESS_BATCH_SIZE)

    async def compute_domain_progress(
        self,
        notebook_id: str,
        user_id: Optional[str],
        token: Optional[CancellationToken] = None,
    ) -> DomainProgress:
        """
        Classify every concept of a notebook for one learner.

        Args:
            notebook_id: Notebook to evaluate.
            user_id: Learner; when empty, every concept counts as not started.
            token: Optional cancellation token.

        Returns:
            DomainProgress whose counts always sum to total.
        """
        raise_if_cancelled(token)

        try:
            concepts = await self.concept_store.list_concepts(notebook_id)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to list concepts for notebook {notebook_id}: {e}")
            return DomainProgress(
                notebook_id=notebook_id,
                status=ComputationStatus.DEGRADED,
                error=str(e),
            )

        total = len(concepts)
        if total == 0:
            return DomainProgress(notebook_id=notebook_id)

        if not user_id:
            return DomainProgress(notebook_id=notebook_id, total=total, not_started=total)

        try:
            snapshots, failed_reads = await self._load_snapshots(
                user_id, [concept.id for concept in concepts], token
            )
            counts = {level: 0 for level in MasteryLevel}
            for snapshot in snapshots:
                counts[classify_learning_state(snapshot)] += 1
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(
                f"Domain progress failed for notebook {notebook_id}, user {user_id}: {e}"
            )
            return DomainProgress(
                notebook_id=notebook_id,
                total=total,
                not_started=total,
                status=ComputationStatus.DEGRADED,
                error=str(e),
            )

        return DomainProgress(
            notebook_id=notebook_id,
            total=total,
            dominated=counts[MasteryLevel.DOMINATED],
            learning=counts[MasteryLevel.LEARNING],
            not_started=counts[MasteryLevel.NOT_STARTED],
            failed_reads=failed_reads,
            status=ComputationStatus.PARTIAL if failed_reads else ComputationStatus.COMPUTED,
        )

    async def _load_snapshots(
        self,
        user_id: str,
        concept_ids: list[str],
        token: Optional[CancellationToken],
    ) -> tuple[list[LearningSnapshot], int]:
        """Read learning states batch by batch, defaulting failed reads."""
        snapshots: list[LearningSnapshot] = []
        failed_reads = 0

        for start in range(0, len(concept_ids), self.batch_size):
            raise_if_cancelled(token)
            batch = concept_ids[start : start + self.batch_size]
            results = await asyncio.gather(
                *[
                    self.learning_state_store.get_learning_state(user_id, concept_id)
                    for concept_id in batch
                ],
                return_exceptions=True,
            )

            for concept_id, result in zip(batch, results):
                if isinstance(result, (ComputationCancelled, asyncio.CancelledError)):
                    raise result
                if not isinstance(result, BaseException):
                    try:
                        snapshots.append(LearningSnapshot.from_row(result))
                        continue
                    except ValidationError as e:
                        result = e
                logger.warning(
                    f"Learning state unusable for concept {concept_id}, "
                    f"user {user_id}: {result}"
                )
                failed_reads += 1
                snapshots.append(LearningSnapshot.empty())

        raise_if_cancelled(token)
        return snapshots, failed_reads
