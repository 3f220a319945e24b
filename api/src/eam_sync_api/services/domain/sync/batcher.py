#!/usr/bin/env python3
"""Bounded, best-effort transactional batching of graph mutations."""

import logging
from dataclasses import dataclass

from neo4j.exceptions import DriverError, Neo4jError, ServiceUnavailable, SessionExpired

from .errors import FatalConnectionError, GraphWriteError
from .operations import MutationOp, describe, to_statement

logger = logging.getLogger(__name__)

CONNECTION_ERRORS = (ServiceUnavailable, SessionExpired)


@dataclass
class BatchStats:
    batches: int = 0
    executed: int = 0
    failed: int = 0


class GraphMutationBatcher:
    """Accumulates mutation operations and commits them in bounded batches.

    Operations are queued in emission order. When the queue reaches
    batch_size, or when a processing stage calls flush(), one transaction
    is opened, every queued operation is executed and the transaction is
    committed.

    A failing statement does not discard the statements around it. The
    failed transaction is rolled back, the failure is logged as a
    GraphWriteError, and the statements that had succeeded are replayed
    together with the rest of the batch in a fresh transaction. MERGE
    statements are idempotent so replaying them is safe. Each replay costs
    as many statements as have succeeded so far, so after max_retries
    failures in one batch the remaining operations are committed one
    transaction each. The queue is always cleared after a flush.
    """

    def __init__(self, writer, log, batch_size: int = 500, max_retries: int = 3):
        """
        Args:
            writer: Graph writer exposing begin_transaction() (a neo4j Session)
            log: Run logger used for INFO/WARN/ERROR lines
            batch_size: Number of queued operations that triggers a flush
            max_retries: Failed statements tolerated per batch before falling
                back to one transaction per operation
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.writer = writer
        self.log = log
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.stats = BatchStats()
        self._queue: list[MutationOp] = []

    def __len__(self) -> int:
        return len(self._queue)

    def add(self, op: MutationOp, description: str = "") -> None:
        self._queue.append(op)
        if len(self._queue) >= self.batch_size:
            self.log.info(f"Batch limit reached ({self.batch_size}). Executing batch for: {description or 'sync'}")
            self.flush(description)

    def extend(self, ops, description: str = "") -> None:
        for op in ops:
            self.add(op, description)

    def flush(self, description: str = "") -> int:
        """Commit every queued operation.

        Returns:
            Number of operations committed

        Raises:
            FatalConnectionError: If the graph store cannot be reached at all
        """
        if not self._queue:
            return 0

        pending = self._queue
        self._queue = []
        label = description or "sync"
        self.log.info(f"Executing batch ({len(pending)} operations) for: {label}")

        committed = self._commit(pending, label)
        self.stats.batches += 1
        self.stats.executed += committed
        self.stats.failed += len(pending) - committed
        return committed

    def _commit(self, ops: list[MutationOp], label: str) -> int:
        applied: list[MutationOp] = []
        remaining = list(ops)
        retries = 0

        while True:
            try:
                tx = self.writer.begin_transaction()
            except CONNECTION_ERRORS as e:
                raise FatalConnectionError(f"Graph store unavailable: {e}") from e

            failed_op = None
            try:
                succeeded = []
                for op in applied + remaining:
                    try:
                        self._run(tx, op)
                    except GraphWriteError as e:
                        failed_op = op
                        self.log.error(f"Failed executing {describe(op)} in batch [{label}]: {e}")
                        break
                    succeeded.append(op)

                if failed_op is None:
                    tx.commit()
                    logger.debug(f"Batch committed: {label}")
                    return len(succeeded)
            except CONNECTION_ERRORS as e:
                raise FatalConnectionError(f"Graph store unavailable: {e}") from e
            except (Neo4jError, DriverError) as e:
                self.log.error(f"Graph transaction failed for batch [{label}]: {e}")
                return 0
            finally:
                tx.close()

            # Drop the failed operation and retry everything else in a new transaction
            ordered = applied + remaining
            remaining = ordered[len(succeeded) + 1:]
            applied = succeeded

            retries += 1
            if retries > self.max_retries:
                pending = applied + remaining
                self.log.warn(
                    f"Batch [{label}] had {retries} failed statements, "
                    f"committing the remaining {len(pending)} operations one by one"
                )
                return self._commit_each(pending, label)

    def _commit_each(self, ops: list[MutationOp], label: str) -> int:
        committed = 0
        for op in ops:
            try:
                tx = self.writer.begin_transaction()
            except CONNECTION_ERRORS as e:
                raise FatalConnectionError(f"Graph store unavailable: {e}") from e

            try:
                self._run(tx, op)
                tx.commit()
                committed += 1
            except GraphWriteError as e:
                self.log.error(f"Failed executing {describe(op)} in batch [{label}]: {e}")
            except CONNECTION_ERRORS as e:
                raise FatalConnectionError(f"Graph store unavailable: {e}") from e
            except (Neo4jError, DriverError) as e:
                self.log.error(f"Graph transaction failed for {describe(op)} in batch [{label}]: {e}")
            finally:
                tx.close()
        return committed

    @staticmethod
    def _run(tx, op: MutationOp) -> None:
        statement, parameters = to_statement(op)
        try:
            tx.run(statement, parameters).consume()
        except CONNECTION_ERRORS:
            raise
        except (Neo4jError, DriverError) as e:
            raise GraphWriteError(str(e), statement) from e
