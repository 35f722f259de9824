"""
Tests for PooledSession and ManagedTransaction.

Covers deadlines, transaction state transitions and translation of driver
exceptions into the graphdata hierarchy.
"""

import pytest
from neo4j import exceptions as neo4j_exceptions

from graphdata.db import TxState
from graphdata.exceptions import (
    ErrorKind,
    QueryError,
    TimeoutError,
    TransactionStateError,
    TransientError,
    classify_error,
)
from graphdata.query import q

LOOKUP = q.match_node("u", "User", {"id": "u1"}).ret("u").one

# =============================================================================
# Auto-commit Queries
# =============================================================================


@pytest.mark.asyncio
async def test_query_deadline_raises_retryable_timeout(manager, fake_driver):
    fake_driver.query_delay = 0.5

    async with manager.session() as session:
        with pytest.raises(TimeoutError) as exc_info:
            await session.run(LOOKUP, timeout=0.01)

    assert exc_info.value.operation == "query"
    assert not exc_info.value.during_commit
    assert classify_error(exc_info.value) is ErrorKind.TRANSIENT


@pytest.mark.asyncio
async def test_driver_transient_error_is_translated(manager, fake_driver):
    fake_driver.fail_next_run(neo4j_exceptions.TransientError("deadlock detected"))

    async with manager.session() as session:
        with pytest.raises(TransientError) as exc_info:
            await session.run(LOOKUP)

    assert isinstance(exc_info.value.cause, neo4j_exceptions.TransientError)


@pytest.mark.asyncio
async def test_driver_client_error_becomes_query_error(manager, fake_driver):
    fake_driver.fail_next_run(neo4j_exceptions.ClientError("Invalid input 'MATC'"))

    async with manager.session() as session:
        with pytest.raises(QueryError) as exc_info:
            await session.run(LOOKUP)

    assert "MATCH (u:User" in exc_info.value.context["query"]
    assert classify_error(exc_info.value) is ErrorKind.PERMANENT


@pytest.mark.asyncio
async def test_session_cannot_be_used_after_return(manager):
    async with manager.session() as session:
        pass

    with pytest.raises(TransactionStateError):
        await session.run(LOOKUP)


# =============================================================================
# Explicit Transactions
# =============================================================================


@pytest.mark.asyncio
async def test_transaction_moves_from_pending_to_committed(manager, fake_driver, responder):
    responder.push([{"u": {"id": "u1"}}])

    async with manager.session() as session:
        tx = await session.begin_transaction()
        assert tx.state is TxState.PENDING

        row = await tx.run(LOOKUP)
        assert tx.state is TxState.EXECUTING
        assert row == {"u": {"id": "u1"}}

        await tx.commit()
        assert tx.state is TxState.COMMITTED

    assert fake_driver.commits == 1
    assert fake_driver.transaction_queries == [
        ("MATCH (u:User {id: $u_id})\nRETURN u", {"u_id": "u1"})
    ]


@pytest.mark.asyncio
async def test_terminal_transaction_rejects_further_use(manager):
    async with manager.session() as session:
        tx = await session.begin_transaction()
        await tx.commit()

        with pytest.raises(TransactionStateError):
            await tx.run(LOOKUP)
        with pytest.raises(TransactionStateError):
            await tx.commit()
        with pytest.raises(TransactionStateError):
            await tx.rollback()


@pytest.mark.asyncio
async def test_rollback_is_idempotent(manager, fake_driver):
    async with manager.session() as session:
        tx = await session.begin_transaction()
        await tx.rollback()
        await tx.rollback()

        assert tx.state is TxState.ROLLED_BACK

    assert fake_driver.rollbacks == 1


@pytest.mark.asyncio
async def test_commit_deadline_is_not_retryable(manager, fake_driver):
    fake_driver.commit_delay = 0.5

    async with manager.session() as session:
        tx = await session.begin_transaction()
        with pytest.raises(TimeoutError) as exc_info:
            await tx.commit(timeout=0.01)

    assert exc_info.value.during_commit
    assert classify_error(exc_info.value) is ErrorKind.PERMANENT
    assert tx.state is TxState.ROLLED_BACK


@pytest.mark.asyncio
async def test_run_text_executes_literal_statement(manager, fake_driver):
    async with manager.session() as session:
        tx = await session.begin_transaction()
        rows = await tx.run_text("RETURN $x AS x", {"x": 1})
        await tx.commit()

    assert rows == []
    assert fake_driver.transaction_queries == [("RETURN $x AS x", {"x": 1})]
