import psycopg
import pytest

from app.db.helpers import DatabaseError, _wrap_error, with_db_retry


def test_connection_errors_are_recoverable():
    assert _wrap_error(psycopg.OperationalError("server closed"), "fetch_one").recoverable is True
    assert _wrap_error(psycopg.errors.UndefinedTable("no table"), "fetch_one").recoverable is False


@pytest.mark.asyncio
async def test_retry_recovers_from_transient_error():
    calls = {"count": 0}

    @with_db_retry(max_retries=2, base_delay=0)
    async def read():
        calls["count"] += 1
        if calls["count"] < 2:
            raise DatabaseError("server closed", operation="read", recoverable=True)
        return "row"

    assert await read() == "row"
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried():
    calls = {"count": 0}

    @with_db_retry(max_retries=3, base_delay=0)
    async def read():
        calls["count"] += 1
        raise DatabaseError("syntax error", operation="read", recoverable=False)

    with pytest.raises(DatabaseError):
        await read()

    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    calls = {"count": 0}

    @with_db_retry(max_retries=2, base_delay=0)
    async def read():
        calls["count"] += 1
        raise DatabaseError("server closed", operation="read", recoverable=True)

    with pytest.raises(DatabaseError) as exc_info:
        await read()

    assert calls["count"] == 3
    assert exc_info.value.recoverable is False
