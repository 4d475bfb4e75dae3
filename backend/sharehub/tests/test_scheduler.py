import asyncio
import uuid

from sharehub.scheduler import ReplyScheduler, delay_range_from_env


def test_reply_runs_after_delay():
    calls = []

    async def scenario():
        scheduler = ReplyScheduler(lambda uid, text: calls.append((uid, text)), delay_range=(0.01, 0.02))
        uid = uuid.uuid4()
        task = scheduler.schedule(uid, "hello")
        assert task is not None
        assert scheduler.pending == 1
        await scheduler.drain()
        assert scheduler.pending == 0
        return uid

    uid = asyncio.run(scenario())
    assert calls == [(uid, "hello")]


def test_handler_failure_goes_to_dead_letters():
    def failing(uid, text):
        raise RuntimeError("insert failed")

    async def scenario():
        scheduler = ReplyScheduler(failing, delay_range=(0, 0))
        scheduler.schedule(uuid.uuid4(), "hi")
        await scheduler.drain()
        return scheduler

    scheduler = asyncio.run(scenario())
    assert len(scheduler.dead_letters) == 1
    letter = scheduler.dead_letters[0]
    assert letter.message == "hi"
    assert "insert failed" in letter.error


def test_shutdown_cancels_pending_replies():
    calls = []

    async def scenario():
        scheduler = ReplyScheduler(lambda uid, text: calls.append(text), delay_range=(10, 10))
        scheduler.schedule(uuid.uuid4(), "never delivered")
        await asyncio.sleep(0)
        await scheduler.shutdown()
        assert scheduler.pending == 0
        assert scheduler.schedule(uuid.uuid4(), "too late") is None

    asyncio.run(scenario())
    assert calls == []


def test_delay_range_from_env(monkeypatch):
    monkeypatch.setenv("CHAT_REPLY_DELAY_MIN", "2")
    monkeypatch.setenv("CHAT_REPLY_DELAY_MAX", "1")
    assert delay_range_from_env() == (2.0, 2.0)
    monkeypatch.delenv("CHAT_REPLY_DELAY_MIN")
    monkeypatch.delenv("CHAT_REPLY_DELAY_MAX")
    assert delay_range_from_env() == (1.0, 3.0)
