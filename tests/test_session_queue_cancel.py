"""Tests for prompt queueing, cancellation and pi exit handling."""

from __future__ import annotations

import asyncio

import pytest

from pi_acp.auth import AuthRequiredError
from pi_acp.rpc.errors import PiRpcCommandError, PiRpcProcessExitedError
from pi_acp.session import PiAcpSession, StopReason
from tests.utils import FakeConnection, FakePiProcess, settle


@pytest.fixture
def session(proc: FakePiProcess, conn: FakeConnection, tmp_path) -> PiAcpSession:
    return PiAcpSession("s1", str(tmp_path), proc, conn)


async def start(session: PiAcpSession, message: str) -> asyncio.Task:
    task = asyncio.create_task(session.prompt(message))
    await settle()
    return task


# =============================================================================
# Queueing
# =============================================================================


class TestQueue:
    @pytest.mark.asyncio
    async def test_second_prompt_waits_for_first(self, session, proc, conn):
        first = await start(session, "one")
        second = await start(session, "two")

        assert [p["message"] for p in proc.prompts] == ["one"]
        assert session.queue_depth == 1
        assert "Queued message (position 1)." in conn.texts()
        assert conn.queue_meta()[-1] == {"queueDepth": 1, "running": True}

        proc.emit({"type": "agent_end"})
        assert await asyncio.wait_for(first, timeout=2) is StopReason.END_TURN
        await settle()

        assert [p["message"] for p in proc.prompts] == ["one", "two"]
        assert "Starting queued message. (0 remaining)" in conn.texts()
        assert not second.done()

        proc.emit({"type": "agent_end"})
        assert await asyncio.wait_for(second, timeout=2) is StopReason.END_TURN
        await settle()
        assert conn.queue_meta()[-1] == {"queueDepth": 0, "running": False}

    @pytest.mark.asyncio
    async def test_queue_positions(self, session, conn):
        await start(session, "one")
        await start(session, "two")
        await start(session, "three")

        assert conn.texts() == ["Queued message (position 1).", "Queued message (position 2)."]
        assert session.queue_depth == 2

    @pytest.mark.asyncio
    async def test_prompts_run_in_fifo_order(self, session, proc):
        await start(session, "one")
        tasks = [await start(session, m) for m in ("two", "three")]

        for _ in range(3):
            proc.emit({"type": "agent_end"})
            await settle()

        await asyncio.wait_for(asyncio.gather(*tasks), timeout=2)
        assert [p["message"] for p in proc.prompts] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_attachments_forwarded(self, session, proc):
        image = {"id": "i1", "type": "image", "content": "AAAA"}
        task = asyncio.create_task(session.prompt("look", [image]))
        await settle()
        proc.emit({"type": "agent_end"})
        await asyncio.wait_for(task, timeout=2)

        assert proc.prompts == [{"message": "look", "attachments": [image]}]

    @pytest.mark.asyncio
    async def test_startup_info_sent_once_first(self, session, proc, conn):
        session.set_startup_info("pi-acp 0.1.0")

        for _ in range(2):
            task = await start(session, "hi")
            proc.emit({"type": "agent_end"})
            await asyncio.wait_for(task, timeout=2)

        assert conn.kinds()[0] == "agent_message_chunk"
        assert conn.texts() == ["pi-acp 0.1.0"]


# =============================================================================
# Cancellation
# =============================================================================


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_clears_queue_and_aborts(self, session, proc, conn):
        first = await start(session, "one")
        second = await start(session, "two")

        await session.cancel()
        await settle()

        assert second.done()
        assert second.result() is StopReason.CANCELLED
        assert proc.abort_count == 1
        assert "Cleared queued prompts." in conn.texts()
        assert conn.queue_meta()[-1] == {"queueDepth": 0, "running": True}

        proc.emit({"type": "agent_end"})
        assert await asyncio.wait_for(first, timeout=2) is StopReason.CANCELLED
        await settle()
        assert [p["message"] for p in proc.prompts] == ["one"]
        assert conn.queue_meta()[-1] == {"queueDepth": 0, "running": False}

    @pytest.mark.asyncio
    async def test_cancel_while_idle_is_noop(self, session, proc, conn):
        await session.cancel()
        await settle()

        assert proc.abort_count == 0
        assert conn.updates == []

    @pytest.mark.asyncio
    async def test_abort_failure_is_swallowed(self, session, proc):
        proc.abort_error = PiRpcCommandError("abort", "nothing to abort")
        task = await start(session, "one")

        await session.cancel()

        proc.emit({"type": "agent_end"})
        assert await asyncio.wait_for(task, timeout=2) is StopReason.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_flag_resets_for_next_turn(self, session, proc):
        task = await start(session, "one")
        await session.cancel()
        proc.emit({"type": "agent_end"})
        await asyncio.wait_for(task, timeout=2)

        task = await start(session, "two")
        assert not session.cancel_requested
        proc.emit({"type": "agent_end"})
        assert await asyncio.wait_for(task, timeout=2) is StopReason.END_TURN


# =============================================================================
# Failures
# =============================================================================


class TestPromptFailure:
    @pytest.mark.asyncio
    async def test_rejected_prompt_ends_with_error(self, session, proc):
        proc.prompt_error = PiRpcCommandError("prompt", "model overloaded")

        reason = await asyncio.wait_for(session.prompt("one"), timeout=2)

        assert reason is StopReason.ERROR
        assert not session.running

    @pytest.mark.asyncio
    async def test_auth_failure_raises_auth_required(self, session, proc):
        proc.prompt_error = PiRpcCommandError("prompt", "401 Unauthorized: invalid api key")

        with pytest.raises(AuthRequiredError):
            await asyncio.wait_for(session.prompt("one"), timeout=2)

    @pytest.mark.asyncio
    async def test_cancelled_failure_is_not_auth(self, session, proc):
        proc.prompt_error = PiRpcCommandError("prompt", "401 Unauthorized")
        task = asyncio.create_task(session.prompt("one"))
        await asyncio.sleep(0)

        await session.cancel()

        assert await asyncio.wait_for(task, timeout=2) is StopReason.CANCELLED

    @pytest.mark.asyncio
    async def test_failure_starts_next_queued(self, session, proc):
        first = await start(session, "one")
        second = await start(session, "two")
        # The first prompt was already accepted; fail only the next one
        proc.prompt_error = PiRpcCommandError("prompt", "model overloaded")

        proc.emit({"type": "agent_end"})
        assert await asyncio.wait_for(first, timeout=2) is StopReason.END_TURN
        assert await asyncio.wait_for(second, timeout=2) is StopReason.ERROR
        assert [p["message"] for p in proc.prompts] == ["one", "two"]


class TestProcessExit:
    @pytest.mark.asyncio
    async def test_exit_fails_active_and_queued(self, session, proc):
        first = await start(session, "one")
        second = await start(session, "two")

        proc.exit(1)

        assert await asyncio.wait_for(first, timeout=2) is StopReason.ERROR
        assert await asyncio.wait_for(second, timeout=2) is StopReason.ERROR
        assert session.exited
        assert [p["message"] for p in proc.prompts] == ["one"]

    @pytest.mark.asyncio
    async def test_exit_while_sending_prompt(self, session, proc):
        proc.prompt_error = PiRpcProcessExitedError(1)
        task = asyncio.create_task(session.prompt("one"))
        await asyncio.sleep(0)
        proc.exit(1)

        assert await asyncio.wait_for(task, timeout=2) is StopReason.ERROR

    @pytest.mark.asyncio
    async def test_exit_when_idle(self, session, proc, conn):
        proc.exit(None, "SIGTERM")
        await settle()

        assert session.exited
        assert conn.updates == []


class TestDispose:
    @pytest.mark.asyncio
    async def test_dispose_cancels_everything(self, session, proc):
        first = await start(session, "one")
        second = await start(session, "two")

        session.dispose()

        assert await asyncio.wait_for(first, timeout=2) is StopReason.CANCELLED
        assert await asyncio.wait_for(second, timeout=2) is StopReason.CANCELLED
        assert proc.disposed

    @pytest.mark.asyncio
    async def test_events_after_dispose_ignored(self, session, proc, conn):
        session.dispose()
        before = len(conn.updates)

        proc.emit({"type": "message_update", "assistantMessageEvent": {"type": "text_delta", "delta": "x"}})
        await settle()

        assert len(conn.updates) == before
