"""
Tests for the background invite expiry sweeper.
"""

import asyncio

import pytest

from trustcircle.models.invite import InviteStatus
from trustcircle.services.invite_sweeper import InviteExpirySweeper
from trustcircle.utils.exceptions import StoreError


class FailingLedger:
    """Ledger whose sweep always fails."""

    def __init__(self):
        self.calls = 0

    async def expire_old_invites(self) -> int:
        self.calls += 1
        raise StoreError("database is locked")


@pytest.mark.asyncio
class TestInviteExpirySweeper:
    """Tests for single passes and the worker loop."""

    async def test_run_once_expires_overdue(self, circle, users, clock):
        invite = await circle.create_invite(
            sender_id=users["alice"].id,
            invitee_email=users["bob"].email,
            invitee_name="Bob",
            relationship_to_sender="son",
        )
        clock.advance(days=31)

        assert await circle.sweeper.run_once() == 1
        assert circle.sweeper.last_expired_count == 1
        assert (await circle.invites.get_invite(invite.id)).status == InviteStatus.EXPIRED

    async def test_failures_are_logged_not_raised(self):
        ledger = FailingLedger()
        sweeper = InviteExpirySweeper(ledger, interval_seconds=3600)

        assert await sweeper.run_once() == 0
        assert sweeper.last_expired_count is None
        assert ledger.calls == 1

    async def test_start_stop_worker(self, circle):
        """Test starting and stopping the background worker."""
        circle.start_sweeper()

        assert circle.sweeper.is_running is True

        # Let the first pass run
        await asyncio.sleep(0.05)
        assert circle.sweeper.last_expired_count == 0

        await circle.stop_sweeper()

        assert circle.sweeper.is_running is False

    async def test_worker_survives_failures(self):
        ledger = FailingLedger()
        sweeper = InviteExpirySweeper(ledger, interval_seconds=0.01)

        sweeper.start()
        await asyncio.sleep(0.1)

        assert sweeper.is_running is True
        assert ledger.calls >= 2

        await sweeper.stop()
        assert sweeper.is_running is False

    async def test_start_is_idempotent(self):
        sweeper = InviteExpirySweeper(FailingLedger(), interval_seconds=3600)

        sweeper.start()
        task = sweeper._worker_task
        sweeper.start()

        assert sweeper._worker_task is task
        await sweeper.stop()

    async def test_stop_without_start(self):
        sweeper = InviteExpirySweeper(FailingLedger())
        await sweeper.stop()
        assert sweeper.is_running is False
