"""
Integration tests for the conversation service.

Events go through the session lock, the store and the dispatcher exactly
as they do when delivered by the bot.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.messages import BUSY, CANCELLED, GENERAL_ERROR, NOTHING_TO_CANCEL, RESTART_FLOW
from app.models.api import TransferResult
from app.models.flow import FlowKind, NoFlow, SendFlow, SendStep
from app.models.reply import Reply
from app.repositories.session_repository import InMemorySessionStore
from app.services.conversation_service import ConversationService
from app.services.dispatcher import CallbackEvent, CommandEvent, TextEvent
from app.services.session_service import SessionService
from app.utils.exceptions import SessionConflictError, UpstreamUnavailable
from app.utils.locks import KeyedLock


USER_ID = "100"


class ConflictingStore(InMemorySessionStore):
    """Store whose first `failures` writes hit a concurrent update."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.writes = 0

    async def put(self, session, expected_version):
        self.writes += 1
        if self.writes <= self.failures:
            raise SessionConflictError(session.user_id, expected_version)
        return await super().put(session, expected_version)


class SlowReadStore(InMemorySessionStore):
    """Store whose reads yield to the event loop, widening race windows."""

    def __init__(self) -> None:
        super().__init__()
        self.conflicts = 0

    async def get(self, user_id):
        await asyncio.sleep(0.02)
        return await super().get(user_id)

    async def put(self, session, expected_version):
        try:
            return await super().put(session, expected_version)
        except SessionConflictError:
            self.conflicts += 1
            raise


def build_conversation(
    session_service, auth_api, kyc_api, transfer_api, wallet_api, notifier, settings
):
    return ConversationService.build(
        settings=settings,
        session_service=session_service,
        auth_api=auth_api,
        kyc_api=kyc_api,
        transfer_api=transfer_api,
        wallet_api=wallet_api,
        points_api=AsyncMock(),
        notifier=notifier,
    )


@pytest.mark.integration
class TestConversationFlows:
    """Complete conversations against the in-memory store."""

    @pytest.mark.asyncio
    async def test_login_then_send(self, conversation, store, auth_api, kyc_api, transfer_api):
        replies = await conversation.handle(CommandEvent(USER_ID, "/login"))
        assert "enter your email" in replies[0].text

        await conversation.handle(TextEvent(USER_ID, "alice@example.com"))
        replies = await conversation.handle(TextEvent(USER_ID, "123456"))
        assert "Login successful" in replies[0].text

        stored = await store.get(USER_ID)
        assert stored.auth.access_token == "token-1"
        assert stored.flow == NoFlow()

        await conversation.handle(CommandEvent(USER_ID, "/send"))
        kyc_api.get_status.assert_awaited_once()

        await conversation.handle(CallbackEvent(USER_ID, "method:email"))
        await conversation.handle(TextEvent(USER_ID, "bob@example.com"))
        await conversation.handle(TextEvent(USER_ID, "50"))
        replies = await conversation.handle(CallbackEvent(USER_ID, "network:polygon"))
        assert "Confirm Transaction" in replies[0].text

        stored = await store.get(USER_ID)
        assert stored.flow.step == SendStep.CONFIRM

        replies = await conversation.handle(CallbackEvent(USER_ID, "confirm_send"))
        assert "tr-1" in replies[0].text

        replies = await conversation.handle(CallbackEvent(USER_ID, "confirm_send"))
        assert replies[0].text == RESTART_FLOW
        transfer_api.submit.assert_awaited_once()
        assert (await store.get(USER_ID)).flow == NoFlow()

    @pytest.mark.asyncio
    async def test_cancel_mid_flow(self, conversation, store, stored_session):
        await conversation.handle(CommandEvent(USER_ID, "/send"))
        await conversation.handle(CallbackEvent(USER_ID, "method:wallet"))
        assert (await store.get(USER_ID)).flow.kind == FlowKind.SEND

        replies = await conversation.handle(CallbackEvent(USER_ID, "cancel"))

        assert replies[0].text == CANCELLED
        assert (await store.get(USER_ID)).flow == NoFlow()

    @pytest.mark.asyncio
    async def test_upstream_error_then_retry(
        self, conversation, store, stored_session, transfer_api
    ):
        transfer_api.quote.side_effect = UpstreamUnavailable("503")
        await conversation.handle(CommandEvent(USER_ID, "/send"))
        await conversation.handle(CallbackEvent(USER_ID, "method:email"))
        await conversation.handle(TextEvent(USER_ID, "bob@example.com"))
        await conversation.handle(TextEvent(USER_ID, "50"))

        replies = await conversation.handle(CallbackEvent(USER_ID, "network:polygon"))
        assert "retry" in replies[0].callback_data()
        assert (await store.get(USER_ID)).flow.step == SendStep.SELECT_NETWORK

        transfer_api.quote.side_effect = None
        await conversation.handle(CallbackEvent(USER_ID, "retry"))
        assert (await store.get(USER_ID)).flow.step == SendStep.CONFIRM

    @pytest.mark.asyncio
    async def test_ignored_event_still_creates_session(self, conversation, store):
        assert await conversation.handle(TextEvent("555", "hello")) == []
        assert await store.get("555") is not None


@pytest.mark.integration
class TestConcurrency:
    """Per-user serialisation and conflict handling."""

    @pytest.mark.asyncio
    async def test_events_of_one_user_are_serialised(
        self, conversation, stored_session, wallet_api
    ):
        active = 0
        peak = 0
        balances = wallet_api.list_balances.return_value

        async def slow_balances(token):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            return balances

        wallet_api.list_balances.side_effect = slow_balances

        results = await asyncio.gather(
            *(conversation.handle(CommandEvent(USER_ID, "/balance")) for _ in range(3))
        )

        assert peak == 1
        assert all("Your Balance" in replies[0].text for replies in results)

    @pytest.mark.asyncio
    async def test_users_run_in_parallel(
        self, conversation, session_service, session_factory, wallet_api
    ):
        await session_service.commit(session_factory("1"))
        await session_service.commit(session_factory("2"))
        active = 0
        peak = 0
        balances = wallet_api.list_balances.return_value

        async def slow_balances(token):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            return balances

        wallet_api.list_balances.side_effect = slow_balances

        await asyncio.gather(
            conversation.handle(CommandEvent("1", "/balance")),
            conversation.handle(CommandEvent("2", "/balance")),
        )

        assert peak == 2

    @pytest.mark.asyncio
    async def test_busy_on_lock_timeout(
        self, store, auth_api, kyc_api, transfer_api, wallet_api, notifier, settings
    ):
        lock = KeyedLock(timeout=0.05)
        conversation = build_conversation(
            SessionService(store, lock),
            auth_api, kyc_api, transfer_api, wallet_api, notifier, settings,
        )

        async with lock.hold(USER_ID):
            replies = await conversation.handle(CommandEvent(USER_ID, "/help"))

        assert replies[0].text == BUSY

    @pytest.mark.asyncio
    async def test_conflict_is_retried(
        self, auth_api, kyc_api, transfer_api, wallet_api, notifier, settings
    ):
        store = ConflictingStore(failures=1)
        conversation = build_conversation(
            SessionService(store, KeyedLock(timeout=1.0), conflict_retries=3),
            auth_api, kyc_api, transfer_api, wallet_api, notifier, settings,
        )

        replies = await conversation.handle(CommandEvent(USER_ID, "/start"))

        assert "Welcome" in replies[0].text
        assert store.writes == 2
        assert await store.get(USER_ID) is not None

    @pytest.mark.asyncio
    async def test_conflict_retries_exhausted(
        self, auth_api, kyc_api, transfer_api, wallet_api, notifier, settings
    ):
        store = ConflictingStore(failures=10)
        conversation = build_conversation(
            SessionService(store, KeyedLock(timeout=1.0), conflict_retries=3),
            auth_api, kyc_api, transfer_api, wallet_api, notifier, settings,
        )

        replies = await conversation.handle(CommandEvent(USER_ID, "/start"))

        assert replies == [Reply(text=GENERAL_ERROR)]
        assert store.writes == 3

    @pytest.mark.asyncio
    async def test_double_confirm_submits_once(
        self, conversation, store, stored_session, transfer_api
    ):
        await conversation.handle(CommandEvent(USER_ID, "/send"))
        await conversation.handle(CallbackEvent(USER_ID, "method:email"))
        await conversation.handle(TextEvent(USER_ID, "bob@example.com"))
        await conversation.handle(TextEvent(USER_ID, "50"))
        await conversation.handle(CallbackEvent(USER_ID, "network:polygon"))
        assert (await store.get(USER_ID)).flow.step == SendStep.CONFIRM

        async def slow_submit(kind, token, request):
            await asyncio.sleep(0.05)
            return TransferResult(transfer_id="tr-1", status="pending")

        transfer_api.submit.side_effect = slow_submit

        first, second = await asyncio.gather(
            conversation.handle(CallbackEvent(USER_ID, "confirm_send")),
            conversation.handle(CallbackEvent(USER_ID, "confirm_send")),
        )

        assert transfer_api.submit.await_count == 1
        texts = sorted([first[0].text, second[0].text], key=lambda text: text == RESTART_FLOW)
        assert "tr-1" in texts[0]
        assert texts[1] == RESTART_FLOW
        assert (await store.get(USER_ID)).flow == NoFlow()

    @pytest.mark.asyncio
    async def test_concurrent_events_match_a_serial_order(
        self, auth_api, kyc_api, transfer_api, wallet_api, notifier, settings, session_factory
    ):
        store = SlowReadStore()
        session_service = SessionService(store, KeyedLock(timeout=1.0), conflict_retries=3)
        await session_service.commit(session_factory())
        conversation = build_conversation(
            session_service, auth_api, kyc_api, transfer_api, wallet_api, notifier, settings
        )

        sent, cancelled = await asyncio.gather(
            conversation.handle(CommandEvent(USER_ID, "/send")),
            conversation.handle(CommandEvent(USER_ID, "/cancel")),
        )

        stored = await store.get(USER_ID)
        assert stored.version == 3
        assert store.conflicts == 0
        assert "method:email" in sent[0].callback_data()
        if cancelled[0].text == CANCELLED:
            # /send ran first
            assert stored.flow == NoFlow()
        else:
            assert cancelled[0].text == NOTHING_TO_CANCEL
            assert isinstance(stored.flow, SendFlow)
            assert stored.flow.step == SendStep.SELECT_METHOD
