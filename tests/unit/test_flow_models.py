"""
Unit tests for flow and session models.

Tests cover:
- Transition tables (allowed and refused moves)
- Required fields before confirmation
- Discriminated deserialisation of stored flows
"""

from decimal import Decimal

import pytest

from app.models.api import BankDetails
from app.models.flow import (
    BroadcastFlow,
    BroadcastStep,
    DepositFlow,
    FlowKind,
    InvalidTransition,
    LoginFlow,
    LoginStep,
    NoFlow,
    SendFlow,
    SendMethod,
    SendStep,
    WithdrawFlow,
    WithdrawMethod,
    WithdrawStep,
)
from app.models.session import Session


def confirmable_send() -> SendFlow:
    return SendFlow(
        step=SendStep.SELECT_NETWORK,
        method=SendMethod.EMAIL,
        recipient="bob@example.com",
        amount=Decimal("50"),
        network="polygon",
        fee=Decimal("1"),
        total=Decimal("51"),
    )


class TestTransitions:
    """Test step tables."""

    def test_allowed_move(self):
        flow = LoginFlow()
        flow.transition(LoginStep.ENTER_OTP)
        assert flow.step == LoginStep.ENTER_OTP

    def test_skipping_steps_refused(self):
        flow = SendFlow()
        with pytest.raises(InvalidTransition):
            flow.transition(SendStep.CONFIRM)
        assert flow.step == SendStep.SELECT_METHOD

    def test_terminal_step_has_no_exit(self):
        flow = LoginFlow(step=LoginStep.ENTER_OTP)
        with pytest.raises(InvalidTransition):
            flow.transition(LoginStep.ENTER_EMAIL)

    def test_confirm_back_to_network(self):
        flow = confirmable_send()
        flow.transition(SendStep.CONFIRM)
        flow.transition(SendStep.SELECT_NETWORK)
        assert flow.step == SendStep.SELECT_NETWORK

    def test_withdraw_bank_skips_recipient(self):
        flow = WithdrawFlow(method=WithdrawMethod.BANK)
        flow.transition(WithdrawStep.ENTER_AMOUNT)
        flow.transition(WithdrawStep.ENTER_BANK_DETAILS)
        assert flow.step == WithdrawStep.ENTER_BANK_DETAILS


class TestConfirmRequirements:
    """Confirmation needs every collected field."""

    def test_complete_send_confirms(self):
        flow = confirmable_send()
        flow.transition(SendStep.CONFIRM)
        assert flow.step == SendStep.CONFIRM

    def test_send_without_fee_refused(self):
        flow = confirmable_send()
        flow.fee = None
        with pytest.raises(InvalidTransition, match="fee"):
            flow.transition(SendStep.CONFIRM)
        assert flow.step == SendStep.SELECT_NETWORK

    def test_bank_withdraw_needs_details(self):
        flow = WithdrawFlow(
            step=WithdrawStep.SELECT_NETWORK,
            method=WithdrawMethod.BANK,
            amount=Decimal("200"),
            network="polygon",
            fee=Decimal("2"),
        )
        assert flow.missing_fields() == ["bank_details"]
        flow.bank_details = BankDetails(raw="Bank: ACME, account 1")
        assert flow.missing_fields() == []

    def test_wallet_withdraw_needs_recipient(self):
        flow = WithdrawFlow(method=WithdrawMethod.WALLET, amount=Decimal("20"))
        assert "recipient" in flow.missing_fields()
        assert "bank_details" not in flow.missing_fields()

    def test_broadcast_needs_message(self):
        flow = BroadcastFlow()
        with pytest.raises(InvalidTransition):
            flow.transition(BroadcastStep.CONFIRM)
        flow.message = "Hello"
        flow.broadcast_id = "abc"
        flow.transition(BroadcastStep.CONFIRM)
        assert flow.step == BroadcastStep.CONFIRM


class TestSerialisation:
    """Stored sessions come back with the right flow variant."""

    @pytest.mark.parametrize(
        "flow",
        [NoFlow(), LoginFlow(email="a@b.com"), confirmable_send(), DepositFlow(), BroadcastFlow()],
    )
    def test_flow_variant_preserved(self, flow):
        session = Session(user_id="1", flow=flow)
        restored = Session.model_validate_json(session.model_dump_json())
        assert type(restored.flow) is type(flow)
        assert restored.flow == flow

    def test_new_session_has_no_flow(self):
        session = Session(user_id="1")
        assert session.flow.kind == FlowKind.NONE
        assert session.has_flow is False

    def test_flow_ids_are_unique(self):
        assert SendFlow().flow_id != SendFlow().flow_id

    def test_logout_clears_everything(self, session_factory):
        session = session_factory()
        session.flow = DepositFlow()
        session.history_filter = "send"

        session.logout()

        assert session.auth is None
        assert session.kyc is None
        assert session.has_flow is False
        assert session.history_filter is None
