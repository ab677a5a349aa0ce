"""Catalog, wallet, session token and notification services."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from workstation.core.exceptions import InsufficientBalance, InvalidDuration, InvariantViolation, PlanNotFound
from workstation.engine import PaymentType
from workstation.schemas.plan import PlanCreate
from workstation.services.auth_service import create_session_token, verify_session_token
from workstation.services.plan_service import PlanService
from workstation.services.telegram_bot import TelegramBotService, format_money
from workstation.services.user_service import UserService
from workstation.services.wallet_service import WalletPaymentProcessor, WalletService


class TestSessionToken:

    def test_round_trip(self):
        payload = verify_session_token(create_session_token("user-1"))
        assert payload["sub"] == "user-1"

    def test_tampered_token(self):
        header, payload, signature = create_session_token("user-1").split(".")
        other = create_session_token("user-2").split(".")[1]
        assert verify_session_token(f"{header}.{other}.{signature}") is None

    def test_expired_token(self):
        assert verify_session_token(create_session_token("user-1", expires_in_seconds=-10)) is None

    def test_malformed_token(self):
        assert verify_session_token("not-a-token") is None


class TestPlanService:

    async def test_unknown_plan(self, db):
        with pytest.raises(PlanNotFound):
            await PlanService(db).get_plan("missing")

    async def test_create_plan(self, db):
        plan = await PlanService(db).create_plan(
            PlanCreate(name="Weekly Plan", slug="weekly", price=Decimal("20000"), duration_days=7)
        )
        assert plan.id
        assert (await PlanService(db).get_plan_by_slug("weekly")).id == plan.id

    async def test_create_plan_with_unknown_duration(self, db):
        with pytest.raises(InvalidDuration):
            await PlanService(db).create_plan(
                PlanCreate(name="Fortnight", slug="fortnight", price=Decimal("15000"), duration_days=14)
            )

    async def test_create_plan_with_broken_installments(self, db):
        with pytest.raises(InvariantViolation):
            await PlanService(db).create_plan(
                PlanCreate(
                    name="Quarterly", slug="quarterly", price=Decimal("24000"),
                    duration_days=90, allows_installments=True,
                )
            )

    async def test_inactive_plans_are_hidden(self, db, plans):
        plans["daily"].is_active = False
        await db.commit()

        available = await PlanService(db).get_available_plans()

        assert "daily" not in [p.slug for p in available]


class TestWallet:

    async def test_charge_debits(self, db, user):
        charged = await WalletPaymentProcessor().charge(user, Decimal("2500"), "sub-1", PaymentType.FULL)
        assert charged == Decimal("2500.00")
        assert user.wallet_balance == Decimal("97500.00")

    async def test_charge_over_balance(self, db, user):
        with pytest.raises(InsufficientBalance) as exc:
            await WalletPaymentProcessor().charge(user, Decimal("100000.01"), None, PaymentType.FULL)
        assert exc.value.context == {"balance": "100000.00", "amount_due": "100000.01"}
        assert user.wallet_balance == Decimal("100000.00")

    async def test_fund_wallet(self, db, user):
        await UserService(db).fund_wallet(user.id, Decimal("500"))
        assert await WalletService(db).get_balance(user.id) == Decimal("100500.00")

    async def test_fund_wallet_rejects_non_positive(self, db, user):
        with pytest.raises(ValueError):
            await UserService(db).fund_wallet(user.id, Decimal("0"))


class TestTelegram:

    async def test_disabled_without_token(self):
        assert await TelegramBotService(None).send_notification("42", "hello") is False

    async def test_failures_are_swallowed(self):
        service = TelegramBotService("123:abc")
        service._bot = AsyncMock()
        service._bot.send_message.side_effect = RuntimeError("network down")

        assert await service.send_notification("42", "hello") is False

    async def test_sends_message(self):
        service = TelegramBotService("123:abc")
        service._bot = AsyncMock()

        assert await service.send_notification("42", "hello") is True
        assert service._bot.send_message.await_args.kwargs["chat_id"] == "42"

    def test_format_money(self):
        assert format_money(Decimal("17333.3")) == "NGN 17,333.30"
