"""Balance updates and unit-of-work helpers."""

import pytest

from crackzone.models import Team, User
from crackzone.utils.db import atomic, credit, get_or_404, guarded_debit
from crackzone.utils.errors import InsufficientBalanceError, NotFoundError

from factories import create_user, reload


class TestGuardedDebit:
    @pytest.mark.asyncio
    async def test_debits_when_covered(self, db_session):
        user = await create_user(coins=100)

        await guarded_debit(db_session, user.id, 100)
        await db_session.commit()

        assert (await reload(User, user.id)).coins == 0

    @pytest.mark.asyncio
    async def test_refuses_overdraft(self, db_session):
        user = await create_user(coins=99)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await guarded_debit(db_session, user.id, 100)

        assert exc_info.value.details == {"userId": user.id, "required": 100}
        assert (await reload(User, user.id)).coins == 99

    @pytest.mark.asyncio
    async def test_unknown_user_is_treated_as_empty(self, db_session):
        with pytest.raises(InsufficientBalanceError):
            await guarded_debit(db_session, "ghost", 1)


class TestCredit:
    @pytest.mark.asyncio
    async def test_coins_and_experience(self, db_session):
        user = await create_user(coins=5, experience=10)

        await credit(db_session, user.id, coins=20, experience=30)
        await db_session.commit()

        stored = await reload(User, user.id)
        assert (stored.coins, stored.experience) == (25, 40)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await credit(db_session, "ghost", coins=1)

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, db_session):
        await credit(db_session, "ghost")


class TestAtomic:
    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(self, db_session):
        user = await create_user(coins=50)

        with pytest.raises(InsufficientBalanceError):
            async with atomic(db_session):
                await credit(db_session, user.id, coins=10)
                db_session.add(Team(name="Ghost Squad"))
                await guarded_debit(db_session, user.id, 500)

        await db_session.commit()
        assert (await reload(User, user.id)).coins == 50

    @pytest.mark.asyncio
    async def test_get_or_404(self, db_session):
        user = await create_user()

        assert (await get_or_404(db_session, User, user.id)).id == user.id
        with pytest.raises(NotFoundError, match="User not found"):
            await get_or_404(db_session, User, "missing")
