"""Tests for user and check management."""
import asyncio

import pytest

from uptimewatch.errors import AuthError, ForbiddenError, InputError, NotFoundError, QuotaError
from uptimewatch.schemas import CheckCreate, CheckUpdate, UserCreate, UserUpdate
from uptimewatch.services.accounts import AccountService
from uptimewatch.services.checker import ProbeOutcome
from uptimewatch.services.sessions import SessionStore
from uptimewatch.services.storage import CHECKS, TOKENS, USERS


@pytest.fixture
def sessions(gateway) -> SessionStore:
    return SessionStore(gateway)


@pytest.fixture
def accounts(gateway, registry, sessions, engine, alerter) -> AccountService:
    return AccountService(
        gateway,
        registry,
        sessions,
        engine,
        hashing_secret="s3cret",
        max_checks=5,
        user_locks=alerter.user_locks,
    )


def signup(phone: str = "15550001111", **overrides) -> UserCreate:
    data = dict(
        first_name="Grace",
        last_name="Hopper",
        phone=phone,
        password="hunter2",
        tos_agreement=True,
    )
    data.update(overrides)
    return UserCreate(**data)


NEW_CHECK = CheckCreate(protocol="https", hostname="example.com", path="/status", success_codes=[200, 204])


class TestUsers:
    @pytest.mark.asyncio
    async def test_create_hashes_password(self, accounts, gateway) -> None:
        user = await accounts.create_user(signup())
        stored = await gateway.get(USERS, user.id)
        assert stored["password_hash"] != "hunter2"
        assert stored["check_ids"] == []

    @pytest.mark.asyncio
    async def test_duplicate_phone_rejected(self, accounts) -> None:
        await accounts.create_user(signup())
        with pytest.raises(InputError):
            await accounts.create_user(signup())

    @pytest.mark.asyncio
    async def test_terms_required(self, accounts) -> None:
        with pytest.raises(InputError):
            await accounts.create_user(signup(tos_agreement=False))

    @pytest.mark.asyncio
    async def test_authenticate(self, accounts) -> None:
        user = await accounts.create_user(signup())
        assert (await accounts.authenticate("15550001111", "hunter2")).id == user.id
        with pytest.raises(AuthError):
            await accounts.authenticate("15550001111", "wrong")
        with pytest.raises(AuthError):
            await accounts.authenticate("19999999999", "hunter2")

    @pytest.mark.asyncio
    async def test_update_password(self, accounts) -> None:
        user = await accounts.create_user(signup())
        await accounts.update_user(user.id, UserUpdate(password="new-pass", first_name="G"))
        assert (await accounts.authenticate("15550001111", "new-pass")).first_name == "G"

    @pytest.mark.asyncio
    async def test_update_requires_fields(self, accounts) -> None:
        user = await accounts.create_user(signup())
        with pytest.raises(InputError):
            await accounts.update_user(user.id, UserUpdate())

    @pytest.mark.asyncio
    async def test_delete_cascades(self, accounts, gateway, registry, sessions) -> None:
        user = await accounts.create_user(signup())
        checks = [await accounts.create_check(user.id, NEW_CHECK) for _ in range(3)]
        await sessions.create(user.id)

        await accounts.delete_user(user.id)

        assert await gateway.get(USERS, user.id) is None
        for check in checks:
            assert await gateway.get(CHECKS, check.id) is None
            assert check.id not in registry
        assert await gateway.list_all(TOKENS) == []

    @pytest.mark.asyncio
    async def test_missing_user(self, accounts) -> None:
        with pytest.raises(NotFoundError):
            await accounts.get_user("ghost")


class TestChecks:
    @pytest.mark.asyncio
    async def test_create_registers_check(self, accounts, registry) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)

        assert check.state == "unknown"
        assert check.success_codes == [200, 204]
        assert registry.get(check.id) == check
        assert (await accounts.get_user(user.id)).check_ids == [check.id]

    @pytest.mark.asyncio
    async def test_sixth_check_rejected(self, accounts, registry, gateway) -> None:
        user = await accounts.create_user(signup())
        for _ in range(5):
            await accounts.create_check(user.id, NEW_CHECK)

        with pytest.raises(QuotaError):
            await accounts.create_check(user.id, NEW_CHECK)

        assert len(registry) == 5
        assert len(await gateway.list_all(CHECKS)) == 5

    @pytest.mark.asyncio
    async def test_update_keeps_state(self, accounts, engine, registry) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)
        await engine.apply(check.id, ProbeOutcome(state="up"))

        updated = await accounts.update_check(user.id, check.id, CheckUpdate(timeout_sec=5, method="head"))

        assert updated.state == "up"
        assert updated.timeout_sec == 5
        assert updated.method == "HEAD"
        assert updated.hostname == "example.com"
        assert registry.get(check.id).method == "HEAD"

    @pytest.mark.asyncio
    async def test_other_users_check_forbidden(self, accounts) -> None:
        owner = await accounts.create_user(signup())
        intruder = await accounts.create_user(signup(phone="15550002222"))
        check = await accounts.create_check(owner.id, NEW_CHECK)

        with pytest.raises(ForbiddenError):
            await accounts.get_check(intruder.id, check.id)
        with pytest.raises(ForbiddenError):
            await accounts.delete_check(intruder.id, check.id)

    @pytest.mark.asyncio
    async def test_delete_check_stops_probing(self, accounts, registry) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)

        await accounts.delete_check(user.id, check.id)

        assert check.id not in registry
        assert (await accounts.get_user(user.id)).check_ids == []
        with pytest.raises(NotFoundError):
            await accounts.get_check(user.id, check.id)

    @pytest.mark.asyncio
    async def test_list_checks(self, accounts) -> None:
        user = await accounts.create_user(signup())
        created = [await accounts.create_check(user.id, NEW_CHECK) for _ in range(2)]
        listed = await accounts.list_checks(user.id)
        assert [c.id for c in listed] == [c.id for c in created]


class TestConcurrentEdits:
    @pytest.mark.asyncio
    async def test_concurrent_creates_respect_quota(self, accounts, gateway, registry) -> None:
        user = await accounts.create_user(signup())
        for _ in range(4):
            await accounts.create_check(user.id, NEW_CHECK)

        gateway.get_delay = 0.02
        results = await asyncio.gather(
            accounts.create_check(user.id, NEW_CHECK),
            accounts.create_check(user.id, NEW_CHECK),
            return_exceptions=True,
        )
        gateway.get_delay = 0

        assert sum(isinstance(result, QuotaError) for result in results) == 1
        assert len((await accounts.get_user(user.id)).check_ids) == 5
        assert len(await gateway.list_all(CHECKS)) == 5
        assert len(registry) == 5

    @pytest.mark.asyncio
    async def test_update_does_not_undo_transition(self, accounts, engine, gateway, sender) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)
        await engine.apply(check.id, ProbeOutcome(state="up"))

        gateway.put_delay = 0.05
        update = asyncio.create_task(accounts.update_check(user.id, check.id, CheckUpdate(method="HEAD")))
        await asyncio.sleep(0.01)
        await engine.apply(check.id, ProbeOutcome(state="down"))
        await update
        gateway.put_delay = 0

        stored = await gateway.get(CHECKS, check.id)
        assert stored["state"] == "down"
        assert stored["method"] == "HEAD"

        # The same state again must not alert a second time
        await engine.apply(check.id, ProbeOutcome(state="down"))
        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_outcome_after_reset_sets_baseline(self, accounts, engine, gateway, sender) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)
        await engine.apply(check.id, ProbeOutcome(state="up"))

        gateway.put_delay = 0.05
        reset = asyncio.create_task(accounts.reset_check(user.id, check.id))
        await asyncio.sleep(0.01)
        transition = await engine.apply(check.id, ProbeOutcome(state="down"))
        await reset
        gateway.put_delay = 0

        assert transition.previous == "unknown"
        assert not transition.alerted
        assert sender.sent == []
        assert (await gateway.get(CHECKS, check.id))["state"] == "down"

    @pytest.mark.asyncio
    async def test_alert_bookkeeping_keeps_new_check(self, accounts, alerter, gateway) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)
        user = await accounts.get_user(user.id)

        gateway.get_delay = 0.02
        _, second = await asyncio.gather(
            alerter.notify(user, check, "up", "down"),
            accounts.create_check(user.id, NEW_CHECK),
        )
        gateway.get_delay = 0

        stored = await accounts.get_user(user.id)
        assert stored.check_ids == [check.id, second.id]
        assert stored.last_alert_ok is True

    @pytest.mark.asyncio
    async def test_duplicate_signup_race(self, accounts, gateway) -> None:
        gateway.put_delay = 0.01
        results = await asyncio.gather(
            accounts.create_user(signup()),
            accounts.create_user(signup()),
            return_exceptions=True,
        )
        gateway.put_delay = 0

        assert sum(isinstance(result, InputError) for result in results) == 1
        assert len(await gateway.list_all(USERS)) == 1

    @pytest.mark.asyncio
    async def test_delete_during_transition_is_final(self, accounts, engine, gateway, registry) -> None:
        user = await accounts.create_user(signup())
        check = await accounts.create_check(user.id, NEW_CHECK)

        gateway.put_delay = 0.05
        pending = asyncio.create_task(engine.apply(check.id, ProbeOutcome(state="up")))
        await asyncio.sleep(0.01)
        await accounts.delete_check(user.id, check.id)
        await pending
        gateway.put_delay = 0

        assert await gateway.get(CHECKS, check.id) is None
        assert check.id not in registry
