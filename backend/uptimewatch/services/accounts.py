"""Account service - users and their checks.

Every check mutation that originates from the API goes through here so the
persistence gateway, the owner's ``check_ids`` and the live registry stay
consistent.

Locking:
- user records (profile, ``check_ids``) are rewritten under the per-user lock
  shared with the alerter
- check records are rewritten under the transition engine's per-check lock,
  so a configuration edit never carries stale monitoring state
- user lock before check lock, never the other way round
"""
import logging
from typing import List, Optional

from ..errors import AuthError, ForbiddenError, InputError, NotFoundError, QuotaError
from ..schemas import (
    CheckCreate,
    CheckRecord,
    CheckUpdate,
    UserCreate,
    UserRecord,
    UserUpdate,
)
from ..utils.clock import utcnow
from ..utils.locks import KeyedLocks
from ..utils.security import hash_password, random_id, verify_password
from .registry import CheckRegistry
from .sessions import SessionStore
from .storage import CHECKS, USERS, PersistenceGateway
from .transitions import TransitionEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHECKS = 5


class AccountService:
    """User CRUD, check CRUD and the per-user check quota."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        registry: CheckRegistry,
        sessions: SessionStore,
        engine: TransitionEngine,
        hashing_secret: str,
        max_checks: int = DEFAULT_MAX_CHECKS,
        user_locks: Optional[KeyedLocks] = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.sessions = sessions
        self.engine = engine
        self.hashing_secret = hashing_secret
        self.max_checks = max_checks
        self.user_locks = user_locks or KeyedLocks()

    @property
    def check_locks(self) -> KeyedLocks:
        return self.engine.check_locks

    # -- users ---------------------------------------------------------------

    async def _find_user_by_phone(self, phone: str) -> Optional[UserRecord]:
        records = await self.gateway.find_by(USERS, "phone", phone)
        return UserRecord.model_validate(records[0]) if records else None

    async def _save_user(self, user: UserRecord):
        await self.gateway.put(USERS, user.id, user.model_dump())

    async def create_user(self, data: UserCreate) -> UserRecord:
        """Sign up a new user."""
        if not data.tos_agreement:
            raise InputError("Terms of service must be accepted")

        async with self.user_locks(f"phone:{data.phone}"):
            if await self._find_user_by_phone(data.phone) is not None:
                raise InputError("A user with that phone number already exists")

            user = UserRecord(
                id=random_id(),
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                email=data.email,
                password_hash=hash_password(data.password, self.hashing_secret),
                tos_agreement=True,
                created_at=utcnow(),
            )
            await self._save_user(user)
        logger.info(f"User {user.id} created")
        return user

    async def get_user(self, user_id: str) -> UserRecord:
        record = await self.gateway.get(USERS, user_id)
        if record is None:
            raise NotFoundError("User not found")
        return UserRecord.model_validate(record)

    async def update_user(self, user_id: str, data: UserUpdate) -> UserRecord:
        """Edit profile fields; the phone number is the login and cannot change."""
        fields = data.model_dump(exclude_none=True)
        if not fields:
            raise InputError("Missing fields to update")

        password = fields.pop("password", None)
        if password is not None:
            fields["password_hash"] = hash_password(password, self.hashing_secret)

        async with self.user_locks(user_id):
            user = await self.get_user(user_id)
            user = user.model_copy(update=fields)
            await self._save_user(user)
        return user

    async def delete_user(self, user_id: str):
        """Delete a user together with their checks and sessions."""
        async with self.user_locks(user_id):
            user = await self.get_user(user_id)

            check_ids = set(user.check_ids)
            for record in await self.gateway.find_by(CHECKS, "owner_id", user_id):
                check_ids.add(record["id"])

            for check_id in check_ids:
                await self._delete_check_record(check_id)

            await self.sessions.invalidate_user(user_id)
            await self.gateway.delete(USERS, user_id)
        self.user_locks.discard(user_id)
        logger.info(f"User {user_id} deleted with {len(check_ids)} checks")

    async def authenticate(self, phone: str, password: str) -> UserRecord:
        """Return the user for valid credentials, else raise AuthError."""
        user = await self._find_user_by_phone(phone)
        if user is None or not verify_password(password, user.password_hash, self.hashing_secret):
            raise AuthError("Invalid phone number or password")
        return user

    # -- checks --------------------------------------------------------------

    async def _load_check(self, check_id: str) -> CheckRecord:
        record = await self.gateway.get(CHECKS, check_id)
        if record is None:
            raise NotFoundError("Check not found")
        return CheckRecord.model_validate(record)

    async def _delete_check_record(self, check_id: str):
        async with self.check_locks(check_id):
            await self.gateway.delete(CHECKS, check_id)
            self.registry.remove(check_id)
        self.check_locks.discard(check_id)

    async def get_check(self, user_id: str, check_id: str) -> CheckRecord:
        """Return a check owned by ``user_id``."""
        check = await self._load_check(check_id)
        if check.owner_id != user_id:
            raise ForbiddenError("Check belongs to another user")
        return check

    async def list_checks(self, user_id: str) -> List[CheckRecord]:
        user = await self.get_user(user_id)
        checks = []
        for check_id in user.check_ids:
            record = await self.gateway.get(CHECKS, check_id)
            if record is not None:
                checks.append(CheckRecord.model_validate(record))
        return checks

    async def create_check(self, user_id: str, data: CheckCreate) -> CheckRecord:
        """Create a check, enforcing the per-user quota."""
        async with self.user_locks(user_id):
            user = await self.get_user(user_id)
            if len(user.check_ids) >= self.max_checks:
                raise QuotaError(f"The user already has the maximum number of checks ({self.max_checks})")

            check = CheckRecord(
                id=random_id(),
                owner_id=user_id,
                created_at=utcnow(),
                **data.model_dump(),
            )
            await self.gateway.put(CHECKS, check.id, check.model_dump())
            await self._save_user(user.model_copy(update={"check_ids": [*user.check_ids, check.id]}))
            self.registry.upsert(check)
        logger.info(f"Check {check.id} created for user {user_id}: {check.method} {check.url}")
        return check

    async def update_check(self, user_id: str, check_id: str, data: CheckUpdate) -> CheckRecord:
        """Change a check's probe configuration; its state is left alone."""
        fields = data.model_dump(exclude_none=True)
        if not fields:
            raise InputError("Missing fields to update")

        async with self.check_locks(check_id):
            # Fresh read under the lock: state fields come from the latest write
            check = await self.get_check(user_id, check_id)
            check = check.model_copy(update=fields)
            await self.gateway.put(CHECKS, check.id, check.model_dump())
            self.registry.upsert(check)
        return check

    async def delete_check(self, user_id: str, check_id: str):
        """Delete a check and stop probing it."""
        async with self.user_locks(user_id):
            await self.get_check(user_id, check_id)
            await self._delete_check_record(check_id)

            user = await self.get_user(user_id)
            if check_id in user.check_ids:
                remaining = [cid for cid in user.check_ids if cid != check_id]
                await self._save_user(user.model_copy(update={"check_ids": remaining}))
        logger.info(f"Check {check_id} deleted")

    async def reset_check(self, user_id: str, check_id: str) -> CheckRecord:
        """Return a check to ``unknown`` so the next probe sets a fresh baseline."""
        await self.get_check(user_id, check_id)
        check = await self.engine.reset(check_id)
        if check is None:
            raise NotFoundError("Check not found")
        return check
