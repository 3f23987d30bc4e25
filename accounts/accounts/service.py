"""Account management workflows.

Every public coroutine returns an :class:`~accounts.errors.Outcome`. Failures
of the storage and mail collaborators surface as ``UPSTREAM_FAILURE``; any
other exception is logged and reported as ``INTERNAL``.
"""

import functools
import logging
import time
import uuid
from datetime import timedelta
from typing import Callable, Optional

import pydantic
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from accounts import dbmodel, events, messages
from accounts.authenticator import Authenticator
from accounts.clock import utcnow
from accounts.credentials import (
    PASSWORD_POLICY_MESSAGE,
    PASSWORD_TOO_LONG_MESSAGE,
    is_password_too_long,
    is_strong_password,
    new_reset_token,
    normalize_email,
    reset_window_end,
    temporary_password,
)
from accounts.errors import ErrorKind, Outcome, UpstreamError
from accounts.filenames import sanitize_filename
from accounts.mailer import MailSender
from accounts.password import get_password_hash, verify_password
from accounts.schema import RegistrationDetails, UploadedFile
from accounts.storage import BlobStorage

logger = logging.getLogger("accounts.service")

# document kind -> (bucket, path prefix)
DOCUMENT_LOCATIONS = {
    "valid_id": ("validid", "validIds"),
    "resume": ("resume", "resumes"),
}


def guarded(failure_message: str):
    """Turns unexpected exceptions into an ``INTERNAL`` outcome."""

    def decorator(operation):
        @functools.wraps(operation)
        async def wrapper(*args, **kwargs) -> Outcome:
            try:
                return await operation(*args, **kwargs)
            except Exception as e:
                logger.error(f"[{operation.__name__}] {e}", exc_info=True)
                return Outcome.failure(ErrorKind.INTERNAL, failure_message)

        return wrapper

    return decorator


class AccountService:
    def __init__(
        self,
        engine: AsyncEngine,
        storage: BlobStorage,
        mailer: MailSender,
        authenticator: Authenticator,
        publisher: events.EventPublisher,
        frontend_url: str,
        reset_window: timedelta = timedelta(minutes=10),
        clock: Callable = utcnow,
        reveal_unknown_email: bool = True,
    ):
        self.engine = engine
        self.storage = storage
        self.mailer = mailer
        self.authenticator = authenticator
        self.publisher = publisher
        self.frontend_url = frontend_url.rstrip("/")
        self.reset_window = reset_window
        self.clock = clock
        self.reveal_unknown_email = reveal_unknown_email

    def _session(self) -> AsyncSession:
        return AsyncSession(self.engine, expire_on_commit=False)

    async def _account(
        self, session: AsyncSession, public_id: str
    ) -> Optional[dbmodel.Account]:
        return (
            await session.exec(
                select(dbmodel.Account).where(
                    col(dbmodel.Account.public_id) == public_id
                )
            )
        ).first()

    async def _account_by_email(
        self, session: AsyncSession, email: str
    ) -> Optional[dbmodel.Account]:
        return (
            await session.exec(
                select(dbmodel.Account).where(
                    col(dbmodel.Account.email) == normalize_email(email)
                )
            )
        ).first()

    # --- documents -------------------------------------------------------

    def _object_path(self, prefix: str, filename: str) -> str:
        return f"{prefix}/{time.time_ns() // 1_000_000}_{sanitize_filename(filename)}"

    async def _upload_documents(
        self, files: dict[str, Optional[UploadedFile]], uploaded: list
    ) -> dict[str, str]:
        """Uploads each supplied file and returns the URLs by document kind.

        Every successful upload is appended to ``uploaded`` as
        ``(bucket, path)`` so that the caller can discard it later.
        """
        urls = {}
        for kind, file in files.items():
            if file is None:
                continue
            bucket, prefix = DOCUMENT_LOCATIONS[kind]
            path = self._object_path(prefix, file.filename)
            urls[kind] = await run_in_threadpool(
                self.storage.upload, bucket, path, file.content, file.content_type
            )
            uploaded.append((bucket, path))
        return urls

    async def _discard_blobs(self, uploaded: list) -> None:
        for bucket, path in uploaded:
            try:
                await run_in_threadpool(self.storage.remove, bucket, path)
            except UpstreamError as e:
                logger.error(f"Orphaned blob {bucket}/{path} left behind: {e}")

    # --- registration ----------------------------------------------------

    @guarded("Failed to register user")
    async def register(
        self,
        fullname: Optional[str],
        email: Optional[str],
        contact_number: Optional[str],
        role: Optional[str] = None,
        valid_id: Optional[UploadedFile] = None,
        resume: Optional[UploadedFile] = None,
    ) -> Outcome:
        """Registers an admin or staff account with a temporary password.

        The account is stored as pending first; documents are uploaded next
        and the welcome email is sent last. When any of these steps fails
        the uploaded blobs and the pending record are removed again.
        """
        try:
            details = RegistrationDetails(
                fullname=fullname,
                email=email,
                contact_number=contact_number,
                role=role or dbmodel.Role.admin.value,
            )
        except pydantic.ValidationError as e:
            logger.info(f"[register] rejected input: {e.errors()}")
            return Outcome.failure(
                ErrorKind.VALIDATION,
                "Full name, a valid email, contact number and role are required.",
            )

        async with self._session() as session:
            if await self._account_by_email(session, details.email) is not None:
                return Outcome.failure(ErrorKind.CONFLICT, "Email already exists")

        password = temporary_password(details.fullname, details.contact_number)
        account = dbmodel.Account(
            public_id=str(uuid.uuid4()),
            fullname=details.fullname,
            email=normalize_email(details.email),
            contact_number=details.contact_number,
            role=details.role.value,
            password_hash=await run_in_threadpool(get_password_hash, password),
            is_temporary_password=True,
            registration_pending=True,
        )
        try:
            async with self._session() as session:
                session.add(account)
                await session.commit()
        except IntegrityError:
            return Outcome.failure(ErrorKind.CONFLICT, "Email already exists")

        uploaded = []
        try:
            urls = await self._upload_documents(
                {"valid_id": valid_id, "resume": resume}, uploaded
            )
            async with self._session() as session:
                account = await self._account(session, account.public_id)
                account.valid_id = urls.get("valid_id")
                account.resume = urls.get("resume")
                account.registration_pending = False
                account.updated_at = self.clock()
                session.add(account)
                await session.commit()

            setup_token = self.authenticator.encode_setup_token(account.public_id)
            setup_link = f"{self.frontend_url}/new-password?token={setup_token}"
            await run_in_threadpool(
                self.mailer.send,
                account.email,
                messages.WELCOME_SUBJECT,
                messages.welcome_email(
                    account.fullname, account.email, account.role, password, setup_link
                ),
            )
        except Exception as e:
            logger.error(f"[register] rolling back {account.email}: {e}")
            await self._discard_blobs(uploaded)
            async with self._session() as session:
                pending = await self._account(session, account.public_id)
                if pending is not None:
                    await session.delete(pending)
                    await session.commit()
            if isinstance(e, UpstreamError):
                return Outcome.failure(
                    ErrorKind.UPSTREAM_FAILURE, "Failed to register user"
                )
            raise

        logger.info(f"[register] {account.role} {account.email} registered")
        await self.publisher.publish(events.account_created(account))
        return Outcome.success(
            message="User registered successfully. "
            "A welcome email with setup instructions has been sent."
        )

    # --- credentials -----------------------------------------------------

    @guarded("Server error")
    async def login(self, email: str, password: str) -> Outcome:
        async with self._session() as session:
            account = await self._account_by_email(session, email)

        if (
            account is None
            or account.registration_pending
            or not await run_in_threadpool(
                verify_password, password, account.password_hash
            )
        ):
            return Outcome.failure(
                ErrorKind.UNAUTHORIZED, "Invalid email and/or password"
            )
        return Outcome.success(
            self.authenticator.encode_token(account.public_id, account.role)
        )

    @guarded("Server error sending reset email.")
    async def forgot_password(self, email: Optional[str]) -> Outcome:
        if not email:
            return Outcome.failure(ErrorKind.VALIDATION, "Email is required.")

        sent = "Password reset email sent successfully."
        async with self._session() as session:
            account = await self._account_by_email(session, email)
            if account is None or account.registration_pending:
                if self.reveal_unknown_email:
                    return Outcome.failure(ErrorKind.NOT_FOUND, "Email not found.")
                logger.info(f"[forgot_password] unknown email {email}")
                return Outcome.success(message=sent)

            token = new_reset_token()
            account.reset_token = token
            account.reset_token_expires = reset_window_end(
                self.clock(), self.reset_window
            )
            account.updated_at = self.clock()
            session.add(account)
            await session.commit()

        reset_link = f"{self.frontend_url}/reset-password-admin?token={token}"
        minutes = int(self.reset_window.total_seconds() // 60)
        try:
            await run_in_threadpool(
                self.mailer.send,
                account.email,
                messages.RESET_SUBJECT,
                messages.reset_email_text(account.fullname, reset_link, minutes),
                messages.reset_email_html(account.fullname, reset_link, minutes),
            )
        except UpstreamError:
            return Outcome.failure(
                ErrorKind.UPSTREAM_FAILURE, "Server error sending reset email."
            )

        logger.info(f"[forgot_password] reset link sent to {account.email}")
        return Outcome.success(message=sent)

    def _check_new_password(
        self, token: Optional[str], new_password: Optional[str]
    ) -> Optional[Outcome]:
        if not token or not new_password:
            return Outcome.failure(
                ErrorKind.VALIDATION, "Token and new password are required."
            )
        if is_password_too_long(new_password):
            return Outcome.failure(ErrorKind.VALIDATION, PASSWORD_TOO_LONG_MESSAGE)
        if not is_strong_password(new_password):
            return Outcome.failure(ErrorKind.VALIDATION, PASSWORD_POLICY_MESSAGE)
        return None

    @guarded("Server error.")
    async def reset_password(
        self, token: Optional[str], new_password: Optional[str]
    ) -> Outcome:
        rejected = self._check_new_password(token, new_password)
        if rejected is not None:
            return rejected

        async with self._session() as session:
            account = (
                await session.exec(
                    select(dbmodel.Account)
                    .where(col(dbmodel.Account.reset_token) == token)
                    .where(col(dbmodel.Account.reset_token_expires) > self.clock())
                )
            ).first()
            # unknown and expired tokens look the same from outside
            if account is None:
                return Outcome.failure(
                    ErrorKind.INVALID_OR_EXPIRED, "Invalid or expired token."
                )

            account.password_hash = await run_in_threadpool(
                get_password_hash, new_password
            )
            account.reset_token = None
            account.reset_token_expires = None
            account.is_temporary_password = False
            account.updated_at = self.clock()
            session.add(account)
            await session.commit()

        await self.publisher.publish(events.account_updated(account))
        return Outcome.success(
            message="Password updated successfully. You may now log in."
        )

    @guarded("Server error.")
    async def setup_password(
        self, token: Optional[str], new_password: Optional[str]
    ) -> Outcome:
        """Replaces the temporary password using the welcome-email setup token."""
        rejected = self._check_new_password(token, new_password)
        if rejected is not None:
            return rejected

        public_id = self.authenticator.decode_setup_token(token)
        async with self._session() as session:
            account = (
                await self._account(session, public_id)
                if public_id is not None
                else None
            )
            # a setup token is spent once the temporary password is gone
            if account is None or not account.is_temporary_password:
                return Outcome.failure(
                    ErrorKind.INVALID_OR_EXPIRED, "Invalid or expired token."
                )

            account.password_hash = await run_in_threadpool(
                get_password_hash, new_password
            )
            account.is_temporary_password = False
            account.updated_at = self.clock()
            session.add(account)
            await session.commit()

        await self.publisher.publish(events.account_updated(account))
        return Outcome.success(
            message="Password updated successfully. You may now log in."
        )

    async def sweep_expired_reset_tokens(self) -> int:
        """Clears reset tokens whose window has closed.

        Returns:
            Number of accounts whose reset state was cleared
        """
        async with self._session() as session:
            expired = (
                await session.exec(
                    select(dbmodel.Account)
                    .where(col(dbmodel.Account.reset_token).is_not(None))
                    .where(col(dbmodel.Account.reset_token_expires) <= self.clock())
                )
            ).all()
            for account in expired:
                account.reset_token = None
                account.reset_token_expires = None
                session.add(account)
            await session.commit()
        if expired:
            logger.info(f"Cleared {len(expired)} expired reset token(s)")
        return len(expired)

    # --- documents -------------------------------------------------------

    @guarded("Failed to upload requirements")
    async def upload_requirements(
        self,
        caller_id: Optional[str],
        valid_id: Optional[UploadedFile] = None,
        resume: Optional[UploadedFile] = None,
    ) -> Outcome:
        """Attaches identity documents to the caller's account.

        Only the kinds supplied are replaced; the others keep their URLs.
        """
        if not caller_id:
            return Outcome.failure(ErrorKind.UNAUTHORIZED, "Unauthorized")

        async with self._session() as session:
            if await self._account(session, caller_id) is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, "User not found")

        uploaded = []
        try:
            urls = await self._upload_documents(
                {"valid_id": valid_id, "resume": resume}, uploaded
            )
            async with self._session() as session:
                account = await self._account(session, caller_id)
                account.valid_id = urls.get("valid_id", account.valid_id)
                account.resume = urls.get("resume", account.resume)
                account.updated_at = self.clock()
                session.add(account)
                await session.commit()
        except Exception as e:
            logger.error(f"[upload_requirements] {caller_id}: {e}")
            await self._discard_blobs(uploaded)
            if isinstance(e, UpstreamError):
                return Outcome.failure(
                    ErrorKind.UPSTREAM_FAILURE, "Failed to upload requirements"
                )
            raise

        await self.publisher.publish(events.account_updated(account))
        return Outcome.success(message="Requirements uploaded successfully.")

    # --- management ------------------------------------------------------

    @guarded("Failed to fetch users")
    async def list_accounts(self, role: Optional[str] = None) -> Outcome:
        statement = select(dbmodel.Account).where(
            col(dbmodel.Account.registration_pending) == False  # noqa: E712
        )
        if role is not None:
            statement = statement.where(col(dbmodel.Account.role) == role)
        async with self._session() as session:
            accounts = (await session.exec(statement)).all()
        return Outcome.success([account.public_view() for account in accounts])

    @guarded("Server error")
    async def get_account(self, public_id: Optional[str]) -> Outcome:
        async with self._session() as session:
            account = await self._account(session, public_id) if public_id else None
        if account is None or account.registration_pending:
            return Outcome.failure(ErrorKind.NOT_FOUND, "User not found")
        return Outcome.success(account.public_view())

    @guarded("Server error")
    async def verify(self, public_id: str) -> Outcome:
        async with self._session() as session:
            account = await self._account(session, public_id)
            if account is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, "User not found")
            account.is_verified = True
            account.updated_at = self.clock()
            session.add(account)
            await session.commit()

        await self.publisher.publish(events.account_updated(account))
        return Outcome.success(message="Account verified successfully.")

    @guarded("Server error deleting user.")
    async def delete(self, public_id: str) -> Outcome:
        async with self._session() as session:
            account = await self._account(session, public_id)
            if account is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, "User not found")
            if account.role == dbmodel.Role.superadmin.value:
                return Outcome.failure(
                    ErrorKind.FORBIDDEN, "Superadmin accounts cannot be deleted."
                )
            await session.delete(account)
            await session.commit()

        logger.info(f"[delete] {account.role} {account.email} deleted")
        await self.publisher.publish(events.account_deleted(public_id))
        return Outcome.success(message="User deleted successfully.")

    async def ensure_superadmin(self, email: str, password: str) -> None:
        """Creates the superadmin account when it doesn't exist yet."""
        async with self._session() as session:
            if await self._account_by_email(session, email) is not None:
                return
            account = dbmodel.Account(
                public_id=str(uuid.uuid4()),
                fullname="Superadmin",
                email=normalize_email(email),
                contact_number="",
                role=dbmodel.Role.superadmin.value,
                password_hash=await run_in_threadpool(get_password_hash, password),
                is_temporary_password=False,
                is_verified=True,
            )
            session.add(account)
            await session.commit()
        logger.info(f"Seeded superadmin account {email}")
        await self.publisher.publish(events.account_created(account))
