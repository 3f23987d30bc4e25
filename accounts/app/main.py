"""The main application file containing the HTTP surface of the Accounts service."""

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from common.authorizer import Authorizer
from accounts.authenticator import Authenticator
from accounts.config import settings, algorithm, secret, db_url, nats_url
from accounts import dbmodel
from accounts.errors import Outcome
from accounts.events import (
    RESET_WINDOW_SWEEP_SUBJECT,
    NatsEventPublisher,
    ResetWindowSweepDueV1,
    jstream,
)
from accounts.logs import configure_logging
from accounts.mailer import SmtpMailSender
from accounts.schema import (
    ForgotPasswordDetails,
    LoginDetails,
    NewPasswordDetails,
    UploadedFile,
)
from accounts.service import AccountService
from accounts.storage import BlobStorage, LocalStorage, SupabaseStorage
from sqlalchemy.ext.asyncio.engine import create_async_engine
from contextlib import asynccontextmanager
from faststream.nats import NatsBroker, JStream
from typing import Optional
import logging

configure_logging(settings.log_level)
logger = logging.getLogger("accounts.api")

authorizer = Authorizer(key=secret, algorithm=algorithm)
router = APIRouter(prefix="/users", tags=["users"])


def get_service(request: Request) -> AccountService:
    return request.app.state.service


def respond(outcome: Outcome, body=None, status_code: int = 200):
    """Maps an outcome to a flat JSON body."""
    if not outcome.ok:
        return JSONResponse(
            status_code=outcome.error.status_code,
            content={"success": False, "message": outcome.message},
        )
    if body is None:
        body = {"success": True, "message": outcome.message}
    return JSONResponse(status_code=status_code, content=body)


async def read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None or not file.filename:
        return None
    return UploadedFile(
        filename=file.filename,
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
    )


@router.get("")
async def list_users(service: AccountService = Depends(get_service)):
    """Lists all accounts. Passwords are never included."""
    outcome = await service.list_accounts()
    return respond(outcome, body=outcome.value)


@router.get("/role/{role}")
async def list_users_by_role(role: str, service: AccountService = Depends(get_service)):
    outcome = await service.list_accounts(role=role)
    return respond(outcome, body=outcome.value)


@router.get("/me")
async def me(
    caller_id: str = Depends(authorizer),
    service: AccountService = Depends(get_service),
):
    """Profile of the authorized caller."""
    outcome = await service.get_account(caller_id)
    return respond(outcome, body={"success": True, "data": outcome.value})


@router.get("/{public_id}")
async def get_user(public_id: str, service: AccountService = Depends(get_service)):
    outcome = await service.get_account(public_id)
    return respond(outcome, body=outcome.value)


@router.patch("/{public_id}/verify")
async def verify_user(public_id: str, service: AccountService = Depends(get_service)):
    return respond(await service.verify(public_id))


@router.post("/register")
async def register(
    fullname: Optional[str] = Form(None, alias="fullName"),
    email: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    contact_number: Optional[str] = Form(None, alias="contactNumber"),
    valid_id: Optional[UploadFile] = File(None, alias="validId"),
    resume: Optional[UploadFile] = File(None),
    service: AccountService = Depends(get_service),
):
    """Registers an admin or staff account.

    The temporary password and the setup link only travel by email.
    """
    outcome = await service.register(
        fullname=fullname,
        email=email,
        contact_number=contact_number,
        role=role,
        valid_id=await read_upload(valid_id),
        resume=await read_upload(resume),
    )
    return respond(outcome, status_code=201)


@router.delete("/{public_id}")
async def delete_user(public_id: str, service: AccountService = Depends(get_service)):
    return respond(await service.delete(public_id))


@router.post("/upload-requirements")
async def upload_requirements(
    caller_id: str = Depends(authorizer),
    valid_id: Optional[UploadFile] = File(None, alias="validId"),
    resume: Optional[UploadFile] = File(None),
    service: AccountService = Depends(get_service),
):
    """Attaches a valid ID and/or a resume to the caller's account."""
    outcome = await service.upload_requirements(
        caller_id,
        valid_id=await read_upload(valid_id),
        resume=await read_upload(resume),
    )
    return respond(outcome, body={"message": outcome.message})


@router.post("/forgot-password")
async def forgot_password(
    details: ForgotPasswordDetails, service: AccountService = Depends(get_service)
):
    return respond(await service.forgot_password(details.email))


@router.post("/reset-password")
async def reset_password(
    details: NewPasswordDetails, service: AccountService = Depends(get_service)
):
    return respond(await service.reset_password(details.token, details.new_password))


@router.post("/setup-password")
async def setup_password(
    details: NewPasswordDetails, service: AccountService = Depends(get_service)
):
    return respond(await service.setup_password(details.token, details.new_password))


@router.post("/login")
async def login(details: LoginDetails, service: AccountService = Depends(get_service)):
    outcome = await service.login(details.email, details.password)
    return respond(outcome, body={"success": True, "token": outcome.value})


async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
    )


async def invalid_request(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request body"},
    )


def create_api(
    service: AccountService, broker: Optional[NatsBroker] = None
) -> FastAPI:
    """Builds the FastAPI app around an already wired account service.

    Args:
        service: account service with its collaborators
        broker: NATS broker started with the app, if any
    """

    @asynccontextmanager
    async def instantiate_db_and_broker(app: FastAPI):
        if broker is not None:
            await broker.start()
            await broker.stream.add_stream(config=jstream.config)
        async with service.engine.begin() as conn:
            await conn.run_sync(dbmodel.SQLModel.metadata.create_all)
        await service.ensure_superadmin(
            settings.superadmin_email, settings.superadmin_password
        )
        yield
        if broker is not None:
            await broker.close()

    app = FastAPI(title="Accounts", lifespan=instantiate_db_and_broker)
    app.state.service = service
    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(RequestValidationError, invalid_request)
    return app


def build_storage() -> BlobStorage:
    if settings.use_local_storage:
        return LocalStorage(settings.upload_dir)
    return SupabaseStorage(settings.storage_url, settings.storage_key)


broker = NatsBroker(nats_url)
engine = create_async_engine(db_url, echo=False)
service = AccountService(
    engine=engine,
    storage=build_storage(),
    mailer=SmtpMailSender(
        server=settings.smtp_server,
        port=settings.smtp_port,
        user=settings.mail_user,
        password=settings.mail_password,
        sender_name=settings.mail_sender_name,
    ),
    authenticator=Authenticator(
        key=secret,
        algorithm=algorithm,
        expire=settings.access_token_expire,
        setup_expire=settings.setup_token_expire,
    ),
    publisher=NatsEventPublisher(broker),
    frontend_url=settings.frontend_url,
    reset_window=settings.reset_token_expire,
    reveal_unknown_email=settings.reveal_unknown_email,
)


@broker.subscriber(
    subject=RESET_WINDOW_SWEEP_SUBJECT,
    durable="AccountsResetWindowSweepDueV1",
    stream=JStream(name="accounts", declare=False),
    description="Clears reset tokens whose window has closed.",
)
async def handle_reset_window_sweep(msg: ResetWindowSweepDueV1):
    cleared = await service.sweep_expired_reset_tokens()
    logger.info(f"Reset window sweep {msg.id} cleared {cleared} token(s)")


api = create_api(service, broker=broker)
