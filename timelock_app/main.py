"""
TimeLock HTTP service.

Exposes the escrow entry points over FastAPI. The calling identity is
taken from the X-Account header, which a trusted gateway is expected to
set after authenticating the caller.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from timelock import __version__
from timelock.collaborators import InMemoryCredentialRegistry, InMemoryToken
from timelock.errors import ErrorCode, TimeLockError
from timelock.events import EventName, InMemoryEventLog
from timelock.keys import EventSigner
from timelock.logging_config import configure_logging, set_request_id
from timelock.replay import SqliteConsumedTokenStore
from timelock.service import TimeLock, TimeLockSettings
from timelock.util import to_hex

from . import config
from .models import EarlyWithdrawalRequest, LockRequest, RoleRequest, UnlockRequest
from .rate_limit import RateLimiter
from .security import (
    ValidationError,
    caller_from_header,
    parse_deposit_authorization,
    parse_release_authorization,
    validate_address,
    validate_role,
    validate_signature,
)

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.INVALID_SIGNATURE: 403,
    ErrorCode.INVALID_SIGNER: 403,
    ErrorCode.DEADLINE_EXPIRED: 403,
    ErrorCode.AUTHORIZATION_REUSED: 403,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.LOCK_NOT_FOUND: 404,
    ErrorCode.NO_LOCKS_FOUND: 404,
    ErrorCode.IN_LOCK_PERIOD: 409,
    ErrorCode.ALREADY_RELEASED: 409,
    ErrorCode.RELEASE_MODE_MISMATCH: 409,
    ErrorCode.CONTRACT_PAUSED: 423,
    ErrorCode.TRANSFER_FAILED: 402,
}


def build_service() -> TimeLock:
    """Wire a service from environment configuration with in-memory collaborators."""
    settings = TimeLockSettings(
        service_address=config.SERVICE_ADDRESS,
        admin=config.ADMIN_ADDRESS,
        default_lock_period=config.DEFAULT_LOCK_PERIOD,
        early_lock_period=config.EARLY_LOCK_PERIOD,
        domain_name=config.DOMAIN_NAME,
        domain_version=config.DOMAIN_VERSION,
        chain_id=config.CHAIN_ID,
        release_mode=config.RELEASE_MODE,
    )
    signer = EventSigner.from_file(config.EVENT_SIGNING_KEY_PATH) if config.EVENT_SIGNING_KEY_PATH else None
    token = InMemoryToken()
    if config.DEV_BALANCES and not config.is_production():
        balances = config.parse_balances(config.DEV_BALANCES)
        for account, amount in balances.items():
            token.mint(account, amount)
            token.approve(account, settings.service_address, amount)
        logger.info("Funded %d dev account(s) on the in-memory token", len(balances))
    registry = InMemoryCredentialRegistry(admin=settings.service_address)
    return TimeLock(
        settings,
        token.client(settings.service_address),
        credential_registry=registry.client(settings.service_address),
        token_store=SqliteConsumedTokenStore(config.TOKEN_STORE_PATH),
        event_log=InMemoryEventLog(signer),
    )


def create_app(
    service: TimeLock,
    lock_rpm: int = config.LOCK_RPM,
    unlock_rpm: int = config.UNLOCK_RPM
) -> FastAPI:
    app = FastAPI(title="TimeLock Escrow", version=__version__, debug=config.is_debug())
    app.state.service = service

    lock_limiter = RateLimiter(lock_rpm)
    unlock_limiter = RateLimiter(unlock_rpm)

    # ============================================================
    # Middleware and error mapping
    # ============================================================

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(TimeLockError)
    async def timelock_error_handler(request: Request, exc: TimeLockError):
        return JSONResponse(status_code=STATUS_BY_CODE.get(exc.code, 400), content=exc.to_dict())

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": "ValidationError", "detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"error": "ValidationError", "detail": str(exc)})

    def _limit(limiter: RateLimiter, caller: str) -> None:
        if not limiter.allow(caller):
            raise HTTPException(429, "RATE_LIMIT")

    # ============================================================
    # Escrow entry points
    # ============================================================

    @app.post("/lock")
    def lock(req: LockRequest, x_account: Optional[str] = Header(None)):
        caller = caller_from_header(x_account)
        _limit(lock_limiter, caller)
        authorization = parse_deposit_authorization(req.authorization)
        signature = validate_signature(req.signature)
        index = service.lock(caller, req.amount, authorization, signature)
        return service.get_lock(caller, index).to_dict()

    @app.post("/unlock")
    def unlock(req: UnlockRequest, x_account: Optional[str] = Header(None)):
        caller = caller_from_header(x_account)
        _limit(unlock_limiter, caller)
        authorization = None
        signature = None
        if req.authorization is not None:
            authorization = parse_release_authorization(req.authorization)
        if req.signature is not None:
            signature = validate_signature(req.signature)
        record = service.unlock(caller, req.index, authorization, signature)
        return record.to_dict()

    @app.post("/early_withdrawal")
    def early_withdrawal(req: EarlyWithdrawalRequest, x_account: Optional[str] = Header(None)):
        caller = caller_from_header(x_account)
        account = validate_address(req.account, "account")
        record = service.set_early_withdrawal(caller, account, req.index, req.allowed)
        return record.to_dict()

    @app.post("/pause")
    def pause(x_account: Optional[str] = Header(None)):
        changed = service.pause(caller_from_header(x_account))
        return {"paused": service.paused, "changed": changed}

    @app.post("/unpause")
    def unpause(x_account: Optional[str] = Header(None)):
        changed = service.unpause(caller_from_header(x_account))
        return {"paused": service.paused, "changed": changed}

    @app.post("/roles/grant")
    def grant_role(req: RoleRequest, x_account: Optional[str] = Header(None)):
        caller = caller_from_header(x_account)
        role = validate_role(req.role)
        account = validate_address(req.account, "account")
        changed = service.grant_role(caller, role, account)
        return {"role": role.value, "account": account, "granted": True, "changed": changed}

    @app.post("/roles/revoke")
    def revoke_role(req: RoleRequest, x_account: Optional[str] = Header(None)):
        caller = caller_from_header(x_account)
        role = validate_role(req.role)
        account = validate_address(req.account, "account")
        changed = service.revoke_role(caller, role, account)
        return {"role": role.value, "account": account, "granted": False, "changed": changed}

    # ============================================================
    # Read queries
    # ============================================================

    @app.get("/locks/{account}/last")
    def last_lock(account: str):
        return service.get_user_last_lock(validate_address(account, "account")).to_dict()

    @app.get("/locks/{account}/{index}")
    def get_lock(account: str, index: int):
        account = validate_address(account, "account")
        record = service.get_lock(account, index)
        out = record.to_dict()
        status = service.certificate_status(account, index)
        out["certificate_status"] = status.value if status is not None else None
        return out

    @app.get("/config")
    def get_config():
        return {
            "domain": service.settings.domain().to_dict(),
            "domain_separator": to_hex(service.domain_separator),
            "default_lock_period": service.default_lock_period,
            "early_lock_period": service.early_lock_period,
            "release_mode": service.settings.release_mode.value,
            "paused": service.paused,
        }

    @app.get("/events")
    def events(name: Optional[str] = None, account: Optional[str] = None):
        event_name = EventName(name) if name else None
        if account is not None:
            account = validate_address(account, "account")
        return {
            "events": [e.to_dict() for e in service.events.query(event_name, account)],
            "latest_entry_hash": service.events.latest_entry_hash(),
            "public_key_b64": service.events.public_key_b64,
        }

    @app.get("/events/export")
    def export_events():
        return service.events.export()

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "version": __version__,
            "env": config.ENV,
            "paused": service.paused,
            "config": config.validate_config(),
        }

    logger.info("TimeLock service %s ready (release mode %s)", service.address, service.settings.release_mode.value)
    return app


configure_logging(config.LOG_LEVEL, json_format=config.is_production())
app = create_app(build_service())
