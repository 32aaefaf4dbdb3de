"""
FastAPI REST API Module

Exposes the single-session banking operations over HTTP: login, logout,
deposit, pay and account inspection. State lives in process memory only.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictInt
import uvicorn

from . import __version__
from .banking import BankingService, Session, build_service
from .config import LedgerConfig, get_config
from .errors import (
    AccountBusy, InvalidArgument, LedgerError, LedgerInconsistency,
    NotLoggedIn, UnknownAccount
)
from .logging_config import get_logger


logger = get_logger("ledger.api")


# Pydantic models for API requests
class LoginRequest(BaseModel):
    name: str = Field(..., description="Account name; created if it does not exist")


class DepositRequest(BaseModel):
    amount: StrictInt = Field(..., description="Amount in the smallest currency unit")


class PayRequest(BaseModel):
    target: str = Field(..., description="Name of the account being paid")
    amount: StrictInt = Field(..., description="Amount in the smallest currency unit")


ERROR_STATUS = (
    (InvalidArgument, status.HTTP_400_BAD_REQUEST),
    (NotLoggedIn, status.HTTP_401_UNAUTHORIZED),
    (UnknownAccount, status.HTTP_404_NOT_FOUND),
    (AccountBusy, status.HTTP_409_CONFLICT),
    (LedgerInconsistency, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(error: LedgerError) -> HTTPException:
    """Map a ledger error onto the matching HTTP status"""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def create_app(
    service: Optional[BankingService] = None,
    session: Optional[Session] = None,
    config: Optional[LedgerConfig] = None
) -> FastAPI:
    """
    Build the API around one banking service and one session

    Args:
        service: Banking service; built from config when omitted
        session: Session shared by every request; a fresh one when omitted
        config: Configuration used to bootstrap the service

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()

    app = FastAPI(
        title="Retail Ledger API",
        description="Toy retail-banking ledger with debt netting",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.service = service or build_service(config)
    app.state.session = session or Session()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Malformed bodies are bad arguments, like InvalidArgument
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())}
        )

    def get_service(request: Request) -> BankingService:
        return request.app.state.service

    def get_session(request: Request) -> Session:
        return request.app.state.session

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    async def root():
        """Root endpoint with system information"""
        return {
            "system": "Retail Ledger",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "session": "/session",
                "login": "/session/login",
                "logout": "/session/logout",
                "deposit": "/deposit",
                "pay": "/pay",
                "accounts": "/accounts/{account_id}",
                "integrity": "/ledger/integrity"
            }
        }

    @app.post("/session/login")
    def login(
        request: LoginRequest,
        service: BankingService = Depends(get_service),
        session: Session = Depends(get_session)
    ):
        """Log in, creating the account if needed"""
        try:
            return service.login(session, request.name).to_dict()
        except LedgerError as e:
            raise to_http_exception(e)

    @app.post("/session/logout")
    def logout(
        service: BankingService = Depends(get_service),
        session: Session = Depends(get_session)
    ):
        """Clear the active account"""
        service.logout(session)
        return {"message": "Logged out"}

    @app.get("/session")
    def current_session(
        service: BankingService = Depends(get_service),
        session: Session = Depends(get_session)
    ):
        """Summary of the active account"""
        try:
            return service.current(session).to_dict()
        except LedgerError as e:
            raise to_http_exception(e)

    @app.post("/deposit")
    def deposit(
        request: DepositRequest,
        service: BankingService = Depends(get_service),
        session: Session = Depends(get_session)
    ):
        """Top up the active account and sweep its debts"""
        try:
            return service.deposit(session, request.amount).to_dict()
        except LedgerInconsistency as e:
            logger.critical("Ledger inconsistency during deposit: %s", e)
            raise to_http_exception(e)
        except LedgerError as e:
            raise to_http_exception(e)

    @app.post("/pay")
    def pay(
        request: PayRequest,
        service: BankingService = Depends(get_service),
        session: Session = Depends(get_session)
    ):
        """Pay another account from the active account"""
        try:
            return service.pay(session, request.target, request.amount).to_dict()
        except LedgerError as e:
            raise to_http_exception(e)

    @app.get("/accounts/{account_id}")
    def get_account(
        account_id: str,
        service: BankingService = Depends(get_service)
    ):
        """Get account balance and debts"""
        try:
            return service.summary(account_id).to_dict()
        except LedgerError as e:
            raise to_http_exception(e)

    @app.get("/ledger/integrity")
    def verify_integrity(service: BankingService = Depends(get_service)):
        """Verify that every debt is mirrored on both sides"""
        return service.directory.verify_debt_symmetry()

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None,
               config: Optional[LedgerConfig] = None):
    """Run the FastAPI server"""
    config = config or get_config()
    uvicorn.run(
        create_app(config=config),
        host=host or config.api_host,
        port=port or config.api_port,
        log_level=config.log_level.lower()
    )
