from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from application.services import (
    OperationResult,
    authorize,
    check_store_connection,
    check_username_available,
    delete_owned_message,
    get_messages,
    send_message,
)
from domain.errors import ErrorKind, InfrastructureError
from domain.models import CallerIdentity
from domain.repositories import AccountRepository, IdentityRepository

logger = logging.getLogger(__name__)

SESSION_PROVIDER = "web"

STATUS_BY_ERROR = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INFRASTRUCTURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ApiResponse(BaseModel):
    """Envelope shared by every endpoint."""

    success: bool
    message: str


class MessageOut(BaseModel):
    id: str
    content: str
    created_at: datetime


class MessagesResponse(ApiResponse):
    messages: List[MessageOut] = []


class SendMessageRequest(BaseModel):
    username: str
    content: str


def _respond(status_code: int, success: bool, message: str) -> JSONResponse:
    body = ApiResponse(success=success, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _respond_error(result: OperationResult) -> JSONResponse:
    return _respond(STATUS_BY_ERROR[result.error], False, result.error_message or "")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_app(
    account_repo: AccountRepository,
    identity_repo: IdentityRepository,
) -> FastAPI:
    """
    Build the HTTP API around the given repositories.

    Sessions are issued by an external service which records
    `("web", token) -> account_id` in the identity repository; this app
    only resolves bearer tokens through that mapping.
    """

    app = FastAPI(title="Anonymous Inbox API")

    @app.exception_handler(InfrastructureError)
    async def infrastructure_error_handler(request: Request, exc: InfrastructureError):
        logger.error("Store failure while handling %s %s: %s", request.method, request.url.path, exc)
        return _respond(status.HTTP_500_INTERNAL_SERVER_ERROR, False, "Internal Server Error")

    def get_caller(
        authorization: Optional[str] = Header(default=None),
    ) -> Optional[CallerIdentity]:
        token = _bearer_token(authorization)
        if token is None:
            return None
        account_id = identity_repo.find_account_id_by_external(SESSION_PROVIDER, token)
        if account_id is None:
            return None
        return CallerIdentity(account_id=account_id)

    @app.get("/api/check-username-unique", response_model=ApiResponse)
    def check_username_unique(username: Optional[str] = None):
        result = check_username_available(username, account_repo)
        if not result.success:
            return _respond_error(result)
        if not result.available:
            return _respond(status.HTTP_400_BAD_REQUEST, False, "Username is already taken")
        return _respond(status.HTTP_200_OK, True, "Username is unique")

    @app.delete("/api/delete-message/{message_id}", response_model=ApiResponse)
    def delete_message_route(
        message_id: str,
        account_id: Optional[str] = None,
        caller: Optional[CallerIdentity] = Depends(get_caller),
    ):
        result = delete_owned_message(caller, message_id, account_repo, account_id=account_id)
        if not result.success:
            return _respond_error(result)
        if not result.deleted:
            return _respond(
                status.HTTP_404_NOT_FOUND, False, "Message Not Found or Already Deleted"
            )
        return _respond(status.HTTP_200_OK, True, "Message Deleted")

    @app.post("/api/send-message", response_model=ApiResponse)
    def send_message_route(payload: SendMessageRequest):
        result = send_message(payload.username, payload.content, account_repo)
        if not result.success:
            return _respond_error(result)
        return _respond(status.HTTP_201_CREATED, True, "Message sent successfully")

    @app.get("/api/get-messages", response_model=MessagesResponse)
    def get_messages_route(caller: Optional[CallerIdentity] = Depends(get_caller)):
        auth = authorize(caller, caller.account_id if caller else None)
        if not auth.success:
            return _respond_error(auth)

        result = get_messages(auth.authorization, account_repo)
        if not result.success:
            return _respond_error(result)

        body = MessagesResponse(
            success=True,
            message="Messages loaded",
            messages=[
                MessageOut(id=m.id, content=m.content, created_at=m.created_at)
                for m in result.messages
            ],
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(mode="json"))

    @app.get("/api/test-db", response_model=ApiResponse)
    def test_db():
        result = check_store_connection(account_repo)
        if not result.success:
            return _respond_error(result)
        return _respond(status.HTTP_200_OK, True, "Database connection is healthy")

    return app
