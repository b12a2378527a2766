from __future__ import annotations

from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...context import AppContext
from ...errors import AccountExistsError, AuthError
from ...sync import SyncReport
from ..dependencies import get_context
from ..schemas import Credentials, SessionChangeOut, SessionOut, SyncReportOut

router = APIRouter(
    prefix="/api/v1/session",
    tags=["session"],
)


def _session(context: AppContext) -> SessionOut:
    return SessionOut.from_user(context.current_user, context.mode)


async def _change(context: AppContext, change: Awaitable[Optional[SyncReport]]) -> SessionChangeOut:
    try:
        report = await change
    except AccountExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    return SessionChangeOut(
        session=_session(context),
        sync=SyncReportOut.from_report(report) if report is not None else None,
    )


# PUBLIC_INTERFACE
@router.get("/", response_model=SessionOut, summary="Current Session")
def get_session(context: AppContext = Depends(get_context)) -> SessionOut:
    """Return the signed-in user (if any) and whether data is served locally or from the cloud."""
    return _session(context)


# PUBLIC_INTERFACE
@router.post(
    "/anonymous",
    response_model=SessionChangeOut,
    summary="Anonymous Sign-In",
    description="Start an anonymous session. Data stays in the local store.",
)
async def sign_in_anonymously(context: AppContext = Depends(get_context)) -> SessionChangeOut:
    return await _change(context, context.sign_in_anonymously())


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=SessionChangeOut,
    summary="Register",
    description=(
        "Create an email/password account and sign in. An anonymous session is "
        "upgraded in place. Local data is merged into the new account's cloud store."
    ),
    responses={
        401: {"description": "Invalid email or weak password"},
        409: {"description": "Email already registered"},
    },
)
async def register(payload: Credentials, context: AppContext = Depends(get_context)) -> SessionChangeOut:
    return await _change(context, context.register(payload.email, payload.password))


# PUBLIC_INTERFACE
@router.post(
    "/sign-in",
    response_model=SessionChangeOut,
    summary="Sign In",
    description="Sign in with email and password; local data is merged into the account's cloud store.",
    responses={401: {"description": "Invalid email or password"}},
)
async def sign_in(payload: Credentials, context: AppContext = Depends(get_context)) -> SessionChangeOut:
    return await _change(context, context.sign_in(payload.email, payload.password))


# PUBLIC_INTERFACE
@router.post(
    "/sign-out",
    response_model=SessionChangeOut,
    summary="Sign Out",
    description="Copy cloud data to the local store, then sign out.",
)
async def sign_out(context: AppContext = Depends(get_context)) -> SessionChangeOut:
    return await _change(context, context.sign_out())
