"""
Authentication Dependencies for Neuroleaf

Provides FastAPI dependencies for:
- Supabase JWT verification (HS256, shared secret)
- Account resolution, with first-sight signup on the free tier
- IDOR protection

Usage:
    @router.get("/protected")
    def protected_endpoint(current_account: Account = Depends(get_current_account)):
        return {"account_id": current_account.id}
"""

import os
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Header, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from jose import jwt, JWTError

from neuroleaf.database import get_db
from neuroleaf.models.models import Account
from neuroleaf.services.subscription import DEFAULT_TIER, get_tier_limits

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def verify_supabase_jwt(token: str) -> dict:
    """
    Verify a Supabase access token and return its claims.

    The secret and optional audience are read per call so that rotating them
    in the environment takes effect without a restart.

    Raises:
        HTTPException: 500 if no secret is configured, 401 if the token is invalid or expired
    """
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if not secret:
        logger.critical("SUPABASE_JWT_SECRET is not configured; authentication is disabled")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication configuration error. Please contact support."
        )

    decode_kwargs = {"algorithms": [JWT_ALGORITHM]}
    audience = os.getenv("SUPABASE_JWT_AUDIENCE")
    if audience:
        decode_kwargs["audience"] = audience
    else:
        decode_kwargs["options"] = {"verify_aud": False}

    try:
        return jwt.decode(token, secret, **decode_kwargs)
    except JWTError as e:
        logger.warning("JWT verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )


def _create_account(db: Session, account_id: str, email: str, name: Optional[str]) -> Account:
    limits = get_tier_limits(DEFAULT_TIER)
    account = Account(
        id=account_id,
        email=email,
        name=name,
        subscription_tier=DEFAULT_TIER,
        deck_limit=limits.deck_limit,
        flashcard_limit_per_deck=limits.flashcard_limit_per_deck,
    )
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request for the same account won the insert
        db.rollback()
        existing = db.query(Account).filter(Account.id == account_id).first()
        if existing is None:
            raise
        return existing

    db.refresh(account)
    logger.info("Created free account %s on first sign-in", account_id)
    return account


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> Account:
    """
    FastAPI dependency to get the currently authenticated account.

    Validates the bearer JWT and returns the account whose id is the token's
    `sub` claim. An unknown subject is a new signup and gets a free account.

    Raises:
        HTTPException: If not authenticated or the token lacks required claims
    """
    token = None
    if credentials:
        token = credentials.credentials
    elif authorization and authorization.startswith("Bearer "):
        token = authorization[7:]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    claims = verify_supabase_jwt(token)

    account_id = claims.get("sub")
    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims"
        )

    account = db.query(Account).filter(Account.id == account_id).first()
    if account:
        return account

    email = claims.get("email")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing email claim"
        )

    metadata = claims.get("user_metadata") or {}
    return _create_account(db, account_id, email, metadata.get("full_name") or metadata.get("name"))


def verify_account_access(current_account: Account, account_id: str) -> None:
    """
    Verify that the current account may read the requested account's data.

    Prevents IDOR (Insecure Direct Object Reference) attacks.

    Raises:
        HTTPException: If access is denied or account_id is invalid
    """
    # SECURITY: Validate account_id is not empty/None to prevent bypass
    if not account_id or not str(account_id).strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid account ID"
        )

    if current_account.id != account_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )
