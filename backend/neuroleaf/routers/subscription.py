"""
Subscription Router

API endpoints for tier limits, entitlement checks and usage tracking.

SECURITY: All account-specific endpoints require authentication and IDOR protection.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from neuroleaf.database import get_db
from neuroleaf.models.models import Account
from neuroleaf.dependencies.auth import get_current_account, verify_account_access
from neuroleaf.services.deck_service import DeckAccessDeniedError, DeckNotFoundError, get_deck
from neuroleaf.services.entitlements import (
    Action,
    can_perform,
    get_subscription_info,
    get_upgrade_suggestion,
)
from neuroleaf.services.subscription import get_available_plans
from neuroleaf.services.usage import get_current_usage


router = APIRouter(prefix="/api/subscription", tags=["subscription"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class EntitlementCheckRequest(BaseModel):
    action: Action
    requested_quantity: int = Field(1, ge=1)
    deck_id: Optional[str] = None


# =============================================================================
# STATUS ENDPOINTS
# =============================================================================

@router.get("/status")
def get_status(
    account_id: Optional[str] = None,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Tier, limits and deck headroom.

    SECURITY: account_id, when given, must be the caller's own.
    """
    if account_id is not None:
        verify_account_access(current_account, account_id)
    return get_subscription_info(db, current_account.id)


@router.get("/usage")
def get_usage(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Usage counters for the current calendar month."""
    return get_current_usage(db, current_account.id)


@router.post("/check")
def check_entitlement(
    request: EntitlementCheckRequest,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Ask whether an action would be allowed, without performing it.

    A denial is a normal answer (200 with allowed=false), not an error.
    deck_id must name one of the caller's accessible decks.
    """
    if request.action == Action.CREATE_FLASHCARDS and not request.deck_id:
        raise HTTPException(status_code=400, detail="deck_id is required for create_flashcards")

    if request.deck_id is not None:
        try:
            get_deck(db, current_account.id, request.deck_id)
        except DeckNotFoundError:
            raise HTTPException(status_code=404, detail="Deck not found")
        except DeckAccessDeniedError as e:
            raise HTTPException(status_code=403, detail=e.reason)

    result = can_perform(
        db,
        current_account.id,
        request.action,
        requested_quantity=request.requested_quantity,
        deck_id=request.deck_id,
    )
    return result.to_dict()


# =============================================================================
# PLANS
# =============================================================================

@router.get("/plans")
def get_plans():
    """Public plan catalog for the pricing page."""
    return {"plans": get_available_plans()}


@router.get("/upgrade-suggestion")
def upgrade_suggestion(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    return get_upgrade_suggestion(db, current_account.id)
