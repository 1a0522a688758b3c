# Services module

# Tier catalog and quotas
from neuroleaf.services.subscription import (
    UNLIMITED,
    AccountNotFoundError,
    TierLimits,
    get_tier_limits,
    get_available_plans,
    apply_tier,
)
from neuroleaf.services.usage import (
    Resource,
    count_usage,
    get_current_usage,
    record_ai_generation,
)
from neuroleaf.services.entitlements import (
    Action,
    EntitlementResult,
    QuotaExceededError,
    can_perform,
    can_access_deck,
    get_accessible_deck_ids,
)

# Decks and flashcards
from neuroleaf.services.deck_service import (
    DeckNotFoundError,
    DeckAccessDeniedError,
    create_deck,
    get_deck,
    list_decks,
    delete_deck,
)
from neuroleaf.services.flashcard_service import (
    FlashcardNotFoundError,
    bulk_create_flashcards,
    create_flashcard,
)
from neuroleaf.services.flashcard_generator import AIGenerationError, generate_flashcards

# Test mode
from neuroleaf.services.test_session import (
    start_test_session,
    submit_test_response,
    complete_test_session,
    grade_test_comprehensive,
)
from neuroleaf.services.performance_analytics import (
    compute_mastery_level,
    recompute_performance_analytics,
)

# Billing
from neuroleaf.services.stripe_service import (
    StripeGateway,
    BillingError,
    BillingConfigurationError,
    process_event,
)

__all__ = [
    # Subscription
    "UNLIMITED",
    "AccountNotFoundError",
    "TierLimits",
    "get_tier_limits",
    "get_available_plans",
    "apply_tier",
    # Usage
    "Resource",
    "count_usage",
    "get_current_usage",
    "record_ai_generation",
    # Entitlements
    "Action",
    "EntitlementResult",
    "QuotaExceededError",
    "can_perform",
    "can_access_deck",
    "get_accessible_deck_ids",
    # Decks
    "DeckNotFoundError",
    "DeckAccessDeniedError",
    "create_deck",
    "get_deck",
    "list_decks",
    "delete_deck",
    # Flashcards
    "FlashcardNotFoundError",
    "bulk_create_flashcards",
    "create_flashcard",
    "AIGenerationError",
    "generate_flashcards",
    # Test mode
    "start_test_session",
    "submit_test_response",
    "complete_test_session",
    "grade_test_comprehensive",
    "compute_mastery_level",
    "recompute_performance_analytics",
    # Billing
    "StripeGateway",
    "BillingError",
    "BillingConfigurationError",
    "process_event",
]
