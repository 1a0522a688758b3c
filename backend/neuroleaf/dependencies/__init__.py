"""
FastAPI Dependencies for Neuroleaf
"""

from neuroleaf.dependencies.auth import (
    get_current_account,
    verify_account_access,
    verify_supabase_jwt,
)

__all__ = [
    "get_current_account",
    "verify_account_access",
    "verify_supabase_jwt",
]
