# api/utils.py
"""
Utility functions for the API.
"""
import uuid
import hashlib
import logging
from typing import Optional, Union
from fastapi import HTTPException
from postgrest.exceptions import APIError
from pydantic import ValidationError

logger = logging.getLogger("crisis-api.utils")

# PostgREST error codes
POSTGREST_UUID_SYNTAX_ERROR = '22P02'  # invalid_text_representation


def hash_user_id_for_logging(user_id: str) -> str:
    """
    Hash a user ID for privacy-preserving logging.

    Args:
        user_id: The user ID to hash

    Returns:
        First 8 characters of SHA-256 hash
    """
    return hashlib.sha256(str(user_id).encode()).hexdigest()[:8]


def is_valid_uuid(value: Optional[str]) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
        return True
    except ValueError:
        return False


def find_uuid_in_path(path: str) -> Optional[str]:
    """Return the first UUID-like segment of a URL path, if any."""
    for part in path.split('/'):
        if len(part) == 36 and part.count('-') == 4:
            return part
    return None


def validate_uuid_or_400(value: str, param_name: str = "id") -> str:
    """
    Validates that a string is a valid UUID format.

    Raises:
        HTTPException: 400 Bad Request if the value is not a valid UUID
    """
    if not is_valid_uuid(value):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid UUID format for {param_name}: {value}"
        )
    return value


def handle_postgrest_error(e: Union[APIError, Exception], user_id: str) -> None:
    """
    Maps PostgREST errors from read endpoints to HTTPExceptions.

    22P02 (invalid UUID in query) -> 400, 401/403 -> 401/403,
    response validation failures and anything else -> 500.
    """
    error_msg = str(e)
    error_code = getattr(e, 'code', None) if isinstance(e, APIError) else None
    user_hash = hash_user_id_for_logging(user_id)

    if error_code == POSTGREST_UUID_SYNTAX_ERROR:
        logger.warning(f"PostgREST UUID syntax error for user_hash={user_hash}: {e}")
        raise HTTPException(
            status_code=400,
            detail=f"Invalid UUID format in database query: {user_id}"
        )

    if error_code == '401' or '401' in error_msg:
        logger.error(f"PostgREST Auth Error (401) for user_hash={user_hash}: {e}")
        raise HTTPException(
            status_code=401,
            detail="Unauthorized: Database access denied. Check API configuration."
        )

    if error_code == '403' or '403' in error_msg:
        logger.error(f"PostgREST Permission Error (403) for user_hash={user_hash}: {e}")
        raise HTTPException(
            status_code=403,
            detail="Forbidden: Insufficient permissions for this operation."
        )

    if isinstance(e, ValidationError) or "validation error" in error_msg.lower():
        logger.error(f"Validation Error processing DB response for user_hash={user_hash}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal Server Error: Failed to process database response."
        )

    logger.exception(f"PostgREST APIError for user_hash={user_hash}: {e}")

    detail = "Database error"
    if getattr(e, 'details', None):
        detail = f"Database error: {str(e.details)}"
    elif getattr(e, 'message', None):
        detail = f"Database error: {e.message}"

    raise HTTPException(status_code=500, detail=detail)
