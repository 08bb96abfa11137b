"""Request field validation helpers"""
from typing import Iterable, Optional
from fastapi import HTTPException, status
from models import RecordStatus, enum_values


def require_fields(message: str, *values) -> None:
    """Reject the request when any required value is missing or blank"""
    for value in values:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=message
            )


def validate_choice(value: Optional[str], choices: Iterable[str], message: str) -> Optional[str]:
    """Ensure an optional value is one of the allowed choices"""
    if value is None:
        return None
    if value not in list(choices):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )
    return value


def validate_record_status(value: Optional[str], message: str = "Valid status (active or inactive) is required") -> str:
    """Status toggles accept only active/inactive"""
    if not value or value not in enum_values(RecordStatus):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )
    return value


def normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else email
