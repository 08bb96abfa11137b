"""Referential and uniqueness rules for staff, teams and cities"""
from typing import Optional
from fastapi import HTTPException, status
from sqlmodel import Session, select, func
from models import (
    City, District, Distributor, Doctor, Team, User,
    UserRole, RecordStatus,
)


def get_district_or_404(session: Session, district_id: int) -> District:
    district = session.get(District, district_id)
    if not district:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="District not found"
        )
    return district


def validate_team_in_district(session: Session, team_id: int, district_id: int) -> Team:
    """The team must exist and belong to the given district"""
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Team not found"
        )
    if team.district_id != district_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Team does not belong to the selected district"
        )
    return team


def find_active_kam(session: Session, district_id: int, team_id: int) -> Optional[User]:
    """The single active KAM for a district+team pair, if any"""
    return session.exec(
        select(User).where(
            User.role == UserRole.KAM.value,
            User.status == RecordStatus.ACTIVE.value,
            User.district_id == district_id,
            User.team_id == team_id,
        )
    ).first()


def validate_single_active_kam(
    session: Session,
    district_id: int,
    team_id: int,
    exclude_user_id: Optional[int] = None
) -> None:
    """At most one active KAM may cover a district+team pair"""
    existing = find_active_kam(session, district_id, team_id)
    if existing and existing.id != exclude_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An active KAM is already assigned to this district and team"
        )


def validate_email_available(session: Session, model, email: str, exclude_id: Optional[int] = None) -> None:
    """Emails are unique per account table"""
    existing = session.exec(select(model).where(func.lower(model.email) == email.lower())).first()
    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already exists"
        )


def validate_city_name_available(session: Session, name: str, exclude_id: Optional[int] = None) -> None:
    """City names are unique, compared case-insensitively"""
    existing = session.exec(
        select(City).where(func.lower(City.name) == name.strip().lower())
    ).first()
    if existing and existing.id != exclude_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="City with this name already exists"
        )


def get_assignable_distributor(session: Session, distributor_id: int) -> Distributor:
    """A local-channel city needs an existing, active distributor"""
    distributor = session.get(Distributor, distributor_id)
    if not distributor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Distributor not found"
        )
    if distributor.status != RecordStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot assign an inactive distributor"
        )
    return distributor


def assign_kam_to_unowned_doctors(session: Session, kam: User) -> int:
    """Give a newly active KAM the doctors of its district+team that have none"""
    doctors = session.exec(
        select(Doctor).where(
            Doctor.district_id == kam.district_id,
            Doctor.team_id == kam.team_id,
            Doctor.kam_id.is_(None),
        )
    ).all()
    for doctor in doctors:
        doctor.kam_id = kam.id
        session.add(doctor)
    return len(doctors)
