"""Account domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ...models import Role, VerificationStatus


class RoleSelection(BaseModel):
    """Onboarding choice; doctors also submit their profile for review"""

    role: Role
    specialty: Optional[str] = None
    experience: Optional[int] = None
    credential_url: Optional[str] = None
    description: Optional[str] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        if v not in (Role.PATIENT, Role.DOCTOR):
            raise ValueError("role must be PATIENT or DOCTOR")
        return v

    @field_validator("experience")
    @classmethod
    def validate_experience(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("experience cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_doctor_profile(self):
        if self.role == Role.DOCTOR:
            if not self.specialty or self.experience is None or not self.credential_url:
                raise ValueError(
                    "specialty, experience and credential_url are required for doctor registration"
                )
        return self


class DoctorStatusUpdate(BaseModel):
    status: VerificationStatus

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: VerificationStatus) -> VerificationStatus:
        if v not in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
            raise ValueError("status must be VERIFIED or REJECTED")
        return v


class SuspensionUpdate(BaseModel):
    suspend: bool


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role
    verification_status: Optional[VerificationStatus] = None
    credits: int
    specialty: Optional[str] = None
    experience: Optional[int] = None
    credential_url: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class DoctorProfileResponse(BaseModel):
    """Public view of a verified doctor"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    specialty: Optional[str] = None
    experience: Optional[int] = None
    description: Optional[str] = None
