"""
Authentication and user schemas.
"""
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, validator

from kneecare.models.user import Role

Gender = Literal["male", "female", "other"]
BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class MedicalInfo(BaseModel):
    """Patient medical details."""
    height_cm: Optional[float] = Field(None, ge=100, le=250)
    blood_type: Optional[BloodType] = None
    allergies: List[str] = []
    chronic_conditions: List[str] = []
    emergency_contact: Optional[EmergencyContact] = None


class DoctorInfo(BaseModel):
    """Doctor professional details."""
    license_number: Optional[str] = Field(None, max_length=100)
    specialization: Optional[str] = Field(None, max_length=255)
    experience_years: Optional[int] = Field(None, ge=0, le=50)
    hospital: Optional[str] = Field(None, max_length=255)


class UserRegister(BaseModel):
    """Schema for registering an identity."""
    email: EmailStr
    password: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    role: Role = Role.PATIENT
    admin_secret: Optional[str] = None
    medical_info: Optional[MedicalInfo] = None
    doctor_info: Optional[DoctorInfo] = None

    @validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class PasswordChange(BaseModel):
    """Schema for password change."""
    current_password: str
    new_password: str

    @validator('new_password')
    def validate_new_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v


class UserResponse(BaseModel):
    """Schema for user response."""
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    profile_picture: Optional[str] = None
    role: str
    is_active: bool
    height_cm: Optional[float] = None
    blood_type: Optional[str] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    emergency_contact: Optional[dict] = None
    license_number: Optional[str] = None
    specialization: Optional[str] = None
    experience_years: Optional[int] = None
    hospital: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Identity summary plus bearer token."""
    success: bool = True
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserUpdate(BaseModel):
    """Profile changes; fields the caller's role may not change are dropped."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    profile_picture: Optional[str] = Field(None, max_length=500)
    height_cm: Optional[float] = Field(None, ge=100, le=250)
    blood_type: Optional[BloodType] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    emergency_contact: Optional[EmergencyContact] = None
    specialization: Optional[str] = Field(None, max_length=255)
    experience_years: Optional[int] = Field(None, ge=0, le=50)
    hospital: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    license_number: Optional[str] = Field(None, max_length=100)
