"""
Identity and credential store: registration, authentication and tokens.
"""
import logging
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kneecare.core.config import Settings
from kneecare.core.exceptions import (
    ConflictError, ForbiddenError, UnauthorizedError, ValidationError,
)
from kneecare.core.security import (
    build_password_context, create_access_token, get_password_hash, verify_password, verify_token,
)
from kneecare.models.lifecycle import utcnow
from kneecare.models.user import Role, User
from kneecare.schemas.auth import UserRegister

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class AuthService:
    """Service for handling authentication operations."""

    def __init__(self, db: Session, settings: Settings, pwd_context: Optional[CryptContext] = None):
        self.db = db
        self.settings = settings
        self.pwd_context = pwd_context or build_password_context(settings.PASSWORD_BCRYPT_ROUNDS)

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        return self.db.query(User).filter(func.lower(User.email) == email.lower()).first()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return self.db.query(User).filter(User.id == user_id).first()

    def register(self, data: UserRegister, require_admin_secret: bool = True) -> User:
        """Create a new identity after the role-specific checks."""
        email = data.email.lower()
        if self.get_user_by_email(email):
            raise ConflictError("User already exists with this email")

        if data.role == Role.ADMIN and require_admin_secret:
            if data.admin_secret != self.settings.ADMIN_REGISTRATION_SECRET:
                raise ForbiddenError("Invalid admin registration secret")

        doctor_info = data.doctor_info
        if data.role == Role.DOCTOR:
            if not doctor_info or not doctor_info.license_number or not doctor_info.specialization:
                raise ValidationError(
                    "License number and specialization are required for doctors",
                    errors=[{"field": "doctor_info", "message": "license_number and specialization are required"}],
                )
            taken = self.db.query(User).filter(User.license_number == doctor_info.license_number).first()
            if taken:
                raise ConflictError("License number already registered")

        medical_info = data.medical_info
        user = User(
            email=email,
            hashed_password=get_password_hash(data.password, self.pwd_context),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            role=data.role.value,
            is_active=True,
        )
        if medical_info and data.role == Role.PATIENT:
            user.height_cm = medical_info.height_cm
            user.blood_type = medical_info.blood_type
            user.allergies = medical_info.allergies
            user.chronic_conditions = medical_info.chronic_conditions
            user.emergency_contact = (
                medical_info.emergency_contact.model_dump() if medical_info.emergency_contact else None
            )
        if doctor_info and data.role == Role.DOCTOR:
            user.license_number = doctor_info.license_number
            user.specialization = doctor_info.specialization
            user.experience_years = doctor_info.experience_years
            user.hospital = doctor_info.hospital

        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("User already exists with this email or license number")
        self.db.refresh(user)
        logger.info(f"Registered user {user.id} with role {user.role}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Check credentials. Every failure yields the same message."""
        user = self.get_user_by_email(email)
        if not user or not user.is_active:
            # Unknown and inactive accounts cost one hash verification too
            self.pwd_context.dummy_verify()
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not verify_password(password, user.hashed_password, self.pwd_context):
            raise UnauthorizedError(INVALID_CREDENTIALS)

        user.last_login = utcnow()
        self.db.commit()
        return user

    def issue_token(self, user: User) -> str:
        return create_access_token(user.id, config=self.settings)

    def validate_token(self, token: Optional[str]) -> User:
        """Resolve a bearer token to an active identity."""
        if not token:
            raise UnauthorizedError("Not authorized, no token")
        payload = verify_token(token, config=self.settings)
        if payload is None:
            raise UnauthorizedError("Not authorized, token failed")
        subject = payload.get("sub")
        try:
            user_id = int(subject)
        except (TypeError, ValueError):
            raise UnauthorizedError("Not authorized, token failed")

        user = self.get_user_by_id(user_id)
        if user is None:
            raise UnauthorizedError("Not authorized, user not found")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password, self.pwd_context):
            raise UnauthorizedError("Current password is incorrect")
        user.hashed_password = get_password_hash(new_password, self.pwd_context)
        self.db.commit()
