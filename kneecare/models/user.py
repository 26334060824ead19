"""
User model for the KneeCare backend.
"""
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, JSON
from sqlalchemy.sql import func
from kneecare.db.base import Base


class Role(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class User(Base):
    """User model for authentication and authorization."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30))
    date_of_birth = Column(Date)
    gender = Column(String(10))  # male, female, other
    profile_picture = Column(String(500))

    # User status and role
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(String(20), default=Role.PATIENT.value, nullable=False, index=True)

    # Patient medical information
    height_cm = Column(Float)
    blood_type = Column(String(5))
    allergies = Column(JSON, default=list)
    chronic_conditions = Column(JSON, default=list)
    emergency_contact = Column(JSON)

    # Doctor information
    license_number = Column(String(100), unique=True)
    specialization = Column(String(255))
    experience_years = Column(Integer)
    hospital = Column(String(255))

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_login = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        """Check if user is an admin."""
        return self.role == Role.ADMIN.value

    @property
    def is_doctor(self) -> bool:
        """Check if user is a doctor."""
        return self.role == Role.DOCTOR.value

    @property
    def is_patient(self) -> bool:
        return self.role == Role.PATIENT.value
