"""
Identity record. Authentication mechanics live outside this service;
a User only carries what the review workflow needs: a stable id and a role.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from okrapp.database import Base


class UserRole(str, enum.Enum):
    """
    Application roles.

    - ADMIN: templates, roles, employees, reports
    - HR: assigns templates to anyone, sees every review
    - MANAGER: reviews and finalizes direct reports
    - EMPLOYEE: self-assessment and sign-off
    """
    ADMIN = "ADMIN"
    HR = "HR"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class User(Base):
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee_profile = relationship("Employee", back_populates="user", uselist=False)
    notifications = relationship(
        "Notification",
        foreign_keys="Notification.user_id",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
