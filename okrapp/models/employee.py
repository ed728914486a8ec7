from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from okrapp.database import Base


class EmployeeRole(Base):
    """Normalized job role; OKR templates are scoped by it."""
    __tablename__ = "employee_roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employees = relationship("Employee", back_populates="role_entity")
    templates = relationship("OKRTemplate", back_populates="role_entity")

    def __repr__(self):
        return f"<EmployeeRole {self.name}>"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, unique=True, index=True)

    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String, nullable=False, index=True)

    # Free-text role label kept alongside the normalized reference
    role = Column(String, nullable=False, default="")
    role_id = Column(Integer, ForeignKey("employee_roles.id"), nullable=True)
    position = Column(String, nullable=False, default="")

    manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)

    line_of_business = Column(String, nullable=True)
    financial_year = Column(String, nullable=True)

    # Soft delete flag: employees are deactivated, never removed
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="employee_profile")
    role_entity = relationship("EmployeeRole", back_populates="employees")
    manager = relationship("Employee", remote_side=[id], back_populates="subordinates")
    subordinates = relationship("Employee", back_populates="manager")

    def __repr__(self):
        return f"<Employee {self.id}: {self.email}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        """Full name, or the email address when no name was recorded."""
        return self.full_name or self.email
