from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from typing import Optional


class RoleCreate(BaseModel):
    name: str = Field(..., max_length=50)
    description: str = Field("", max_length=200)
    is_active: bool = True


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    is_active: bool


class EmployeeCreate(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    email: EmailStr
    role: str = ""
    role_id: Optional[int] = None
    position: str = ""
    manager_id: Optional[int] = None
    user_id: Optional[int] = None
    line_of_business: Optional[str] = None
    financial_year: Optional[str] = None


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[str] = None
    role_id: Optional[int] = None
    position: Optional[str] = None
    manager_id: Optional[int] = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    first_name: str
    last_name: str
    email: str
    role: str
    role_id: Optional[int] = None
    position: str
    manager_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None
