from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


class TemplateKeyResultIn(BaseModel):
    name: str = Field(..., max_length=500)
    target: str = ""
    measure: str = ""
    linked_objectives: str = ""
    measurement_source: str = ""
    weight: Decimal = Decimal("0")
    sort_order: int = 0
    rating1_description: Optional[str] = None
    rating2_description: Optional[str] = None
    rating3_description: Optional[str] = None
    rating4_description: Optional[str] = None
    rating5_description: Optional[str] = None


class TemplateObjectiveIn(BaseModel):
    name: str = Field(..., max_length=500)
    weight: Decimal = Decimal("0")
    description: str = ""
    sort_order: int = 0
    key_results: List[TemplateKeyResultIn] = []


class TemplateCreate(BaseModel):
    name: str = Field(..., max_length=200)
    role: str = Field("", max_length=100)
    description: str = Field("", max_length=500)
    role_id: Optional[int] = None
    objectives: List[TemplateObjectiveIn] = []


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    role_id: Optional[int] = None
    is_active: Optional[bool] = None


class TemplateKeyResultResponse(TemplateKeyResultIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class TemplateObjectiveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    weight: Decimal
    description: str
    sort_order: int
    key_results: List[TemplateKeyResultResponse] = []


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    role: str
    description: str
    role_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None
    objectives: List[TemplateObjectiveResponse] = []
