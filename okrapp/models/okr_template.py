"""
OKR template catalog: OKRTemplate -> TemplateObjective -> TemplateKeyResult.
Reviews copy this tree on creation and never reference it afterwards.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from okrapp.database import Base

DEFAULT_RATING_BANDS = (
    "Needs Improvement",
    "Below Expectations",
    "Meets Expectations",
    "Exceeds Expectations",
    "Outstanding",
)


class OKRTemplate(Base):
    __tablename__ = "okr_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    role = Column(String(100), nullable=False, default="")
    description = Column(String(500), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    role_id = Column(Integer, ForeignKey("employee_roles.id"), nullable=True, index=True)

    role_entity = relationship("EmployeeRole", back_populates="templates")
    objectives = relationship(
        "TemplateObjective",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateObjective.sort_order",
    )

    def __repr__(self):
        return f"<OKRTemplate {self.id}: {self.name}>"


class TemplateObjective(Base):
    __tablename__ = "okr_template_objectives"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("okr_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    weight = Column(Numeric(18, 2), nullable=False, default=0)
    description = Column(Text, nullable=False, default="")
    sort_order = Column(Integer, nullable=False, default=0)

    template = relationship("OKRTemplate", back_populates="objectives")
    key_results = relationship(
        "TemplateKeyResult",
        back_populates="objective",
        cascade="all, delete-orphan",
        order_by="TemplateKeyResult.sort_order",
    )


class TemplateKeyResult(Base):
    __tablename__ = "okr_template_key_results"

    id = Column(Integer, primary_key=True, index=True)
    objective_id = Column(Integer, ForeignKey("okr_template_objectives.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    target = Column(Text, nullable=False, default="")
    measure = Column(Text, nullable=False, default="")
    linked_objectives = Column(Text, nullable=False, default="")
    measurement_source = Column(Text, nullable=False, default="")
    weight = Column(Numeric(18, 2), nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    rating1_description = Column(Text, nullable=True)
    rating2_description = Column(Text, nullable=True)
    rating3_description = Column(Text, nullable=True)
    rating4_description = Column(Text, nullable=True)
    rating5_description = Column(Text, nullable=True)

    objective = relationship("TemplateObjective", back_populates="key_results")

    @property
    def rating_bands(self) -> list:
        """The five band descriptions, blanks replaced with the default wording."""
        raw = [
            self.rating1_description,
            self.rating2_description,
            self.rating3_description,
            self.rating4_description,
            self.rating5_description,
        ]
        return [text or default for text, default in zip(raw, DEFAULT_RATING_BANDS)]
