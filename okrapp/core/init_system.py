import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from okrapp.database import SessionLocal
from okrapp.models.employee import EmployeeRole
from okrapp.models.okr_template import OKRTemplate
from okrapp.schemas.template import TemplateCreate, TemplateKeyResultIn, TemplateObjectiveIn
from okrapp.services.template_service import TemplateService

logger = logging.getLogger(__name__)

# (role name, role description, template name)
DEFAULT_ROLES = [
    ("Administration", "Administration or Junior Support Engineer", "Administration or Jnr Support Engineer OKR Template"),
    ("Support_Systems Engineer", "Support/Systems Engineer", "Support Systems Engineer OKR Template"),
    ("Snr and Technical Team Leads", "Senior and Technical Team Leads", "Snr and Technical Team Leads OKR Template"),
    ("Manager", "Manager", "Managers OKR Template"),
    ("Consultant", "Consultant", "Consultant OKR Template"),
]


def default_objectives():
    return [
        TemplateObjectiveIn(
            name="Customer Success",
            weight=Decimal("40"),
            description="Deliver dependable service to internal and external customers.",
            sort_order=1,
            key_results=[
                TemplateKeyResultIn(
                    name="Resolve incidents within SLA",
                    target="95% of incidents resolved within SLA",
                    measure="SLA compliance percentage",
                    measurement_source="Ticketing system",
                    weight=Decimal("60"),
                    sort_order=1,
                ),
                TemplateKeyResultIn(
                    name="Customer satisfaction",
                    target="Average CSAT of 4.5 or higher",
                    measure="Quarterly CSAT survey",
                    measurement_source="Survey results",
                    weight=Decimal("40"),
                    sort_order=2,
                ),
            ],
        ),
        TemplateObjectiveIn(
            name="Operational Excellence",
            weight=Decimal("35"),
            description="Improve how the team works.",
            sort_order=2,
            key_results=[
                TemplateKeyResultIn(
                    name="Process improvements delivered",
                    target="Two improvements adopted per year",
                    measure="Improvements adopted",
                    measurement_source="Team retrospectives",
                    weight=Decimal("100"),
                    sort_order=1,
                ),
            ],
        ),
        TemplateObjectiveIn(
            name="Personal Development",
            weight=Decimal("25"),
            description="Grow skills relevant to the role.",
            sort_order=3,
            key_results=[
                TemplateKeyResultIn(
                    name="Training plan completed",
                    target="All planned trainings completed",
                    measure="Completed trainings",
                    measurement_source="Learning platform",
                    weight=Decimal("100"),
                    sort_order=1,
                ),
            ],
        ),
    ]


def seed_default_data(db: Session) -> int:
    """
    Idempotently creates the default roles and one template per role.
    Returns the number of templates created.
    """
    roles = {}
    for name, description, _ in DEFAULT_ROLES:
        role = db.query(EmployeeRole).filter(EmployeeRole.name == name).first()
        if not role:
            role = EmployeeRole(name=name, description=description, is_active=True)
            db.add(role)
            db.flush()
        roles[name] = role
    db.commit()

    service = TemplateService(db)
    created = 0
    for name, _, template_name in DEFAULT_ROLES:
        role = roles[name]
        if service.find_template_for_role(role.id) is None:
            service.create_template(TemplateCreate(
                name=template_name,
                role=name,
                description=f"OKR template for {name} role",
                role_id=role.id,
                objectives=default_objectives(),
            ))
            created += 1
    return created


def reseed_default_templates(db: Session) -> int:
    """Rebuilds the objective trees of the default templates in place."""
    seed_default_data(db)
    service = TemplateService(db)
    rebuilt = 0
    for _, _, template_name in DEFAULT_ROLES:
        for template in db.query(OKRTemplate).filter(OKRTemplate.name == template_name).all():
            service.replace_objectives(template.id, default_objectives())
            rebuilt += 1
    logger.info(f"Re-seeded {rebuilt} default OKR template(s)")
    return rebuilt


def init_system_data():
    """
    Startup hook: makes sure default roles and templates exist.
    """
    db = SessionLocal()
    try:
        created = seed_default_data(db)
        logger.info(f"System initialization check complete: {created} template(s) created")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization check: {str(e)}", exc_info=True)
    finally:
        db.close()
