from sqlalchemy import Column, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from traytic_app.database.connection import Base


class Site(Base):
    """
    A tracked website.

    The collect endpoint only needs id and domain; everything else
    (plans, billing, settings) is owned by the org/billing service.
    """
    __tablename__ = "sites"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    # Stored normalized: lower-case, no leading "www."
    domain = Column(String, nullable=False, index=True)
    org_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SiteMember(Base):
    """Membership of a user in the organization that owns sites"""
    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("org_id", "user_id"),)

    id = Column(String, primary_key=True)
    org_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default="MEMBER")
