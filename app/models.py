import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID primary key"""
    return str(uuid.uuid4())


class TeamMember(Base):
    """A person who can sign in; linked to the auth provider by auth_user_id"""

    __tablename__ = "team_members"

    id = Column(String(36), primary_key=True, default=generate_id)
    auth_user_id = Column(String(255), unique=True, index=True, nullable=True)
    email = Column(String(255), index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    display_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    auth_provider = Column(String(50), nullable=True)  # email, google, apple
    is_professional = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    memberships = relationship("WorkspaceMember", back_populates="team_member")


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    website = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    logo_url = Column(String(500), nullable=True)
    business_type = Column(JSON, nullable=True)  # {"services": [...], "otherService": "..."}
    service_locations = Column(JSON, nullable=True)  # ["inStore", "clientLocation"]
    address = Column(JSON, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    timezone = Column(String(100), nullable=True)
    operating_hours = Column(JSON, nullable=True)  # {"monday": [{"open": "09:00", "close": "17:00"}]}
    active_status = Column(Boolean, default=False, nullable=False)
    onboarding_complete = Column(Boolean, default=False, nullable=False)
    heard_about_us = Column(String(255), nullable=True)
    current_software = Column(String(255), nullable=True)
    require_upfront_payment = Column(Boolean, default=False, nullable=False)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_connect_account_id = Column(String(255), nullable=True, index=True)
    stripe_connect_onboarding_complete = Column(Boolean, default=False, nullable=False)
    subscription_status = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    members = relationship("WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="workspace")


class WorkspaceMember(Base):
    __tablename__ = "workspace_members"
    __table_args__ = (UniqueConstraint("workspace_id", "team_member_id", name="uq_workspace_member"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    team_member_id = Column(String(36), ForeignKey("team_members.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="staff")  # owner, staff
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="members")
    team_member = relationship("TeamMember", back_populates="memberships")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=True)
    category = Column(String(100), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="services")
    variants = relationship("ServiceVariant", back_populates="service", order_by="ServiceVariant.name")


class ServiceVariant(Base):
    __tablename__ = "service_variants"

    id = Column(String(36), primary_key=True, default=generate_id)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)  # minutes
    price = Column(Float, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service", back_populates="variants")


class TeamMemberService(Base):
    """Assignment of a service to a team member"""

    __tablename__ = "team_member_services"

    id = Column(String(36), primary_key=True, default=generate_id)
    team_member_id = Column(String(36), ForeignKey("team_members.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    self_assigned = Column(Boolean, default=False, nullable=False)
    assigned_by = Column(String(36), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service")


class TeamMemberAvailability(Base):
    __tablename__ = "team_member_availability"

    id = Column(String(36), primary_key=True, default=generate_id)
    team_member_id = Column(String(36), ForeignKey("team_members.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CustomerProfile(Base):
    __tablename__ = "customer_profiles"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    team_member_id = Column(String(36), ForeignKey("team_members.id"), nullable=True, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    service_variant_id = Column(String(36), ForeignKey("service_variants.id"), nullable=True)
    customer_id = Column(String(36), ForeignKey("customer_profiles.id"), nullable=True)
    # pending, confirmed, cancelled, completed, no_show
    status = Column(String(20), nullable=False, default="pending", index=True)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=True)
    duration = Column(Integer, nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    price = Column(Float, nullable=True)
    payment_status = Column(String(50), nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    customer_notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    notification_status = Column(JSON, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service")
    service_variant = relationship("ServiceVariant")
    team_member = relationship("TeamMember")
    customer = relationship("CustomerProfile")


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id_monthly = Column(String(255), nullable=True)
    stripe_price_id_yearly = Column(String(255), nullable=True)
    included_seats = Column(Integer, default=1, nullable=False)
    max_messages = Column(Integer, default=0, nullable=False)  # 0 = unlimited
    max_emails = Column(Integer, default=0, nullable=False)
    max_call_minutes = Column(Integer, default=0, nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    trial_period_days = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    subscription_plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)
    stripe_subscription_id = Column(String(255), unique=True, nullable=True, index=True)
    status = Column(String(50), nullable=False, default="incomplete")  # active, trialing, past_due, canceled
    trial_ends_at = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    additional_seats = Column(Integer, default=0, nullable=False)
    billing_interval = Column(String(10), nullable=True)  # month, year
    usage_billing_start = Column(DateTime, nullable=True)
    usage_billing_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    plan = relationship("SubscriptionPlan")


class UsageRecord(Base):
    __tablename__ = "usage_records"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)  # messages, emails, call_minutes
    quantity_used = Column(Float, nullable=False, default=1)
    recorded_at = Column(DateTime, nullable=False, index=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class WorkspaceInvitation(Base):
    __tablename__ = "workspace_invitations"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="staff")
    token = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, accepted, expired
    invited_by = Column(String(36), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace")


class WorkspaceJoinRequest(Base):
    __tablename__ = "workspace_join_requests"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    team_member_id = Column(String(36), ForeignKey("team_members.id"), nullable=False, index=True)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected
    responded_by = Column(String(36), nullable=True)
    responded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
