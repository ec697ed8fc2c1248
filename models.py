"""
This file defines all the data shapes our app uses - like templates for what info we need.

It's basically saying:
- "Here's what a User / Project / Task / Report / Application / Donation looks like"
- "Here's what you have to send us when you create or change one"

Enum stuff:
- Roles, project status, moderation status, task status etc. are all str Enums,
  and every model stores the plain string value (use_enum_values) so the
  storage layer never has to care about Enum objects

Validation stuff (the domain rules that aren't just "is it a string"):
- Phone numbers: optional "+", then 10 to 15 digits (spaces, dashes, brackets are ignored)
- Birth date can't be in the future
- Passwords need 6+ chars and the confirmation has to match
- Self-registration only allows volunteer / coordinator / donor roles
- A task that requires expenses needs an estimated amount

Key things to know:
- *Create models are input only, the plain-named ones are what we send back
- UserPublic never carries the password hash or the verification token
- Optional fields mean you don't HAVE to provide them

Note: If you change these models, you might need to update:
- db.py (tables)
- storage.py (both backends)
- ui/forms.py (the page-level forms reuse these rules)
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


                                                # ----------------------------
                                                # Enums
                                                # ----------------------------

class UserRole(str, Enum):
    volunteer = "volunteer"
    coordinator = "coordinator"
    donor = "donor"
    admin = "admin"
    moderator = "moderator"


class ProjectStatus(str, Enum):
    funding = "funding"
    in_progress = "in_progress"
    completed = "completed"


class ModerationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class ApplicationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ReportStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class TaskType(str, Enum):
    collection = "collection"
    on_site = "on_site"
    event_organization = "event_organization"
    online_support = "online_support"
    other = "other"


REGISTRATION_ROLES = (UserRole.volunteer.value, UserRole.coordinator.value, UserRole.donor.value)
STAFF_ROLES = (UserRole.admin.value, UserRole.moderator.value)

PHONE_RE = re.compile(r"^\+?\d{10,15}$")
PHONE_NOISE_RE = re.compile(r"[\s\-()]")


def normalize_phone(value):
    """Strip formatting and check the phone number, returns None for blanks."""
    if value is None:
        return None
    cleaned = PHONE_NOISE_RE.sub("", value)
    if not cleaned:
        return None
    if not PHONE_RE.match(cleaned):
        raise ValueError("Phone number must contain 10 to 15 digits, optionally starting with +")
    return cleaned


def check_birth_date(value):
    if value is not None and value > date.today():
        raise ValueError("Birth date cannot be in the future")
    return value


class Schema(BaseModel):
    model_config = ConfigDict(use_enum_values=True, allow_inf_nan=False)


                                                # ----------------------------
                                                # User Models
                                                # ----------------------------

class ProfileFields(Schema):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v):
        return normalize_phone(v)

    @field_validator("birth_date")
    @classmethod
    def _birth_date(cls, v):
        return check_birth_date(v)


                                                # What you send to /api/register
class RegisterRequest(ProfileFields):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)
    confirm_password: str
    role: UserRole

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v):
        return v.lower()

    @field_validator("role")
    @classmethod
    def _self_service_role(cls, v):
        if v not in REGISTRATION_ROLES:
            raise ValueError("This role is not available for registration")
        return v

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(Schema):
    email: EmailStr
    password: str = Field(..., min_length=1)


                                                # What we send back - no password, no token
class UserPublic(ProfileFields):
    id: int
    username: str
    email: str
    role: UserRole
    is_verified: bool = False
    is_blocked: bool = False
    created_at: Optional[datetime] = None

                                                # Model for updating your own profile
                                                # All fields are optional so you can update just one part
class ProfileUpdate(ProfileFields):
    username: Optional[str] = Field(None, min_length=3)
    email: Optional[EmailStr] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v):
        return v.lower() if v else v


class PasswordChange(Schema):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)
    confirm_password: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class VerifyEmailRequest(Schema):
    token: Optional[str] = None


                                                # ----------------------------
                                                # Project Models
                                                # ----------------------------

class ProjectCreate(Schema):
    name: str = Field(..., min_length=5)                    # Project title
    description: str = Field(..., min_length=20)            # What the money / work is for
    image_url: Optional[str] = None                         # (Optional) cover picture URL
    location: Optional[str] = None                          # (Optional) where it happens
    target_amount: float = Field(..., gt=0)                 # How much money we need
    bank_details: str = Field(..., min_length=5)            # Where donations go


class AdminProjectCreate(ProjectCreate):
    coordinator_id: int


                                                # Partial update - status and collected_amount are here
                                                # only so the route can refuse them explicitly
class ProjectUpdate(Schema):
    name: Optional[str] = Field(None, min_length=5)
    description: Optional[str] = Field(None, min_length=20)
    image_url: Optional[str] = None
    location: Optional[str] = None
    target_amount: Optional[float] = Field(None, gt=0)
    bank_details: Optional[str] = Field(None, min_length=5)
    coordinator_id: Optional[int] = None
    status: Optional[ProjectStatus] = None
    collected_amount: Optional[float] = None


class Project(Schema):
    id: int
    name: str
    description: str
    image_url: Optional[str] = None
    location: Optional[str] = None
    target_amount: float
    collected_amount: float = 0
    status: ProjectStatus = ProjectStatus.funding
    moderation_status: ModerationStatus = ModerationStatus.pending
    is_published: bool = False
    coordinator_id: int
    bank_details: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectSummary(Schema):
    id: int
    name: str


class ProjectStatusUpdate(Schema):
    status: ProjectStatus


class ModerationDecision(Schema):
    status: ModerationStatus
    comment: Optional[str] = None


class ProjectModeration(Schema):
    id: int
    project_id: int
    status: ModerationStatus
    comment: Optional[str] = None
    moderator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


                                                # ----------------------------
                                                # Task Models
                                                # ----------------------------

class TaskCreate(Schema):
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    type: TaskType = TaskType.other
    deadline: Optional[datetime] = None
    location: Optional[str] = None
    volunteers_needed: int = Field(1, ge=1, le=100)
    required_skills: Optional[str] = None
    requires_expenses: bool = False
    estimated_amount: Optional[float] = Field(None, ge=0)
    expense_purpose: Optional[str] = None

    @model_validator(mode="after")
    def _expenses_need_estimate(self):
        if self.requires_expenses and self.estimated_amount is None:
            raise ValueError("Estimated amount is required for tasks with expenses")
        return self


class Task(Schema):
    id: int
    title: str
    description: str
    project_id: int
    volunteer_id: Optional[int] = None
    status: TaskStatus = TaskStatus.pending
    type: TaskType = TaskType.other
    deadline: Optional[datetime] = None
    location: Optional[str] = None
    volunteers_needed: int = 1
    required_skills: Optional[str] = None
    requires_expenses: bool = False
    estimated_amount: Optional[float] = None
    expense_purpose: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskWithProject(Task):
    project: Optional[ProjectSummary] = None


class CoordinatorTask(Task):
    project: Optional[Project] = None


class TaskStatusUpdate(Schema):
    status: TaskStatus


class TaskAssign(Schema):
    volunteer_id: int


class AssignedVolunteer(Schema):
    volunteer_id: int
    volunteer: UserPublic
    assigned_at: Optional[datetime] = None


                                                # ----------------------------
                                                # Report Models
                                                # ----------------------------

class ReportCreate(Schema):
    task_id: Optional[int] = None                          # only needed for POST /api/reports
    description: str = Field(..., min_length=10)
    comment: Optional[str] = None
    image_urls: List[str] = []
    receipt_urls: List[str] = []
    spent_amount: Optional[float] = Field(None, ge=0)
    remaining_amount: Optional[float] = Field(None, ge=0)
    expense_purpose: Optional[str] = None
    financial_confirmed: bool = False


class Report(Schema):
    id: int
    task_id: int
    volunteer_id: Optional[int] = None
    description: str
    comment: Optional[str] = None
    image_urls: List[str] = []
    receipt_urls: List[str] = []
    spent_amount: Optional[float] = None
    remaining_amount: Optional[float] = None
    expense_purpose: Optional[str] = None
    financial_confirmed: bool = False
    status: ReportStatus = ReportStatus.pending
    reviewer_comment: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("image_urls", "receipt_urls", mode="before")
    @classmethod
    def _null_list(cls, v):
        return v or []


class ReportStatusUpdate(Schema):
    status: ReportStatus
    comment: Optional[str] = None


                                                # ----------------------------
                                                # Application Models
                                                # ----------------------------

class ApplicationCreate(Schema):
    message: Optional[str] = None


class Application(Schema):
    id: int
    project_id: int
    volunteer_id: int
    status: ApplicationStatus = ApplicationStatus.pending
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class ApplicationWithVolunteer(Application):
    volunteer: Optional[UserPublic] = None
    project: Optional[ProjectSummary] = None


class ApplicationStatusUpdate(Schema):
    status: ApplicationStatus


class HasApplied(Schema):
    has_applied: bool
    status: Optional[ApplicationStatus] = None


                                                # ----------------------------
                                                # Donation Models
                                                # ----------------------------

class DonationRequest(Schema):
    amount: float = Field(..., gt=0)
    comment: Optional[str] = None
    email: Optional[EmailStr] = None
    is_anonymous: bool = False


class DonationCreate(DonationRequest):
    project_id: int
    donor_id: Optional[int] = None


class Donation(Schema):
    id: int
    project_id: int
    donor_id: Optional[int] = None
    amount: float
    comment: Optional[str] = None
    email: Optional[str] = None
    is_anonymous: bool = False
    created_at: Optional[datetime] = None


                                                # ----------------------------
                                                # Project Report Models
                                                # ----------------------------

class ProjectReportCreate(Schema):
    title: str = Field(..., min_length=5)
    content: str = Field(..., min_length=20)
    document_url: Optional[str] = None
    total_spent: Optional[float] = Field(None, ge=0)


class ProjectReport(Schema):
    id: int
    project_id: int
    coordinator_id: Optional[int] = None
    title: str
    content: str
    document_url: Optional[str] = None
    total_spent: Optional[float] = None
    created_at: Optional[datetime] = None


                                                # ----------------------------
                                                # Misc
                                                # ----------------------------

class ContactMessage(Schema):
    name: str = Field(..., min_length=2)
    email: EmailStr
    subject: str = Field(..., min_length=5)
    message: str = Field(..., min_length=10)


class PlatformStats(Schema):
    users_by_role: dict
    projects_by_status: dict
    projects_by_moderation: dict
    total_donated: float
    donation_count: int
