"""
Form checks the pages run BEFORE calling the API.

Each validate_* function takes the raw form data (a dict) and returns a dict of
field -> error message. Empty dict means the form is fine to send.

Most forms just reuse the API's own pydantic models (so the rules can't drift
apart), the donation / login forms have a few extra page-only rules:
- donation amount must be at least 1 and not above what's left to collect
- you have to tick "I agree to the donation rules"
- login password needs 6+ chars
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from models import ContactMessage, ProjectCreate, RegisterRequest, ReportCreate, TaskCreate


def _strip_prefix(message):
    for prefix in ("Value error, ", "Assertion failed, "):
        if message.startswith(prefix):
            return message[len(prefix):]
    return message


def _errors(model_cls, data, whole_form_field="form"):
    """Run the model over the data and turn pydantic errors into field -> message."""
    try:
        model_cls.model_validate(data)
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else whole_form_field
            errors.setdefault(field, _strip_prefix(err["msg"]))
        return errors
    return {}


                                                # ----------------------------
                                                # Page-only form models
                                                # ----------------------------

class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class DonationForm(BaseModel):
    amount: float = Field(..., ge=1, allow_inf_nan=False)
    email: EmailStr
    comment: Optional[str] = None
    is_anonymous: bool = False
    agree_to_terms: bool = False

    @field_validator("agree_to_terms")
    @classmethod
    def _must_agree(cls, v):
        if not v:
            raise ValueError("You must agree to the donation rules")
        return v


def validate_login(data):
    return _errors(LoginForm, data)


def validate_registration(data):
    return _errors(RegisterRequest, data, whole_form_field="confirm_password")


def validate_donation(data, remaining=None):
    errors = _errors(DonationForm, data)
    if "amount" not in errors and remaining is not None and round(float(data["amount"]), 2) > round(remaining, 2):
        errors["amount"] = f"Amount can't be more than the remaining {remaining:.2f}"
    return errors


def validate_contact(data):
    return _errors(ContactMessage, data)


def validate_project(data):
    return _errors(ProjectCreate, data)


def validate_task(data):
    return _errors(TaskCreate, data, whole_form_field="estimated_amount")


def validate_report(data, requires_expenses=False):
    errors = _errors(ReportCreate, data)
    if requires_expenses:
        if data.get("spent_amount") is None:
            errors.setdefault("spent_amount", "Spent amount is required for this task")
        if not data.get("expense_purpose"):
            errors.setdefault("expense_purpose", "Expense purpose is required for this task")
        if not data.get("financial_confirmed"):
            errors.setdefault("financial_confirmed", "Please confirm the financial information")
    return errors
