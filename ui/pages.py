"""
The page layer: which page you're allowed to open, what each dashboard shows,
and the buttons that actually change something (donate, apply, report...).

Main things it does:
1. resolve_route() - the ProtectedRoute logic: not logged in -> /auth,
   wrong role -> /
2. *_dashboard() loaders - gather everything a role's dashboard needs
3. Workflows - every action checks its form first, calls the API, clears the
   cached GETs that are now stale and leaves a toast for the user

Important notes:
- Toasts are collected on a Notifier, "destructive" ones are errors
- A failed form check never reaches the API
Watch out for:
- The dashboards read through ApiClient.get_query, so they are cached until
  a workflow (or you) invalidates them
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ui.api import ApiClient, ApiError
from ui.forms import validate_contact, validate_donation, validate_login, validate_report, validate_task

logger = logging.getLogger(__name__)


ROLE_DASHBOARDS = {
    "volunteer": "/dashboard/volunteer",
    "coordinator": "/dashboard/coordinator",
    "donor": "/dashboard/donor",
    "admin": "/dashboard/admin",
    "moderator": "/dashboard/moderator",
}

                                                # path pattern -> roles that may open it
                                                # (None = any logged in user)
PROTECTED_ROUTES = {
    "/dashboard/volunteer": ("volunteer",),
    "/dashboard/coordinator": ("coordinator",),
    "/dashboard/donor": ("donor",),
    "/dashboard/admin": ("admin",),
    "/dashboard/moderator": ("moderator", "admin"),
    "/profile": None,
    "/create-project": ("coordinator", "admin"),
    "/projects/:id/tasks/new": ("coordinator", "admin"),
    "/projects/:id/volunteers": ("coordinator", "admin"),
    "/tasks/:id": None,
    "/tasks/:id/report": ("volunteer",),
}

PUBLIC_ROUTES = ("/", "/auth", "/projects", "/projects/:id", "/projects/:id/donate",
                 "/about", "/contacts", "/donation-rules")


def _pattern(route):
    return re.compile("^" + re.sub(r":\w+", r"[^/]+", route) + "/?$")


_PROTECTED = [(_pattern(route), roles) for route, roles in PROTECTED_ROUTES.items()]


def dashboard_for(role):
    return ROLE_DASHBOARDS.get(role, "/")


def resolve_route(path, user):
    """Where the browser should actually end up when it asks for path."""
    for pattern, roles in _PROTECTED:
        if not pattern.match(path):
            continue
        if user is None:
            return "/auth"
        if roles and user.role not in roles:
            return "/"
        return path
    return path


                                                # ----------------------------
                                                # Toasts
                                                # ----------------------------

@dataclass
class Toast:
    title: str
    description: str = ""
    variant: str = "default"                    # or "destructive"


class Notifier:

    def __init__(self):
        self.toasts: List[Toast] = []

    def toast(self, title, description="", variant="default"):
        self.toasts.append(Toast(title, description, variant))

    def error(self, title, error):
        description = error.detail if isinstance(error, ApiError) else str(error)
        self.toast(title, description, variant="destructive")

    @property
    def last(self):
        return self.toasts[-1] if self.toasts else None


@dataclass
class ActionResult:
    ok: bool
    data: Any = None
    errors: Dict[str, str] = field(default_factory=dict)
    redirect: Optional[str] = None


                                                # ----------------------------
                                                # Dashboard loaders
                                                # ----------------------------

def volunteer_dashboard(api: ApiClient):
    applications = api.get_query("/api/user/applications")
    return {
        "projects": api.get_query("/api/volunteer/projects"),
        "tasks": api.get_query("/api/volunteer/tasks"),
        "applications": applications,
        "pending_applications": sum(1 for a in applications if a["status"] == "pending"),
    }


def coordinator_dashboard(api: ApiClient, user):
    projects = api.get_query("/api/coordinator/projects")
    applications = api.get_query(f"/api/coordinator/{user.id}/applications")
    return {
        "projects": projects,
        "tasks": api.get_query("/api/coordinator/tasks"),
        "applications": applications,
        "pending_applications": sum(1 for a in applications if a["status"] == "pending"),
        "total_collected": sum(p["collected_amount"] for p in projects),
        "awaiting_moderation": sum(1 for p in projects if p["moderation_status"] == "pending"),
    }


def donor_dashboard(api: ApiClient):
    donations = api.get_query("/api/user/donations")
    return {
        "donations": donations,
        "projects": api.get_query("/api/donor/projects"),
        "total_donated": sum(d["amount"] for d in donations),
    }


def admin_dashboard(api: ApiClient):
    return {
        "stats": api.get_query("/api/admin/stats"),
        "users": api.get_query("/api/admin/users"),
        "donations": api.get_query("/api/admin/donations"),
    }


def moderator_dashboard(api: ApiClient, search=None):
    queue = api.get_query("/api/projects/moderation", params={"search": search})
    return {
        "queue": queue,
        "pending": [p for p in queue if p["moderation_status"] == "pending"],
        "rejected": [p for p in queue if p["moderation_status"] == "rejected"],
    }


DASHBOARD_LOADERS = {
    "volunteer": lambda api, user: volunteer_dashboard(api),
    "coordinator": coordinator_dashboard,
    "donor": lambda api, user: donor_dashboard(api),
    "admin": lambda api, user: admin_dashboard(api),
    "moderator": lambda api, user: moderator_dashboard(api),
}


def load_dashboard(api: ApiClient, user):
    return DASHBOARD_LOADERS[user.role](api, user)


def project_page(api: ApiClient, project_id):
    """Project details: the project, its donations and published reports."""
    project = api.get_query(f"/api/projects/{project_id}")
    return {
        "project": project,
        "remaining": round(project["target_amount"] - project["collected_amount"], 2),
        "progress": min(100, round(project["collected_amount"] / project["target_amount"] * 100)),
        "donations": api.get_query(f"/api/projects/{project_id}/donations"),
        "reports": api.get_query(f"/api/projects/{project_id}/reports"),
    }


                                                # ----------------------------
                                                # Actions
                                                # ----------------------------

class Workflows:

    def __init__(self, api: ApiClient, notifier: Notifier = None):
        self.api = api
        self.notifier = notifier or Notifier()

    def _send(self, method, url, data, error_title):
        try:
            return True, self.api.api_request(method, url, data)
        except ApiError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            self.notifier.error(error_title, e)
            return False, None

    def login(self, email, password):
        errors = validate_login({"email": email, "password": password})
        if errors:
            return ActionResult(False, errors=errors)

        ok, user = self._send("POST", "/api/login", {"email": email, "password": password}, "Login failed")
        if not ok:
            return ActionResult(False)
        self.api.set_query_data("/api/user", user)
        self.notifier.toast("Welcome back", f"Hello, {user.get('first_name') or user['username']}!")
        return ActionResult(True, user, redirect=dashboard_for(user["role"]))

    def logout(self):
        ok, _ = self._send("POST", "/api/logout", None, "Logout failed")
        if ok:
            self.api.invalidate_queries()
            self.api.set_query_data("/api/user", None)
            self.notifier.toast("Logged out", "See you soon!")
        return ActionResult(ok, redirect="/" if ok else None)

    def donate(self, project, form):
        remaining = round(project["target_amount"] - project["collected_amount"], 2)
        errors = validate_donation(form, remaining=remaining)
        if errors:
            return ActionResult(False, errors=errors)

        payload = {k: form[k] for k in ("amount", "comment", "email", "is_anonymous") if form.get(k) is not None}
        ok, donation = self._send("POST", f"/api/projects/{project['id']}/donate", payload, "Donation failed")
        if not ok:
            return ActionResult(False)

        self.api.invalidate_queries("/api/projects")
        self.api.invalidate_queries("/api/user/donations")
        self.api.invalidate_queries("/api/donor")
        self.notifier.toast("Thank you!", f"Your donation of {donation['amount']:.2f} was received")
        return ActionResult(True, donation)

    def apply(self, project_id, message=None):
        ok, application = self._send("POST", f"/api/projects/{project_id}/apply",
                                     {"message": message}, "Application failed")
        if not ok:
            return ActionResult(False)
        self.api.invalidate_queries("/api/user/applications")
        self.api.invalidate_queries(f"/api/projects/{project_id}/has-applied")
        self.notifier.toast("Application sent", "The coordinator will review it soon")
        return ActionResult(True, application)

    def create_task(self, project_id, form):
        errors = validate_task(form)
        if errors:
            return ActionResult(False, errors=errors)

        ok, task = self._send("POST", f"/api/projects/{project_id}/tasks", form, "Couldn't create the task")
        if not ok:
            return ActionResult(False)
        self.api.invalidate_queries(f"/api/projects/{project_id}/tasks")
        self.api.invalidate_queries("/api/coordinator/tasks")
        self.notifier.toast("Task created", task["title"])
        return ActionResult(True, task, redirect=f"/tasks/{task['id']}")

    def submit_report(self, task, form):
        errors = validate_report(form, requires_expenses=task.get("requires_expenses", False))
        if errors:
            return ActionResult(False, errors=errors)

        ok, report = self._send("POST", f"/api/tasks/{task['id']}/reports", form, "Couldn't submit the report")
        if not ok:
            return ActionResult(False)
        self.api.invalidate_queries(f"/api/tasks/{task['id']}")
        self.api.invalidate_queries("/api/volunteer/tasks")
        self.notifier.toast("Report submitted", "The coordinator will review it")
        return ActionResult(True, report, redirect=dashboard_for("volunteer"))

    def send_contact(self, form):
        errors = validate_contact(form)
        if errors:
            return ActionResult(False, errors=errors)

        ok, reply = self._send("POST", "/api/contact", form, "Message not sent")
        if not ok:
            return ActionResult(False)
        self.notifier.toast("Message sent", reply["message"])
        return ActionResult(True, reply)

    def moderate(self, project_id, status, comment=None):
        ok, decision = self._send("POST", f"/api/projects/{project_id}/moderate",
                                  {"status": status, "comment": comment}, "Moderation failed")
        if not ok:
            return ActionResult(False)
        self.api.invalidate_queries("/api/projects")
        self.notifier.toast("Project " + status, comment or "")
        return ActionResult(True, decision)
