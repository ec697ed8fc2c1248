"""
This module is where ALL the reading and writing of data happens. The routes in
endpoints/ never talk to the database directly, they ask the storage object.

There are two storage backends that do the exact same job:
1. PostgresStorage - the real one, raw SQL through psycopg2 (see db.py)
2. MemoryStorage   - keeps everything in Python dicts, used for demos and tests

Which one you get is decided by config.STORAGE_BACKEND ("postgres" or "memory").
FastAPI routes get it through the get_storage() dependency, so tests can swap
in a fresh MemoryStorage with app.dependency_overrides.

Rows come back as plain dicts (same keys as the table columns). Missing stuff
comes back as None (or an empty list), it's up to the route to turn that into a 404.

Important notes:
- Every Postgres call opens a connection, commits (or rolls back) and closes it
- Donations insert the row AND bump the project's collected amount in one
  transaction, and flip the project to in_progress once the target is hit
- A moderation decision also updates the project's moderation status and
  publishes it when approved
- Deleting a project takes its tasks, reports, applications, donations,
  moderation records and project reports with it

Watch out for:
- The memory backend forgets everything when the process exits
- If you add a column, add it to TABLE_COLUMNS too or the generic insert/update ignores it
- Constraint violations (duplicate email, second application, ...) come out
  of BOTH backends as ValueError, routes turn that into a 400
"""

import abc
import copy
import itertools
import logging
import threading
from contextlib import contextmanager
from datetime import datetime

import psycopg2
from psycopg2 import sql

import config
from db import get_db_connection, init_db
from models import STAFF_ROLES

logger = logging.getLogger(__name__)


                                                                    # Columns we allow through the generic insert/update helpers
TABLE_COLUMNS = {
    "users": (
        "username", "email", "password", "role", "first_name", "last_name",
        "phone_number", "bio", "region", "city", "gender", "birth_date",
        "is_verified", "is_blocked", "verification_token",
    ),
    "projects": (
        "name", "description", "image_url", "location", "target_amount",
        "collected_amount", "status", "moderation_status", "is_published",
        "coordinator_id", "bank_details",
    ),
    "project_moderations": ("project_id", "status", "comment", "moderator_id"),
    "tasks": (
        "title", "description", "project_id", "volunteer_id", "status", "type",
        "deadline", "location", "volunteers_needed", "required_skills",
        "requires_expenses", "estimated_amount", "expense_purpose",
    ),
    "reports": (
        "task_id", "volunteer_id", "description", "comment", "image_urls",
        "receipt_urls", "spent_amount", "remaining_amount", "expense_purpose",
        "financial_confirmed", "status", "reviewer_comment",
    ),
    "applications": ("project_id", "volunteer_id", "status", "message"),
    "donations": ("project_id", "donor_id", "amount", "comment", "email", "is_anonymous"),
    "project_reports": (
        "project_id", "coordinator_id", "title", "content", "document_url", "total_spent",
    ),
}

                                                                    # Tables that carry an updated_at column
TOUCHED_TABLES = ("projects", "project_moderations", "tasks")


def _only_columns(table, data):
    allowed = TABLE_COLUMNS[table]
    return {k: v for k, v in data.items() if k in allowed}


def like_escape(text):
    """Make % and _ match literally inside an ILIKE pattern (ESCAPE '\\')."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Storage(abc.ABC):
    """Everything the routes need from the data layer."""

    def init(self):
        """Prepare the backend (create tables etc.)."""

    # ---- users

    @abc.abstractmethod
    def get_user(self, user_id): ...

    @abc.abstractmethod
    def get_user_by_email(self, email): ...

    @abc.abstractmethod
    def get_user_by_username(self, username): ...

    @abc.abstractmethod
    def get_user_by_verification_token(self, token): ...

    @abc.abstractmethod
    def create_user(self, data): ...

    @abc.abstractmethod
    def update_user(self, user_id, fields): ...

    @abc.abstractmethod
    def list_users(self): ...

    def verify_user(self, user_id):
        return self.update_user(user_id, {"is_verified": True, "verification_token": None})

    def block_user(self, user_id):
        return self.update_user(user_id, {"is_blocked": True})

    def unblock_user(self, user_id):
        return self.update_user(user_id, {"is_blocked": False})

    # ---- projects

    @abc.abstractmethod
    def list_projects(self, status=None, search=None, limit=config.DEFAULT_PAGE_SIZE, offset=0,
                      viewer_role=None, viewer_id=None, moderation_statuses=None): ...

    @abc.abstractmethod
    def get_project(self, project_id): ...

    @abc.abstractmethod
    def list_projects_by_coordinator(self, coordinator_id): ...

    @abc.abstractmethod
    def list_projects_for_volunteer(self, volunteer_id): ...

    @abc.abstractmethod
    def list_projects_for_donor(self, donor_id): ...

    @abc.abstractmethod
    def create_project(self, data): ...

    @abc.abstractmethod
    def update_project(self, project_id, fields): ...

    @abc.abstractmethod
    def delete_project(self, project_id): ...

    def update_project_status(self, project_id, status):
        return self.update_project(project_id, {"status": status})

    @abc.abstractmethod
    def create_project_moderation(self, project_id, status, comment, moderator_id): ...

    @abc.abstractmethod
    def list_project_moderations(self, project_id): ...

    # ---- tasks

    @abc.abstractmethod
    def get_task(self, task_id): ...

    @abc.abstractmethod
    def list_tasks_by_project(self, project_id): ...

    @abc.abstractmethod
    def list_tasks_for_volunteer(self, volunteer_id): ...

    @abc.abstractmethod
    def create_task(self, data): ...

    @abc.abstractmethod
    def update_task(self, task_id, fields): ...

    @abc.abstractmethod
    def delete_task(self, task_id): ...

    def assign_task(self, task_id, volunteer_id):
        return self.update_task(task_id, {"volunteer_id": volunteer_id, "status": "in_progress"})

    def update_task_status(self, task_id, status):
        return self.update_task(task_id, {"status": status})

    # ---- reports

    @abc.abstractmethod
    def get_report(self, report_id): ...

    @abc.abstractmethod
    def list_reports_by_task(self, task_id): ...

    @abc.abstractmethod
    def create_report(self, data): ...

    @abc.abstractmethod
    def update_report(self, report_id, fields): ...

    # ---- applications

    @abc.abstractmethod
    def get_application(self, application_id): ...

    @abc.abstractmethod
    def get_application_by_volunteer_and_project(self, volunteer_id, project_id): ...

    @abc.abstractmethod
    def list_applications_by_project(self, project_id): ...

    @abc.abstractmethod
    def list_applications_by_volunteer(self, volunteer_id): ...

    @abc.abstractmethod
    def create_application(self, data): ...

    @abc.abstractmethod
    def update_application(self, application_id, fields): ...

    @abc.abstractmethod
    def list_volunteers_by_project(self, project_id): ...

    def update_application_status(self, application_id, status):
        return self.update_application(application_id, {"status": status})

    def is_volunteer_assigned_to_project(self, volunteer_id, project_id):
        application = self.get_application_by_volunteer_and_project(volunteer_id, project_id)
        return bool(application) and application["status"] == "approved"

    # ---- donations

    @abc.abstractmethod
    def create_donation(self, data):
        """Insert the donation and bump the project, returns (donation, project)."""

    @abc.abstractmethod
    def list_donations_by_project(self, project_id): ...

    @abc.abstractmethod
    def list_donations_by_donor(self, donor_id): ...

    @abc.abstractmethod
    def list_donations(self): ...

    # ---- project reports

    @abc.abstractmethod
    def create_project_report(self, data): ...

    @abc.abstractmethod
    def list_project_reports(self, project_id): ...

    # ---- stats

    @abc.abstractmethod
    def get_platform_stats(self): ...


                                                                    # ---------------------------------------------
                                                                    # PostgreSQL backend
                                                                    # ---------------------------------------------
class PostgresStorage(Storage):

    def init(self):
        init_db()

    @contextmanager
    def _cursor(self):
        """One connection, one transaction. Commits on success, rolls back on anything else."""
        conn = get_db_connection()
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except psycopg2.IntegrityError as e:
            conn.rollback()                                         # unique / FK / check violations
            raise ValueError(e.pgerror or str(e)) from e
        except Exception:
            conn.rollback()                                         # Undo changes if there's an error
            raise
        finally:
            conn.close()                                            # Always close the connection

    def _one(self, query, params=()):
        with self._cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
            return dict(row) if row else None

    def _all(self, query, params=()):
        with self._cursor() as cur:
            cur.execute(query, params)
            return [dict(row) for row in cur.fetchall()]

    def _insert_query(self, table, data):
        data = _only_columns(table, data)
        cols = list(data)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(map(sql.Identifier, cols)),
            sql.SQL(", ").join(sql.Placeholder() * len(cols)),
        )
        return query, [data[c] for c in cols]

    def _update_query(self, table, row_id, fields):
        fields = _only_columns(table, fields)
        assignments = [sql.SQL("{} = %s").format(sql.Identifier(c)) for c in fields]
        if table in TOUCHED_TABLES:
            assignments.append(sql.SQL("updated_at = NOW()"))
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(assignments),
        )
        return query, list(fields.values()) + [row_id]

    def _insert(self, table, data):
        query, params = self._insert_query(table, data)
        return self._one(query, params)

    def _update(self, table, row_id, fields):
        if not _only_columns(table, fields):
            return self._one(
                sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(table)), (row_id,)
            )
        query, params = self._update_query(table, row_id, fields)
        return self._one(query, params)

    # ---- users

    def get_user(self, user_id):
        return self._one("SELECT * FROM users WHERE id = %s", (user_id,))

    def get_user_by_email(self, email):
        return self._one("SELECT * FROM users WHERE LOWER(email) = LOWER(%s)", (email,))

    def get_user_by_username(self, username):
        return self._one("SELECT * FROM users WHERE username = %s", (username,))

    def get_user_by_verification_token(self, token):
        return self._one("SELECT * FROM users WHERE verification_token = %s", (token,))

    def create_user(self, data):
        return self._insert("users", data)

    def update_user(self, user_id, fields):
        return self._update("users", user_id, fields)

    def list_users(self):
        return self._all("SELECT * FROM users ORDER BY username")

    # ---- projects

    def list_projects(self, status=None, search=None, limit=config.DEFAULT_PAGE_SIZE, offset=0,
                      viewer_role=None, viewer_id=None, moderation_statuses=None):
        where, params = [], []

                                                                    # who's looking decides what they can see
        if viewer_role not in STAFF_ROLES:
            if viewer_role == "coordinator" and viewer_id is not None:
                where.append("(coordinator_id = %s OR moderation_status = 'approved')")
                params.append(viewer_id)
            else:
                where.append("moderation_status = 'approved'")

        if moderation_statuses:
            where.append("moderation_status = ANY(%s)")
            params.append(list(moderation_statuses))
        if status:
            where.append("status = %s")
            params.append(status)
        if search:
            pattern = "%" + like_escape(search) + "%"
            where.append("(name ILIKE %s ESCAPE '\\' OR description ILIKE %s ESCAPE '\\')")
            params.extend([pattern, pattern])

        query = "SELECT * FROM projects"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s"
        params.extend([limit, offset])
        return self._all(query, params)

    def get_project(self, project_id):
        return self._one("SELECT * FROM projects WHERE id = %s", (project_id,))

    def list_projects_by_coordinator(self, coordinator_id):
        return self._all("""
            SELECT * FROM projects
            WHERE coordinator_id = %s
            ORDER BY created_at DESC, id DESC
        """, (coordinator_id,))

    def list_projects_for_volunteer(self, volunteer_id):
        return self._all("""
            SELECT p.* FROM applications a
            JOIN projects p ON p.id = a.project_id
            WHERE a.volunteer_id = %s AND a.status = 'approved'
            ORDER BY p.created_at DESC, p.id DESC
        """, (volunteer_id,))

    def list_projects_for_donor(self, donor_id):
        return self._all("""
            SELECT * FROM projects
            WHERE id IN (SELECT project_id FROM donations WHERE donor_id = %s)
            ORDER BY created_at DESC, id DESC
        """, (donor_id,))

    def create_project(self, data):
        return self._insert("projects", data)

    def update_project(self, project_id, fields):
        return self._update("projects", project_id, fields)

    def delete_project(self, project_id):
        deleted = self._one("DELETE FROM projects WHERE id = %s RETURNING id", (project_id,))
        return deleted is not None                                  # children go via ON DELETE CASCADE

    def create_project_moderation(self, project_id, status, comment, moderator_id):
        with self._cursor() as cur:
            query, params = self._insert_query("project_moderations", {
                "project_id": project_id,
                "status": status,
                "comment": comment,
                "moderator_id": moderator_id,
            })
            cur.execute(query, params)
            moderation = dict(cur.fetchone())
            cur.execute("""
                UPDATE projects
                SET moderation_status = %s, is_published = %s, updated_at = NOW()
                WHERE id = %s
            """, (status, status == "approved", project_id))
            return moderation

    def list_project_moderations(self, project_id):
        return self._all("""
            SELECT * FROM project_moderations
            WHERE project_id = %s
            ORDER BY created_at DESC, id DESC
        """, (project_id,))

    # ---- tasks

    def get_task(self, task_id):
        return self._one("SELECT * FROM tasks WHERE id = %s", (task_id,))

    def list_tasks_by_project(self, project_id):
        return self._all("""
            SELECT * FROM tasks WHERE project_id = %s ORDER BY created_at DESC, id DESC
        """, (project_id,))

    def list_tasks_for_volunteer(self, volunteer_id):
        return self._all("""
            SELECT * FROM tasks WHERE volunteer_id = %s ORDER BY created_at DESC, id DESC
        """, (volunteer_id,))

    def create_task(self, data):
        return self._insert("tasks", data)

    def update_task(self, task_id, fields):
        return self._update("tasks", task_id, fields)

    def delete_task(self, task_id):
        return self._one("DELETE FROM tasks WHERE id = %s RETURNING id", (task_id,)) is not None

    # ---- reports

    def get_report(self, report_id):
        return self._one("SELECT * FROM reports WHERE id = %s", (report_id,))

    def list_reports_by_task(self, task_id):
        return self._all("""
            SELECT * FROM reports WHERE task_id = %s ORDER BY created_at DESC, id DESC
        """, (task_id,))

    def create_report(self, data):
        return self._insert("reports", data)

    def update_report(self, report_id, fields):
        return self._update("reports", report_id, fields)

    # ---- applications

    def get_application(self, application_id):
        return self._one("SELECT * FROM applications WHERE id = %s", (application_id,))

    def get_application_by_volunteer_and_project(self, volunteer_id, project_id):
        return self._one("""
            SELECT * FROM applications WHERE volunteer_id = %s AND project_id = %s
        """, (volunteer_id, project_id))

    def list_applications_by_project(self, project_id):
        return self._all("""
            SELECT * FROM applications WHERE project_id = %s ORDER BY created_at DESC, id DESC
        """, (project_id,))

    def list_applications_by_volunteer(self, volunteer_id):
        return self._all("""
            SELECT * FROM applications WHERE volunteer_id = %s ORDER BY created_at DESC, id DESC
        """, (volunteer_id,))

    def create_application(self, data):
        return self._insert("applications", data)

    def update_application(self, application_id, fields):
        return self._update("applications", application_id, fields)

    def list_volunteers_by_project(self, project_id):
        return self._all("""
            SELECT u.* FROM applications a
            JOIN users u ON u.id = a.volunteer_id
            WHERE a.project_id = %s AND a.status = 'approved'
            ORDER BY u.username
        """, (project_id,))

    # ---- donations

    def create_donation(self, data):
        with self._cursor() as cur:
            query, params = self._insert_query("donations", data)
            cur.execute(query, params)
            donation = dict(cur.fetchone())
                                                                    # bump the total and flip to in_progress once the target is hit
            cur.execute("""
                UPDATE projects SET
                    collected_amount = collected_amount + %s,
                    status = CASE
                        WHEN status = 'funding' AND ROUND((collected_amount + %s)::numeric, 2) >= target_amount
                        THEN 'in_progress' ELSE status END,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
            """, (donation["amount"], donation["amount"], donation["project_id"]))
            project = dict(cur.fetchone())
            return donation, project

    def list_donations_by_project(self, project_id):
        return self._all("""
            SELECT * FROM donations WHERE project_id = %s ORDER BY created_at DESC, id DESC
        """, (project_id,))

    def list_donations_by_donor(self, donor_id):
        return self._all("""
            SELECT * FROM donations WHERE donor_id = %s ORDER BY created_at DESC, id DESC
        """, (donor_id,))

    def list_donations(self):
        return self._all("SELECT * FROM donations ORDER BY created_at DESC, id DESC")

    # ---- project reports

    def create_project_report(self, data):
        return self._insert("project_reports", data)

    def list_project_reports(self, project_id):
        return self._all("""
            SELECT * FROM project_reports WHERE project_id = %s ORDER BY created_at DESC, id DESC
        """, (project_id,))

    # ---- stats

    def get_platform_stats(self):
        with self._cursor() as cur:
            cur.execute("SELECT role, COUNT(*) AS n FROM users GROUP BY role")
            users_by_role = {r["role"]: r["n"] for r in cur.fetchall()}
            cur.execute("SELECT status, COUNT(*) AS n FROM projects GROUP BY status")
            projects_by_status = {r["status"]: r["n"] for r in cur.fetchall()}
            cur.execute("SELECT moderation_status, COUNT(*) AS n FROM projects GROUP BY moderation_status")
            projects_by_moderation = {r["moderation_status"]: r["n"] for r in cur.fetchall()}
            cur.execute("SELECT COALESCE(SUM(amount), 0) AS total, COUNT(*) AS n FROM donations")
            totals = cur.fetchone()
            return {
                "users_by_role": users_by_role,
                "projects_by_status": projects_by_status,
                "projects_by_moderation": projects_by_moderation,
                "total_donated": float(totals["total"]),
                "donation_count": totals["n"],
            }


                                                                    # ---------------------------------------------
                                                                    # In-memory backend
                                                                    # ---------------------------------------------

                                                                    # what Postgres would fill in by itself
ROW_DEFAULTS = {
    "users": {
        "first_name": None, "last_name": None, "phone_number": None, "bio": None,
        "region": None, "city": None, "gender": None, "birth_date": None,
        "is_verified": False, "is_blocked": False, "verification_token": None,
    },
    "projects": {
        "image_url": None, "location": None, "collected_amount": 0.0, "status": "funding",
        "moderation_status": "pending", "is_published": False, "bank_details": None,
    },
    "project_moderations": {"status": "pending", "comment": None, "moderator_id": None},
    "tasks": {
        "volunteer_id": None, "status": "pending", "type": "other", "deadline": None,
        "location": None, "volunteers_needed": 1, "required_skills": None,
        "requires_expenses": False, "estimated_amount": None, "expense_purpose": None,
    },
    "reports": {
        "volunteer_id": None, "comment": None, "image_urls": [], "receipt_urls": [],
        "spent_amount": None, "remaining_amount": None, "expense_purpose": None,
        "financial_confirmed": False, "status": "pending", "reviewer_comment": None,
    },
    "applications": {"status": "pending", "message": None},
    "donations": {"donor_id": None, "comment": None, "email": None, "is_anonymous": False},
    "project_reports": {"coordinator_id": None, "document_url": None, "total_spent": None},
}


def _newest_first(rows):
    return sorted(rows, key=lambda r: (r["created_at"], r["id"]), reverse=True)


class MemoryStorage(Storage):
    """Same interface as PostgresStorage but everything lives in dicts."""

    def __init__(self):
        self._lock = threading.RLock()
        self._tables = {name: {} for name in TABLE_COLUMNS}
        self._ids = {name: itertools.count(1) for name in TABLE_COLUMNS}

    def init(self):
        logger.info("Using in-memory storage, data will not survive a restart")

    def _rows(self, table, **match):
        with self._lock:
            return [
                dict(row) for row in self._tables[table].values()
                if all(row.get(k) == v for k, v in match.items())
            ]

    def _get(self, table, row_id):
        with self._lock:
            row = self._tables[table].get(row_id)
            return dict(row) if row else None

    def _insert(self, table, data):
        now = datetime.now()
        with self._lock:
            row = copy.deepcopy(ROW_DEFAULTS[table])
            row.update({k: v for k, v in _only_columns(table, data).items() if v is not None})
            row["id"] = next(self._ids[table])
            row["created_at"] = now
            if table in TOUCHED_TABLES:
                row["updated_at"] = now
            self._tables[table][row["id"]] = row
            return dict(row)

    def _update(self, table, row_id, fields):
        with self._lock:
            row = self._tables[table].get(row_id)
            if row is None:
                return None
            row.update(_only_columns(table, fields))
            if table in TOUCHED_TABLES:
                row["updated_at"] = datetime.now()
            return dict(row)

    def _delete_where(self, table, **match):
        doomed = [r["id"] for r in self._rows(table, **match)]
        for row_id in doomed:
            del self._tables[table][row_id]
        return doomed

    # ---- users

    def get_user(self, user_id):
        return self._get("users", user_id)

    def get_user_by_email(self, email):
        email = email.lower()
        return next((u for u in self._rows("users") if u["email"].lower() == email), None)

    def get_user_by_username(self, username):
        return next(iter(self._rows("users", username=username)), None)

    def get_user_by_verification_token(self, token):
        if not token:
            return None
        return next(iter(self._rows("users", verification_token=token)), None)

    def create_user(self, data):
        with self._lock:
            if self.get_user_by_email(data["email"]) or self.get_user_by_username(data["username"]):
                raise ValueError("User with this email or username already exists")
            return self._insert("users", data)

    def update_user(self, user_id, fields):
        return self._update("users", user_id, fields)

    def list_users(self):
        return sorted(self._rows("users"), key=lambda u: u["username"])

    # ---- projects

    def list_projects(self, status=None, search=None, limit=config.DEFAULT_PAGE_SIZE, offset=0,
                      viewer_role=None, viewer_id=None, moderation_statuses=None):
        result = self._rows("projects")

        if viewer_role not in STAFF_ROLES:
            if viewer_role == "coordinator" and viewer_id is not None:
                result = [p for p in result
                          if p["coordinator_id"] == viewer_id or p["moderation_status"] == "approved"]
            else:
                result = [p for p in result if p["moderation_status"] == "approved"]

        if moderation_statuses:
            result = [p for p in result if p["moderation_status"] in moderation_statuses]
        if status:
            result = [p for p in result if p["status"] == status]
        if search:
            needle = search.lower()
            result = [p for p in result
                      if needle in p["name"].lower() or needle in p["description"].lower()]

        return _newest_first(result)[offset:offset + limit]

    def get_project(self, project_id):
        return self._get("projects", project_id)

    def list_projects_by_coordinator(self, coordinator_id):
        return _newest_first(self._rows("projects", coordinator_id=coordinator_id))

    def list_projects_for_volunteer(self, volunteer_id):
        approved = self._rows("applications", volunteer_id=volunteer_id, status="approved")
        projects = [self.get_project(a["project_id"]) for a in approved]
        return _newest_first([p for p in projects if p])

    def list_projects_for_donor(self, donor_id):
        ids = {d["project_id"] for d in self._rows("donations", donor_id=donor_id)}
        projects = [self.get_project(pid) for pid in ids]
        return _newest_first([p for p in projects if p])

    def create_project(self, data):
        return self._insert("projects", data)

    def update_project(self, project_id, fields):
        return self._update("projects", project_id, fields)

    def delete_project(self, project_id):
        with self._lock:
            if project_id not in self._tables["projects"]:
                return False
            del self._tables["projects"][project_id]
            for task_id in self._delete_where("tasks", project_id=project_id):
                self._delete_where("reports", task_id=task_id)
            for table in ("applications", "donations", "project_moderations", "project_reports"):
                self._delete_where(table, project_id=project_id)
            return True

    def create_project_moderation(self, project_id, status, comment, moderator_id):
        with self._lock:
            moderation = self._insert("project_moderations", {
                "project_id": project_id,
                "status": status,
                "comment": comment,
                "moderator_id": moderator_id,
            })
            self._update("projects", project_id, {
                "moderation_status": status,
                "is_published": status == "approved",
            })
            return moderation

    def list_project_moderations(self, project_id):
        return _newest_first(self._rows("project_moderations", project_id=project_id))

    # ---- tasks

    def get_task(self, task_id):
        return self._get("tasks", task_id)

    def list_tasks_by_project(self, project_id):
        return _newest_first(self._rows("tasks", project_id=project_id))

    def list_tasks_for_volunteer(self, volunteer_id):
        return _newest_first(self._rows("tasks", volunteer_id=volunteer_id))

    def create_task(self, data):
        return self._insert("tasks", data)

    def update_task(self, task_id, fields):
        return self._update("tasks", task_id, fields)

    def delete_task(self, task_id):
        with self._lock:
            if task_id not in self._tables["tasks"]:
                return False
            del self._tables["tasks"][task_id]
            self._delete_where("reports", task_id=task_id)
            return True

    # ---- reports

    def get_report(self, report_id):
        return self._get("reports", report_id)

    def list_reports_by_task(self, task_id):
        return _newest_first(self._rows("reports", task_id=task_id))

    def create_report(self, data):
        return self._insert("reports", data)

    def update_report(self, report_id, fields):
        return self._update("reports", report_id, fields)

    # ---- applications

    def get_application(self, application_id):
        return self._get("applications", application_id)

    def get_application_by_volunteer_and_project(self, volunteer_id, project_id):
        return next(iter(self._rows("applications", volunteer_id=volunteer_id, project_id=project_id)), None)

    def list_applications_by_project(self, project_id):
        return _newest_first(self._rows("applications", project_id=project_id))

    def list_applications_by_volunteer(self, volunteer_id):
        return _newest_first(self._rows("applications", volunteer_id=volunteer_id))

    def create_application(self, data):
        with self._lock:
            if self.get_application_by_volunteer_and_project(data["volunteer_id"], data["project_id"]):
                raise ValueError("Volunteer already applied to this project")
            return self._insert("applications", data)

    def update_application(self, application_id, fields):
        return self._update("applications", application_id, fields)

    def list_volunteers_by_project(self, project_id):
        approved = self._rows("applications", project_id=project_id, status="approved")
        users = [self.get_user(a["volunteer_id"]) for a in approved]
        return sorted([u for u in users if u], key=lambda u: u["username"])

    # ---- donations

    def create_donation(self, data):
        with self._lock:
            donation = self._insert("donations", data)
            project = self._tables["projects"][donation["project_id"]]
            collected = project["collected_amount"] + donation["amount"]
            fields = {"collected_amount": collected}
            if project["status"] == "funding" and round(collected, 2) >= project["target_amount"]:
                fields["status"] = "in_progress"
            return donation, self._update("projects", project["id"], fields)

    def list_donations_by_project(self, project_id):
        return _newest_first(self._rows("donations", project_id=project_id))

    def list_donations_by_donor(self, donor_id):
        return _newest_first(self._rows("donations", donor_id=donor_id))

    def list_donations(self):
        return _newest_first(self._rows("donations"))

    # ---- project reports

    def create_project_report(self, data):
        return self._insert("project_reports", data)

    def list_project_reports(self, project_id):
        return _newest_first(self._rows("project_reports", project_id=project_id))

    # ---- stats

    def get_platform_stats(self):
        def count_by(rows, key):
            counts = {}
            for row in rows:
                counts[row[key]] = counts.get(row[key], 0) + 1
            return counts

        projects = self._rows("projects")
        donations = self._rows("donations")
        return {
            "users_by_role": count_by(self._rows("users"), "role"),
            "projects_by_status": count_by(projects, "status"),
            "projects_by_moderation": count_by(projects, "moderation_status"),
            "total_donated": float(sum(d["amount"] for d in donations)),
            "donation_count": len(donations),
        }


                                                                    # ---------------------------------------------
                                                                    # Picking the backend
                                                                    # ---------------------------------------------
BACKENDS = {
    "postgres": PostgresStorage,
    "memory": MemoryStorage,
}

_storage = None


def build_storage(backend):
    try:
        return BACKENDS[backend]()
    except KeyError:
        raise ValueError(f"Unknown storage backend: {backend!r}") from None


def get_storage():
    """FastAPI dependency - the one storage object for this process."""
    global _storage
    if _storage is None:
        _storage = build_storage(config.STORAGE_BACKEND)
    return _storage
