"""
 Task reports - what a volunteer sends back once they've done (part of) a task.

 Main things it does:
 1. Volunteer submits a report for a task they're assigned to
 2. Coordinator / volunteer / admin read the reports of a task
 3. Coordinator approves or rejects a report (approving completes the task)

 Important notes:
 - If the task requires expenses the report MUST say how much was spent, on
   what, and confirm the numbers (financial_confirmed)
 - remaining_amount is worked out from the task's estimate if you leave it out
 - Pictures and receipts are plain URLs, there's no upload here
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from endpoints.tasks import is_assigned, task_and_project
from models import Report, ReportCreate, ReportStatusUpdate
from security import can_manage_project, ensure_project_manager, get_current_user, require_roles
from storage import get_storage

router = APIRouter()


def build_report(task, volunteer, payload: ReportCreate):
    """Checks the money side of the report and returns the row to store."""
    if task["volunteer_id"] != volunteer["id"]:
        raise HTTPException(status_code=403, detail="You are not assigned to this task")

    data = payload.model_dump(exclude={"task_id"})
    data.update({"task_id": task["id"], "volunteer_id": volunteer["id"], "status": "pending"})

    if task["requires_expenses"]:
        if payload.spent_amount is None or not payload.expense_purpose:
            raise HTTPException(
                status_code=400,
                detail="Spent amount and expense purpose are required for this task"
            )
        if not payload.financial_confirmed:
            raise HTTPException(status_code=400, detail="Please confirm the financial information")
        if payload.remaining_amount is None and task["estimated_amount"] is not None:
            data["remaining_amount"] = max(task["estimated_amount"] - payload.spent_amount, 0)

    return data


@router.post("/tasks/{task_id}/reports", response_model=Report, status_code=201)
def submit_task_report(
    task_id: int,
    payload: ReportCreate,
    user=Depends(require_roles("volunteer")),
    storage=Depends(get_storage),
):
    task, _ = task_and_project(storage, task_id)
    return storage.create_report(build_report(task, user, payload))


@router.post("/reports", response_model=Report, status_code=201)
def submit_report(payload: ReportCreate, user=Depends(require_roles("volunteer")), storage=Depends(get_storage)):
    if payload.task_id is None:
        raise HTTPException(status_code=400, detail="task_id is required")
    task, _ = task_and_project(storage, payload.task_id)
    return storage.create_report(build_report(task, user, payload))


@router.get("/tasks/{task_id}/reports", response_model=List[Report])
def list_task_reports(task_id: int, user=Depends(get_current_user), storage=Depends(get_storage)):
    task, project = task_and_project(storage, task_id)
    if not (can_manage_project(user, project) or is_assigned(user, task)):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return storage.list_reports_by_task(task_id)


@router.patch("/reports/{report_id}/status", response_model=Report)
def review_report(
    report_id: int,
    payload: ReportStatusUpdate,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    report = storage.get_report(report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    task, project = task_and_project(storage, report["task_id"])
    ensure_project_manager(user, project)

    updated = storage.update_report(report_id, {
        "status": payload.status,
        "reviewer_comment": payload.comment,
    })
    if payload.status == "approved":
        storage.update_task_status(task["id"], "completed")
    return updated
