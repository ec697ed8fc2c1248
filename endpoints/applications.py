"""
 Volunteer applications - how a volunteer asks to join a project.

 Main things it does:
 1. Volunteer applies to a project (once per project)
 2. Volunteer checks if they already applied, and lists their applications
 3. Coordinator lists applications to their projects and approves / rejects them

 Important notes:
 - You can only apply to approved projects that are still funding or in progress
 - An approved application is what lets a volunteer see the project's tasks
   and get assigned to them
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from endpoints.projects import get_project_or_404
from models import Application, ApplicationCreate, ApplicationStatusUpdate, ApplicationWithVolunteer, HasApplied
from security import ensure_project_manager, public_user, require_roles
from storage import get_storage

router = APIRouter()

OPEN_STATUSES = ("funding", "in_progress")


def with_volunteer(storage, application, project):
    return {
        **application,
        "volunteer": public_user(storage.get_user(application["volunteer_id"])),
        "project": {"id": project["id"], "name": project["name"]},
    }


@router.post("/projects/{project_id}/apply", response_model=Application, status_code=201)
def apply_to_project(
    project_id: int,
    payload: ApplicationCreate,
    user=Depends(require_roles("volunteer")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    if project["moderation_status"] != "approved" or project["status"] not in OPEN_STATUSES:
        raise HTTPException(status_code=400, detail="This project is not accepting volunteers")
    if storage.get_application_by_volunteer_and_project(user["id"], project_id):
        raise HTTPException(status_code=400, detail="You have already applied to this project")

    try:
        return storage.create_application({
            "project_id": project_id,
            "volunteer_id": user["id"],
            "status": "pending",
            "message": payload.message,
        })
    except ValueError:                                              # double click, second insert lost
        raise HTTPException(status_code=400, detail="You have already applied to this project")


@router.get("/projects/{project_id}/has-applied", response_model=HasApplied)
def has_applied(project_id: int, user=Depends(require_roles("volunteer")), storage=Depends(get_storage)):
    application = storage.get_application_by_volunteer_and_project(user["id"], project_id)
    if not application:
        return {"has_applied": False, "status": None}
    return {"has_applied": True, "status": application["status"]}


@router.get("/projects/{project_id}/applications", response_model=List[ApplicationWithVolunteer])
def list_project_applications(
    project_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)
    return [with_volunteer(storage, a, project) for a in storage.list_applications_by_project(project_id)]


@router.patch("/applications/{application_id}/status", response_model=Application)
def review_application(
    application_id: int,
    payload: ApplicationStatusUpdate,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    application = storage.get_application(application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    project = get_project_or_404(storage, application["project_id"])
    ensure_project_manager(user, project)
    return storage.update_application_status(application_id, payload.status)


@router.get("/user/applications", response_model=List[Application])
def my_applications(user=Depends(require_roles("volunteer")), storage=Depends(get_storage)):
    return storage.list_applications_by_volunteer(user["id"])


@router.get("/coordinator/{coordinator_id}/applications", response_model=List[ApplicationWithVolunteer])
def list_coordinator_applications(
    coordinator_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    if user["role"] == "coordinator" and user["id"] != coordinator_id:
        raise HTTPException(status_code=403, detail="You can only see applications to your own projects")

    result = []
    for project in storage.list_projects_by_coordinator(coordinator_id):
        for application in storage.list_applications_by_project(project["id"]):
            result.append(with_volunteer(storage, application, project))
    return result
