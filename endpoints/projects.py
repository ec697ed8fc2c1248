"""
 This module handles all the project stuff - listing, creating, editing and deleting projects.

 Main things it does:
 1. List projects (newest first) with status filter, search and paging
 2. Coordinators create projects, they wait for a moderator before going public
 3. Admins can create a project for any coordinator, those are approved right away
 4. Edit / change status / delete a project (owning coordinator or admin)
 5. Show a coordinator's projects and the volunteers that joined a project

 Important notes:
 - Who sees what: admins & moderators see everything, a coordinator sees their
   own projects plus approved ones, everybody else only sees approved projects
 - collected_amount only ever changes through donations (see donations.py)
 - Deleting a project takes its tasks, applications, donations etc. with it
 Watch out for:
 - The moderation routes live in moderation.py and MUST be included before this
   router, otherwise /projects/moderation gets eaten by /projects/{project_id}
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

import config
from models import (
    AdminProjectCreate, Project, ProjectCreate, ProjectStatus, ProjectStatusUpdate, ProjectUpdate, UserPublic,
)
from security import can_view_project, ensure_project_manager, get_optional_user, require_roles
from storage import get_storage

router = APIRouter()

NULLABLE_FIELDS = ("image_url", "location")                 # PUT may clear these, other nulls are ignored


def get_project_or_404(storage, project_id):
    project = storage.get_project(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def check_coordinator(storage, coordinator_id):
    coordinator = storage.get_user(coordinator_id)
    if not coordinator or coordinator["role"] != "coordinator":
        raise HTTPException(status_code=400, detail="coordinator_id must reference a coordinator")
    return coordinator


                                                                    # ---------------------------------------------
                                                                    # List projects (newest ones show up first)
                                                                    # ---------------------------------------------
@router.get("/projects", response_model=List[Project])
def list_projects(
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user=Depends(get_optional_user),
    storage=Depends(get_storage),
):
    return storage.list_projects(
        status=status.value if status else None,
        search=search.strip() if search else None,
        limit=limit,
        offset=offset,
        viewer_role=user["role"] if user else None,
        viewer_id=user["id"] if user else None,
    )


                                                                    # ---------------------------------------------
                                                                    # Create a new project
                                                                    # ---------------------------------------------
@router.post("/projects", response_model=Project, status_code=201)
def create_project(
    payload: ProjectCreate,
    user=Depends(require_roles("coordinator")),
    storage=Depends(get_storage),
):
    data = payload.model_dump()
    data.update({
        "coordinator_id": user["id"],
        "status": "funding",
        "collected_amount": 0,
        "moderation_status": "pending",                             # waits for a moderator
        "is_published": False,
    })
    return storage.create_project(data)


@router.post("/admin/projects", response_model=Project, status_code=201)
def create_project_as_admin(
    payload: AdminProjectCreate,
    user=Depends(require_roles("admin")),
    storage=Depends(get_storage),
):
    check_coordinator(storage, payload.coordinator_id)
    data = payload.model_dump()
    data.update({
        "status": "funding",
        "collected_amount": 0,
        "moderation_status": "approved",
        "is_published": True,
    })
    return storage.create_project(data)


                                                                    # ---------------------------------------------
                                                                    # A coordinator's own projects
                                                                    # ---------------------------------------------
@router.get("/projects/coordinator/{coordinator_id}", response_model=List[Project])
def list_coordinator_projects(
    coordinator_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    if user["role"] == "coordinator" and user["id"] != coordinator_id:
        raise HTTPException(status_code=403, detail="You can only see your own projects")
    return storage.list_projects_by_coordinator(coordinator_id)


@router.get("/projects/{project_id}", response_model=Project)
def get_project(project_id: int, user=Depends(get_optional_user), storage=Depends(get_storage)):
    project = storage.get_project(project_id)
    if not project or not can_view_project(user, project):
        raise HTTPException(status_code=404, detail="Project not found")
    return project


                                                                    # ---------------------------------------------
                                                                    # Edit a project
                                                                    # ---------------------------------------------
@router.put("/projects/{project_id}", response_model=Project)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)

    fields = payload.model_dump(exclude_unset=True)
    if "status" in fields or "collected_amount" in fields:
        raise HTTPException(
            status_code=403,
            detail="Status and collected amount can't be changed here"
        )
    if "coordinator_id" in fields:
        if user["role"] != "admin":
            raise HTTPException(status_code=403, detail="Only an admin can reassign a project")
        check_coordinator(storage, fields["coordinator_id"])

    fields = {k: v for k, v in fields.items() if v is not None or k in NULLABLE_FIELDS}
    return storage.update_project(project_id, fields)


@router.patch("/projects/{project_id}/status", response_model=Project)
def update_project_status(
    project_id: int,
    payload: ProjectStatusUpdate,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)
    return storage.update_project_status(project_id, payload.status)


                                                                    # ---------------------------------------------
                                                                    # Delete a project and everything hanging off it
                                                                    # ---------------------------------------------
@router.delete("/projects/{project_id}", status_code=204)
def delete_project(
    project_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)
    storage.delete_project(project_id)
    return Response(status_code=204)


@router.get("/projects/{project_id}/volunteers", response_model=List[UserPublic])
def list_project_volunteers(
    project_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)
    return storage.list_volunteers_by_project(project_id)
