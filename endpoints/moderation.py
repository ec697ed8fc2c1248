"""
 Project moderation - moderators (and admins) decide which projects go public.

 Main things it does:
 1. Show the moderation queue (projects that are pending or were rejected)
 2. Approve or reject a project, with an optional comment
 3. Show the moderation history of a project

 Important notes:
 - Every decision is kept as its own project_moderations row
 - Approving publishes the project, rejecting hides it again
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import config
from endpoints.projects import get_project_or_404
from models import ModerationDecision, Project, ProjectModeration, ProjectStatus
from security import can_manage_project, get_current_user, is_staff, require_roles
from storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter()

QUEUE_STATUSES = ("pending", "rejected")


@router.get("/projects/moderation", response_model=List[Project])
def moderation_queue(
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user=Depends(require_roles("moderator", "admin")),
    storage=Depends(get_storage),
):
    return storage.list_projects(
        status=status.value if status else None,
        search=search.strip() if search else None,
        limit=limit,
        offset=offset,
        viewer_role=user["role"],
        viewer_id=user["id"],
        moderation_statuses=QUEUE_STATUSES,
    )


@router.post("/projects/{project_id}/moderate", response_model=ProjectModeration, status_code=201)
def moderate_project(
    project_id: int,
    payload: ModerationDecision,
    user=Depends(require_roles("moderator", "admin")),
    storage=Depends(get_storage),
):
    get_project_or_404(storage, project_id)
    if payload.status not in ("approved", "rejected"):
        raise HTTPException(status_code=400, detail="A decision must be approved or rejected")

    moderation = storage.create_project_moderation(project_id, payload.status, payload.comment, user["id"])
    logger.info("Project %s %s by %s", project_id, payload.status, user["username"])
    return moderation


@router.get("/projects/{project_id}/moderation", response_model=List[ProjectModeration])
def moderation_history(project_id: int, user=Depends(get_current_user), storage=Depends(get_storage)):
    project = get_project_or_404(storage, project_id)
    if not (is_staff(user) or can_manage_project(user, project)):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return storage.list_project_moderations(project_id)
