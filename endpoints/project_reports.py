"""
 Project reports - the coordinator's public write-up of how a project went and where the money went.
"""

from typing import List

from fastapi import APIRouter, Depends

from endpoints.projects import get_project_or_404
from models import ProjectReport, ProjectReportCreate
from security import ensure_project_manager, require_roles
from storage import get_storage

router = APIRouter()


@router.get("/projects/{project_id}/reports", response_model=List[ProjectReport])
def list_project_reports(project_id: int, storage=Depends(get_storage)):
    get_project_or_404(storage, project_id)
    return storage.list_project_reports(project_id)


@router.post("/projects/{project_id}/reports", response_model=ProjectReport, status_code=201)
def create_project_report(
    project_id: int,
    payload: ProjectReportCreate,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)

    data = payload.model_dump()
    data.update({"project_id": project_id, "coordinator_id": user["id"]})
    return storage.create_project_report(data)
