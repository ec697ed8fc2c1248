"""
 Little helper routes that feed the role dashboards.
"""

from typing import List

from fastapi import APIRouter, Depends

from models import Project, Task
from security import require_roles
from storage import get_storage

router = APIRouter()


                                                                    # projects the volunteer was accepted to
@router.get("/volunteer/projects", response_model=List[Project])
def volunteer_projects(user=Depends(require_roles("volunteer")), storage=Depends(get_storage)):
    return storage.list_projects_for_volunteer(user["id"])


@router.get("/volunteer/tasks", response_model=List[Task])
def volunteer_tasks(user=Depends(require_roles("volunteer")), storage=Depends(get_storage)):
    return storage.list_tasks_for_volunteer(user["id"])


@router.get("/coordinator/projects", response_model=List[Project])
def coordinator_projects(user=Depends(require_roles("coordinator")), storage=Depends(get_storage)):
    return storage.list_projects_by_coordinator(user["id"])
