"""
 This module handles tasks - the actual pieces of work inside a project.

 Main things it does:
 1. List / create tasks of a project
 2. Show one task (with the project name attached)
 3. Change a task's status
 4. Assign a volunteer to a task, and show who is assigned
 5. Delete a task
 6. Give a coordinator all tasks across their projects

 Important notes:
 - Only volunteers with an APPROVED application to the project can be assigned
 - Assigning someone moves the task to in_progress
 - A task holds one assigned volunteer, volunteers_needed caps how many slots there are
 Watch out for:
 - Reports live in reports.py, deleting a task drops its reports too
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from endpoints.projects import get_project_or_404
from models import (
    AssignedVolunteer, CoordinatorTask, Task, TaskAssign, TaskCreate, TaskStatusUpdate, TaskWithProject,
)
from security import can_manage_project, ensure_project_manager, get_current_user, is_staff, public_user, require_roles
from storage import get_storage

router = APIRouter()


def get_task_or_404(storage, task_id):
    task = storage.get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def task_and_project(storage, task_id):
    task = get_task_or_404(storage, task_id)
    return task, get_project_or_404(storage, task["project_id"])


def is_assigned(user, task):
    return user["role"] == "volunteer" and task["volunteer_id"] == user["id"]


                                                                    # ---------------------------------------------
                                                                    # Tasks of one project
                                                                    # ---------------------------------------------
@router.get("/projects/{project_id}/tasks", response_model=List[Task])
def list_project_tasks(project_id: int, user=Depends(get_current_user), storage=Depends(get_storage)):
    project = get_project_or_404(storage, project_id)

    joined = user["role"] == "volunteer" and storage.is_volunteer_assigned_to_project(user["id"], project_id)
    if not (can_manage_project(user, project) or joined):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return storage.list_tasks_by_project(project_id)


@router.post("/projects/{project_id}/tasks", response_model=Task, status_code=201)
def create_task(
    project_id: int,
    payload: TaskCreate,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    project = get_project_or_404(storage, project_id)
    ensure_project_manager(user, project)

    data = payload.model_dump()
    data.update({"project_id": project_id, "status": "pending", "volunteer_id": None})
    return storage.create_task(data)


                                                                    # ---------------------------------------------
                                                                    # All tasks of the logged in coordinator
                                                                    # ---------------------------------------------
@router.get("/coordinator/tasks", response_model=List[CoordinatorTask])
def list_coordinator_tasks(user=Depends(require_roles("coordinator", "admin")), storage=Depends(get_storage)):
    result = []
    for project in storage.list_projects_by_coordinator(user["id"]):
        for task in storage.list_tasks_by_project(project["id"]):
            result.append({**task, "project": project})
    return result


                                                                    # ---------------------------------------------
                                                                    # One task
                                                                    # ---------------------------------------------
@router.get("/tasks/{task_id}", response_model=TaskWithProject)
def get_task(task_id: int, user=Depends(get_current_user), storage=Depends(get_storage)):
    task, project = task_and_project(storage, task_id)
    if not (can_manage_project(user, project) or is_assigned(user, task) or is_staff(user)):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return {**task, "project": {"id": project["id"], "name": project["name"]}}


@router.patch("/tasks/{task_id}/status", response_model=Task)
def update_task_status(
    task_id: int,
    payload: TaskStatusUpdate,
    user=Depends(get_current_user),
    storage=Depends(get_storage),
):
    task, project = task_and_project(storage, task_id)
    if not (can_manage_project(user, project) or is_assigned(user, task)):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return storage.update_task_status(task_id, payload.status)


                                                                    # ---------------------------------------------
                                                                    # Assigning volunteers
                                                                    # ---------------------------------------------
@router.post("/tasks/{task_id}/assign", response_model=Task)
def assign_task(
    task_id: int,
    payload: TaskAssign,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    task, project = task_and_project(storage, task_id)
    ensure_project_manager(user, project)

    volunteer = storage.get_user(payload.volunteer_id)
    if not volunteer or volunteer["role"] != "volunteer":
        raise HTTPException(status_code=400, detail="This user is not a volunteer")
    if not storage.is_volunteer_assigned_to_project(volunteer["id"], project["id"]):
        raise HTTPException(status_code=400, detail="Volunteer has no approved application for this project")
    if task["volunteer_id"] == volunteer["id"]:
        raise HTTPException(status_code=400, detail="Volunteer is already assigned to this task")

    taken = 1 if task["volunteer_id"] else 0
    if taken >= task["volunteers_needed"]:
        raise HTTPException(status_code=400, detail="No free volunteer slots left on this task")

    return storage.assign_task(task_id, volunteer["id"])


@router.get("/tasks/{task_id}/assigned-volunteers", response_model=List[AssignedVolunteer])
def list_assigned_volunteers(
    task_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    task, project = task_and_project(storage, task_id)
    ensure_project_manager(user, project)

    if not task["volunteer_id"]:
        return []
    volunteer = storage.get_user(task["volunteer_id"])
    if not volunteer:
        return []
    return [{
        "volunteer_id": volunteer["id"],
        "volunteer": public_user(volunteer),
        "assigned_at": task["updated_at"],                          # last update is the assignment
    }]


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    user=Depends(require_roles("coordinator", "admin")),
    storage=Depends(get_storage),
):
    task, project = task_and_project(storage, task_id)
    ensure_project_manager(user, project)
    storage.delete_task(task_id)
    return Response(status_code=204)
