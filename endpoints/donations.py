"""
 Donations - money going into a project. No real payment happens, we just record it.

 Main things it does:
 1. Donate to a project (logged in via /projects/{id}/donate, or anyone via /donations)
 2. List the donations of a project (anonymous donors stay anonymous)
 3. Show a donor their donations and the projects they support
 4. Give admins the full list

 Important notes:
 - Only projects that are still funding take donations
 - You can't donate more than what's left to reach the target
 - Saving the donation and bumping collected_amount happen in ONE transaction,
   when the target is reached the project moves on to in_progress
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from endpoints.projects import get_project_or_404
from models import Donation, DonationCreate, DonationRequest, Project
from security import get_current_user, get_optional_user, require_roles
from storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter()


def record_donation(storage, project_id, payload: DonationRequest, donor_id=None):
    project = get_project_or_404(storage, project_id)
    if project["status"] != "funding":
        raise HTTPException(status_code=400, detail="This project is not accepting donations")

    remaining = round(project["target_amount"] - project["collected_amount"], 2)     # compare in cents
    if round(payload.amount, 2) > remaining:
        raise HTTPException(
            status_code=400,
            detail=f"Donation exceeds the remaining amount ({remaining:.2f})"
        )

    data = payload.model_dump(exclude={"project_id", "donor_id"})
    data.update({"project_id": project_id, "donor_id": donor_id})
    donation, project = storage.create_donation(data)

    logger.info("Donation of %.2f to project %s (now %.2f of %.2f)",
                donation["amount"], project_id, project["collected_amount"], project["target_amount"])
    return donation


def hide_anonymous(donation):
    if donation["is_anonymous"]:
        return {**donation, "donor_id": None, "email": None}
    return donation


@router.post("/projects/{project_id}/donate", response_model=Donation, status_code=201)
def donate_to_project(
    project_id: int,
    payload: DonationRequest,
    user=Depends(get_current_user),
    storage=Depends(get_storage),
):
    return record_donation(storage, project_id, payload, donor_id=user["id"])


@router.post("/donations", response_model=Donation, status_code=201)
def create_donation(payload: DonationCreate, user=Depends(get_optional_user), storage=Depends(get_storage)):
    donor_id = user["id"] if user and user["role"] == "donor" else None     # guests donate without an account
    return record_donation(storage, payload.project_id, payload, donor_id=donor_id)


@router.get("/projects/{project_id}/donations", response_model=List[Donation])
def list_project_donations(project_id: int, storage=Depends(get_storage)):
    get_project_or_404(storage, project_id)
    return [hide_anonymous(d) for d in storage.list_donations_by_project(project_id)]


@router.get("/user/donations", response_model=List[Donation])
def my_donations(user=Depends(get_current_user), storage=Depends(get_storage)):
    return storage.list_donations_by_donor(user["id"])


@router.get("/donor/projects", response_model=List[Project])
def supported_projects(user=Depends(require_roles("donor")), storage=Depends(get_storage)):
    return storage.list_projects_for_donor(user["id"])


@router.get("/admin/donations", response_model=List[Donation])
def all_donations(user=Depends(require_roles("admin")), storage=Depends(get_storage)):
    return storage.list_donations()
