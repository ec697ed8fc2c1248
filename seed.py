"""
Demo data so there's something to click around in.

Runs on startup when SEED_DEMO_DATA is on (see config.py), and you can also
run it by hand: python seed.py

It creates:
- one account per role (admin, moderator, coordinator, volunteer, donor),
  all with the password "123456"
- a few approved projects owned by the demo coordinator

It's safe to run twice - accounts are looked up by email first, and the
projects are only made when the demo coordinator is brand new.
"""

import logging

import config
from security import hash_password
from storage import get_storage

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "123456"

DEMO_USERS = [
    {"email": "admin@volunteerhub.org", "username": "admin", "role": "admin",
     "first_name": "Admin", "last_name": "System"},
    {"email": "moderator@volunteerhub.org", "username": "moderator", "role": "moderator",
     "first_name": "Project", "last_name": "Moderator"},
    {"email": "coordinator@volunteerhub.org", "username": "coordinator", "role": "coordinator",
     "first_name": "Olena", "last_name": "Koval"},
    {"email": "volunteer@volunteerhub.org", "username": "volunteer", "role": "volunteer",
     "first_name": "Taras", "last_name": "Shevchuk"},
    {"email": "donor@volunteerhub.org", "username": "donor", "role": "donor",
     "first_name": "Iryna", "last_name": "Melnyk"},
]

DEMO_PROJECTS = [
    {
        "name": "Support for displaced families",
        "description": "Helping internally displaced people in the Lviv region with housing, food and medicine.",
        "target_amount": 150000,
        "location": "Lviv",
        "status": "funding",
    },
    {
        "name": "City park restoration",
        "description": "Cleaning up the city park after the storm, planting new trees and fixing the paths.",
        "target_amount": 75000,
        "location": "Kyiv",
        "status": "in_progress",
    },
    {
        "name": "Winter help for the elderly",
        "description": "Delivering groceries and medicine to elderly people and helping around the house in winter.",
        "target_amount": 100000,
        "location": "Kharkiv",
        "status": "funding",
    },
]


def seed(storage=None):
    storage = storage or get_storage()
    logger.info("Seeding demo data...")

    created = {}
    for person in DEMO_USERS:
        user = storage.get_user_by_email(person["email"])
        if user:
            continue
        created[person["role"]] = storage.create_user({
            **person,
            "password": hash_password(DEMO_PASSWORD),
            "is_verified": True,
        })
        logger.info("Created demo %s %s", person["role"], person["email"])

    coordinator = created.get("coordinator")
    if coordinator:
        for project in DEMO_PROJECTS:
            storage.create_project({
                **project,
                "coordinator_id": coordinator["id"],
                "bank_details": "UA21 3223 1300 0002 6007 2335 6600 1",
                "moderation_status": "approved",
                "is_published": True,
            })
        logger.info("Created %d demo projects", len(DEMO_PROJECTS))
    else:
        logger.info("Demo coordinator already exists, skipping demo projects")

    logger.info("Seeding done")


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    store = get_storage()
    store.init()
    seed(store)
