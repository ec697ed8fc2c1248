
"""
This is the MAIN FILE that ties everything together - like the boss of our app!

What it does:
1. Creates the FastAPI app and connects all the parts (auth, projects, tasks, donations...)
2. Turns on sessions (signed cookie), CORS and request logging
3. Sets up the storage (database tables) when we start the app, and seeds demo data if asked

Important stuff happening here:
- Every route lives under /api
- The moderation router goes BEFORE the projects router, otherwise
  GET /api/projects/moderation would be read as GET /api/projects/{project_id}
- Anything that blows up without an HTTPException turns into a plain 500

Key things to know:
- The @app.on_event("startup") runs when the app starts
- Settings come from config.py (env vars)
- Set VOLUNTEER_HUB_STORAGE=memory to run without PostgreSQL

Watch out for:
- If database setup fails, the app won't start properly
- SESSION_SECRET must be the same on every worker or people get logged out

Tip: If you add a new router, remember to:
1. Put it in endpoints/
2. Include it down below with prefix="/api"
"""

import logging
import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

import config
from endpoints import (
    applications, auth, contact, dashboards, donations, moderation,
    project_reports, projects, reports, tasks, users,
)
from seed import seed
from storage import get_storage

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("volunteer_hub")

app = FastAPI(title="Volunteer Hub")

app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    max_age=config.SESSION_MAX_AGE,
    https_only=config.SESSION_HTTPS_ONLY,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

                                                                                # Add the different parts of the app
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(moderation.router, prefix="/api", tags=["moderation"])      # before projects!
app.include_router(projects.router, prefix="/api", tags=["projects"])
app.include_router(tasks.router, prefix="/api", tags=["tasks"])
app.include_router(reports.router, prefix="/api", tags=["reports"])
app.include_router(applications.router, prefix="/api", tags=["applications"])
app.include_router(donations.router, prefix="/api", tags=["donations"])
app.include_router(project_reports.router, prefix="/api", tags=["project reports"])
app.include_router(users.router, prefix="/api", tags=["users"])
app.include_router(dashboards.router, prefix="/api", tags=["dashboards"])
app.include_router(contact.router, prefix="/api", tags=["contact"])


@app.middleware("http")
async def log_api_calls(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)

    if request.url.path.startswith("/api"):
        duration = int((time.perf_counter() - start) * 1000)
        line = f"{request.method} {request.url.path} {response.status_code} in {duration}ms"
        if len(line) > 80:
            line = line[:79] + "…"
        logger.info(line)
    return response


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.on_event("startup")
def init_storage():
    storage = app.dependency_overrides.get(get_storage, get_storage)()
    storage.init()                                                              # Create tables if they don't exist
    if config.SEED_DEMO_DATA:
        seed(storage)
    logger.info("Volunteer Hub is up (%s storage)", type(storage).__name__)


if __name__ == "__main__":
    uvicorn.run("main:app", host=config.HOST, port=config.PORT)
