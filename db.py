"""
This file is all about connecting to our PostgreSQL database and making the tables.
It's like the bridge between our app and the database.

Main jobs:
1. Creates the connection to PostgreSQL (settings come from config.py)
2. Makes database results come back as easy-to-use dictionaries
3. Creates all our tables if they aren't there yet
4. Handles database connection errors nicely

Important stuff to know:
- It uses psycopg2 to talk to PostgreSQL
- The RealDictCursor makes database rows come as dicts (way easier to work with)
- If connection fails, it gives back a 500 error with details
- You gotta close connections when you're done with them!

Foreign keys (what happens when the parent row goes away):
- projects.coordinator_id      -> users     RESTRICT (can't drop a coordinator with projects)
- tasks / applications / donations / reports / moderations / project_reports
  that point at a project or task                 -> CASCADE
- "who did it" columns (volunteer_id on tasks, donor_id, moderator_id, ...) -> SET NULL
- applications.volunteer_id    -> users     CASCADE

Watch out for:
- Changing table structures here affects storage.py too
- collected_amount <= target_amount is NOT enforced here, the donation route does it

Example usage:
conn = get_db_connection()
try:
    # do your database stuff here
finally:
    conn.close()  # SUPER important!
"""

import logging

import psycopg2
from psycopg2.extras import RealDictCursor
from fastapi import HTTPException

import config

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        role TEXT NOT NULL
            CHECK (role IN ('volunteer', 'coordinator', 'donor', 'admin', 'moderator')),
        first_name TEXT,
        last_name TEXT,
        phone_number TEXT,
        bio TEXT,
        region TEXT,
        city TEXT,
        gender TEXT,
        birth_date DATE,
        is_verified BOOLEAN NOT NULL DEFAULT FALSE,
        is_blocked BOOLEAN NOT NULL DEFAULT FALSE,
        verification_token TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS projects (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        image_url TEXT,
        location TEXT,
        target_amount DOUBLE PRECISION NOT NULL,
        collected_amount DOUBLE PRECISION NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'funding'
            CHECK (status IN ('funding', 'in_progress', 'completed')),
        moderation_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (moderation_status IN ('pending', 'approved', 'rejected')),
        is_published BOOLEAN NOT NULL DEFAULT FALSE,
        coordinator_id INTEGER NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
        bank_details TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS project_moderations (
        id SERIAL PRIMARY KEY,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        comment TEXT,
        moderator_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS tasks (
        id SERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        volunteer_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'in_progress', 'completed')),
        type TEXT NOT NULL DEFAULT 'other',
        deadline TIMESTAMP,
        location TEXT,
        volunteers_needed INTEGER NOT NULL DEFAULT 1,
        required_skills TEXT,
        requires_expenses BOOLEAN NOT NULL DEFAULT FALSE,
        estimated_amount DOUBLE PRECISION,
        expense_purpose TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS reports (
        id SERIAL PRIMARY KEY,
        task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        volunteer_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        description TEXT NOT NULL,
        comment TEXT,
        image_urls TEXT[] NOT NULL DEFAULT '{}',
        receipt_urls TEXT[] NOT NULL DEFAULT '{}',
        spent_amount DOUBLE PRECISION,
        remaining_amount DOUBLE PRECISION,
        expense_purpose TEXT,
        financial_confirmed BOOLEAN NOT NULL DEFAULT FALSE,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        reviewer_comment TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS applications (
        id SERIAL PRIMARY KEY,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        volunteer_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        message TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        UNIQUE (project_id, volunteer_id)
    );

    CREATE TABLE IF NOT EXISTS donations (
        id SERIAL PRIMARY KEY,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        donor_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        amount DOUBLE PRECISION NOT NULL CHECK (amount > 0),
        comment TEXT,
        email TEXT,
        is_anonymous BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS project_reports (
        id SERIAL PRIMARY KEY,
        project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        coordinator_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        document_url TEXT,
        total_spent DOUBLE PRECISION,
        created_at TIMESTAMP NOT NULL DEFAULT NOW()
    );
"""


                                            # Gets a connection to our PostgreSQL database
def get_db_connection():
    try:
        if config.DATABASE_URL:
            return psycopg2.connect(config.DATABASE_URL, cursor_factory=RealDictCursor)
        return psycopg2.connect(
            dbname=config.DB_NAME,
            user=config.DB_USER,
            password=config.DB_PASSWORD,
            host=config.DB_HOST,
            port=config.DB_PORT,
            cursor_factory=RealDictCursor   # Makes results come as dicts
        )
    except psycopg2.Error as e:
                                            # If connection fails, return 500 error with details
        logger.error("Database connection failed: %s", e)
        raise HTTPException(
            status_code=500,
            detail=f"Database connection failed: {str(e)}"
        )


def init_db():
    """
    Creates all the tables if they don't exist yet.
    """
    conn = get_db_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
        logger.info("Database schema is ready")
    except Exception:
        conn.rollback()                     # Undo changes if there's an error
        raise
    finally:
        conn.close()
