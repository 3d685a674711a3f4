"""
Store setup: schema application and referential integrity.
"""

import sqlite3

import pytest

from stackrank.db import crud
from stackrank.db.database import get_db_connection, get_schema_path, init_database

from tests.conftest import WORKSPACE_ID


class TestDatabase:

    def test_schema_is_bundled(self):
        assert get_schema_path().name == "schema.sql"
        assert get_schema_path().is_file()

    def test_init_is_repeatable(self, project):
        init_database()

        assert crud.get_project(project.id).name == "Warmstart"

    def test_tables_created(self, db):
        with get_db_connection() as conn:
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }

        assert {"projects", "stories", "priority_signals", "workspace_settings"} <= names

    def test_foreign_keys_enforced(self, db):
        with get_db_connection() as conn:
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_story_needs_existing_project(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            crud.create_story("no-such-project", "Orphan")

    def test_story_in_existing_project(self, db):
        project = crud.create_project(WORKSPACE_ID, "Warmstart")

        story = crud.create_story(project.id, "Checkout flow")

        assert crud.get_story(story.id).project_id == project.id
        assert crud.get_story(story.id).seq == story.seq
