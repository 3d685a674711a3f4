"""
Launch impact factor and launch-stage flag derivation.
"""

import pytest

from stackrank.db import crud
from stackrank.services.ranking import (
    compute_advances_launch_stage,
    launch_impact,
    update_launch_stage_flags,
)

from tests.conftest import add_story


class TestLaunchImpact:

    def test_flagged_story(self):
        assert launch_impact(True) == 100
        assert launch_impact(True, "docs") == 100

    @pytest.mark.parametrize("story_type", [
        "payment", "Security hardening", "AUTHENTICATION", "deployment pipeline", "analytics",
    ])
    def test_launch_critical_type(self, story_type):
        assert launch_impact(False, story_type) == 80

    @pytest.mark.parametrize("flag,story_type", [
        (False, None),
        (None, None),
        (None, ""),
        (False, "copy tweak"),
        (False, "metadata cleanup"),
        (None, "speed tweak"),
        (None, "welcome email"),
    ])
    def test_neutral(self, flag, story_type):
        assert launch_impact(flag, story_type) == 50

    def test_custom_types(self):
        assert launch_impact(None, "gardening", critical_types=("garden",)) == 80
        assert launch_impact(None, "payment", critical_types=("garden",)) == 50

    def test_title_keywords_do_not_mark_type(self):
        # "stripe" advances launch in a title but is not a critical story type
        assert compute_advances_launch_stage("stripe") is True
        assert launch_impact(None, "stripe") == 50


class TestComputeAdvancesLaunchStage:

    @pytest.mark.parametrize("title,description", [
        ("Set up SSL certificate", None),
        ("Landing page", "Add Google Analytics snippet"),
        ("Wire Stripe", ""),
        ("Fix LOGIN redirect", None),
    ])
    def test_launch_keywords(self, title, description):
        assert compute_advances_launch_stage(title, description) is True

    @pytest.mark.parametrize("title,description", [
        ("Rename settings tab", None),
        ("Update footer copy", "Change the year"),
        ("", None),
    ])
    def test_no_keywords(self, title, description):
        assert compute_advances_launch_stage(title, description) is False


class TestUpdateLaunchStageFlags:

    def test_flags_every_story(self, project):
        launch = add_story(project.id, "Configure DNS for the domain")
        plain = add_story(project.id, "Rename settings tab", advances_launch_stage=True)
        done = add_story(project.id, "Add Sentry", status="completed")

        updated = update_launch_stage_flags(project.id)

        assert updated == 3
        assert crud.get_story(launch.id).advances_launch_stage is True
        assert crud.get_story(plain.id).advances_launch_stage is False
        assert crud.get_story(done.id).advances_launch_stage is True

    def test_empty_project(self, project):
        assert update_launch_stage_flags(project.id) == 0
