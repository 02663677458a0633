"""Tests for page classification."""

import pytest

from tibia_community.errors import Maintenance, UnexpectedPageContent
from tibia_community.page import TibiaPage, chunked, classify_page


class TestClassifyPage:
    def test_maintenance_page(self, fixture_page):
        with pytest.raises(Maintenance):
            classify_page(fixture_page("maintenance.html"))

    def test_regular_page(self, fixture_page):
        page = classify_page(fixture_page("worlds.html"))
        assert not page.is_maintenance
        assert page.title.endswith("Community")

    def test_missing_main_content(self):
        page = classify_page("<html><head><title>Tibia</title></head><body></body></html>")
        with pytest.raises(UnexpectedPageContent):
            page.main_content()

    def test_heading(self, fixture_page):
        page = TibiaPage(fixture_page("guilds_antica.html"))
        assert page.heading() == "Active Guilds on Antica"

    def test_heading_missing(self, fixture_page):
        page = TibiaPage(fixture_page("maintenance.html").replace("MaintenanceBox", "main-content"))
        assert page.heading() == ""


def test_chunked_drops_incomplete_tail():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4]]
    assert chunked([], 3) == []
