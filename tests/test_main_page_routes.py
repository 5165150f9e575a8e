"""
Tests for api/routes/main_page.py

Covers the landing configuration selection end to end: lazy default
creation, scheduling, overlap reporting, image replacement, two-step delete
and the behaviour when the store fails.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.config import DEFAULT_CONFIGURATION_ID, FALLBACK_SUBTITLE, MAIN_PAGE_TABLE

BASE = "/api/v1/main-page"
PNG = ("bg.png", b"\x89PNG fake image bytes", "image/png")


def create(client, start="2025-01-01T00:00", end="2025-01-31T00:00", subtitle="Winter drive"):
    return client.post(BASE, json={"subtitle": subtitle, "start_date": start, "end_date": end})


class TestAccess:
    def test_listing_requires_sign_in(self, client):
        resp = client.get(BASE)
        assert resp.status_code == 401
        assert resp.json()["status_code"] == 401

    def test_writes_require_sign_in(self, client):
        assert create(client).status_code == 401

    def test_active_is_public(self, client):
        assert client.get(f"{BASE}/active").status_code == 200


class TestLazyDefault:
    def test_empty_store_creates_default_on_first_load(self, client, backend):
        resp = client.get(f"{BASE}/active")
        assert resp.json()["id"] == DEFAULT_CONFIGURATION_ID
        assert resp.json()["subtitle"] == FALLBACK_SUBTITLE
        assert backend.tables[MAIN_PAGE_TABLE][DEFAULT_CONFIGURATION_ID]["is_default"] is True

    def test_listing_shows_default_with_status(self, user_client):
        body = user_client.get(BASE).json()
        assert body["active"]["id"] == DEFAULT_CONFIGURATION_ID
        assert body["configurations"][0]["status"] == "default"
        assert body["load_error"] is None


class TestScheduling:
    def test_created_window_containing_now_is_displayed(self, user_client):
        resp = create(user_client)
        assert resp.status_code == 201
        body = resp.json()
        new_id = body["configuration"]["id"]
        assert body["active_id"] == new_id
        assert body["overlaps"] == []
        assert user_client.get(f"{BASE}/active").json()["id"] == new_id

    def test_after_window_default_is_displayed(self, user_client, clock):
        create(user_client)
        clock.advance(days=17)  # 2025-02-01
        assert user_client.get(f"{BASE}/active").json()["id"] == DEFAULT_CONFIGURATION_ID

    def test_future_window_is_scheduled_not_active(self, user_client):
        body = create(user_client, start="2025-03-01T00:00", end="2025-03-31T00:00").json()
        assert body["active_id"] == DEFAULT_CONFIGURATION_ID
        listing = user_client.get(BASE).json()
        statuses = {c["id"]: c["status"] for c in listing["configurations"]}
        assert statuses[body["configuration"]["id"]] == "scheduled"

    def test_overlap_reported_and_newest_wins(self, user_client):
        first = create(user_client, subtitle="A").json()["configuration"]["id"]
        resp = create(user_client, start="2025-01-10T00:00", end="2025-01-20T00:00", subtitle="B")
        body = resp.json()
        assert body["overlaps"] == [first]
        assert body["active_id"] == body["configuration"]["id"]

    def test_overlap_with_store_order_first_in_fetch_order_wins(self, user_client, backend):
        # A created after B, so the newest-first fetch yields [A, B]
        backend.seed(MAIN_PAGE_TABLE,
                     {"id": "B", "subtitle": "B", "start_date": "2025-01-10", "end_date": "2025-01-20",
                      "is_default": False, "created_at": "2024-12-01T00:00:00+00:00"},
                     {"id": "A", "subtitle": "A", "start_date": "2025-01-01", "end_date": "2025-01-31",
                      "is_default": False, "created_at": "2024-12-02T00:00:00+00:00"})
        assert user_client.get(f"{BASE}/active").json()["id"] == "A"

    def test_end_before_start_rejected(self, user_client):
        resp = create(user_client, start="2025-01-31T00:00", end="2025-01-01T00:00")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "End date must be after start date."

    def test_end_in_past_rejected(self, user_client):
        resp = create(user_client, start="2024-12-01T00:00", end="2024-12-31T00:00")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "End date must be in the future."

    def test_out_of_range_date_rejected(self, user_client):
        resp = create(user_client, start="2025-01-01T00:00", end="9999-12-31T23:59:00-05:00")
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Start and end dates are required")

    def test_blank_subtitle_rejected(self, user_client):
        assert create(user_client, subtitle="   ").status_code == 422

    def test_store_failure_leaves_state_unchanged(self, user_client, backend):
        user_client.get(BASE)
        backend.fail.add("create_document")
        resp = create(user_client)
        assert resp.status_code == 502
        assert resp.json()["error"] == "Backend unavailable"
        listing = user_client.get(BASE).json()
        assert [c["id"] for c in listing["configurations"]] == [DEFAULT_CONFIGURATION_ID]
        assert listing["active"]["id"] == DEFAULT_CONFIGURATION_ID


class TestUpdate:
    def test_moving_window_out_of_now(self, user_client):
        config_id = create(user_client).json()["configuration"]["id"]
        resp = user_client.put(f"{BASE}/{config_id}", json={
            "subtitle": "Spring", "start_date": "2025-03-01T00:00", "end_date": "2025-03-31T00:00"})
        assert resp.status_code == 200
        assert resp.json()["configuration"]["subtitle"] == "Spring"
        assert resp.json()["active_id"] == DEFAULT_CONFIGURATION_ID

    def test_update_unknown_is_404(self, user_client):
        resp = user_client.put(f"{BASE}/missing", json={
            "subtitle": "x", "start_date": "2025-03-01T00:00", "end_date": "2025-03-31T00:00"})
        assert resp.status_code == 404

    def test_update_failure_keeps_old_values(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        backend.fail.add("update_document")
        resp = user_client.put(f"{BASE}/{config_id}", json={
            "subtitle": "Spring", "start_date": "2025-03-01T00:00", "end_date": "2025-03-31T00:00"})
        assert resp.status_code == 502
        assert user_client.get(f"{BASE}/active").json()["subtitle"] == "Winter drive"

    def test_default_has_no_schedule(self, user_client):
        resp = user_client.put(f"{BASE}/{DEFAULT_CONFIGURATION_ID}", json={
            "subtitle": "x", "start_date": "2025-03-01T00:00", "end_date": "2025-03-31T00:00"})
        assert resp.status_code == 400

    def test_edit_default_subtitle(self, user_client, backend):
        resp = user_client.put(f"{BASE}/default", json={"subtitle": "Serving together"})
        assert resp.status_code == 200
        assert resp.json()["configuration"]["is_default"] is True
        assert backend.tables[MAIN_PAGE_TABLE]["default"]["subtitle"] == "Serving together"
        assert user_client.get(f"{BASE}/active").json()["subtitle"] == "Serving together"


class TestImages:
    def test_upload_stores_under_configuration_folder(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        resp = user_client.post(f"{BASE}/{config_id}/image", files={"file": PNG})
        assert resp.status_code == 200
        path = f"main-page-backgrounds/{config_id}/1736942400000_bg.png"
        assert path in backend.files
        assert resp.json()["url"].endswith(path)
        assert resp.json()["previous_deleted"] is None
        assert backend.tables[MAIN_PAGE_TABLE][config_id]["background_image_url"] == resp.json()["url"]

    def test_replacing_deletes_previous_blob(self, user_client, backend, clock):
        config_id = create(user_client).json()["configuration"]["id"]
        user_client.post(f"{BASE}/{config_id}/image", files={"file": PNG})
        clock.advance(seconds=1)
        resp = user_client.post(f"{BASE}/{config_id}/image", files={"file": ("new.jpg", b"jpeg", "image/jpeg")})
        assert resp.json()["previous_deleted"] is True
        assert list(backend.files) == [f"main-page-backgrounds/{config_id}/1736942401000_new.jpg"]

    def test_default_background_can_be_replaced(self, user_client, backend):
        user_client.get(BASE)
        resp = user_client.post(f"{BASE}/default/image", files={"file": PNG})
        assert resp.status_code == 200
        # the built-in fallback image is not ours to delete
        assert resp.json()["previous_deleted"] is None
        assert user_client.get(f"{BASE}/active").json()["background_image_url"] == resp.json()["url"]

    def test_non_image_rejected(self, user_client):
        config_id = create(user_client).json()["configuration"]["id"]
        resp = user_client.post(f"{BASE}/{config_id}/image",
                                files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400
        assert "image" in resp.json()["detail"]

    def test_oversized_image_rejected(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        resp = user_client.post(f"{BASE}/{config_id}/image",
                                files={"file": ("big.png", b"x" * 2048, "image/png")})
        assert resp.status_code == 400
        assert backend.files == {}

    def test_document_failure_removes_new_blob(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        backend.fail.add("update_document")
        resp = user_client.post(f"{BASE}/{config_id}/image", files={"file": PNG})
        assert resp.status_code == 502
        assert backend.files == {}


class TestDelete:
    def test_delete_with_image_reports_both_steps(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        user_client.post(f"{BASE}/{config_id}/image", files={"file": PNG})
        resp = user_client.delete(f"{BASE}/{config_id}")
        assert resp.status_code == 200
        assert resp.json() == {"id": config_id, "document_deleted": True,
                               "blob_deleted": True, "blob_error": None}
        assert config_id not in backend.tables[MAIN_PAGE_TABLE]
        assert backend.files == {}
        assert user_client.get(f"{BASE}/active").json()["id"] == DEFAULT_CONFIGURATION_ID

    def test_delete_without_image(self, user_client):
        config_id = create(user_client).json()["configuration"]["id"]
        assert user_client.delete(f"{BASE}/{config_id}").json()["blob_deleted"] is None

    def test_blob_failure_does_not_undo_document_delete(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        user_client.post(f"{BASE}/{config_id}/image", files={"file": PNG})
        backend.fail.add("delete_file")
        body = user_client.delete(f"{BASE}/{config_id}").json()
        assert body["document_deleted"] is True
        assert body["blob_deleted"] is False
        assert "injected failure" in body["blob_error"]
        assert config_id not in backend.tables[MAIN_PAGE_TABLE]

    def test_document_failure_keeps_configuration(self, user_client, backend):
        config_id = create(user_client).json()["configuration"]["id"]
        backend.fail.add("delete_document")
        assert user_client.delete(f"{BASE}/{config_id}").status_code == 502
        assert user_client.get(f"{BASE}/active").json()["id"] == config_id

    def test_default_cannot_be_deleted(self, user_client):
        resp = user_client.delete(f"{BASE}/{DEFAULT_CONFIGURATION_ID}")
        assert resp.status_code == 400

    def test_unknown_is_404(self, user_client):
        assert user_client.delete(f"{BASE}/nope").status_code == 404


class TestLoadFailure:
    def test_fallback_default_and_error_exposed(self, user_client, backend):
        backend.fail.add("list_documents")
        body = user_client.get(BASE).json()
        assert body["active"]["subtitle"] == FALLBACK_SUBTITLE
        assert body["load_error"]

    def test_reload_picks_up_store_changes(self, user_client, backend):
        user_client.get(BASE)
        backend.seed(MAIN_PAGE_TABLE, {"id": "X", "subtitle": "Seeded", "start_date": "2025-01-01",
                                       "end_date": "2025-01-31", "is_default": False,
                                       "created_at": "2025-01-14T00:00:00+00:00"})
        body = user_client.post(f"{BASE}/reload").json()
        assert body["active"]["id"] == "X"
