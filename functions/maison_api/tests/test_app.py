import io
import unittest
from datetime import date
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from PIL import Image

from llm.gemini import GeminiRateLimitException
from maison_api.ai import StubAiClient
from maison_api.app import create_app
from maison_api.auth import create_access_token
from maison_api.config import get_settings
from maison_api.db import InMemoryDbClient, JobKind
from maison_api.dependencies import (
    get_ai_client,
    get_db_client,
    get_queue_client,
    get_storage_client,
    get_today,
)
from maison_api.queue import InMemoryJobQueue
from maison_api.storage import InMemoryStorageClient
from planning.business_days import sub_business_days
from planning.catalog import CONSTRUCTION_STEPS, step_execution_order
from planning.schedule import ScheduleAlert

TODAY = date(2026, 10, 19)  # Monday


def png_bytes(size=(40, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 10, 10)).save(buffer, format="PNG")
    return buffer.getvalue()


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.queue = InMemoryJobQueue()
        self.ai = StubAiClient()
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_queue_client] = lambda: self.queue
        app.dependency_overrides[get_ai_client] = lambda: self.ai
        app.dependency_overrides[get_today] = lambda: TODAY
        self.client = TestClient(app)
        self.headers = self.auth_headers("user-1")

    def auth_headers(self, user_id):
        token = create_access_token(user_id, get_settings())
        return {"Authorization": f"Bearer {token}"}

    def create_project(self, **fields):
        payload = {"name": "Maison Tremblay", **fields}
        response = self.client.post("/api/projects", json=payload, headers=self.headers)
        self.assertEqual(response.status_code, 201)
        return response.json()

    def generate(self, project_id, **payload):
        response = self.client.post(
            f"/api/projects/{project_id}/schedule/generate",
            json=payload,
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()


class AuthAndProjectTests(ApiTestCase):
    def test_health_is_public(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_missing_or_bad_token(self):
        self.assertEqual(self.client.get("/api/projects").status_code, 401)
        response = self.client.get(
            "/api/projects", headers={"Authorization": "Bearer not-a-token"}
        )
        self.assertEqual(response.status_code, 401)

    def test_project_crud(self):
        project = self.create_project(square_footage=1800, target_start_date="2027-06-01")
        self.assertEqual(project["user_id"], "user-1")
        self.assertEqual(project["target_start_date"], "2027-06-01")

        listed = self.client.get("/api/projects", headers=self.headers).json()
        self.assertEqual([p["id"] for p in listed["projects"]], [project["id"]])

        response = self.client.patch(
            f"/api/projects/{project['id']}",
            json={"current_stage": "structure"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["current_stage"], "structure")
        self.assertEqual(response.json()["square_footage"], 1800)

        response = self.client.delete(f"/api/projects/{project['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 204)
        response = self.client.get(f"/api/projects/{project['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_delete_removes_schedule_alerts_and_photos(self):
        project = self.create_project(target_start_date="2027-06-01")
        self.generate(project["id"])
        response = self.client.post(
            f"/api/projects/{project['id']}/photos",
            data={"step_id": "fondation"},
            files={"file": ("coffrage.png", png_bytes(), "image/png")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(len(self.storage.stored_objects), 1)
        self.db.toggle_task(project["id"], "fondation", "coffrage")
        self.db.upsert_task_date(
            project["id"], "fondation", "coffrage", {"start_date": date(2027, 6, 14)}
        )

        response = self.client.delete(f"/api/projects/{project['id']}", headers=self.headers)

        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.db.list_completed_tasks(project["id"]), [])
        self.assertEqual(self.db.list_task_dates(project["id"]), [])
        self.assertEqual(self.db.list_schedules(project["id"]), [])
        self.assertEqual(self.db.list_alerts(project["id"], include_dismissed=True), [])
        self.assertEqual(self.db.list_photos(project["id"]), [])
        self.assertEqual(self.storage.stored_objects, {})

    def test_other_users_project_is_hidden(self):
        project = self.create_project()
        response = self.client.get(
            f"/api/projects/{project['id']}", headers=self.auth_headers("user-2")
        )
        self.assertEqual(response.status_code, 404)


class ScheduleApiTests(ApiTestCase):
    def _item(self, items, step_id):
        return next(item for item in items if item["step_id"] == step_id)

    def test_generate_schedule(self):
        project = self.create_project(target_start_date="2027-06-01")

        payload = self.generate(project["id"])

        self.assertEqual(len(payload["items"]), len(CONSTRUCTION_STEPS))
        self.assertEqual(payload["construction_start"], "2027-06-01")
        self.assertIsNone(payload["warning"])
        self.assertGreater(payload["alerts_created"], 0)
        self.assertEqual(self._item(payload["items"], "planification")["start_date"], "2026-10-19")
        self.assertEqual(self._item(payload["items"], "excavation")["start_date"], "2027-06-01")

        listed = self.client.get(
            f"/api/projects/{project['id']}/schedule", headers=self.headers
        ).json()
        self.assertEqual(
            [item["step_id"] for item in listed["items"]],
            [step.id for step in CONSTRUCTION_STEPS],
        )

        alerts = self.client.get(
            f"/api/projects/{project['id']}/alerts", headers=self.headers
        ).json()["alerts"]
        dates = [alert["alert_date"] for alert in alerts]
        self.assertEqual(dates, sorted(dates))
        self.assertTrue(all(d >= "2026-10-19" for d in dates))

    def test_generate_twice_keeps_one_item_per_step(self):
        project = self.create_project(target_start_date="2027-06-01")
        self.generate(project["id"])
        self.generate(project["id"], target_start_date="2027-07-06")

        self.assertEqual(len(self.db.list_schedules(project["id"])), len(CONSTRUCTION_STEPS))

    def test_generate_needs_target(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/schedule/generate", json={}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)

    def test_target_too_early_warns(self):
        project = self.create_project(target_start_date="2026-11-02")

        payload = self.generate(project["id"])

        self.assertEqual(payload["construction_start"], "2027-02-01")
        self.assertIn("+91 jours", payload["warning"])

    def test_moving_a_step_moves_the_next_ones(self):
        project = self.create_project(target_start_date="2027-06-01")
        items = self.generate(project["id"])["items"]
        fondation = self._item(items, "fondation")

        response = self.client.patch(
            f"/api/schedules/{fondation['id']}",
            json={"start_date": "2027-06-10"},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["warnings"], [])
        self.assertEqual(self._item(payload["items"], "fondation")["end_date"], "2027-06-16")
        self.assertEqual(self._item(payload["items"], "excavation")["start_date"], "2027-06-01")
        # 21 days of concrete cure after the foundation.
        self.assertEqual(self._item(payload["items"], "structure")["start_date"], "2027-07-07")

    def test_locked_step_overlap_creates_one_contact_alert(self):
        project = self.create_project(target_start_date="2027-06-01")
        items = self.generate(project["id"])["items"]
        fondation = self._item(items, "fondation")
        structure = self._item(items, "structure")

        response = self.client.patch(
            f"/api/schedules/{structure['id']}",
            json={"is_manual_date": True},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)

        response = self.client.patch(
            f"/api/schedules/{fondation['id']}",
            json={"start_date": "2027-06-30"},
            headers=self.headers,
        )
        payload = response.json()
        self.assertEqual(len(payload["warnings"]), 1)
        self.assertIn("verrouillée", payload["warnings"][0])
        self.assertEqual(len(payload["contact_alerts"]), 1)
        self.assertEqual(payload["contact_alerts"][0]["alert_type"], "contact_subcontractor")
        self.assertEqual(self._item(payload["items"], "structure")["start_date"], "2027-07-05")

        response = self.client.patch(
            f"/api/schedules/{fondation['id']}",
            json={"start_date": "2027-07-01"},
            headers=self.headers,
        )
        self.assertEqual(response.json()["contact_alerts"], [])

    def test_complete_and_uncomplete(self):
        project = self.create_project(target_start_date="2027-06-01")
        items = self.generate(project["id"])["items"]
        planification = self._item(items, "planification")

        response = self.client.post(
            f"/api/schedules/{planification['id']}/complete",
            json={"actual_days": 1},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        items = response.json()["items"]
        self.assertEqual(self._item(items, "planification")["status"], "completed")
        self.assertEqual(self._item(items, "planification")["end_date"], "2026-10-19")
        self.assertEqual(self._item(items, "plans-permis")["start_date"], "2026-10-20")

        response = self.client.post(
            f"/api/schedules/{planification['id']}/complete", json={}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            f"/api/schedules/{planification['id']}/uncomplete", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        item = self._item(response.json()["items"], "planification")
        self.assertEqual(item["status"], "pending")
        self.assertIsNone(item["actual_days"])

    def test_complete_by_step_id_creates_missing_steps(self):
        project = self.create_project()

        response = self.client.post(
            f"/api/projects/{project['id']}/schedule/complete-step",
            json={"step_id": "toiture", "actual_days": 2},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200, response.text)
        items = response.json()["items"]
        expected = [
            step.id
            for step in CONSTRUCTION_STEPS
            if step_execution_order(step.id) >= step_execution_order("toiture")
        ]
        self.assertEqual([item["step_id"] for item in items], expected)
        toiture = self._item(items, "toiture")
        self.assertEqual(toiture["status"], "completed")
        self.assertEqual(toiture["start_date"], "2026-10-16")
        self.assertEqual(toiture["end_date"], "2026-10-19")
        self.assertEqual(self._item(items, "fenetres-portes")["start_date"], "2026-10-20")
        self.assertTrue(all(item["start_date"] for item in items))

    def test_unknown_step_is_rejected(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/schedule",
            json={"step_id": "piscine"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_conflicts_and_duplicate_step(self):
        project = self.create_project()
        for step_id, start in (("plomberie-roughin", "2026-10-19"), ("electricite-roughin", "2026-10-20")):
            response = self.client.post(
                f"/api/projects/{project['id']}/schedule",
                json={"step_id": step_id, "start_date": start, "estimated_days": 4},
                headers=self.headers,
            )
            self.assertEqual(response.status_code, 201, response.text)

        response = self.client.post(
            f"/api/projects/{project['id']}/schedule",
            json={"step_id": "plomberie-roughin"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

        conflicts = self.client.get(
            f"/api/projects/{project['id']}/schedule/conflicts", headers=self.headers
        ).json()["conflicts"]
        self.assertEqual(conflicts[0], {"day": "2026-10-20", "trades": ["plomberie", "electricite"]})

    def test_duration_summary_uses_reference_durations(self):
        response = self.client.put(
            "/api/reference-durations/toiture",
            json={"step_id": "toiture", "step_name": "Toiture", "base_duration_days": 4},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        project = self.create_project(square_footage=3000)

        summary = self.client.get(
            f"/api/projects/{project['id']}/schedule/duration", headers=self.headers
        ).json()

        self.assertTrue(summary["is_prorated"])
        self.assertEqual(
            summary["total_days"], summary["preparation_days"] + summary["construction_days"]
        )
        durations = self.client.get("/api/reference-durations", headers=self.headers).json()
        self.assertEqual([d["step_id"] for d in durations["durations"]], ["toiture"])

    def test_regenerate_item_alerts_replaces_previous_ones(self):
        project = self.create_project(target_start_date="2027-06-01")
        toiture = self._item(self.generate(project["id"])["items"], "toiture")
        before = [
            alert
            for alert in self.db.list_alerts(project["id"])
            if alert.schedule_id == toiture["id"]
        ]
        self.assertTrue(before)
        self.db.update_schedule(toiture["id"], {"start_date": date(2027, 9, 13)})
        contact = self.db.create_alert(
            ScheduleAlert(
                project["id"], toiture["id"], "contact_subcontractor", TODAY, "Contacter"
            )
        )

        response = self.client.post(
            f"/api/schedules/{toiture['id']}/alerts", headers=self.headers
        )

        self.assertEqual(response.status_code, 200, response.text)
        supplier_calls = [
            alert for alert in response.json()["alerts"] if alert["alert_type"] == "supplier_call"
        ]
        expected = sub_business_days(
            date(2027, 9, 13), toiture["supplier_schedule_lead_days"]
        )
        self.assertEqual([a["alert_date"] for a in supplier_calls], [expected.isoformat()])
        remaining = {
            alert.id
            for alert in self.db.list_alerts(project["id"])
            if alert.schedule_id == toiture["id"]
        }
        self.assertFalse(remaining & {alert.id for alert in before})
        self.assertIn(contact.id, remaining)
        self.assertEqual(len(remaining), len(response.json()["alerts"]) + 1)

    def test_dismiss_alert(self):
        project = self.create_project(target_start_date="2027-06-01")
        self.generate(project["id"])
        alerts = self.client.get(
            f"/api/projects/{project['id']}/alerts", headers=self.headers
        ).json()["alerts"]

        response = self.client.post(
            f"/api/projects/{project['id']}/alerts/{alerts[0]['id']}/dismiss",
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["is_dismissed"])
        remaining = self.client.get(
            f"/api/projects/{project['id']}/alerts", headers=self.headers
        ).json()["alerts"]
        self.assertEqual(len(remaining), len(alerts) - 1)


class BudgetApiTests(ApiTestCase):
    def test_defaults(self):
        response = self.client.get("/api/budget/defaults", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["categories"]), 17)

    def test_import_analysis(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/budget/import",
            json={
                "analysis": [
                    {"name": "Taxes (TPS/TVQ)", "budget": 1500},
                    {"name": "Toiture", "budget": 8000},
                ]
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["taxes"], 1500)

        budget = self.client.get(
            f"/api/projects/{project['id']}/budget", headers=self.headers
        ).json()
        self.assertEqual(budget["total_budget"], 8000)

    def test_replace(self):
        project = self.create_project()
        response = self.client.put(
            f"/api/projects/{project['id']}/budget",
            json={
                "categories": [
                    {"name": "Toiture", "budget": 9000, "spent": 1000},
                    {"name": "Fondation", "budget": 20000},
                ]
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total_budget"], 29000)
        self.assertEqual(response.json()["total_spent"], 1000)


class PhotoApiTests(ApiTestCase):
    def test_upload_converts_to_jpeg(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/photos",
            data={"step_id": "fondation"},
            files={"file": ("chantier.png", png_bytes(), "image/png")},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 201, response.text)
        photo = response.json()
        self.assertEqual(photo["content_type"], "image/jpeg")
        self.assertEqual(photo["file_name"], "chantier.jpg")
        self.assertIn(photo["file_path"], self.storage.stored_objects)
        self.assertIn(photo["file_path"], photo["url"])

        listed = self.client.get(
            f"/api/projects/{project['id']}/photos",
            params={"step_id": "fondation"},
            headers=self.headers,
        ).json()["photos"]
        self.assertEqual(len(listed), 1)
        other_step = self.client.get(
            f"/api/projects/{project['id']}/photos",
            params={"step_id": "toiture"},
            headers=self.headers,
        ).json()["photos"]
        self.assertEqual(other_step, [])

        response = self.client.delete(
            f"/api/projects/{project['id']}/photos/{photo['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 204)
        self.assertNotIn(photo["file_path"], self.storage.stored_objects)

    def test_unknown_step_is_rejected(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/photos",
            data={"step_id": "piscine"},
            files={"file": ("piscine.png", png_bytes(), "image/png")},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.stored_objects, {})

    def test_invalid_pdf_is_rejected(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/photos",
            data={"step_id": "soumissions", "category": "document"},
            files={"file": ("devis.pdf", b"not a pdf", "application/pdf")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_sign_url_is_limited_to_project(self):
        project = self.create_project()
        own_path = f"projects/{project['id']}/fondation/photo.jpg"

        response = self.client.get(
            f"/api/projects/{project['id']}/sign-url",
            params={"path": own_path},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn(own_path, response.json()["url"])

        response = self.client.get(
            f"/api/projects/{project['id']}/sign-url",
            params={"path": "projects/other/fondation/photo.jpg"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 403)


class TaskApiTests(ApiTestCase):
    def test_toggle_marks_and_unmarks(self):
        project = self.create_project()
        url = f"/api/projects/{project['id']}/tasks/toiture/bardeaux/toggle"

        first = self.client.post(url, headers=self.headers).json()
        self.assertTrue(first["completed"])
        self.assertIsNotNone(first["completed_at"])
        self.client.post(
            f"/api/projects/{project['id']}/tasks/fondation/coffrage/toggle",
            headers=self.headers,
        )

        listed = self.client.get(
            f"/api/projects/{project['id']}/tasks",
            params={"step_id": "toiture"},
            headers=self.headers,
        ).json()
        self.assertEqual([t["task_id"] for t in listed["tasks"]], ["bardeaux"])

        second = self.client.post(url, headers=self.headers).json()
        self.assertFalse(second["completed"])
        self.assertIsNone(second["completed_at"])
        self.assertEqual(len(self.db.list_completed_tasks(project["id"])), 1)

    def test_unknown_step_is_rejected(self):
        project = self.create_project()
        response = self.client.post(
            f"/api/projects/{project['id']}/tasks/piscine/filtre/toggle",
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.put(
            f"/api/projects/{project['id']}/task-dates/piscine/filtre",
            json={"start_date": "2027-09-13"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_task_dates_move_the_step(self):
        project = self.create_project(target_start_date="2027-06-01")
        self.generate(project["id"])
        url = f"/api/projects/{project['id']}/task-dates/toiture/bardeaux"

        response = self.client.put(
            url,
            json={"start_date": "2027-09-13", "notes": "Livraison lundi"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertIsNone(response.json()["schedule"])

        response = self.client.put(url, json={"end_date": "2027-09-15"}, headers=self.headers)

        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["task_date"]["start_date"], "2027-09-13")
        self.assertEqual(payload["task_date"]["notes"], "Livraison lundi")
        toiture = next(i for i in payload["schedule"]["items"] if i["step_id"] == "toiture")
        self.assertEqual(toiture["start_date"], "2027-09-13")
        self.assertEqual(toiture["end_date"], "2027-09-15")
        self.assertEqual(toiture["actual_days"], 3)

    def test_end_before_start_is_rejected(self):
        project = self.create_project()
        url = f"/api/projects/{project['id']}/task-dates/toiture/bardeaux"
        self.client.put(url, json={"start_date": "2027-09-13"}, headers=self.headers)

        response = self.client.put(url, json={"end_date": "2027-09-10"}, headers=self.headers)

        self.assertEqual(response.status_code, 400)
        stored = self.db.list_task_dates(project["id"], "toiture")
        self.assertIsNone(stored[0].end_date)

    def test_delete_task_date(self):
        project = self.create_project()
        url = f"/api/projects/{project['id']}/task-dates/toiture/bardeaux"
        self.client.put(url, json={"start_date": "2027-09-13"}, headers=self.headers)

        self.assertEqual(self.client.delete(url, headers=self.headers).status_code, 204)
        self.assertEqual(self.db.list_task_dates(project["id"]), [])
        self.assertEqual(self.client.delete(url, headers=self.headers).status_code, 404)


class AiApiTests(ApiTestCase):
    def test_building_code_clarification_counts_usage(self):
        response = self.client.post(
            "/api/ai/building-code",
            json={"question": "Hauteur minimale d'un garde-corps?"},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["type"], "clarification")
        usage = self.client.get("/api/ai/usage", headers=self.headers).json()
        self.assertEqual(usage["count"], 1)

    def test_building_code_answer_has_disclaimer(self):
        self.ai.building_code_text = (
            'Voici: {"type": "answer", "message": "Trouvé", '
            '"result": {"article": "9.8.8.1", "title": "Garde-corps"}}'
        )
        response = self.client.post(
            "/api/ai/building-code",
            json={"question": "Garde-corps d'une terrasse à 1 m du sol"},
            headers=self.headers,
        )

        payload = response.json()
        self.assertEqual(payload["type"], "answer")
        self.assertEqual(payload["result"]["article"], "9.8.8.1")
        self.assertIn("indicatif", payload["disclaimer"])

    def test_building_code_null_message_becomes_empty(self):
        self.ai.building_code_text = '{"type": "answer", "message": null, "result": {}}'
        response = self.client.post(
            "/api/ai/building-code",
            json={"question": "Largeur d'un escalier?"},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["message"], "")

    def test_rate_limit_maps_to_429(self):
        self.ai = MagicMock()
        self.ai.building_code.side_effect = GeminiRateLimitException("quota")

        response = self.client.post(
            "/api/ai/building-code", json={"question": "Escaliers?"}, headers=self.headers
        )

        self.assertEqual(response.status_code, 429)
        self.assertEqual(self.db.count_ai_usage("user-1"), 0)

    def test_chat_streams_events(self):
        response = self.client.post(
            "/api/ai/chat",
            json={"messages": [{"role": "user", "content": "Comment créer un projet?"}]},
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/event-stream"))
        self.assertIn('"text": "Bonjour"', response.text)
        self.assertTrue(response.text.rstrip().endswith('{"type": "done"}'))

    def test_chat_needs_user_message_last(self):
        response = self.client.post(
            "/api/ai/chat",
            json={"messages": [{"role": "assistant", "content": "Bonjour"}]},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_quote_analysis_rejects_foreign_documents(self):
        project = self.create_project()
        response = self.client.post(
            "/api/ai/quote-analyses",
            json={
                "project_id": project["id"],
                "trade_name": "Toiture",
                "document_ids": ["missing"],
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.queue.pending(), 0)

    def test_plan_mode_needs_documents(self):
        project = self.create_project()
        response = self.client.post(
            "/api/ai/plan-analyses",
            json={"project_id": project["id"], "mode": "plan"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.queue.pending(), 0)

    def test_manual_estimate_uses_project_fields(self):
        project = self.create_project(project_type="Bungalow", square_footage=1400)

        response = self.client.post(
            "/api/ai/plan-analyses",
            json={
                "project_id": project["id"],
                "mode": "manual",
                "finish_quality": "haut-de-gamme",
                "number_of_floors": 1,
            },
            headers=self.headers,
        )

        self.assertEqual(response.status_code, 202, response.text)
        job_id = response.json()["job_id"]
        self.assertEqual(self.queue.dequeue(block=False), job_id)
        job = self.db.get_job(job_id)
        self.assertEqual(job.kind, JobKind.PLAN)
        self.assertEqual(job.document_paths, [])
        self.assertEqual(job.options["project_type"], "Bungalow")
        self.assertEqual(job.options["square_footage"], 1400)
        self.assertEqual(job.options["finish_quality"], "haut-de-gamme")
        self.assertFalse(job.options["apply_to_budget"])

        status = self.client.get(f"/api/ai/plan-analyses/{job_id}", headers=self.headers)
        self.assertEqual(status.json()["kind"], "plan")
        response = self.client.get(f"/api/ai/quote-analyses/{job_id}", headers=self.headers)
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
