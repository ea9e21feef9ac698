import unittest
from datetime import date

from maison_api.db import JobKind, JobStatus, NotFoundError, PhotoRecord, PostgresDbClient
from planning.budget import BudgetCategory, BudgetItem
from planning.schedule import ReferenceDuration, ScheduleAlert, ScheduleItem


def _item(project_id, step_id="toiture", **fields):
    return ScheduleItem(
        project_id=project_id,
        step_id=step_id,
        step_name=step_id.capitalize(),
        trade_type="toiture",
        trade_color="#0EA5E9",
        estimated_days=4,
        **fields,
    )


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_project_crud(self):
        project = self.db.create_project(
            "user-1",
            "Maison Lac",
            square_footage=1800,
            target_start_date=date(2027, 5, 3),
            unknown_field="ignored",
        )
        fetched = self.db.get_project(project.id)
        self.assertEqual(fetched.name, "Maison Lac")
        self.assertEqual(fetched.target_start_date, date(2027, 5, 3))
        self.assertIn(project.id, [p.id for p in self.db.list_projects("user-1")])
        self.assertEqual(self.db.list_projects("nobody"), [])

        updated = self.db.update_project(project.id, {"current_stage": "Fondation"})
        self.assertEqual(updated.current_stage, "Fondation")

        self.db.upsert_schedule(_item(project.id))
        self.db.delete_project(project.id)
        self.assertIsNone(self.db.get_project(project.id))
        self.assertEqual(self.db.list_schedules(project.id), [])
        with self.assertRaises(NotFoundError):
            self.db.delete_project(project.id)

    def test_schedule_upsert_keeps_one_row_per_step(self):
        first = self.db.upsert_schedule(_item("p-upsert", start_date=date(2027, 6, 1)))
        second = self.db.upsert_schedule(
            _item("p-upsert", start_date=date(2027, 6, 8), notes="reporté")
        )

        self.assertEqual(first.id, second.id)
        items = self.db.list_schedules("p-upsert")
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].start_date, date(2027, 6, 8))
        self.assertEqual(items[0].notes, "reporté")
        self.assertEqual(self.db.get_schedule_by_step("p-upsert", "toiture").id, first.id)

        patched = self.db.update_schedule(first.id, {"status": "in_progress"})
        self.assertEqual(patched.status, "in_progress")

    def test_alerts(self):
        item = self.db.upsert_schedule(_item("p-alerts"))
        later = self.db.create_alert(
            ScheduleAlert("p-alerts", item.id, "supplier_call", date(2027, 5, 10), "Appeler")
        )
        self.db.create_alert(
            ScheduleAlert("p-alerts", item.id, "contact", date(2027, 5, 1), "Contacter")
        )

        alerts = self.db.list_alerts("p-alerts")
        self.assertEqual([a.alert_type for a in alerts], ["contact", "supplier_call"])
        self.assertTrue(self.db.has_open_alert(item.id, "contact"))

        dismissed = self.db.dismiss_alert(alerts[0].id)
        self.assertTrue(dismissed.is_dismissed)
        self.assertFalse(self.db.has_open_alert(item.id, "contact"))
        self.assertEqual(len(self.db.list_alerts("p-alerts")), 1)
        self.assertEqual(len(self.db.list_alerts("p-alerts", include_dismissed=True)), 2)

        deleted = self.db.delete_alerts_for_schedule(item.id, ("supplier_call",))
        self.assertEqual(deleted, 1)
        self.assertNotIn(later.id, [a.id for a in self.db.list_alerts("p-alerts")])

        self.db.delete_schedule(item.id)
        self.assertEqual(self.db.list_alerts("p-alerts", include_dismissed=True), [])

    def test_replace_budget(self):
        self.db.replace_budget(
            "p-budget", [BudgetCategory(name="Ancienne", budget=10)]
        )
        categories = self.db.replace_budget(
            "p-budget",
            [
                BudgetCategory(
                    name="Fondation",
                    budget=25000,
                    items=[BudgetItem(name="Béton", cost=9000, quantity="30", unit="m3")],
                ),
                BudgetCategory(name="Toiture", budget=12000, spent=500),
            ],
        )

        self.assertEqual([c.name for c in categories], ["Fondation", "Toiture"])
        self.assertEqual(categories[0].items[0].name, "Béton")
        self.assertEqual(categories[1].spent, 500)

    def test_reference_durations(self):
        self.db.upsert_reference_duration(
            ReferenceDuration("excavation", "Excavation", 3, min_duration_days=2)
        )
        self.db.upsert_reference_duration(
            ReferenceDuration("excavation", "Excavation", 4, min_duration_days=2)
        )

        refs = self.db.list_reference_durations()
        self.assertEqual(refs["excavation"].base_duration_days, 4)
        self.assertEqual(refs["excavation"].base_square_footage, 2000)

    def test_photos(self):
        photo = self.db.create_photo(
            PhotoRecord(
                id="photo-1",
                project_id="p-photos",
                user_id="user-1",
                step_id="fondation",
                file_name="coffrage.jpg",
                file_path="projects/p-photos/fondation/photo-1-coffrage.jpg",
                file_size=1200,
                content_type="image/jpeg",
            )
        )
        self.assertEqual(self.db.get_photo(photo.id).file_name, "coffrage.jpg")
        self.assertEqual(len(self.db.list_photos("p-photos", step_id="fondation")), 1)
        self.assertEqual(self.db.list_photos("p-photos", step_id="toiture"), [])

        self.db.delete_photo(photo.id)
        self.assertIsNone(self.db.get_photo(photo.id))

    def test_job_lifecycle(self):
        job = self.db.create_analysis_job(
            "user-9", "p1", "Électricité", "", ["projects/p1/a.pdf"], planned_budget=8000
        )
        self.assertEqual(job.status, JobStatus.WAITING)

        claimed = self.db.claim_job(job.job_id)
        self.assertEqual(claimed.status, JobStatus.RUNNING)
        self.assertIsNotNone(claimed.locked_at)
        self.assertIsNone(self.db.claim_job(job.job_id))

        self.assertEqual(self.db.requeue_stale_locks(lock_timeout_seconds=-1), 1)
        again = self.db.claim_next_waiting_job()
        self.assertEqual(again.job_id, job.job_id)

        self.db.finish_job(job.job_id, JobStatus.SUCCESS, result="## Rapport")
        finished = self.db.get_job(job.job_id)
        self.assertEqual(finished.status, JobStatus.SUCCESS)
        self.assertEqual(finished.result, "## Rapport")
        self.assertIsNone(finished.locked_at)
        self.assertEqual(finished.document_paths, ["projects/p1/a.pdf"])

    def test_task_checklist(self):
        project = self.db.create_project("user-tasks", "Maison Rive")

        done = self.db.toggle_task(project.id, "toiture", "bardeaux")
        self.assertEqual(done.task_id, "bardeaux")
        self.db.toggle_task(project.id, "fondation", "coffrage")
        self.assertEqual(
            [t.task_id for t in self.db.list_completed_tasks(project.id, "toiture")],
            ["bardeaux"],
        )
        self.assertIsNone(self.db.toggle_task(project.id, "toiture", "bardeaux"))
        self.assertEqual(
            [t.step_id for t in self.db.list_completed_tasks(project.id)], ["fondation"]
        )

        self.db.upsert_task_date(
            project.id,
            "toiture",
            "bardeaux",
            {"start_date": date(2027, 9, 13), "notes": "Livraison lundi"},
        )
        saved = self.db.upsert_task_date(
            project.id, "toiture", "bardeaux", {"end_date": date(2027, 9, 15)}
        )
        self.assertEqual(saved.start_date, date(2027, 9, 13))
        self.assertEqual(saved.end_date, date(2027, 9, 15))
        self.assertEqual(saved.notes, "Livraison lundi")
        self.assertEqual(len(self.db.list_task_dates(project.id, "toiture")), 1)

        self.db.delete_task_date(project.id, "toiture", "bardeaux")
        self.assertEqual(self.db.list_task_dates(project.id), [])
        with self.assertRaises(NotFoundError):
            self.db.delete_task_date(project.id, "toiture", "bardeaux")

        self.db.upsert_task_date(
            project.id, "fondation", "coffrage", {"start_date": date(2027, 6, 14)}
        )
        self.db.delete_project(project.id)
        self.assertEqual(self.db.list_completed_tasks(project.id), [])
        self.assertEqual(self.db.list_task_dates(project.id), [])

    def test_plan_job_keeps_kind_and_options(self):
        job = self.db.create_analysis_job(
            "user-plan",
            "p2",
            "",
            "",
            [],
            kind=JobKind.PLAN,
            options={"finish_quality": "economique", "apply_to_budget": True},
        )
        self.db.finish_job(job.job_id, JobStatus.SUCCESS, result="{}")

        fetched = self.db.get_job(job.job_id)
        self.assertEqual(fetched.kind, JobKind.PLAN)
        self.assertEqual(
            fetched.options, {"finish_quality": "economique", "apply_to_budget": True}
        )
        self.assertEqual(fetched.as_dict()["kind"], "plan")

    def test_ai_usage_count(self):
        self.db.record_ai_usage("user-usage", "chat")
        self.db.record_ai_usage("user-usage", "building_code", "p1")
        self.assertEqual(self.db.count_ai_usage("user-usage"), 2)
        self.assertEqual(self.db.count_ai_usage("someone-else"), 0)


if __name__ == "__main__":
    unittest.main()
