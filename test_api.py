import os
import unittest
from io import BytesIO

os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import sessionmaker

from judging import models
from judging.auth import _bcrypt_secret, get_db, get_password_hash
from judging.database import Base, _normalize_database_url, create_db_engine
from judging.main import app
from judging.routers.leaderboard import ranking_snapshot

test_engine = create_db_engine("sqlite://")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

SCORE = {
    "projectDesign": 80,
    "functionality": 70,
    "presentation": 60,
    "webDesign": 90,
    "impact": 50,
}


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class ApiTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)
        # One hash for every account keeps bcrypt cost out of each test.
        cls.password_hash = get_password_hash("secret")

    @classmethod
    def tearDownClass(cls):
        app.dependency_overrides.pop(get_db, None)

    def setUp(self):
        Base.metadata.drop_all(bind=test_engine)
        Base.metadata.create_all(bind=test_engine)
        ranking_snapshot.reset()
        self.admin_id = self.add_user("admin", models.UserRole.admin)
        self.admin = self.login("admin")

    def add_user(self, username, role=models.UserRole.judge):
        db = TestingSessionLocal()
        try:
            user = models.User(username=username, password=self.password_hash, role=role)
            db.add(user)
            db.commit()
            return user.id
        finally:
            db.close()

    def login(self, username, password="secret"):
        res = self.client.post("/api/login", json={"username": username, "password": password})
        self.assertEqual(res.status_code, 200, res.text)
        return {"Authorization": f"Bearer {res.json()['accessToken']}"}

    def add_participant(self, team_name, project_title="Smart Garden"):
        res = self.client.post(
            "/api/participants",
            json={"teamName": team_name, "projectTitle": project_title},
            headers=self.admin,
        )
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()["id"]

    def submit(self, headers, participant_id, judge_id, **overrides):
        body = dict(SCORE, participantId=participant_id, judgeId=judge_id)
        body.update(overrides)
        return self.client.post("/api/scores", json=body, headers=headers)


class AuthTests(ApiTestCase):
    def test_login_returns_role_and_token(self):
        res = self.client.post("/api/login", json={"username": "admin", "password": "secret"})
        data = res.json()
        self.assertEqual(data["role"], "admin")
        self.assertEqual(data["tokenType"], "bearer")
        self.assertEqual(data["username"], "admin")

    def test_bad_password(self):
        res = self.client.post("/api/login", json={"username": "admin", "password": "nope"})
        self.assertEqual(res.status_code, 401)

    def test_me_requires_token(self):
        self.assertEqual(self.client.get("/api/me").status_code, 401)
        res = self.client.get("/api/me", headers=self.admin)
        self.assertEqual(res.json()["username"], "admin")
        self.assertNotIn("password", res.json())

    def test_multibyte_password_is_cut_at_72_bytes(self):
        password = "\u00e9" * 50
        res = self.client.post("/api/users", json={"username": "judge1", "password": password}, headers=self.admin)
        self.assertEqual(res.status_code, 201, res.text)

        self.assertEqual(len(_bcrypt_secret(password)), 72)
        self.login("judge1", password)
        self.login("judge1", "\u00e9" * 36 + "ignored")
        res = self.client.post("/api/login", json={"username": "judge1", "password": "\u00e9" * 35})
        self.assertEqual(res.status_code, 401)


class DatabaseUrlTests(unittest.TestCase):
    def test_postgres_urls_use_psycopg(self):
        self.assertEqual(_normalize_database_url("postgres://u:p@db/judging"), "postgresql+psycopg://u:p@db/judging")
        self.assertEqual(_normalize_database_url("postgresql://db/judging"), "postgresql+psycopg://db/judging")
        self.assertEqual(_normalize_database_url("postgresql+psycopg://db/judging"), "postgresql+psycopg://db/judging")
        self.assertEqual(_normalize_database_url(" sqlite:///./judging.db "), "sqlite:///./judging.db")
        self.assertIsNone(_normalize_database_url("  "))
        self.assertIsNone(_normalize_database_url(None))


class UserManagementTests(ApiTestCase):
    def test_admin_creates_judge(self):
        res = self.client.post("/api/users", json={"username": "judge1", "password": "pw"}, headers=self.admin)
        self.assertEqual(res.status_code, 201, res.text)
        self.assertEqual(res.json()["role"], "judge")
        self.assertNotIn("password", res.json())

        judge = self.login("judge1", "pw")
        self.assertEqual(self.client.get("/api/me", headers=judge).json()["role"], "judge")

    def test_duplicate_username(self):
        self.add_user("judge1")
        res = self.client.post("/api/users", json={"username": "judge1", "password": "pw"}, headers=self.admin)
        self.assertEqual(res.status_code, 409)

    def test_judge_cannot_manage_users(self):
        self.add_user("judge1")
        judge = self.login("judge1")
        self.assertEqual(self.client.get("/api/users", headers=judge).status_code, 403)

    def test_update_and_delete_user(self):
        judge_id = self.add_user("judge1")
        res = self.client.put(f"/api/users/{judge_id}", json={"username": "judge-one"}, headers=self.admin)
        self.assertEqual(res.json()["username"], "judge-one")

        self.assertEqual(self.client.delete(f"/api/users/{judge_id}", headers=self.admin).status_code, 200)
        self.assertEqual(self.client.delete(f"/api/users/{judge_id}", headers=self.admin).status_code, 404)


class ScoreSubmissionTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.judge_id = self.add_user("judge1")
        self.judge = self.login("judge1")
        self.participant_id = self.add_participant("Circuit Breakers")

    def test_submit_returns_stored_score(self):
        res = self.submit(self.judge, self.participant_id, self.judge_id, comments="Solid demo")
        self.assertEqual(res.status_code, 201, res.text)
        data = res.json()
        self.assertIn("id", data)
        self.assertIn("createdAt", data)
        self.assertEqual(data["projectDesign"], 80.0)
        self.assertEqual(data["comments"], "Solid demo")

    def test_missing_or_non_numeric_criterion_rejected(self):
        body = dict(SCORE, participantId=self.participant_id, judgeId=self.judge_id)
        del body["impact"]
        self.assertEqual(self.client.post("/api/scores", json=body, headers=self.judge).status_code, 422)

        res = self.submit(self.judge, self.participant_id, self.judge_id, impact="lots")
        self.assertEqual(res.status_code, 422)

    def test_out_of_range_rejected(self):
        res = self.submit(self.judge, self.participant_id, self.judge_id, functionality=101)
        self.assertEqual(res.status_code, 400)
        self.assertIn("functionality", res.json()["detail"]["criteria"])

    def test_unknown_participant(self):
        res = self.submit(self.judge, 999, self.judge_id)
        self.assertEqual(res.status_code, 404)

    def test_judge_cannot_submit_as_someone_else(self):
        other_id = self.add_user("judge2")
        res = self.submit(self.judge, self.participant_id, other_id)
        self.assertEqual(res.status_code, 403)

    def test_admin_may_submit_for_a_judge(self):
        res = self.submit(self.admin, self.participant_id, self.judge_id)
        self.assertEqual(res.status_code, 201)

    def test_update_is_revalidated(self):
        score_id = self.submit(self.judge, self.participant_id, self.judge_id).json()["id"]

        res = self.client.put(f"/api/scores/{score_id}", json={"impact": 75.5}, headers=self.judge)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["impact"], 75.5)
        self.assertEqual(res.json()["projectDesign"], 80.0)

        res = self.client.put(f"/api/scores/{score_id}", json={"impact": -3}, headers=self.judge)
        self.assertEqual(res.status_code, 400)

    def test_judge_cannot_touch_other_judges_scores(self):
        other_id = self.add_user("judge2")
        score_id = self.submit(self.admin, self.participant_id, other_id).json()["id"]

        self.assertEqual(self.client.put(f"/api/scores/{score_id}", json={"impact": 1}, headers=self.judge).status_code, 403)
        self.assertEqual(self.client.delete(f"/api/scores/{score_id}", headers=self.judge).status_code, 403)
        self.assertEqual(self.client.delete(f"/api/scores/{score_id}", headers=self.admin).status_code, 200)

    def test_list_by_participant_and_judge(self):
        self.submit(self.judge, self.participant_id, self.judge_id)
        self.submit(self.admin, self.participant_id, self.admin_id)

        by_participant = self.client.get(f"/api/scores/participant/{self.participant_id}", headers=self.judge).json()
        by_judge = self.client.get(f"/api/scores/judge/{self.judge_id}", headers=self.judge).json()

        self.assertEqual(len(by_participant), 2)
        self.assertEqual([s["judgeId"] for s in by_judge], [self.judge_id])


class LeaderboardApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.judge_ids = [self.add_user("judge1"), self.add_user("judge2")]
        self.judges = [self.login("judge1"), self.login("judge2")]

    def test_public_and_weighted(self):
        pid = self.add_participant("Circuit Breakers")
        self.submit(self.judges[0], pid, self.judge_ids[0])

        res = self.client.get("/api/leaderboard")
        self.assertEqual(res.status_code, 200)
        [entry] = res.json()
        self.assertEqual(entry["teamName"], "Circuit Breakers")
        self.assertAlmostEqual(entry["scores"]["finalScore"], 69.0, places=9)

    def test_latest_submission_per_judge_counts(self):
        pid = self.add_participant("Circuit Breakers")
        self.submit(self.judges[0], pid, self.judge_ids[0], projectDesign=10)
        self.submit(self.judges[0], pid, self.judge_ids[0], projectDesign=100)
        self.submit(self.judges[1], pid, self.judge_ids[1], projectDesign=0)

        [entry] = self.client.get("/api/leaderboard").json()
        self.assertAlmostEqual(entry["scores"]["projectDesign"], 50.0)

    def test_unscored_participant_last(self):
        quiet = self.add_participant("Quiet Team")
        loud = self.add_participant("Loud Team")
        self.submit(self.judges[0], loud, self.judge_ids[0])

        entries = self.client.get("/api/leaderboard").json()
        self.assertEqual([e["id"] for e in entries], [loud, quiet])
        self.assertEqual(
            entries[1]["scores"],
            {
                "projectDesign": 0,
                "functionality": 0,
                "presentation": 0,
                "webDesign": 0,
                "impact": 0,
                "finalScore": 0,
            },
        )

    def test_cascade_delete(self):
        keep = self.add_participant("Keep")
        drop = self.add_participant("Drop")
        self.submit(self.judges[0], keep, self.judge_ids[0])
        self.submit(self.judges[0], drop, self.judge_ids[0])

        res = self.client.delete(f"/api/participants/{drop}", headers=self.admin)
        self.assertEqual(res.status_code, 200)

        entries = self.client.get("/api/leaderboard").json()
        self.assertEqual([e["id"] for e in entries], [keep])
        orphans = self.client.get(f"/api/scores/participant/{drop}", headers=self.admin).json()
        self.assertEqual(orphans, [])

    def test_deleted_judge_scores_still_count(self):
        pid = self.add_participant("Circuit Breakers")
        self.submit(self.judges[0], pid, self.judge_ids[0], projectDesign=100)
        self.submit(self.judges[1], pid, self.judge_ids[1], projectDesign=0)

        self.client.delete(f"/api/users/{self.judge_ids[1]}", headers=self.admin)

        [entry] = self.client.get("/api/leaderboard").json()
        self.assertAlmostEqual(entry["scores"]["projectDesign"], 50.0)

    def test_new_judge_does_not_inherit_deleted_judges_scores(self):
        pid = self.add_participant("Circuit Breakers")
        self.submit(self.judges[0], pid, self.judge_ids[0], projectDesign=100)
        old = self.submit(self.judges[1], pid, self.judge_ids[1], projectDesign=100).json()

        self.client.delete(f"/api/users/{self.judge_ids[1]}", headers=self.admin)
        res = self.client.post("/api/users", json={"username": "judge3", "password": "pw"}, headers=self.admin)
        new_id = res.json()["id"]
        self.assertNotEqual(new_id, self.judge_ids[1])

        newcomer = self.login("judge3", "pw")
        self.assertEqual(self.submit(newcomer, pid, new_id, projectDesign=10).status_code, 201)
        res = self.client.put(f"/api/scores/{old['id']}", json={"projectDesign": 0}, headers=newcomer)
        self.assertEqual(res.status_code, 403)

        [entry] = self.client.get("/api/leaderboard").json()
        self.assertAlmostEqual(entry["scores"]["projectDesign"], 70.0)
        self.assertEqual(len(self.client.get(f"/api/scores/participant/{pid}", headers=self.admin).json()), 3)

    def test_standings_report_movement(self):
        a = self.add_participant("Alpha")
        b = self.add_participant("Bravo")
        self.submit(self.judges[0], a, self.judge_ids[0], impact=90)
        self.submit(self.judges[0], b, self.judge_ids[0], impact=10)

        first = self.client.get("/api/leaderboard/standings").json()
        self.assertEqual([(e["id"], e["rank"], e["movement"]) for e in first], [(a, 1, "unchanged"), (b, 2, "unchanged")])

        self.submit(
            self.judges[1], b, self.judge_ids[1],
            projectDesign=100, functionality=100, presentation=100, webDesign=100, impact=100,
        )
        second = {e["id"]: e for e in self.client.get("/api/leaderboard/standings").json()}
        self.assertEqual(second[b]["movement"], "up")
        self.assertEqual(second[b]["positionChange"], 1)
        self.assertEqual(second[a]["movement"], "down")
        self.assertEqual(second[b]["judgeCount"], 2)

    def test_export_requires_admin_and_formats_two_decimals(self):
        pid = self.add_participant("Circuit Breakers")
        self.submit(self.judges[0], pid, self.judge_ids[0], impact=50.555)

        self.assertEqual(self.client.get("/api/leaderboard/export", headers=self.judges[0]).status_code, 403)

        res = self.client.get("/api/leaderboard/export", headers=self.admin)
        self.assertEqual(res.status_code, 200)
        ws = load_workbook(BytesIO(res.content)).active
        self.assertEqual(ws.cell(row=2, column=2).value, "Circuit Breakers")
        self.assertEqual(ws.cell(row=2, column=9).number_format, "0.00")
        self.assertAlmostEqual(ws.cell(row=2, column=9).value, 50.555)


class ScoringSettingsTests(ApiTestCase):
    def test_defaults(self):
        data = self.client.get("/api/settings/scoring", headers=self.admin).json()
        self.assertEqual(data["weights"]["functionality"], 0.30)
        self.assertEqual(data["ranges"]["webDesign"], {"min": 0.0, "max": 100.0})

    def test_invalid_weights_rejected(self):
        body = {
            "weights": {"projectDesign": 0.5, "functionality": 0.5, "presentation": 0.5, "webDesign": 0, "impact": 0},
            "ranges": {c: {"min": 0, "max": 100} for c in ("projectDesign", "functionality", "presentation", "webDesign", "impact")},
        }
        res = self.client.put("/api/settings/scoring", json=body, headers=self.admin)
        self.assertEqual(res.status_code, 400)

    def test_new_ranges_apply_to_submissions(self):
        body = {
            "weights": {"projectDesign": 0.25, "functionality": 0.30, "presentation": 0.15, "webDesign": 0.10, "impact": 0.20},
            "ranges": {
                "projectDesign": {"min": 0, "max": 25},
                "functionality": {"min": 0, "max": 30},
                "presentation": {"min": 0, "max": 15},
                "webDesign": {"min": 0, "max": 10},
                "impact": {"min": 0, "max": 20},
            },
        }
        res = self.client.put("/api/settings/scoring", json=body, headers=self.admin)
        self.assertEqual(res.status_code, 200, res.text)

        pid = self.add_participant("Circuit Breakers")
        res = self.submit(self.admin, pid, self.admin_id)
        self.assertEqual(res.status_code, 400)
        res = self.submit(
            self.admin, pid, self.admin_id,
            projectDesign=20, functionality=25, presentation=10, webDesign=8, impact=15,
        )
        self.assertEqual(res.status_code, 201, res.text)

    def test_judge_cannot_change_settings(self):
        self.add_user("judge1")
        judge = self.login("judge1")
        res = self.client.put("/api/settings/scoring", json={"weights": {}, "ranges": {}}, headers=judge)
        self.assertEqual(res.status_code, 403)


if __name__ == "__main__":
    unittest.main()
