import inspect

import pytest
from fastapi.testclient import TestClient

from api import kits
from api.dependencies import get_kit_generator, get_repository
from api.router import limiter
from conftest import OTHER_USER_ID, USER_ID, make_pdf
from main import app
from models.kit import Competency, JobDraft, Question

OTHER = {"X-User-Id": OTHER_USER_ID}


@pytest.fixture
def client(repository, org, generator):
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_kit_generator] = lambda: generator
    limiter.enabled = False
    yield TestClient(app, headers={"X-User-Id": USER_ID})
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def saved_kit(repository, org):
    api = Competency(name="API Design", description="REST")
    questions = [Question(competency_key=api.key, text="Version an API?", rubric_good="g", rubric_bad="b")]
    job = JobDraft(title="Backend Engineer", description="Build APIs")
    return repository.save_kit(org.id, USER_ID, job, [api], questions)


def _open(client) -> str:
    response = client.post("/wizard")
    assert response.status_code == 201
    return response.json()["session_id"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "gemini_configured" in data


def test_requires_user_header():
    response = TestClient(app).get("/wizard/some-session")
    assert response.status_code == 401


def test_full_wizard_flow(client, repository):
    sid = _open(client)

    response = client.post(f"/wizard/{sid}/job", data={"title": "Backend Engineer", "description": "Build APIs"})
    assert response.status_code == 200
    data = response.json()
    assert data["stage"] == "competency_review"
    assert [c["name"] for c in data["competencies"]] == ["API Design"]

    response = client.post(f"/wizard/{sid}/competencies", json={"name": "SQL", "description": "Schemas"})
    assert len(response.json()["competencies"]) == 2

    response = client.post(f"/wizard/{sid}/competencies/confirm")
    data = response.json()
    assert data["stage"] == "question_review"
    assert data["progress"] == 100
    assert len(data["questions"]) == 4
    assert [len(g["questions"]) for g in data["questions_by_competency"]] == [2, 2]

    response = client.patch(f"/wizard/{sid}/questions/0", json={"text": "Edited", "category": "Deceiving"})
    assert response.json()["questions"][0]["text"] == "Edited"
    assert response.json()["questions"][0]["category"] == "Deceiving"

    response = client.post(f"/wizard/{sid}/finalize")
    assert response.status_code == 200
    data = response.json()
    assert data["stage"] == "kit_preview"
    assert data["score"]["score"] == 82
    job_id = data["saved_job_id"]
    assert job_id

    response = client.get(f"/wizard/{sid}/export")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "Backend_Engineer_Interview_Kit.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

    kit = client.get(f"/kits/{job_id}").json()
    assert [c["name"] for c in kit["competencies"]] == ["API Design", "SQL"]
    assert kit["questions"][0]["text"] == "Edited"


def test_job_from_pdf_upload(client):
    sid = _open(client)
    response = client.post(
        f"/wizard/{sid}/job",
        data={"title": "Data Engineer"},
        files={"job_file": ("job.pdf", make_pdf("Build Spark pipelines"), "application/pdf")},
    )
    assert response.status_code == 200
    assert "Spark" in response.json()["job"]["description"]


def test_job_rejects_non_pdf(client):
    sid = _open(client)
    response = client.post(
        f"/wizard/{sid}/job",
        files={"job_file": ("job.txt", b"not a pdf", "text/plain")},
        data={"title": "Dev"},
    )
    assert response.status_code == 400


def test_job_requires_title(client, generator):
    sid = _open(client)
    response = client.post(f"/wizard/{sid}/job", data={"title": "", "description": "Build APIs"})
    assert response.status_code == 400
    assert "title" in response.json()["detail"]
    assert generator.calls == []


def test_unreadable_pdf(client):
    sid = _open(client)
    response = client.post(
        f"/wizard/{sid}/job",
        data={"title": "Dev"},
        files={"job_file": ("job.pdf", b"garbage", "application/pdf")},
    )
    assert response.status_code == 422
    assert "pasting the text manually" in response.json()["detail"]
    assert client.get(f"/wizard/{sid}").json()["stage"] == "job_input"


def test_generation_failure_is_bad_gateway(client, generator):
    generator.fail.add("extract")
    sid = _open(client)
    response = client.post(f"/wizard/{sid}/job", data={"title": "Dev", "description": "Build"})
    assert response.status_code == 502
    assert response.json()["detail"] == "extract failed upstream"
    assert client.get(f"/wizard/{sid}").json()["stage"] == "job_input"


def test_out_of_order_step_conflicts(client):
    sid = _open(client)
    assert client.post(f"/wizard/{sid}/finalize").status_code == 409
    assert client.post(f"/wizard/{sid}/back").status_code == 409


def test_back_and_reset(client):
    sid = _open(client)
    client.post(f"/wizard/{sid}/job", data={"title": "Dev", "description": "Build"})
    assert client.post(f"/wizard/{sid}/back").json()["stage"] == "job_input"
    data = client.post(f"/wizard/{sid}/reset").json()
    assert data["stage"] == "job_input"
    assert data["job"] is None


def test_other_users_session_is_hidden(client):
    sid = _open(client)
    assert client.get(f"/wizard/{sid}", headers=OTHER).status_code == 404
    assert client.delete(f"/wizard/{sid}", headers=OTHER).status_code == 404
    assert client.delete(f"/wizard/{sid}").status_code == 204
    assert client.get(f"/wizard/{sid}").status_code == 404


def test_finalize_without_organization(client, repository):
    sid = client.post("/wizard", headers=OTHER).json()["session_id"]
    client.post(f"/wizard/{sid}/job", data={"title": "Dev", "description": "Build"}, headers=OTHER)
    client.post(f"/wizard/{sid}/competencies/confirm", headers=OTHER)
    response = client.post(f"/wizard/{sid}/finalize", headers=OTHER)
    assert response.status_code == 503
    assert "organization" in response.json()["detail"]
    assert client.get(f"/wizard/{sid}", headers=OTHER).json()["stage"] == "question_review"


class TestKits:
    def test_list_and_get(self, client, saved_kit):
        jobs = client.get("/kits").json()["jobs"]
        assert [j["job_id"] for j in jobs] == [saved_kit]
        assert jobs[0]["status"] == "draft"
        kit = client.get(f"/kits/{saved_kit}").json()
        assert kit["questions"][0]["competency_name"] == "API Design"

    def test_other_organization_cannot_see_kit(self, client, saved_kit):
        client.post("/organizations", json={"name": "Rival"}, headers=OTHER)
        assert client.get(f"/kits/{saved_kit}", headers=OTHER).status_code == 404

    def test_submit_and_review(self, client, org, saved_kit):
        response = client.post(f"/kits/{saved_kit}/submit")
        assert response.json()["status"] == "pending"
        assert client.get("/kits", params={"status": "pending"}).json()["jobs"]

        response = client.post(f"/kits/{saved_kit}/review", json={"approve": False})
        assert response.status_code == 400

        response = client.post(f"/kits/{saved_kit}/review", json={"approve": False, "reason": "Too generic"})
        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "Too generic"

    def test_member_cannot_review(self, client, org, saved_kit):
        client.post("/organizations/join", json={"invite_code": org.invite_code}, headers=OTHER)
        client.post(f"/kits/{saved_kit}/submit")
        response = client.post(f"/kits/{saved_kit}/review", json={"approve": True}, headers=OTHER)
        assert response.status_code == 403

    def test_only_author_submits(self, client, org, saved_kit):
        client.post("/organizations/join", json={"invite_code": org.invite_code}, headers=OTHER)
        assert client.post(f"/kits/{saved_kit}/submit", headers=OTHER).status_code == 403

    def test_export_and_delete(self, client, saved_kit):
        response = client.get(f"/kits/{saved_kit}/export")
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

        assert client.delete(f"/kits/{saved_kit}").status_code == 204
        assert client.get(f"/kits/{saved_kit}").status_code == 404


@pytest.mark.parametrize("route", kits.router.routes, ids=lambda r: f"{sorted(r.methods)[0]} {r.path}")
def test_kit_routes_run_off_the_event_loop(route):
    assert not inspect.iscoroutinefunction(route.endpoint)
