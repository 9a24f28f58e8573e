from typing import Any

from fastapi.testclient import TestClient

from conftest import SOP_TEXT, login


def _generate(client: TestClient, headers: dict[str, str], **overrides: Any) -> dict[str, Any]:
    body = {"content": SOP_TEXT, "moduleCount": "3-5", "difficulty": "intermediate", "passScore": 80}
    body.update(overrides)
    response = client.post("/courses/generate", json=body, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["course"]


def _add_learner(client: TestClient, admin: dict[str, str], email: str) -> dict[str, str]:
    response = client.post("/members", json={"email": email}, headers=admin)
    assert response.status_code == 200, response.text
    assert response.json()["roles"] == ["learner"]
    return login(client, email)


def _run_module(client: TestClient, headers: dict[str, str], course_id: str, module: dict[str, Any], correct: int) -> dict[str, Any]:
    opened = client.post("/quiz/sessions", json={"courseId": course_id, "moduleId": module["id"]}, headers=headers)
    assert opened.status_code == 200, opened.text
    sid = opened.json()["session_id"]
    assert opened.json()["phase"] == "content"
    assert client.post(f"/quiz/sessions/{sid}/start", headers=headers).json()["phase"] == "quiz"
    for i, question in enumerate(module["questions"]):
        option = question["correct_index"] if i < correct else (question["correct_index"] + 1) % 4
        client.post(f"/quiz/sessions/{sid}/select", json={"option": option}, headers=headers)
        submitted = client.post(f"/quiz/sessions/{sid}/submit", headers=headers)
        assert submitted.status_code == 200, submitted.text
        assert submitted.json()["attempt"]["is_correct"] is (i < correct)
        client.post(f"/quiz/sessions/{sid}/next", headers=headers)
    state = client.get(f"/quiz/sessions/{sid}", headers=headers).json()
    assert state["phase"] == "results"
    completed = client.post(f"/quiz/sessions/{sid}/complete", headers=headers)
    assert completed.status_code == 200, completed.text
    return completed.json()


def test_first_login_creates_owner_and_org(client: TestClient) -> None:
    headers = login(client, "Jane@Acme.test")
    me = client.get("/auth/me", headers=headers).json()
    assert me["user"]["email"] == "jane@acme.test"
    assert me["user"]["display_name"] == "jane"
    assert me["user"]["roles"] == ["owner", "admin"]
    assert me["org"]["name"] == "jane's Organization"
    assert me["org"]["owner_id"] == me["user"]["id"]
    assert me["org"]["plan_tier"] == "starter"

    again = login(client, "jane@acme.test")
    assert client.get("/auth/me", headers=again).json()["user"]["id"] == me["user"]["id"]


def test_login_rejects_bad_email(client: TestClient) -> None:
    assert client.post("/auth/login", json={"email": "not-an-email"}).status_code == 422


def test_logout_always_succeeds_and_ends_session(client: TestClient) -> None:
    assert client.post("/auth/logout").json() == {"success": True}
    assert client.post("/auth/logout", headers={"Authorization": "Bearer garbage"}).json() == {"success": True}

    headers = login(client, "bob@acme.test")
    assert client.get("/auth/me", headers=headers).status_code == 200
    assert client.post("/auth/logout", headers=headers).json() == {"success": True}
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_requests_without_session_are_rejected(client: TestClient) -> None:
    assert client.get("/courses").status_code == 401
    assert client.get("/courses", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_generate_and_read_back_course(client: TestClient, fake_client) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers, title="Forklift 101", passScore=90)
    assert course["status"] == "draft"
    assert course["pass_score"] == 90
    assert course["title"] == "Forklift 101"
    assert fake_client.closed is True

    tree = client.get(f"/courses/{course['id']}", headers=headers).json()
    assert [m["index"] for m in tree["modules"]] == [0, 1, 2]
    assert [len(m["questions"]) for m in tree["modules"]] == [2, 3, 5]
    assert [q["index"] for q in tree["modules"][2]["questions"]] == [0, 1, 2, 3, 4]

    listed = client.get("/courses", headers=headers).json()
    assert [c["id"] for c in listed] == [course["id"]]


def test_generate_validation_errors(client: TestClient, fake_client) -> None:
    headers = login(client, "owner@acme.test")
    short = client.post("/courses/generate", json={"content": "too short"}, headers=headers)
    assert short.status_code == 400
    low = client.post("/courses/generate", json={"content": SOP_TEXT, "passScore": 20}, headers=headers)
    assert low.status_code == 400
    assert fake_client.prompts == []


def test_generation_failure_is_bad_gateway(client: TestClient, fake_client) -> None:
    headers = login(client, "owner@acme.test")
    fake_client.reply = "the model rambled instead of returning JSON"
    response = client.post("/courses/generate", json={"content": SOP_TEXT}, headers=headers)
    assert response.status_code == 502
    assert client.get("/courses", headers=headers).json() == []


def test_learners_cannot_mutate_courses(client: TestClient) -> None:
    admin = login(client, "owner@acme.test")
    course = _generate(client, admin)
    learner = _add_learner(client, admin, "learner@acme.test")

    assert client.post("/courses/generate", json={"content": SOP_TEXT}, headers=learner).status_code == 403
    assert client.patch(f"/courses/{course['id']}", json={"title": "x"}, headers=learner).status_code == 403
    assert client.get("/analytics/overview", headers=learner).status_code == 403
    assert client.get(f"/courses/{course['id']}", headers=learner).status_code == 200


def test_other_orgs_cannot_see_course(client: TestClient) -> None:
    course = _generate(client, login(client, "owner@acme.test"))
    outsider = login(client, "owner@globex.test")
    assert client.get(f"/courses/{course['id']}", headers=outsider).status_code == 403
    assert client.post("/enrollments", json={"courseId": course["id"]}, headers=outsider).status_code == 403
    assert client.get("/courses/missing", headers=outsider).status_code == 404


def test_publish_and_unpublish(client: TestClient) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    published = client.patch(f"/courses/{course['id']}", json={"status": "published"}, headers=headers).json()
    assert published["status"] == "published"
    assert published["published_at"] is not None
    draft = client.patch(f"/courses/{course['id']}", json={"status": "draft", "passScore": 60}, headers=headers).json()
    assert draft["published_at"] is None
    assert draft["pass_score"] == 60
    assert client.patch(f"/courses/{course['id']}", json={"passScore": 40}, headers=headers).status_code == 422


def test_enrollment_is_idempotent_over_http(client: TestClient) -> None:
    admin = login(client, "owner@acme.test")
    course = _generate(client, admin)
    learner = _add_learner(client, admin, "learner@acme.test")
    first = client.post("/enrollments", json={"courseId": course["id"]}, headers=learner).json()
    second = client.post("/enrollments", json={"courseId": course["id"]}, headers=learner).json()
    assert first == second
    mine = client.get("/enrollments/my", headers=learner).json()
    assert len(mine) == 1
    assert mine[0]["course"]["id"] == course["id"]
    assert mine[0]["progress"] == {"current_module_index": 0}
    assert mine[0]["progress_percent"] == 0


def test_full_course_flow_awards_one_badge(client: TestClient) -> None:
    admin = login(client, "owner@acme.test")
    course = _generate(client, admin)
    tree = client.get(f"/courses/{course['id']}", headers=admin).json()
    learner = _add_learner(client, admin, "learner@acme.test")

    status = client.get(f"/courses/{course['id']}/modules/status", headers=learner).json()
    assert [m["unlocked"] for m in status["modules"]] == [True, False, False]

    client.post("/enrollments", json={"courseId": course["id"]}, headers=learner)
    locked = client.post("/quiz/sessions", json={"courseId": course["id"], "moduleId": tree["modules"][1]["id"]}, headers=learner)
    assert locked.status_code == 409

    failed = _run_module(client, learner, course["id"], tree["modules"][0], correct=0)
    assert failed["passed"] is False
    assert failed["enrollment"]["progress"]["current_module_index"] == 0

    for module in tree["modules"]:
        outcome = _run_module(client, learner, course["id"], module, correct=len(module["questions"]))
        assert outcome["passed"] is True
        assert (outcome["badge"] is not None) is (module["index"] == 2)

    status = client.get(f"/courses/{course['id']}/modules/status", headers=learner).json()
    assert status["completed"] is True
    assert status["progress_percent"] == 100
    assert all(m["unlocked"] and m["completed"] for m in status["modules"])

    badges = client.get("/badges/my", headers=learner).json()
    assert len(badges) == 1
    assert badges[0]["name"] == "Forklift Safety Completion"

    overview = client.get("/analytics/overview", headers=admin).json()
    assert overview["total_courses"] == 1
    assert overview["active_learners"] == 1
    assert overview["completion_rate"] == 100
    assert overview["certificates_issued"] == 1


def test_quiz_session_errors(client: TestClient) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    tree = client.get(f"/courses/{course['id']}", headers=headers).json()
    opened = client.post("/quiz/sessions", json={"courseId": course["id"], "moduleId": tree["modules"][0]["id"]}, headers=headers)
    sid = opened.json()["session_id"]

    assert client.post(f"/quiz/sessions/{sid}/submit", headers=headers).status_code == 409
    client.post(f"/quiz/sessions/{sid}/start", headers=headers)
    assert client.post(f"/quiz/sessions/{sid}/submit", headers=headers).status_code == 409
    assert client.post(f"/quiz/sessions/{sid}/select", json={"option": 8}, headers=headers).status_code == 400

    stranger = login(client, "stranger@acme.test")
    assert client.get(f"/quiz/sessions/{sid}", headers=stranger).status_code == 404


def test_direct_attempts_are_recorded_separately(client: TestClient) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    question = client.get(f"/courses/{course['id']}", headers=headers).json()["modules"][2]["questions"][0]

    first = client.post("/attempts", json={"questionId": question["id"], "selectedIndex": question["correct_index"]}, headers=headers)
    second = client.post("/attempts", json={"questionId": question["id"], "selectedIndex": (question["correct_index"] + 1) % 4}, headers=headers)
    assert first.json()["is_correct"] is True
    assert second.json()["is_correct"] is False
    assert first.json()["id"] != second.json()["id"]

    attempts = client.get(f"/attempts/{course['id']}", headers=headers).json()
    assert len(attempts) == 2
    assert client.post("/attempts", json={"questionId": "nope", "selectedIndex": 0}, headers=headers).status_code == 404


def test_delete_module_keeps_indices_dense(client: TestClient) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    tree = client.get(f"/courses/{course['id']}", headers=headers).json()

    assert client.delete(f"/modules/{tree['modules'][1]['id']}", headers=headers).json() == {"success": True}
    modules = client.get(f"/courses/{course['id']}", headers=headers).json()["modules"]
    assert [m["index"] for m in modules] == [0, 1]
    assert [m["title"] for m in modules] == ["Module 0", "Module 2"]


def test_update_and_improve_module(client: TestClient, fake_client) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    module_id = client.get(f"/courses/{course['id']}", headers=headers).json()["modules"][0]["id"]

    patched = client.patch(f"/modules/{module_id}", json={"title": "Renamed"}, headers=headers).json()
    assert patched["title"] == "Renamed"

    fake_client.reply = {"contentHtml": "<p>Clearer</p>", "learningObjectives": ["Do it safely"]}
    improved = client.post(f"/modules/{module_id}/improve", json={"feedback": "simpler"}, headers=headers).json()
    assert improved["content_html"] == "<p>Clearer</p>"
    assert improved["learning_objectives"] == ["Do it safely"]
    assert improved["title"] == "Renamed"


def test_regenerate_quiz_replaces_questions(client: TestClient, fake_client) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    module = client.get(f"/courses/{course['id']}", headers=headers).json()["modules"][2]

    fake_client.reply = {
        "questions": [
            {"stemHtml": "<p>New?</p>", "options": ["x", "y"], "correctIndex": 1, "rationaleHtml": "<p>y</p>"},
        ]
    }
    questions = client.post(f"/modules/{module['id']}/regenerate-quiz", json={}, headers=headers).json()
    assert [q["stem_html"] for q in questions] == ["<p>New?</p>"]
    refreshed = client.get(f"/courses/{course['id']}", headers=headers).json()["modules"][2]
    assert [q["index"] for q in refreshed["questions"]] == [0]


def test_members_stay_within_org(client: TestClient) -> None:
    acme = login(client, "owner@acme.test")
    globex = login(client, "owner@globex.test")
    assert client.post("/members", json={"email": "owner@globex.test"}, headers=acme).status_code == 403

    member = client.post("/members", json={"email": "new@acme.test"}, headers=acme).json()
    promoted = client.patch(f"/members/{member['id']}", json={"roles": ["learner", "admin"]}, headers=acme).json()
    assert promoted["roles"] == ["learner", "admin"]
    assert client.patch(f"/members/{member['id']}", json={"roles": ["admin"]}, headers=globex).status_code == 404
    assert {u["email"] for u in client.get("/members", headers=acme).json()} == {"owner@acme.test", "new@acme.test"}


def test_delete_course(client: TestClient) -> None:
    headers = login(client, "owner@acme.test")
    course = _generate(client, headers)
    assert client.delete(f"/courses/{course['id']}", headers=headers).json() == {"success": True}
    assert client.get(f"/courses/{course['id']}", headers=headers).status_code == 404
