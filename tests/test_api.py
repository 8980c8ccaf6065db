import json
import random

import pytest
from fastapi.testclient import TestClient

from quizbank.core.deps import get_catalog_service, get_quiz_service, get_session_store
from quizbank.main import app
from quizbank.services.catalog_loader import CatalogService
from quizbank.services.quiz_session import QuizSessionService
from quizbank.services.session_store import InMemorySessionStore


@pytest.fixture
def client(catalog_service: CatalogService):
    store = InMemorySessionStore(ttl=60)
    app.dependency_overrides[get_catalog_service] = lambda: catalog_service
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_quiz_service] = lambda: QuizSessionService(
        catalog_service, rng=random.Random(42)
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _answer_key(catalog_service: CatalogService, exam_id: str) -> dict:
    exam = catalog_service.get_catalog().exams[exam_id]
    return {question.id: question.answers for question in exam.questions}


def test_root_and_request_id(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "operativo"
    assert response.headers["X-Request-ID"].startswith("req_")


def test_health_reports_question_bank(client) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["services"]["question_bank"]["exams"] == 3


def test_health_unavailable_when_directory_missing(client, tmp_path) -> None:
    app.dependency_overrides[get_catalog_service] = lambda: CatalogService(tmp_path / "nowhere")

    response = client.get("/api/v1/health")

    assert response.status_code == 503


def test_catalog_listing(client) -> None:
    body = client.get("/api/v1/catalog").json()

    assert [exam["id"] for exam in body["exams"]] == ["networking", "mixed", "security"]
    assert [category["id"] for category in body["categories"]] == ["cloud", "security"]
    assert body["categories"][0]["exam_ids"] == ["networking", "mixed"]
    assert body["categories"][0]["question_count"] == 8
    assert body["errors"] == []
    assert body["total_questions"] == 10


def test_exam_and_category_detail(client) -> None:
    exam = client.get("/api/v1/catalog/exams/mixed").json()
    assert exam["meta"]["title"] == "Mixed Difficulty"
    assert exam["difficulty_counts"] == {"easy": 3, "normal": 2, "hard": 1, "random": 6}

    category = client.get("/api/v1/catalog/categories/security").json()
    assert category["category"]["question_count"] == 2
    assert [exam["id"] for exam in category["exams"]] == ["security"]

    assert client.get("/api/v1/catalog/exams/nope").status_code == 404
    assert client.get("/api/v1/catalog/categories/nope").status_code == 404


def test_search_endpoint(client) -> None:
    body = client.get("/api/v1/catalog/search", params={"q": " Cloud  practitioner "}).json()

    assert body["query"] == "Cloud  practitioner"
    assert body["keywords"] == ["cloud", "practitioner"]
    assert [exam["id"] for exam in body["exams"]] == ["mixed"]
    assert client.get("/api/v1/catalog/search").json()["exams"] == []


def test_reload_picks_up_new_files(client, write_exam) -> None:
    write_exam("broken.json", "{oops")

    body = client.post("/api/v1/catalog/reload").json()

    assert body["exams"] == 3
    assert len(body["errors"]) == 1
    assert client.get("/api/v1/health").json()["status"] == "degraded"


def test_full_quiz_flow(client, catalog_service) -> None:
    state = client.post("/api/v1/quiz/select", json={"exam_id": "mixed"}).json()
    assert state["selected_category_id"] == "cloud"
    assert state["default_question_count"] == 5

    started = client.post("/api/v1/quiz/start", json={"exam_id": "mixed", "question_count": 3})
    assert started.status_code == 200
    quiz = started.json()
    assert len(quiz["questions"]) == 3
    assert all("answers" not in question for question in quiz["questions"])

    assert client.get("/api/v1/quiz/state").json()["active_quiz"]["exam"]["id"] == "mixed"

    answer_key = _answer_key(catalog_service, "mixed")
    answers = {question["id"]: answer_key[question["id"]] for question in quiz["questions"]}
    submitted = client.post("/api/v1/quiz/submit", json={"answers": answers})

    assert submitted.status_code == 200
    body = submitted.json()
    assert body["result"]["correct"] == 3
    assert body["result"]["total"] == 3
    record = body["history_record"]
    assert record["scorePercent"] == 100
    assert record["examId"] == "mixed"
    assert record["incorrectQuestions"] == []

    again = client.post("/api/v1/quiz/submit", json={"answers": answers})
    assert again.status_code == 409
    assert again.json()["detail"] == "先に問題を開始してください。"

    replay = client.post("/api/v1/quiz/history/view", json={"payload": record["fullResult"]})
    assert replay.status_code == 200
    assert replay.json()["correct"] == 3

    as_string = client.post("/api/v1/quiz/history/view", json={"payload": json.dumps(record["fullResult"])})
    assert as_string.json()["result_id"] == record["resultId"]


def test_history_view_with_non_finite_counters(client) -> None:
    response = client.post(
        "/api/v1/quiz/history/view", json={"payload": {"total": "inf", "questions": [{"id": "q1"}]}}
    )

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["correct"] == 0

    as_string = client.post(
        "/api/v1/quiz/history/view",
        json={"payload": '{"correct": NaN, "questions": [{"number": Infinity, "id": "q1"}]}'},
    )

    assert as_string.status_code == 200
    assert as_string.json()["questions"][0]["number"] == 0


def test_start_validation_errors(client) -> None:
    response = client.post("/api/v1/quiz/start", json={"exam_id": "mixed", "question_count": 0})
    assert response.status_code == 400
    assert response.json()["detail"] == "出題数は1以上を指定してください。"

    response = client.post(
        "/api/v1/quiz/start", json={"exam_id": "mixed", "question_count": 2, "difficulty": "hard"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "選択した難易度の問題が不足しています。（最大 1 問まで）"

    state = client.get("/api/v1/quiz/state").json()
    assert state["selected_exam_id"] == "mixed"
    assert state["selected_difficulty"] == "hard"
    assert state["active_quiz"] is None


def test_reset_and_landing(client) -> None:
    client.post("/api/v1/quiz/start", json={"exam_id": "security", "question_count": 1, "difficulty": "easy"})

    reset = client.post("/api/v1/quiz/reset").json()
    assert reset["active_quiz"] is None
    assert reset["selected_exam_id"] == "security"
    assert reset["selected_difficulty"] == "easy"

    landing = client.post("/api/v1/quiz/landing").json()
    assert landing["selected_exam_id"] == ""
    assert landing["selected_category_id"] == ""


def test_history_view_rejects_bad_payload(client) -> None:
    response = client.post("/api/v1/quiz/history/view", json={"payload": "{}"})

    assert response.status_code == 400
    assert response.json()["detail"] == "履歴の読み込みに失敗しました。"


def test_sessions_are_isolated_per_client(client, catalog_service) -> None:
    client.post("/api/v1/quiz/start", json={"exam_id": "mixed", "question_count": 1})

    with TestClient(app) as other:
        assert other.get("/api/v1/quiz/state").json()["active_quiz"] is None


def test_metrics_endpoint(client) -> None:
    client.get("/api/v1/catalog")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "quizbank_api_requests_total" in response.text
    assert "quizbank_catalog_exams" in response.text
