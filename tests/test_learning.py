import pytest


@pytest.fixture
def track(client):
    response = client.post("/api/tracks", json={"title": "Commercial Diving Basics", "estimatedHours": 12})
    assert response.status_code == 201
    return response.json()


def add_lesson(client, track_id, title, **extra):
    response = client.post(f"/api/tracks/{track_id}/lessons", json={"title": title, **extra})
    assert response.status_code == 201
    return response.json()


def test_create_track_derives_unique_slug(client, track):
    assert track["slug"] == "commercial-diving-basics"
    assert track["isPublished"] is False

    second = client.post("/api/tracks", json={"title": "Commercial Diving Basics"})
    assert second.json()["slug"] == "commercial-diving-basics-2"


def test_create_track_rejects_taken_slug(client, track):
    response = client.post("/api/tracks", json={"title": "Other", "slug": "commercial-diving-basics"})
    assert response.status_code == 409


def test_create_track_requires_admin(client, auth, member_user):
    auth.login(member_user)
    response = client.post("/api/tracks", json={"title": "Rigging"})
    assert response.status_code == 403


def test_draft_tracks_hidden_from_learners(client, auth, track, member_user):
    auth.login(member_user)
    assert client.get(f"/api/tracks/{track['slug']}").status_code == 404
    assert client.get("/api/tracks").json() == []


def test_publish_makes_track_visible(client, auth, track, member_user):
    assert client.post(f"/api/tracks/{track['id']}/publish").json()["isPublished"] is True

    auth.login(member_user)
    response = client.get(f"/api/tracks/{track['slug']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Commercial Diving Basics"


def test_lessons_stay_densely_ordered(client, track):
    first = add_lesson(client, track["id"], "Dive physics")
    second = add_lesson(client, track["id"], "Gas management")
    inserted = add_lesson(client, track["id"], "Safety briefing", order=1)

    assert inserted["order"] == 1
    lessons = client.get(f"/api/tracks/{track['slug']}").json()["lessons"]
    assert [lesson["title"] for lesson in lessons] == ["Safety briefing", "Dive physics", "Gas management"]
    assert [lesson["order"] for lesson in lessons] == [1, 2, 3]

    client.delete(f"/api/lessons/{first['id']}")
    lessons = client.get(f"/api/tracks/{track['slug']}").json()["lessons"]
    assert [(lesson["id"], lesson["order"]) for lesson in lessons] == [(inserted["id"], 1), (second["id"], 2)]


def test_reorder_lessons(client, track):
    first = add_lesson(client, track["id"], "Dive physics")
    second = add_lesson(client, track["id"], "Gas management")

    response = client.post(
        f"/api/tracks/{track['id']}/lessons/reorder", json={"lessonIds": [second["id"], first["id"]]}
    )

    assert response.status_code == 200
    assert [(lesson["id"], lesson["order"]) for lesson in response.json()] == [(second["id"], 1), (first["id"], 2)]


def test_reorder_requires_every_lesson(client, track):
    first = add_lesson(client, track["id"], "Dive physics")
    add_lesson(client, track["id"], "Gas management")

    response = client.post(f"/api/tracks/{track['id']}/lessons/reorder", json={"lessonIds": [first["id"]]})
    assert response.status_code == 400


@pytest.fixture
def quiz(client, track):
    lesson = add_lesson(client, track["id"], "Dive physics")
    response = client.post(
        f"/api/lessons/{lesson['id']}/quizzes",
        json={
            "title": "Physics check",
            "passingScore": 70,
            "maxAttempts": 2,
            "questions": [
                {"prompt": "Which gas causes narcosis?", "options": ["Oxygen", "Nitrogen"], "correctAnswer": "Nitrogen"},
                {"type": "true_false", "prompt": "Pressure rises with depth", "correctAnswer": "true"},
            ],
        },
    )
    assert response.status_code == 201
    client.post(f"/api/tracks/{track['id']}/publish")
    return response.json()


def test_quiz_hides_answers_from_learners(client, auth, quiz, member_user):
    assert quiz["questions"][0]["correctAnswer"] == "Nitrogen"
    assert [q["order"] for q in quiz["questions"]] == [1, 2]

    auth.login(member_user)
    questions = client.get(f"/api/quizzes/{quiz['id']}").json()["questions"]
    assert all(q["correctAnswer"] is None for q in questions)


def test_attempts_are_graded_and_limited(client, auth, quiz, member_user):
    auth.login(member_user)
    first_id, second_id = (q["id"] for q in quiz["questions"])

    failed = client.post(f"/api/quizzes/{quiz['id']}/attempts", json={"answers": {str(first_id): "Oxygen"}})
    assert failed.status_code == 201
    assert failed.json()["percentage"] == 0
    assert failed.json()["passed"] is False
    assert failed.json()["attemptsRemaining"] == 1

    passed = client.post(
        f"/api/quizzes/{quiz['id']}/attempts",
        json={"answers": {str(first_id): "nitrogen", str(second_id): True}, "timeSpent": 90},
    )
    assert passed.json()["percentage"] == 100
    assert passed.json()["passed"] is True
    assert passed.json()["attemptNumber"] == 2

    exhausted = client.post(f"/api/quizzes/{quiz['id']}/attempts", json={"answers": {}})
    assert exhausted.status_code == 409

    history = client.get(f"/api/quizzes/{quiz['id']}/attempts").json()
    assert [a["attemptNumber"] for a in history] == [1, 2]


def test_passing_the_only_lesson_issues_certificate(client, auth, quiz, member_user, track):
    auth.login(member_user)
    answers = {str(q_id): answer for q_id, answer in zip((q["id"] for q in quiz["questions"]), ["Nitrogen", "true"])}
    client.post(f"/api/quizzes/{quiz['id']}/attempts", json={"answers": answers})

    progress = client.get(f"/api/progress/tracks/{track['id']}").json()
    assert progress["progress"] == 100
    assert progress["completedLessons"] == 1
    certificate = progress["certificate"]
    assert certificate["certificateNumber"].startswith("DWT-")
    assert certificate["finalScore"] == 100

    certificates = client.get("/api/certificates").json()
    assert [c["trackId"] for c in certificates] == [track["id"]]


def test_lesson_progress_never_goes_backwards(client, auth, track, member_user):
    lesson = add_lesson(client, track["id"], "Gas management")
    auth.login(member_user)

    client.post(f"/api/progress/lessons/{lesson['id']}", json={"completionRate": 60, "timeSpent": 120})
    response = client.post(f"/api/progress/lessons/{lesson['id']}", json={"completionRate": 30, "timeSpent": 30})

    body = response.json()
    assert body["completionRate"] == 60
    assert body["timeSpent"] == 150
    assert body["completedAt"] is None


def test_progress_rejects_out_of_range_completion(client, track):
    lesson = add_lesson(client, track["id"], "Gas management")
    response = client.post(f"/api/progress/lessons/{lesson['id']}", json={"completionRate": 120})
    assert response.status_code == 422
