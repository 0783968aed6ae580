import pytest
from fastapi.testclient import TestClient

from fitplanner.database import get_db, get_session_factory
from fitplanner.main import app

BODY = {"weight": 70, "height": 175, "age": 30, "gender": "male", "activity_level": "moderately_active"}


@pytest.fixture
def client(session_factory, catalog):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    # Not used as a context manager: the lifespan would touch the configured database
    app.state.catalog = catalog
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_preferences_round_trip(client):
    assert client.get("/api/users/1/preferences").status_code == 404

    response = client.post("/api/users/1/preferences", json={
        "fitness_goals": ["muscle_gain"],
        "workout_frequency": 4,
        "injury_history": [{"body_part": "knee"}],
    })
    assert response.status_code == 200
    assert response.json()["workout_frequency"] == 4

    data = client.get("/api/users/1/preferences").json()
    assert data["fitness_goals"] == ["muscle_gain"]
    assert data["injury_history"][0]["recovered"] is False
    assert data["experience_level"] == "beginner"


def test_preferences_validation(client):
    response = client.post("/api/users/1/preferences", json={"workout_frequency": 9})
    assert response.status_code == 422


def test_ai_plan_lifecycle(client):
    assert client.get("/api/users/1/ai-workout-plan/current").status_code == 404

    response = client.post("/api/users/1/ai-workout-plan", json={
        "goals": ["general_fitness"], "constraints": {"duration": 1}
    })
    assert response.status_code == 200
    result = response.json()
    assert result["confidence"] == 0.6
    assert result["generation_reason"] == "initial_creation"
    assert len(result["plan"]["exercises"]) == 3

    current = client.get("/api/users/1/ai-workout-plan/current").json()
    assert current["id"] == result["ai_plan_id"]
    assert current["is_active"] is True

    feedback = client.post("/api/users/1/ai-workout-plan/feedback", json={
        "plan_id": result["ai_plan_id"], "rating": 5, "completion_rate": 1.0
    })
    assert feedback.status_code == 200
    assert feedback.json()["plan"]["feedback"]["rating"] == 5


def test_ai_plan_feedback_unknown_plan(client):
    response = client.post("/api/users/1/ai-workout-plan/feedback", json={"plan_id": 42, "rating": 3})
    assert response.status_code == 404


def test_ai_plan_feedback_rating_out_of_range(client):
    response = client.post("/api/users/1/ai-workout-plan/feedback", json={"plan_id": 1, "rating": 6})
    assert response.status_code == 422


def test_nutrition_flow(client):
    assert client.get("/api/users/1/nutrition-calculator/current").status_code == 404

    response = client.post("/api/users/1/nutrition-calculator", json={
        "body_composition": BODY, "goals": {"primary": "maintenance"}
    })
    assert response.status_code == 200
    assert response.json()["calculated_macros"]["tdee"] == 2556

    current = client.get("/api/users/1/nutrition-calculator/current").json()
    assert len(current["meal_plan"]["weekly_plan"]) == 7

    tracked = client.post("/api/users/1/nutrition-calculator/track", json={
        "date": "2024-06-15",
        "meals": [{"meal_type": "lunch", "time": "12:30",
                   "custom_food": {"name": "Salad", "nutrition": {"calories": 639, "protein": 40}}}],
    })
    assert tracked.status_code == 200
    assert tracked.json()["progress"]["calories"]["percentage"] == 25

    # The adaptive profile is refreshed after the response
    learning = client.get("/api/users/1/adaptive-learning").json()
    assert learning["nutrition_patterns"]["meal_timing"][0]["average_time"] == "12:30"

    recommendations = client.get("/api/users/1/nutrition-calculator/recommendations")
    assert recommendations.json()["recommendations"][0]["type"] == "protein"


def test_track_requires_reference(client):
    response = client.post("/api/users/1/nutrition-calculator/track", json={
        "date": "2024-06-15", "meals": [{"meal_type": "lunch"}]
    })
    assert response.status_code == 422


def test_track_without_calculator(client):
    response = client.post("/api/users/1/nutrition-calculator/track", json={
        "date": "2024-06-15", "meals": [{"meal_id": 1}]
    })
    assert response.status_code == 404


def test_track_unknown_meal(client):
    client.post("/api/users/1/nutrition-calculator", json={"body_composition": BODY})
    response = client.post("/api/users/1/nutrition-calculator/track", json={
        "date": "2024-06-15", "meals": [{"meal_id": 9999}]
    })
    assert response.status_code == 404


def test_insights_period_validation(client):
    assert client.get("/api/users/1/nutrition-calculator/insights?period=month").status_code == 200
    assert client.get("/api/users/1/nutrition-calculator/insights?period=year").status_code == 422


def test_workout_history_updates_profile(client, seeded):
    goblet = seeded["Goblet Squat"]
    response = client.post("/api/users/1/workout-history", json={
        "exercise_id": goblet.id,
        "sets": [{"reps": 10, "weight": 20, "rpe": 7}, {"reps": 8, "weight": 22, "rpe": 8}],
        "form": "good",
        "feedback": {"enjoyment": 8},
    })
    assert response.status_code == 200
    performance = response.json()["performance"]
    assert performance["total_volume"] == 376
    assert performance["max_weight"] == 22
    assert performance["average_rpe"] == 7.5

    learning = client.get("/api/users/1/adaptive-learning").json()
    assert learning["exercise_preferences"]["favorite_exercises"][0]["exercise_id"] == goblet.id

    listing = client.get("/api/users/1/workout-history?page=1&limit=10").json()
    assert listing["total"] == 1
    assert listing["pages"] == 1


def test_workout_history_unknown_exercise(client):
    response = client.post("/api/users/1/workout-history", json={"exercise_id": 9999, "sets": []})
    assert response.status_code == 404


def test_workout_history_invalid_pain(client, seeded):
    response = client.post("/api/users/1/workout-history", json={
        "exercise_id": seeded["Plank"].id, "sets": [], "pain": "unbearable"
    })
    assert response.status_code == 422


def test_adaptive_learning_endpoints(client):
    assert client.get("/api/users/1/adaptive-learning").status_code == 404

    response = client.post("/api/users/1/adaptive-learning/update", json={
        "workout_patterns": {"preferred_days": ["monday"]}, "learning_rate": 0.3
    })
    assert response.status_code == 200
    assert response.json()["learning_rate"] == 0.3

    assert client.post("/api/users/1/adaptive-learning/update", json={"learning_rate": 2}).status_code == 422


def test_adaptive_update_validates_insight_records(client):
    incomplete = {"performance_insights": {"plateaus": [{"exercise_id": 1, "resolved": False}]}}
    assert client.post("/api/users/1/adaptive-learning/update", json=incomplete).status_code == 422

    no_body_part = {"performance_insights": {"injuries": [{"exercise_id": 1}]}}
    assert client.post("/api/users/1/adaptive-learning/update", json=no_body_part).status_code == 422

    for best_weight in (40, 50):
        response = client.post("/api/users/1/adaptive-learning/update", json={"performance_insights": {
            "plateaus": [{"exercise_id": 1, "best_weight": best_weight}],
            "injuries": [{"body_part": "knee"}],
        }})
        assert response.status_code == 200

    insights = response.json()["performance_insights"]
    assert [p["best_weight"] for p in insights["plateaus"]] == [40, 50]
    assert insights["plateaus"][0]["duration"] == 3
    assert len(insights["injuries"]) == 1


def test_analytics(client):
    response = client.get("/api/users/1/analytics?period=all")
    assert response.status_code == 200
    assert response.json()["period"] == "all"
    assert client.get("/api/users/1/analytics?period=year").status_code == 422


def test_catalog_refresh(client):
    response = client.post("/api/catalog/refresh")
    assert response.status_code == 200
    assert response.json()["exercises"] == 28
