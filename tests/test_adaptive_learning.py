from datetime import timedelta

import pytest

from conftest import NOW, add_history, days_ago
from fitplanner.adaptive_learning import AdaptiveLearningTracker, merge_values, time_of_day
from fitplanner.nutrition_calculator import NutritionCalculatorService
from fitplanner.repositories import NotFoundError

STEADY_SET = [{"reps": 10, "weight": 20, "rpe": 6, "completed": True}]


@pytest.fixture
def tracker(repos, catalog, settings):
    return AdaptiveLearningTracker(repos, catalog, settings)


@pytest.fixture
def goblet_block(db, seeded):
    """Four identical goblet squat sessions and one disliked crunch"""
    for days in (4, 3, 2, 1):
        add_history(db, 1, seeded["Goblet Squat"], sets=STEADY_SET, created_at=days_ago(days),
                    feedback={"enjoyment": 8})
    add_history(db, 1, seeded["Crunch"], created_at=days_ago(1, hours=2),
                feedback={"enjoyment": 2, "comments": "Hurts my neck"})
    return seeded


def test_merge_values():
    assert merge_values({"a": 1, "b": {"c": 1}}, {"b": {"d": 2}}) == {"a": 1, "b": {"c": 1, "d": 2}}
    assert merge_values(["monday"], ["monday", "friday"]) == ["monday", "friday"]
    assert merge_values(
        [{"exercise_id": 1, "reason": "knee"}],
        [{"exercise_id": 2, "reason": "boring"}, {"exercise_id": 1, "reason": "shoulder"}],
        "avoided_exercises"
    ) == [{"exercise_id": 1, "reason": "shoulder"}, {"exercise_id": 2, "reason": "boring"}]
    assert merge_values(0.3, 0.5) == 0.5


def test_merge_values_plateaus_of_one_exercise_stay_apart():
    existing = [{"exercise_id": 1, "history_id": 3, "best_weight": 40, "resolved": True},
                {"exercise_id": 1, "history_id": 8, "best_weight": 50, "resolved": False}]
    incoming = [{"exercise_id": 2, "history_id": 11, "best_weight": 30, "resolved": False},
                {"exercise_id": 1, "best_weight": 60, "resolved": False}]

    merged = merge_values(existing, incoming, "plateaus")
    assert [(p["exercise_id"], p["best_weight"]) for p in merged] == [(1, 40), (1, 50), (2, 30), (1, 60)]
    assert merge_values(merged, incoming, "plateaus") == merged


def test_merge_values_updates_latest_stored_duplicate():
    existing = [{"exercise_id": 1, "improvement": 0.1}, {"exercise_id": 1, "improvement": 0.2}]
    merged = merge_values(existing, [{"exercise_id": 1, "improvement": 0.3}], "strength_gains")
    assert merged == [{"exercise_id": 1, "improvement": 0.1}, {"exercise_id": 1, "improvement": 0.3}]
    assert existing[1]["improvement"] == 0.2


def test_merge_values_appends_injuries_without_history_id():
    existing = [{"history_id": 5, "exercise_id": 1}, {"history_id": 9, "exercise_id": 1}]
    incoming = [{"exercise_id": 1, "body_part": "knee"}, {"history_id": 9, "body_part": "core"}]

    merged = merge_values(existing, incoming, "injuries")
    assert merged == [
        {"history_id": 5, "exercise_id": 1},
        {"history_id": 9, "exercise_id": 1, "body_part": "core"},
        {"exercise_id": 1, "body_part": "knee"},
    ]
    assert merge_values(merged, incoming, "injuries") == merged


def test_apply_update_merges_plateaus_and_injuries(tracker):
    tracker.apply_update(1, {"performance_insights": {
        "plateaus": [
            {"exercise_id": 1, "history_id": 3, "best_weight": 40, "resolved": True},
            {"exercise_id": 1, "history_id": 8, "best_weight": 50, "resolved": False},
        ],
        "injuries": [{"history_id": 5, "exercise_id": 1, "body_part": "knee"}],
    }})
    record = tracker.apply_update(1, {"performance_insights": {
        "plateaus": [{"exercise_id": 2, "history_id": 11, "best_weight": 30, "resolved": False}],
        "injuries": [{"exercise_id": 1, "body_part": "shoulder"}],
    }})

    plateaus = record.performance_insights["plateaus"]
    assert [(p["exercise_id"], p["best_weight"], p["resolved"]) for p in plateaus] == [
        (1, 40, True), (1, 50, False), (2, 30, False)
    ]
    assert [i["body_part"] for i in record.performance_insights["injuries"]] == ["knee", "shoulder"]


@pytest.mark.parametrize("hour,label", [(6, "morning"), (12, "afternoon"), (16, "afternoon"), (17, "evening")])
def test_time_of_day(hour, label):
    assert time_of_day(hour) == label


def test_get_unknown_profile(tracker):
    with pytest.raises(NotFoundError):
        tracker.get(1)


def test_update_from_workouts_builds_profile(tracker, goblet_block):
    goblet, crunch = goblet_block["Goblet Squat"], goblet_block["Crunch"]
    record = tracker.update_from_workouts(1, now=NOW)

    favourites = record.exercise_preferences["favorite_exercises"]
    assert favourites[0]["exercise_id"] == goblet.id
    assert favourites[0]["frequency"] == 4
    assert favourites[0]["average_rating"] == 8.0

    assert record.exercise_preferences["avoided_exercises"] == [{
        "exercise_id": crunch.id,
        "reason": "Hurts my neck",
        "alternative_id": goblet_block["Push-up"].id,
    }]
    assert record.exercise_preferences["exercise_categories"]["strength"] == {"preference": 1.0, "proficiency": 1.0}

    patterns = record.workout_patterns
    assert patterns["preferred_days"] == ["friday", "tuesday", "wednesday"]
    assert patterns["preferred_times"] == ["evening", "afternoon"]
    assert patterns["consistency"] == 0.3

    assert record.recommendations["next_workout"] == "cardio"
    assert record.recommendations["focus_areas"] == ["cardio"]
    assert record.recommendations["intensity"] == "moderate"
    assert record.recommendations["exercises"] == []
    assert tracker.get(1).id == record.id


def test_strength_gain_and_plateau_lifecycle(tracker, db, goblet_block):
    goblet = goblet_block["Goblet Squat"]
    record = tracker.update_from_workouts(1, now=NOW)

    gain = next(g for g in record.performance_insights["strength_gains"] if g["exercise_id"] == goblet.id)
    assert gain["improvement"] == 0.0
    assert gain["timeframe"] == 3

    plateaus = record.performance_insights["plateaus"]
    assert len(plateaus) == 1
    assert plateaus[0]["exercise_id"] == goblet.id
    assert plateaus[0]["best_weight"] == 20
    assert plateaus[0]["resolved"] is False

    add_history(db, 1, goblet, sets=[{"reps": 8, "weight": 25, "rpe": 7, "completed": True}],
                created_at=NOW - timedelta(hours=1))
    record = tracker.update_from_workouts(1, now=NOW)

    plateaus = record.performance_insights["plateaus"]
    assert len(plateaus) == 1
    assert plateaus[0]["resolved"] is True
    assert plateaus[0]["solution"] == "progressive_overload"


def test_plateau_detection_records_history_id(tracker, goblet_block):
    record = tracker.update_from_workouts(1, now=NOW)
    record = tracker.update_from_workouts(1, now=NOW)

    plateaus = record.performance_insights["plateaus"]
    assert len(plateaus) == 1
    assert plateaus[0]["history_id"] is not None


def test_incomplete_plateau_record_is_skipped(tracker, goblet_block):
    goblet = goblet_block["Goblet Squat"]
    tracker.apply_update(1, {"performance_insights": {
        "plateaus": [{"exercise_id": goblet.id, "resolved": False}]
    }})

    record = tracker.update_from_workouts(1, now=NOW)
    plateaus = record.performance_insights["plateaus"]
    assert plateaus[0] == {"exercise_id": goblet.id, "resolved": False}
    assert plateaus[1]["best_weight"] == 20
    assert plateaus[1]["resolved"] is False


def test_category_scores_blend_with_learning_rate(tracker, db, goblet_block):
    tracker.update_from_workouts(1, now=NOW)
    add_history(db, 1, goblet_block["Jumping Jacks"],
                sets=[{"duration": 10, "completed": True}], created_at=NOW - timedelta(hours=1))

    record = tracker.update_from_workouts(1, now=NOW)
    categories = record.exercise_preferences["exercise_categories"]

    assert categories["strength"]["preference"] == pytest.approx(0.983)
    assert categories["cardio"]["preference"] == pytest.approx(0.167)
    assert categories["flexibility"] == {}
    assert record.recommendations["next_workout"] == "flexibility"


def test_severe_pain_recommends_rest(tracker, db, repos, seeded):
    repos.preferences.upsert(1, {"injury_history": [{"body_part": "knee", "recovered": False}]})
    for days in (1, 2):
        add_history(db, 1, seeded["Plank"], pain="severe", created_at=days_ago(days))

    record = tracker.update_from_workouts(1, now=NOW)
    assert record.recommendations["next_workout"] == "rest"
    assert record.recommendations["intensity"] == "low"
    assert record.recommendations["avoid_areas"] == ["knee"]
    assert record.recommendations["focus_areas"] == []

    injuries = record.performance_insights["injuries"]
    assert len(injuries) == 2
    assert {i["body_part"] for i in injuries} == {"core"}

    record = tracker.update_from_workouts(1, now=NOW)
    assert len(record.performance_insights["injuries"]) == 2


def test_alternative_without_catalog_cache(repos, settings, goblet_block):
    tracker = AdaptiveLearningTracker(repos, None, settings)
    record = tracker.update_from_workouts(1, now=NOW)
    assert record.exercise_preferences["avoided_exercises"][0]["alternative_id"] == goblet_block["Push-up"].id


def test_apply_update_merges_sections(tracker):
    tracker.apply_update(1, {"exercise_preferences": {"avoided_exercises": [{"exercise_id": 1, "reason": "knee"}]}})
    record = tracker.apply_update(1, {
        "exercise_preferences": {"avoided_exercises": [
            {"exercise_id": 2, "reason": "boring"},
            {"exercise_id": 1, "reason": "shoulder"},
        ]},
        "workout_patterns": {"preferred_days": ["monday"]},
        "learning_rate": 0.2,
    })

    assert record.exercise_preferences["avoided_exercises"] == [
        {"exercise_id": 1, "reason": "shoulder"},
        {"exercise_id": 2, "reason": "boring"},
    ]
    assert record.workout_patterns == {"preferred_days": ["monday"]}
    assert record.learning_rate == 0.2


def test_update_from_nutrition(tracker, repos):
    repos.preferences.upsert(1, {"food_preferences": ["pasta"], "dietary_restrictions": ["vegetarian"]})
    service = NutritionCalculatorService(repos)
    result = service.calculate_personalized_nutrition(
        1, {"weight": 70, "height": 175, "age": 30, "gender": "male"}, {"primary": "maintenance"}, {}
    )
    protein_target = result["calculated_macros"]["protein"]["grams"]

    for days, clock in ((1, "07:00"), (0, "07:20")):
        service.track_nutrition_progress(1, NOW.date() - timedelta(days=days), [{
            "meal_type": "breakfast",
            "time": clock,
            "custom_food": {"name": "Eggs", "nutrition": {"calories": 800, "protein": protein_target}},
        }])

    tracker.update_from_nutrition(1, now=NOW)
    record = tracker.update_from_nutrition(1, now=NOW)
    patterns = record.nutrition_patterns

    assert patterns["macro_preferences"]["protein"] == {"preference": 1.0, "tolerance": 0.0}
    assert patterns["meal_timing"] == [{"meal_type": "breakfast", "average_time": "07:10", "consistency": 1.0}]
    assert patterns["food_preferences"] == {"liked": ["pasta"], "restrictions": ["vegetarian"]}
