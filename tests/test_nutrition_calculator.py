from datetime import date, timedelta

import pytest

from fitplanner.constants import MACRO_RATIOS
from fitplanner.models import Meal
from fitplanner.nutrition_calculator import (
    NutritionCalculatorService, calculate_bmr, calculate_macros, calculate_meal_distribution,
    calculate_target_calories, calculate_tdee, calculate_water, excluded_tags, macro_calories,
    macro_ratios, percentage_of, round_half_up, trend
)
from fitplanner.repositories import NotFoundError

MALE = {"weight": 70, "height": 175, "age": 30, "gender": "male", "activity_level": "moderately_active"}
TODAY = date(2024, 6, 15)


@pytest.fixture
def service(repos, seeded):
    return NutritionCalculatorService(repos)


@pytest.fixture
def meals(db, seeded):
    return {meal.name: meal for meal in db.query(Meal).all()}


def custom(calories, protein=0, carbs=0, fat=0):
    return {"custom_food": {"name": "Homemade", "nutrition": {
        "calories": calories, "protein": protein, "carbs": carbs, "fat": fat
    }}}


def test_round_half_up():
    assert round_half_up(2555.5) == 2556
    assert round_half_up(2555.4999) == 2555
    assert round_half_up(0.5) == 1


def test_bmr_and_tdee_reference_values():
    bmr = calculate_bmr(MALE)
    assert bmr == 1648.75
    assert calculate_tdee(bmr, "moderately_active") == 2556


def test_bmr_female_and_unknown_activity():
    bmr = calculate_bmr({"weight": 60, "height": 165, "age": 25, "gender": "female"})
    assert bmr == 1345.25
    assert calculate_tdee(bmr, "unknown") == round_half_up(1345.25 * 1.55)


def test_target_calories_floor():
    assert calculate_target_calories(1500, "weight_loss") == 1200
    assert calculate_target_calories(2556, "muscle_gain") == 2856
    assert calculate_target_calories(2556, None) == 2556


@pytest.mark.parametrize("goal", sorted(MACRO_RATIOS))
@pytest.mark.parametrize("body_fat", [None, 10, 20, 30])
@pytest.mark.parametrize("target", [1200, 1834, 2556, 3177])
def test_macro_grams_add_back_to_target(goal, body_fat, target):
    macros = calculate_macros(target, goal, body_fat)
    assert abs(macro_calories(macros) - target) <= 2


def test_macro_ratios_shift_with_body_fat():
    assert macro_ratios("maintenance", 30) == {"protein": 0.30, "carbs": 0.45, "fat": 0.25}
    assert macro_ratios("maintenance", 10) == {"protein": 0.25, "carbs": 0.55, "fat": 0.20}
    # Table entry is never mutated
    assert MACRO_RATIOS["maintenance"] == {"protein": 0.25, "carbs": 0.50, "fat": 0.25}


def test_macro_ratios_sum_to_one():
    for goal in MACRO_RATIOS:
        for body_fat in (None, 10, 30):
            assert sum(macro_ratios(goal, body_fat).values()) == pytest.approx(1.0)


def test_macros_reference_values():
    macros = calculate_macros(2556, "maintenance")
    assert macros["protein"] == {"grams": 160, "percentage": 25}
    assert macros["fat"] == {"grams": 71, "percentage": 25}
    assert macros["carbs"]["grams"] == 319


def test_water_and_percentage():
    assert calculate_water(70) == {"liters": 2.5, "glasses": 10}
    assert percentage_of(50, 0) == 0
    assert percentage_of(80, 160) == 50


def test_meal_distribution_falls_back_to_three_meals():
    macros = calculate_macros(2000, "maintenance")
    timing = calculate_meal_distribution(2000, macros, 2)
    assert [slot["slot"] for slot in timing] == ["breakfast", "lunch", "dinner"]
    assert [slot["calories"] for slot in timing] == [600, 800, 600]


def test_meal_distribution_snack_slots():
    macros = calculate_macros(2000, "maintenance")
    timing = calculate_meal_distribution(2000, macros, 5)
    assert [slot["meal_type"] for slot in timing] == ["breakfast", "lunch", "dinner", "snack", "snack"]
    assert timing[3]["time"] == "10:00"


def test_excluded_tags_accumulate():
    tags = excluded_tags(["vegetarian", "gluten_free"])
    assert "fish" in tags and "pasta" in tags
    assert len(tags) == len(set(tags))
    assert excluded_tags(["unknown"]) == []


@pytest.mark.parametrize("values,expected", [
    ([], "stable"),
    ([1500, 1500, 2500, 2500], "increasing"),
    ([2500, 2500, 1500, 1500], "decreasing"),
    ([2000, 2010, 2000, 2010], "stable"),
])
def test_trend(values, expected):
    assert trend(values) == expected


def test_personalized_nutrition_is_stored(service, repos):
    result = service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})

    macros = result["calculated_macros"]
    assert macros["bmr"] == 1648.75
    assert macros["tdee"] == 2556
    assert macros["calories"] == {"maintenance": 2556, "target": 2556, "deficit": 0, "surplus": 0}
    assert macros["water"] == {"liters": 2.5, "glasses": 10}
    assert macros["fiber"] == {"grams": 49, "per_1000_cal": 14}
    assert result["meal_plan"]["meals_per_day"] == 3
    assert result["user_id"] == 1

    stored = repos.nutrition.get_active(1)
    assert stored.calculated_macros["tdee"] == 2556


def test_recalculation_replaces_record(service, repos):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    service.calculate_personalized_nutrition(1, MALE, {"primary": "weight_loss"}, {})

    stored = repos.nutrition.get_active(1)
    assert stored.calculated_macros["calories"]["target"] == 2056
    assert stored.calculated_macros["calories"]["deficit"] == 500


def test_weekly_plan_covers_every_day(service, meals):
    result = service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    weekly = result["meal_plan"]["weekly_plan"]

    assert [day["day"] for day in weekly][0] == "monday"
    assert len(weekly) == 7
    monday = weekly[0]
    assert [m["meal_type"] for m in monday["meals"]] == ["breakfast", "lunch", "dinner"]
    assert monday["meals"][0]["meal_id"] == meals["Pho Bo"].id
    assert monday["total_calories"] == sum(
        next(m for m in meals.values() if m.id == entry["meal_id"]).calories for entry in monday["meals"]
    )


def test_weekly_plan_respects_dietary_restrictions(service, meals):
    preferences = {"restrictions": {"dietary": ["vegan"]}, "food_preferences": {}}
    result = service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, preferences)

    dinner_ids = {m["meal_id"] for day in result["meal_plan"]["weekly_plan"] for m in day["meals"]
                  if m["meal_type"] == "dinner"}
    assert dinner_ids == {meals["Lentil Curry"].id}


def test_select_meal_relaxes_filters(service):
    slot = {"slot": "breakfast", "meal_type": "breakfast", "calories": 5000,
            "macros": {"protein": 100, "carbs": 100, "fat": 100}}
    meal = service.select_meal_for_slot(slot, {})
    assert meal is not None
    assert meal.meal_type == "breakfast"


def test_select_meal_none_when_type_missing(service):
    slot = {"slot": "brunch", "meal_type": "brunch", "calories": 500,
            "macros": {"protein": 30, "carbs": 50, "fat": 15}}
    assert service.select_meal_for_slot(slot, {}) is None


def test_track_progress(service, repos, meals):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    progress = service.track_nutrition_progress(1, TODAY, [
        {"meal_id": meals["Greek Yogurt"].id, "servings": 2, "meal_type": "snack", "time": "10:00"},
        dict(custom(500, protein=20, carbs=60, fat=10), meal_type="lunch", time="12:30"),
    ])

    assert progress["calories"] == {"actual": 900.0, "target": 2556, "percentage": 35}
    assert progress["protein"]["actual"] == 56.0
    assert progress["protein"]["percentage"] == 35

    log = repos.nutrition_logs.latest(1)
    assert log.log_date == TODAY
    assert len(log.meals) == 2


def test_track_same_day_replaces_log(service, repos):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    service.track_nutrition_progress(1, TODAY, [custom(800)])
    service.track_nutrition_progress(1, TODAY, [custom(1200)])

    logs = repos.nutrition_logs.between(1, TODAY, TODAY)
    assert len(logs) == 1
    assert logs[0].totals["calories"] == 1200.0


def test_track_skips_entries_without_reference(service):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    progress = service.track_nutrition_progress(1, TODAY, [{"meal_type": "lunch"}, custom(300)])
    assert progress["calories"]["actual"] == 300.0


def test_track_unknown_meal(service):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    with pytest.raises(NotFoundError):
        service.track_nutrition_progress(1, TODAY, [{"meal_id": 9999}])


def test_track_unknown_meal_with_custom_food(service):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    progress = service.track_nutrition_progress(1, TODAY, [dict(custom(400), meal_id=9999)])
    assert progress["calories"]["actual"] == 400.0


def test_track_without_calculator(service):
    with pytest.raises(NotFoundError):
        service.track_nutrition_progress(1, TODAY, [custom(300)])


def test_recommendations_without_calculator(service):
    assert service.get_nutrition_recommendations(1) == {"recommendations": [], "tips": []}


def test_recommendations(service):
    body = {"weight": 50, "height": 160, "age": 28, "gender": "female", "activity_level": "lightly_active"}
    service.calculate_personalized_nutrition(1, body, {"primary": "muscle_gain"}, {"meal_frequency": 2})
    service.track_nutrition_progress(1, TODAY, [custom(1500, protein=30)])

    result = service.get_nutrition_recommendations(1)
    assert [r["type"] for r in result["recommendations"]] == ["protein", "hydration", "meal_frequency"]
    assert result["tips"][0] == "Eat protein within 30 minutes after training"


def test_insights_averages_and_trends(service):
    service.calculate_personalized_nutrition(1, MALE, {"primary": "maintenance"}, {})
    for offset, calories in zip(range(3, -1, -1), (1500, 1500, 2500, 2500)):
        service.track_nutrition_progress(1, TODAY - timedelta(days=offset), [custom(calories, protein=100)])

    insights = service.get_nutrition_insights(1, "week", today=TODAY)

    assert insights["days_logged"] == 4
    assert insights["average_calories"] == 2000.0
    assert insights["consistency"] == 0.57
    assert insights["trends"]["calories"] == "increasing"
    assert insights["trends"]["protein"] == "stable"
    assert insights["recommendations"] == [
        "Add a protein source to breakfast and snacks",
        "Eat enough to reach your calorie target",
    ]


def test_insights_without_logs(service):
    insights = service.get_nutrition_insights(1, "month", today=TODAY)

    assert insights["days_logged"] == 0
    assert insights["average_calories"] == 0
    assert insights["consistency"] == 0.0
    assert insights["trends"]["calories"] == "stable"
    assert insights["recommendations"] == ["Log your meals every day to get reliable insights"]
