# ===== fitplanner/nutrition_calculator.py =====
"""
Nutrition targets, meal distribution and weekly meal plan.

BMR uses Mifflin-St Jeor, TDEE the activity multiplier table. Every
rounding is half-up: 2555.5 becomes 2556.
"""

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fitplanner.constants import (
    ACTIVITY_MULTIPLIERS, BODY_FAT_HIGH, BODY_FAT_LOW, CALORIE_ADJUSTMENTS,
    CARBS_RATIO_CAP, CARBS_RATIO_FLOOR, DEFAULT_ACTIVITY_MULTIPLIER, DEFAULT_MEAL_TIME,
    DEFAULT_MEALS_PER_DAY, DIETARY_EXCLUDED_TAGS, FIBER_BASE_GRAMS, FIBER_PER_1000_KCAL,
    FIBER_PER_KG, GOAL_TIPS, INSIGHT_CALORIE_TOLERANCE, INSIGHT_PERIOD_DAYS, KCAL_PER_GRAM,
    MACRO_RATIOS, MACRO_SHIFT, MEAL_CALORIE_TOLERANCE, MEAL_DISTRIBUTION, MEAL_SLOT_TIMES,
    MEAL_SLOT_TYPES, MIN_MEALS_PER_DAY, MIN_TARGET_CALORIES, MIN_WATER_LITERS,
    NUTRITION_RECOMMENDATIONS, PROTEIN_RATIO_CAP, PROTEIN_RATIO_FLOOR, PROTEIN_SHORTFALL_RATIO,
    TREND_THRESHOLD, WATER_GLASS_ML, WATER_ML_PER_KG, WEEKDAYS
)
from fitplanner.fitness_analyzer import pref_value
from fitplanner.models import Meal
from fitplanner.repositories import NotFoundError, Repositories

logger = logging.getLogger(__name__)

MACROS = ("protein", "carbs", "fat")
NUTRIENTS = ("calories", "protein", "carbs", "fat")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ===== FORMULAS =====

def calculate_bmr(body_composition: Dict[str, Any]) -> float:
    weight = body_composition['weight']
    height = body_composition['height']
    age = body_composition['age']
    base = 10 * weight + 6.25 * height - 5 * age
    if body_composition.get('gender') == 'male':
        return base + 5
    return base - 161


def calculate_tdee(bmr: float, activity_level: Optional[str]) -> int:
    multiplier = ACTIVITY_MULTIPLIERS.get(activity_level, DEFAULT_ACTIVITY_MULTIPLIER)
    return round_half_up(bmr * multiplier)


def calculate_target_calories(tdee: int, primary_goal: Optional[str]) -> int:
    adjustment = CALORIE_ADJUSTMENTS.get(primary_goal or 'maintenance', 0)
    return max(MIN_TARGET_CALORIES, tdee + adjustment)


def macro_ratios(primary_goal: Optional[str], body_fat: Optional[float] = None) -> Dict[str, float]:
    """Goal ratios shifted by body fat, always a fresh dict"""
    ratios = dict(MACRO_RATIOS.get(primary_goal or 'maintenance', MACRO_RATIOS['maintenance']))

    if body_fat:
        if body_fat > BODY_FAT_HIGH:
            ratios['protein'] = min(PROTEIN_RATIO_CAP, ratios['protein'] + MACRO_SHIFT)
            ratios['carbs'] = max(CARBS_RATIO_FLOOR, ratios['carbs'] - MACRO_SHIFT)
        elif body_fat < BODY_FAT_LOW:
            ratios['carbs'] = min(CARBS_RATIO_CAP, ratios['carbs'] + MACRO_SHIFT)
            ratios['protein'] = max(PROTEIN_RATIO_FLOOR, ratios['protein'] - MACRO_SHIFT)

    # The asymmetric caps can push the sum above 1, fat takes the difference
    if ratios['protein'] + ratios['carbs'] + ratios['fat'] > 1:
        ratios['fat'] = 1 - ratios['protein'] - ratios['carbs']

    return {name: round(value, 4) for name, value in ratios.items()}


def calculate_macros(target_calories: int, primary_goal: Optional[str],
                     body_fat: Optional[float] = None) -> Dict[str, Dict[str, int]]:
    ratios = macro_ratios(primary_goal, body_fat)
    grams = {
        name: round_half_up(target_calories * ratios[name] / KCAL_PER_GRAM[name])
        for name in MACROS
    }

    # Rounding drift goes into carbs so the grams add back up to the target
    residual = target_calories - sum(grams[name] * KCAL_PER_GRAM[name] for name in MACROS)
    grams['carbs'] = max(0, grams['carbs'] + round_half_up(residual / KCAL_PER_GRAM['carbs']))

    return {
        name: {'grams': grams[name], 'percentage': round_half_up(ratios[name] * 100)}
        for name in MACROS
    }


def macro_calories(macros: Dict[str, Dict[str, int]]) -> int:
    return sum(macros[name]['grams'] * KCAL_PER_GRAM[name] for name in MACROS)


def calculate_fiber(weight: float) -> Dict[str, int]:
    return {
        'grams': round_half_up(weight * FIBER_PER_KG + FIBER_BASE_GRAMS),
        'per_1000_cal': FIBER_PER_1000_KCAL
    }


def calculate_water(weight: float) -> Dict[str, Any]:
    water_ml = weight * WATER_ML_PER_KG
    return {
        'liters': round_half_up(water_ml / 1000 * 10) / 10,
        'glasses': round_half_up(water_ml / WATER_GLASS_ML)
    }


def calculate_meal_distribution(target_calories: int, macros: Dict[str, Dict[str, int]],
                                meals_per_day: Optional[int]) -> List[Dict[str, Any]]:
    distribution = MEAL_DISTRIBUTION.get(meals_per_day) or MEAL_DISTRIBUTION[DEFAULT_MEALS_PER_DAY]
    timing = []
    for slot, share in distribution.items():
        timing.append({
            'slot': slot,
            'meal_type': MEAL_SLOT_TYPES.get(slot, 'snack'),
            'time': MEAL_SLOT_TIMES.get(slot, DEFAULT_MEAL_TIME),
            'calories': round_half_up(target_calories * share),
            'macros': {name: round_half_up(macros[name]['grams'] * share) for name in MACROS}
        })
    return timing


def excluded_tags(dietary_restrictions: Optional[List[str]]) -> List[str]:
    """Union of the tags every restriction excludes"""
    tags: List[str] = []
    for restriction in dietary_restrictions or []:
        for tag in DIETARY_EXCLUDED_TAGS.get(restriction, []):
            if tag not in tags:
                tags.append(tag)
    return tags


def score_meal(meal: Meal, slot: Dict[str, Any]) -> float:
    target = slot['macros']
    return 100 - (
        abs(meal.protein - target['protein'])
        + abs(meal.carbs - target['carbs'])
        + abs(meal.fat - target['fat'])
        + abs(meal.calories - slot['calories']) / 10
    )


def pick_best_meal(meals: List[Meal], slot: Dict[str, Any]) -> Optional[Meal]:
    if not meals:
        return None
    return sorted(meals, key=lambda meal: (-score_meal(meal, slot), meal.id))[0]


def percentage_of(actual: float, target: float) -> int:
    if not target:
        return 0
    return round_half_up(actual / target * 100)


def nutrition_targets(calculated_macros: Dict[str, Any]) -> Dict[str, float]:
    return {
        'calories': calculated_macros['calories']['target'],
        'protein': calculated_macros['protein']['grams'],
        'carbs': calculated_macros['carbs']['grams'],
        'fat': calculated_macros['fat']['grams']
    }


def trend(values: List[float]) -> str:
    """Compare the mean of the first half of the period to the second half"""
    if len(values) < 2:
        return 'stable'
    middle = len(values) // 2
    first = sum(values[:middle]) / middle
    second = sum(values[middle:]) / (len(values) - middle)
    if first == 0:
        return 'increasing' if second > 0 else 'stable'
    change = (second - first) / first
    if change > TREND_THRESHOLD:
        return 'increasing'
    if change < -TREND_THRESHOLD:
        return 'decreasing'
    return 'stable'


class NutritionCalculatorService:
    def __init__(self, repos: Repositories):
        self.repos = repos

    def calculate_personalized_nutrition(self, user_id: int, body_composition: Dict[str, Any],
                                         goals: Dict[str, Any],
                                         preferences: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        preferences = preferences or {}
        primary_goal = goals.get('primary') or 'maintenance'

        bmr = calculate_bmr(body_composition)
        tdee = calculate_tdee(bmr, body_composition.get('activity_level'))
        target = calculate_target_calories(tdee, primary_goal)
        macros = calculate_macros(target, primary_goal, body_composition.get('body_fat_percentage'))

        meals_per_day = preferences.get('meal_frequency') or pref_value(
            self.repos.preferences.get(user_id), 'meal_frequency', DEFAULT_MEALS_PER_DAY
        )
        meal_timing = calculate_meal_distribution(target, macros, meals_per_day)
        weekly_plan = self.generate_weekly_meal_plan(meal_timing, preferences)

        nutrition_data = {
            'body_composition': body_composition,
            'goals': goals,
            'calculated_macros': {
                'bmr': bmr,
                'tdee': tdee,
                'calories': {
                    'maintenance': tdee,
                    'target': target,
                    'deficit': max(0, tdee - target),
                    'surplus': max(0, target - tdee)
                },
                'protein': macros['protein'],
                'carbs': macros['carbs'],
                'fat': macros['fat'],
                'fiber': calculate_fiber(body_composition['weight']),
                'water': calculate_water(body_composition['weight'])
            },
            'meal_plan': {
                'meals_per_day': meals_per_day,
                'meal_timing': meal_timing,
                'weekly_plan': weekly_plan
            },
            'restrictions': preferences.get('restrictions') or {},
            'preferences': preferences.get('food_preferences') or {},
            'is_active': True,
            'last_updated': datetime.now(timezone.utc)
        }

        self.repos.nutrition.upsert(user_id, nutrition_data)
        logger.info(
            f"🥗 Nutrition for user {user_id}: BMR={bmr} TDEE={tdee} target={target} kcal "
            f"(P{macros['protein']['grams']}/C{macros['carbs']['grams']}/F{macros['fat']['grams']})"
        )

        result = dict(nutrition_data)
        result['user_id'] = user_id
        result['last_updated'] = nutrition_data['last_updated'].isoformat()
        return result

    # ===== MEAL PLAN =====

    def generate_weekly_meal_plan(self, meal_timing: List[Dict[str, Any]],
                                  preferences: Dict[str, Any]) -> List[Dict[str, Any]]:
        # Selection is deterministic, so each slot is looked up once for the whole week
        chosen = {slot['slot']: self.select_meal_for_slot(slot, preferences) for slot in meal_timing}

        weekly_plan = []
        for day in WEEKDAYS:
            day_plan = {
                'day': day,
                'meals': [],
                'total_calories': 0,
                'total_macros': {'protein': 0, 'carbs': 0, 'fat': 0}
            }
            for slot in meal_timing:
                meal = chosen[slot['slot']]
                if meal is None:
                    continue
                day_plan['meals'].append({
                    'slot': slot['slot'],
                    'meal_type': slot['meal_type'],
                    'meal_id': meal.id,
                    'name': meal.name
                })
                day_plan['total_calories'] += meal.calories
                day_plan['total_macros']['protein'] += meal.protein
                day_plan['total_macros']['carbs'] += meal.carbs
                day_plan['total_macros']['fat'] += meal.fat
            weekly_plan.append(day_plan)
        return weekly_plan

    def select_meal_for_slot(self, slot: Dict[str, Any], preferences: Dict[str, Any]) -> Optional[Meal]:
        restrictions = preferences.get('restrictions') or {}
        food_preferences = preferences.get('food_preferences') or {}

        candidates = self.repos.meals.find(
            slot['meal_type'],
            min_calories=slot['calories'] * (1 - MEAL_CALORIE_TOLERANCE),
            max_calories=slot['calories'] * (1 + MEAL_CALORIE_TOLERANCE),
            excluded_tags=excluded_tags(restrictions.get('dietary')),
            cuisines=food_preferences.get('cuisine')
        )
        if not candidates:
            logger.warning(f"⚠️ No {slot['meal_type']} matches {slot['calories']} kcal with filters, relaxing")
            candidates = self.repos.meals.find(slot['meal_type'])
            if not candidates:
                logger.warning(f"⚠️ Catalog has no {slot['meal_type']} meal")
                return None

        return pick_best_meal(candidates, slot)

    # ===== RECOMMENDATIONS =====

    def get_nutrition_recommendations(self, user_id: int) -> Dict[str, List]:
        record = self.repos.nutrition.get_active(user_id)
        if record is None:
            return {'recommendations': [], 'tips': []}

        macros = record.calculated_macros
        recommendations = []

        latest = self.repos.nutrition_logs.latest(user_id)
        if latest is not None:
            actual_protein = (latest.totals or {}).get('protein', 0)
            if actual_protein < macros['protein']['grams'] * PROTEIN_SHORTFALL_RATIO:
                recommendations.append(dict(type='protein', **NUTRITION_RECOMMENDATIONS['protein']))

        if macros['water']['liters'] < MIN_WATER_LITERS:
            recommendations.append(dict(type='hydration', **NUTRITION_RECOMMENDATIONS['hydration']))

        if (record.meal_plan or {}).get('meals_per_day', DEFAULT_MEALS_PER_DAY) < MIN_MEALS_PER_DAY:
            recommendations.append(dict(type='meal_frequency', **NUTRITION_RECOMMENDATIONS['meal_frequency']))

        tips = list(GOAL_TIPS.get((record.goals or {}).get('primary'), []))
        return {'recommendations': recommendations, 'tips': tips}

    # ===== TRACKING =====

    def track_nutrition_progress(self, user_id: int, log_date: date,
                                 meals: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        record = self.repos.nutrition.get_active(user_id)
        if record is None:
            raise NotFoundError(f"Nutrition calculator not found for user {user_id}")

        totals = {name: 0.0 for name in NUTRIENTS}
        logged_meals = []

        for entry in meals:
            servings = entry.get('servings') or 1
            nutrition = self._entry_nutrition(entry)
            if nutrition is None:
                logger.warning(f"⚠️ Skipping logged meal without catalog reference or custom food: {entry}")
                continue
            for name in NUTRIENTS:
                totals[name] += (nutrition.get(name) or 0) * servings
            logged_meals.append({
                'meal_id': entry.get('meal_id'),
                'meal_type': entry.get('meal_type'),
                'time': entry.get('time'),
                'servings': servings,
                'nutrition': nutrition
            })

        totals = {name: round(value, 1) for name, value in totals.items()}
        targets = nutrition_targets(record.calculated_macros)
        progress = {
            name: {
                'actual': totals[name],
                'target': targets[name],
                'percentage': percentage_of(totals[name], targets[name])
            }
            for name in NUTRIENTS
        }

        self.repos.nutrition_logs.upsert(user_id, log_date, {
            'meals': logged_meals,
            'totals': totals,
            'progress': progress
        })
        logger.info(f"📈 Nutrition tracked for user {user_id} on {log_date}: {totals['calories']} kcal")
        return progress

    def _entry_nutrition(self, entry: Dict[str, Any]) -> Optional[Dict[str, float]]:
        custom = (entry.get('custom_food') or {}).get('nutrition')
        meal_id = entry.get('meal_id')

        if meal_id is not None:
            meal = self.repos.meals.get(meal_id)
            if meal is not None:
                return {'calories': meal.calories, 'protein': meal.protein, 'carbs': meal.carbs, 'fat': meal.fat}
            if custom is None:
                raise NotFoundError(f"Meal {meal_id} not found")

        return custom

    # ===== INSIGHTS =====

    def get_nutrition_insights(self, user_id: int, period: str = 'week',
                               today: Optional[date] = None) -> Dict[str, Any]:
        days = INSIGHT_PERIOD_DAYS.get(period, INSIGHT_PERIOD_DAYS['week'])
        today = today or datetime.now(timezone.utc).date()
        start = today - timedelta(days=days - 1)

        logs = self.repos.nutrition_logs.between(user_id, start, today)
        series = {name: [(log.totals or {}).get(name, 0) for log in logs] for name in NUTRIENTS}
        averages = {
            name: round(sum(values) / len(values), 1) if values else 0
            for name, values in series.items()
        }
        consistency = round(min(1.0, len({log.log_date for log in logs}) / days), 2)

        insights = {
            'period': period,
            'days_logged': len(logs),
            'average_calories': averages['calories'],
            'average_protein': averages['protein'],
            'average_carbs': averages['carbs'],
            'average_fat': averages['fat'],
            'consistency': consistency,
            'trends': {name: trend(values) for name, values in series.items()},
            'recommendations': []
        }

        record = self.repos.nutrition.get_active(user_id)
        if record is not None and logs:
            targets = nutrition_targets(record.calculated_macros)
            if averages['protein'] < targets['protein'] * PROTEIN_SHORTFALL_RATIO:
                insights['recommendations'].append("Add a protein source to breakfast and snacks")
            if averages['calories'] > targets['calories'] * (1 + INSIGHT_CALORIE_TOLERANCE):
                insights['recommendations'].append("Reduce portion sizes to get back to your calorie target")
            elif averages['calories'] < targets['calories'] * (1 - INSIGHT_CALORIE_TOLERANCE):
                insights['recommendations'].append("Eat enough to reach your calorie target")
        if consistency < 0.5:
            insights['recommendations'].append("Log your meals every day to get reliable insights")

        return insights
