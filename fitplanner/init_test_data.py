# ===== fitplanner/init_test_data.py =====
"""
Starter exercise and meal catalog.
Loaded by the app at startup when FITPLANNER_SEED_CATALOG is on and the
catalog is empty, or run directly against DATABASE_URL.
"""

from sqlalchemy.orm import Session
from fitplanner.database import engine, SessionLocal
from fitplanner.models import Base, Exercise, Meal
import logging

logger = logging.getLogger(__name__)

EXERCISES = [
    # Upper body
    {"name": "Push-up", "category": "strength", "primary_muscles": ["chest", "triceps"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Dumbbell Bench Press", "category": "strength", "primary_muscles": ["chest"], "equipment": ["dumbbells", "bench"], "difficulty": "intermediate"},
    {"name": "Barbell Bench Press", "category": "strength", "primary_muscles": ["chest", "triceps"], "equipment": ["barbell", "bench"], "difficulty": "advanced"},
    {"name": "Dumbbell Row", "category": "strength", "primary_muscles": ["back", "biceps"], "equipment": ["dumbbells"], "difficulty": "beginner"},
    {"name": "Pull-up", "category": "power", "primary_muscles": ["back", "biceps"], "equipment": ["pull_up_bar"], "difficulty": "intermediate"},
    {"name": "Overhead Press", "category": "strength", "primary_muscles": ["shoulders", "triceps"], "equipment": ["dumbbells"], "difficulty": "intermediate"},
    {"name": "Lateral Raise", "category": "hypertrophy", "primary_muscles": ["shoulders"], "equipment": ["dumbbells"], "difficulty": "beginner"},
    {"name": "Bicep Curl", "category": "hypertrophy", "primary_muscles": ["biceps"], "equipment": ["dumbbells"], "difficulty": "beginner"},
    {"name": "Bench Dip", "category": "strength", "primary_muscles": ["triceps"], "equipment": ["bench"], "difficulty": "beginner"},
    # Lower body
    {"name": "Bodyweight Squat", "category": "strength", "primary_muscles": ["quads", "glutes"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Goblet Squat", "category": "strength", "primary_muscles": ["quads", "glutes"], "equipment": ["dumbbells"], "difficulty": "beginner"},
    {"name": "Romanian Deadlift", "category": "strength", "primary_muscles": ["hamstrings", "glutes"], "equipment": ["dumbbells"], "difficulty": "intermediate"},
    {"name": "Walking Lunge", "category": "hypertrophy", "primary_muscles": ["quads", "glutes"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Calf Raise", "category": "hypertrophy", "primary_muscles": ["calves"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Barbell Back Squat", "category": "strength", "primary_muscles": ["quads", "glutes", "hamstrings"], "equipment": ["barbell", "squat_rack"], "difficulty": "advanced"},
    # Core
    {"name": "Plank", "category": "strength", "primary_muscles": ["core", "abs"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Crunch", "category": "strength", "primary_muscles": ["abs"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Russian Twist", "category": "strength", "primary_muscles": ["obliques"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Hanging Leg Raise", "category": "strength", "primary_muscles": ["abs"], "equipment": ["pull_up_bar"], "difficulty": "intermediate"},
    {"name": "Dead Bug", "category": "mobility", "primary_muscles": ["core"], "equipment": ["none"], "difficulty": "beginner"},
    # Full body and cardio
    {"name": "Burpee", "category": "hiit", "primary_muscles": ["full_body", "cardio"], "equipment": ["none"], "difficulty": "intermediate"},
    {"name": "Kettlebell Swing", "category": "power", "primary_muscles": ["full_body", "glutes"], "equipment": ["kettlebell"], "difficulty": "intermediate"},
    {"name": "Jumping Jacks", "category": "cardio", "primary_muscles": ["cardio", "heart"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Treadmill Run", "category": "cardio", "primary_muscles": ["heart", "quads"], "equipment": ["treadmill"], "difficulty": "beginner"},
    {"name": "Rowing Machine", "category": "endurance", "primary_muscles": ["heart", "back"], "equipment": ["rower"], "difficulty": "intermediate"},
    {"name": "Jump Rope", "category": "cardio", "primary_muscles": ["cardio", "calves"], "equipment": ["jump_rope"], "difficulty": "beginner"},
    # Flexibility
    {"name": "Hamstring Stretch", "category": "flexibility", "primary_muscles": ["hamstrings"], "equipment": ["none"], "difficulty": "beginner"},
    {"name": "Cat-Cow", "category": "mobility", "primary_muscles": ["back", "core"], "equipment": ["none"], "difficulty": "beginner"},
]

MEALS = [
    {"name": "Oatmeal with Berries", "meal_type": "breakfast", "cuisine": "western", "tags": ["vegetarian", "dairy"], "calories": 420, "protein": 15, "carbs": 70, "fat": 9},
    {"name": "Egg White Omelette", "meal_type": "breakfast", "cuisine": "western", "tags": ["eggs", "high_protein"], "calories": 520, "protein": 40, "carbs": 30, "fat": 22},
    {"name": "Tofu Scramble", "meal_type": "breakfast", "cuisine": "asian", "tags": ["vegan"], "calories": 610, "protein": 32, "carbs": 55, "fat": 25},
    {"name": "Pho Bo", "meal_type": "breakfast", "cuisine": "vietnamese", "tags": ["beef"], "calories": 700, "protein": 38, "carbs": 85, "fat": 18},
    {"name": "Grilled Chicken Rice Bowl", "meal_type": "lunch", "cuisine": "asian", "tags": ["chicken", "high_protein"], "calories": 850, "protein": 55, "carbs": 95, "fat": 22},
    {"name": "Quinoa Salad", "meal_type": "lunch", "cuisine": "mediterranean", "tags": ["vegan", "gluten_free"], "calories": 720, "protein": 25, "carbs": 100, "fat": 24},
    {"name": "Whole Wheat Pasta", "meal_type": "lunch", "cuisine": "italian", "tags": ["vegetarian", "wheat", "pasta"], "calories": 980, "protein": 35, "carbs": 150, "fat": 25},
    {"name": "Salmon with Sweet Potato", "meal_type": "dinner", "cuisine": "western", "tags": ["fish", "high_protein"], "calories": 760, "protein": 48, "carbs": 70, "fat": 28},
    {"name": "Lentil Curry", "meal_type": "dinner", "cuisine": "indian", "tags": ["vegan", "gluten_free"], "calories": 690, "protein": 30, "carbs": 95, "fat": 18},
    {"name": "Beef Stir Fry", "meal_type": "dinner", "cuisine": "asian", "tags": ["beef"], "calories": 820, "protein": 52, "carbs": 80, "fat": 30},
    {"name": "Greek Yogurt", "meal_type": "snack", "cuisine": "mediterranean", "tags": ["vegetarian", "dairy"], "calories": 200, "protein": 18, "carbs": 15, "fat": 6},
    {"name": "Apple and Almonds", "meal_type": "snack", "cuisine": "western", "tags": ["vegan", "gluten_free"], "calories": 250, "protein": 7, "carbs": 25, "fat": 14},
    {"name": "Protein Shake", "meal_type": "snack", "cuisine": "western", "tags": ["dairy", "high_protein"], "calories": 300, "protein": 30, "carbs": 25, "fat": 7},
]


def seed_catalog(db: Session) -> dict:
    """Insert the starter catalog entries that are not present yet (matched by name)"""
    existing_exercises = {name for (name,) in db.query(Exercise.name).all()}
    existing_meals = {name for (name,) in db.query(Meal.name).all()}

    new_exercises = [Exercise(**data) for data in EXERCISES if data["name"] not in existing_exercises]
    new_meals = [Meal(**data) for data in MEALS if data["name"] not in existing_meals]

    db.add_all(new_exercises + new_meals)
    db.commit()
    logger.info(f"🌱 Seeded {len(new_exercises)} exercises and {len(new_meals)} meals")
    return {"exercises": len(new_exercises), "meals": len(new_meals)}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        counts = seed_catalog(db)
        print(f"✅ Catalog ready: +{counts['exercises']} exercises, +{counts['meals']} meals")
    finally:
        db.close()
