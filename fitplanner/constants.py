"""
Rule tables for the planner, the analyzer and the nutrition calculator.
Every number here is an empirical tuning parameter kept as-is.
"""

# ===== LEVELS =====

LEVELS = ["beginner", "intermediate", "advanced", "expert"]

LEVEL_ORDINAL = {
    "beginner": 1,
    "intermediate": 2,
    "advanced": 3,
    "expert": 4
}

# ===== FITNESS ANALYZER =====

STRENGTH_MUSCLES = {"chest", "back", "shoulders", "biceps", "triceps"}
CARDIO_MUSCLES = {"heart"}

# Upper bounds (exclusive) per level, anything above the last one is expert
STRENGTH_WEIGHT_BUCKETS = [(20, "beginner"), (40, "intermediate"), (60, "advanced")]
ENDURANCE_MINUTES_BUCKETS = [(10, "beginner"), (20, "intermediate"), (30, "advanced")]

# (upper bound on mean RPE, hours)
RECOVERY_HOURS_BY_RPE = [(5, 24), (7, 48), (9, 72)]
RECOVERY_HOURS_MAX = 96
RECOVERY_HOURS_DEFAULT = 48

CONSISTENCY_MIN_ENTRIES = 7
CONSISTENCY_DEFAULT = 0.3
CONSISTENCY_WINDOW_DAYS = 30

PROGRESSION_MIN_ENTRIES = 10
PROGRESSION_DEFAULT = 0.1
PROGRESSION_SAMPLE_SIZE = 10

RECOVERY_MIN_ENTRIES = 5

INJURY_RISK_WEIGHTS = {
    "recent_severe_pain": 0.3,
    "poor_form": 0.1,
    "high_rpe": 0.05,
    "injury_history": 0.2
}
INJURY_RECENT_DAYS = 7
HIGH_RPE_THRESHOLD = 8

DEFAULT_MOTIVATION = 5
PREFERRED_EXERCISES_LIMIT = 10
AVOID_ENJOYMENT_THRESHOLD = 3

# ===== WORKOUT PLAN SYNTHESIZER =====

FOCUS_ROTATION = ["upper_body", "lower_body", "core", "full_body", "cardio"]

GOAL_CATEGORIES = {
    "weight_loss": ["cardio", "hiit", "strength"],
    "muscle_gain": ["strength", "hypertrophy"],
    "endurance": ["cardio", "endurance"],
    "strength": ["strength", "power"],
    "flexibility": ["flexibility", "mobility"],
    "general_fitness": None  # None means the whole catalog
}

FOCUS_MUSCLES = {
    "upper_body": ["chest", "back", "shoulders", "biceps", "triceps"],
    "lower_body": ["quads", "hamstrings", "glutes", "calves"],
    "core": ["abs", "obliques", "core"],
    "full_body": ["full_body", "cardio"],
    "cardio": ["cardio", "heart"]
}

NO_EQUIPMENT = {"none", "bodyweight"}

BASE_SETS = {"beginner": 2, "intermediate": 3, "advanced": 4, "expert": 5}
MAX_SETS = 6

GOAL_REPS = {"muscle_gain": 8, "strength": 5, "endurance": 15}
DEFAULT_REPS = 8
# Order matters: the first goal found wins
GOAL_REPS_PRIORITY = ["muscle_gain", "strength", "endurance"]

BASE_WEIGHTS = {"beginner": 5, "intermediate": 15, "advanced": 30, "expert": 50}
BASE_REST_SECONDS = {"beginner": 60, "intermediate": 90, "advanced": 120, "expert": 180}
CARDIO_REST_SECONDS = 30

WEEKLY_PROGRESSION = 0.10
DAILY_PROGRESSION = 0.02
MAX_PROGRESSION_FACTOR = 1.5

MIN_EXERCISES_PER_DAY = 4
MAX_EXERCISES_PER_DAY = 8
EXERCISE_SELECTION_RATIO = 0.3
SECONDS_PER_REP = 3

DEFAULT_PLAN_WEEKS = 4
DEFAULT_WORKOUT_FREQUENCY = 3
DELOAD_WEEK = 4

PERSONALIZATION_FACTORS = [
    ("fitness_level", 0.30),
    ("goals", 0.25),
    ("equipment", 0.15),
    ("time_constraints", 0.10),
    ("injury_history", 0.10),
    ("preferences", 0.05),
    ("performance_history", 0.05)
]

EXPECTED_CALORIES_PLACEHOLDER = 300

GOAL_NAMES = {
    "weight_loss": "Weight Loss",
    "muscle_gain": "Muscle Gain",
    "endurance": "Endurance",
    "strength": "Strength",
    "flexibility": "Flexibility",
    "general_fitness": "General Fitness"
}

LEVEL_NAMES = {
    "beginner": "Foundation",
    "intermediate": "Intermediate",
    "advanced": "Advanced",
    "expert": "Expert"
}

# ===== NUTRITION CALCULATOR =====

ACTIVITY_MULTIPLIERS = {
    "sedentary": 1.2,
    "lightly_active": 1.375,
    "moderately_active": 1.55,
    "very_active": 1.725,
    "extremely_active": 1.9
}
DEFAULT_ACTIVITY_MULTIPLIER = 1.55

CALORIE_ADJUSTMENTS = {
    "weight_loss": -500,
    "muscle_gain": 300,
    "maintenance": 0,
    "performance": 200,
    "health": 0
}
MIN_TARGET_CALORIES = 1200

MACRO_RATIOS = {
    "weight_loss": {"protein": 0.30, "carbs": 0.40, "fat": 0.30},
    "muscle_gain": {"protein": 0.35, "carbs": 0.45, "fat": 0.20},
    "maintenance": {"protein": 0.25, "carbs": 0.50, "fat": 0.25},
    "performance": {"protein": 0.30, "carbs": 0.50, "fat": 0.20},
    "health": {"protein": 0.25, "carbs": 0.45, "fat": 0.30}
}

BODY_FAT_HIGH = 25
BODY_FAT_LOW = 15
MACRO_SHIFT = 0.05
PROTEIN_RATIO_CAP = 0.40
PROTEIN_RATIO_FLOOR = 0.25
CARBS_RATIO_CAP = 0.55
CARBS_RATIO_FLOOR = 0.35

KCAL_PER_GRAM = {"protein": 4, "carbs": 4, "fat": 9}

FIBER_PER_KG = 0.5
FIBER_BASE_GRAMS = 14
FIBER_PER_1000_KCAL = 14
WATER_ML_PER_KG = 35
WATER_GLASS_ML = 250

MEAL_DISTRIBUTION = {
    3: {"breakfast": 0.30, "lunch": 0.40, "dinner": 0.30},
    4: {"breakfast": 0.25, "lunch": 0.35, "dinner": 0.30, "snack": 0.10},
    5: {"breakfast": 0.20, "lunch": 0.30, "dinner": 0.30, "snack1": 0.10, "snack2": 0.10},
    6: {"breakfast": 0.20, "lunch": 0.25, "dinner": 0.25, "snack1": 0.10, "snack2": 0.10, "snack3": 0.10}
}
DEFAULT_MEALS_PER_DAY = 3

MEAL_SLOT_TYPES = {
    "breakfast": "breakfast",
    "lunch": "lunch",
    "dinner": "dinner",
    "snack": "snack",
    "snack1": "snack",
    "snack2": "snack",
    "snack3": "snack"
}

MEAL_SLOT_TIMES = {
    "breakfast": "07:00",
    "lunch": "12:00",
    "dinner": "19:00",
    "snack": "15:00",
    "snack1": "10:00",
    "snack2": "15:00",
    "snack3": "21:00"
}
DEFAULT_MEAL_TIME = "12:00"

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

MEAL_CALORIE_TOLERANCE = 0.20

DIETARY_EXCLUDED_TAGS = {
    "vegetarian": ["meat", "chicken", "beef", "pork", "fish"],
    "vegan": ["meat", "chicken", "beef", "pork", "fish", "dairy", "eggs"],
    "gluten_free": ["wheat", "gluten", "bread", "pasta"]
}

PROTEIN_SHORTFALL_RATIO = 0.9
MIN_WATER_LITERS = 2
MIN_MEALS_PER_DAY = 3

NUTRITION_RECOMMENDATIONS = {
    "protein": {
        "message": "Increase protein intake to reach your target",
        "suggestion": "Add lean meat, fish, eggs or tofu to your meals"
    },
    "hydration": {
        "message": "Drink more water",
        "suggestion": "Aim for at least 8 glasses of water a day"
    },
    "meal_frequency": {
        "message": "Eat more meals per day",
        "suggestion": "Split your intake into 4-5 smaller meals"
    }
}

GOAL_TIPS = {
    "weight_loss": [
        "Fill up on vegetables and protein to stay full longer",
        "Avoid sugary drinks and processed food",
        "Drink a glass of water before each meal"
    ],
    "muscle_gain": [
        "Eat protein within 30 minutes after training",
        "Raise carbohydrates to fuel your sessions",
        "Do not skip breakfast"
    ]
}

INSIGHT_PERIOD_DAYS = {"week": 7, "month": 30}
TREND_THRESHOLD = 0.05
INSIGHT_CALORIE_TOLERANCE = 0.10

# ===== ADAPTIVE LEARNING =====

DEFAULT_LEARNING_RATE = 0.1
PLATEAU_SESSIONS = 3
TRACKED_CATEGORIES = ["strength", "cardio", "flexibility", "balance"]

# Category grouping used for preference/proficiency scores
CATEGORY_GROUPS = {
    "strength": "strength",
    "hypertrophy": "strength",
    "power": "strength",
    "cardio": "cardio",
    "hiit": "cardio",
    "endurance": "cardio",
    "flexibility": "flexibility",
    "mobility": "flexibility",
    "balance": "balance"
}

TIME_OF_DAY_BOUNDS = [(12, "morning"), (17, "afternoon")]
PREFERRED_DAYS_LIMIT = 3

# Candidates for the next workout, in tie-break order
NEXT_WORKOUT_CATEGORIES = ["strength", "cardio", "flexibility"]
RECOMMENDED_EXERCISES_LIMIT = 5

INTENSITY_BY_RECOVERY = {24: "high", 48: "moderate", 72: "moderate", 96: "low"}
REST_INJURY_RISK = 0.5

INJURY_PREVENTION = [
    "Warm up thoroughly before loading the movement",
    "Reduce the load until the exercise is pain free"
]

MEAL_TIME_WINDOW_MINUTES = 30
NUTRITION_LOG_WINDOW = 30

# Record key per adaptive list, lists not named here are merged as a union
LIST_MERGE_KEYS = {
    "favorite_exercises": "exercise_id",
    "avoided_exercises": "exercise_id",
    "strength_gains": "exercise_id",
    "endurance_gains": "exercise_id",
    "plateaus": "history_id",
    "injuries": "history_id",
    "meal_timing": "meal_type"
}


def level_ordinal(level: str) -> int:
    """Ordinal of a level name, unknown values count as beginner"""
    return LEVEL_ORDINAL.get(level, 1)


def bucket_level(value: float, buckets: list) -> str:
    """Map a non-negative value onto a level with exclusive upper bounds"""
    for upper, level in buckets:
        if value < upper:
            return level
    return "expert"
