# ========================== CONFIGURATION ==========================

CONFIG = {
    # --- Default Daily Targets (used until a client sets their own) ---
    "default_targets": {
        "calories": 2200,
        "protein": 165,
        "carbs": 220,
        "fat": 73,
    },

    # --- Meal Structure ---
    "meal_types": ["breakfast", "lunch", "dinner", "snack"],
    # share of the day's calories per meal slot (sums to 1.0)
    "meal_calorie_split": {
        "breakfast": 0.25,
        "lunch": 0.35,
        "dinner": 0.30,
        "snack": 0.10,
    },
    "day_names": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],

    # --- Flexibility Controls ---
    "macro_tolerance": {
        "calories": 0.05,  # ±5%
        "protein": 0.05,   # ±5%
        "carbs": 0.08,     # ±8%
        "fat": 0.08,       # ±8%
    },
    "max_convergence_iterations": 5,
    "min_ingredient_grams": 10,
    "min_adjustment_grams": 5,     # smaller changes are skipped
    "scale_bounds": (0.5, 2.5),    # clamp for the per-meal scale factor

    # --- Ingredient Roles (share of calories) ---
    "role_thresholds": {
        "protein": 0.40,
        "carb": 0.50,
        "fat": 0.50,
    },

    # --- Portion Limits per Meal ---
    # macro_per_kg: grams of `limit_macro` per kg bodyweight allowed in one meal
    "portion_limits": {
        "protein": {"fallback_max_g": 225, "preferred_range_g": (80, 180),
                    "macro_per_kg": 0.4, "limit_macro": "protein"},
        "carb": {"fallback_max_g": 400, "preferred_range_g": (100, 300),
                 "macro_per_kg": 1.75, "limit_macro": "carbs"},
        "fat": {"fallback_max_g": 70, "preferred_range_g": (15, 50),
                "macro_per_kg": 0.325, "limit_macro": "fat"},
        "secondary": {"fallback_max_g": 300, "preferred_range_g": (30, 200),
                      "macro_per_kg": 0.0, "limit_macro": "protein"},
    },

    # --- Ingredient Selection Minimums ---
    "min_selected_foods": {
        "daily": 3,
        "weekly": 5,
    },

    # --- Required columns in ingredients.csv ---
    "required_columns": [
        "id", "name", "category", "protein", "carbs", "fat", "calories",
        "allowed_meals", "typical_serving_g",
    ],
}
# ===================================================================
