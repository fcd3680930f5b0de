import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from config import CONFIG
from ingredient_catalog import Ingredient, Macros, default_catalog, resolve_selection
from meal_composer import MEAL_TYPES, PlanningError, suitable_ingredients
from meal_optimizer import DailyPlanResult, MacroTargets, generate_day_plan, macro_variance

logger = logging.getLogger(__name__)

DAY_NAMES = CONFIG["day_names"]
MIN_SELECTED_FOODS = CONFIG["min_selected_foods"]

# ====================================================================


class NoPlannableMeals(PlanningError):
    """None of the selected foods can fill any meal slot."""


@dataclass
class DayEntry:
    day_number: int
    day_name: str
    plan: DailyPlanResult


@dataclass
class WeeklyPlanResult:
    days: List[DayEntry]
    weekly_total_macros: Macros
    weekly_target_macros: MacroTargets
    weekly_variance: Dict[str, float]


@dataclass(frozen=True)
class GroceryItem:
    ingredient_id: str
    ingredient: str
    total_amount: float
    category: str
    unit: str = "g"


@dataclass(frozen=True)
class SelectionValidation:
    valid: bool
    liked_count: int
    minimum: int
    shortfall: int
    message: Optional[str] = None


def validate_selection(selected_foods: Sequence[str], plan_type: str = "weekly") -> SelectionValidation:
    """Advisory check on how many foods were picked ("daily" needs 3, "weekly" 5)."""
    liked = len(set(selected_foods))
    minimum = MIN_SELECTED_FOODS[plan_type]
    shortfall = max(0, minimum - liked)
    message = None
    if shortfall:
        message = (f"Select at least {minimum} foods for a {plan_type} plan "
                   f"({shortfall} more needed).")
    return SelectionValidation(shortfall == 0, liked, minimum, shortfall, message)


def ensure_plannable(selected_foods: Iterable[str], catalog: Dict[str, Ingredient]) -> None:
    """Raise NoPlannableMeals if no meal slot has a protein source among the selection."""
    pool = resolve_selection(selected_foods, catalog)
    for meal_type in MEAL_TYPES:
        if any(ing.category == "protein" for ing in suitable_ingredients(pool, meal_type)):
            return
    raise NoPlannableMeals("None of the selected foods can build a meal; add a protein source.")


def shuffle_for_day(selected_foods: Sequence[str], day_index: int) -> List[str]:
    """Deterministic per-day reordering: same foods and day always give the same order."""
    shuffled = list(selected_foods)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(((day_index + 1) * (i + 1) * 0.618) % (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def generate_week_plan(selected_foods: Sequence[str], targets: MacroTargets,
                       bodyweight_kg: Optional[float] = None, seed: int = 0,
                       catalog: Optional[Dict[str, Ingredient]] = None) -> WeeklyPlanResult:
    catalog = catalog if catalog is not None else default_catalog()
    selected_foods = list(selected_foods)
    ensure_plannable(selected_foods, catalog)

    days = []
    weekly_total = Macros()
    for day_index, day_name in enumerate(DAY_NAMES):
        foods = shuffle_for_day(selected_foods, day_index)
        plan = generate_day_plan(foods, targets, bodyweight_kg, seed=seed + day_index, catalog=catalog)
        days.append(DayEntry(day_number=day_index + 1, day_name=day_name, plan=plan))
        weekly_total = weekly_total + plan.total_macros

    weekly_target = targets.times(len(DAY_NAMES))
    converged_days = sum(1 for d in days if d.plan.convergence_info.converged)
    logger.info("Week generated: %d/%d days converged", converged_days, len(days))

    return WeeklyPlanResult(
        days=days,
        weekly_total_macros=weekly_total,
        weekly_target_macros=weekly_target,
        weekly_variance=macro_variance(weekly_total, weekly_target),
    )


# ------------------------------ groceries ------------------------------

def build_grocery_list(days: Iterable[DailyPlanResult]) -> List[GroceryItem]:
    """Total grams per ingredient id over every meal of every day."""
    totals: Dict[str, float] = {}
    names: Dict[str, str] = {}
    categories: Dict[str, str] = {}
    for day in days:
        for meal_type in MEAL_TYPES:
            meal = day.meals.get(meal_type)
            if meal is None or meal.is_empty:
                continue
            for item in meal.ingredients:
                if item.id not in totals:
                    totals[item.id] = 0
                    names[item.id] = item.name
                    categories[item.id] = item.category
                totals[item.id] += item.grams

    items = [GroceryItem(ingredient_id=i, ingredient=names[i], total_amount=totals[i], category=categories[i])
             for i in totals]
    return sorted(items, key=lambda g: (g.category, g.ingredient, g.ingredient_id))


def weekly_grocery_list(week: WeeklyPlanResult) -> List[GroceryItem]:
    return build_grocery_list(d.plan for d in week.days)


def grocery_frame(items: List[GroceryItem]) -> pd.DataFrame:
    columns = ["ingredient_id", "ingredient", "total_amount", "unit", "category"]
    return pd.DataFrame([{c: getattr(g, c) for c in columns} for g in items], columns=columns)


# ------------------------------ formatting ------------------------------

def format_week_summary(week: WeeklyPlanResult) -> str:
    parts = ["✅ Weekly Meal Plan"]
    for d in week.days:
        m = d.plan.total_macros
        flag = "✅" if d.plan.convergence_info.converged else "⚠️"
        parts.append(f"{flag} Day {d.day_number} ({d.day_name}): "
                     f"{int(m.protein)}P {int(m.carbs)}C {int(m.fat)}F, {int(m.calories)} kcal")
        for t in MEAL_TYPES:
            meal = d.plan.meals[t]
            parts.append(f"    {t.title():<9}: {meal.recipe_name if not meal.is_empty else '(no meal)'}")
    tot = week.weekly_total_macros
    var = week.weekly_variance
    parts.append(f"Week total: {int(tot.protein)}P {int(tot.carbs)}C {int(tot.fat)}F, {int(tot.calories)} kcal")
    parts.append(f"Variance: {var['protein']:+.0f}P {var['carbs']:+.0f}C {var['fat']:+.0f}F, {var['calories']:+.0f} kcal")
    return "\n".join(parts)


def format_grocery_list(items: List[GroceryItem]) -> str:
    if not items:
        return "🛒 Grocery list is empty."
    df = grocery_frame(items)
    parts = ["🛒 Grocery List"]
    for category, group in df.groupby("category", sort=True):
        parts.append(f"{category.title()}:")
        for row in group.to_dict("records"):
            parts.append(f"  • {row['ingredient']}: {row['total_amount']:g}{row['unit']}")
    return "\n".join(parts)
