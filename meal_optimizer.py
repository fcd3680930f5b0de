import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from config import CONFIG
from ingredient_catalog import Ingredient, Macros, default_catalog, resolve_selection
from meal_composer import (
    MEAL_TYPES, InsufficientIngredients, MealPlanEntry, PlannedIngredient,
    build_meal, final_meal_macros, finalize_meal, placeholder_meal, suitable_ingredients,
)
from nutrition_science import (
    MACRO_ADJUSTMENT_ORDER, MACRO_TO_ROLE, ConstraintHit, ConvergenceConstraints, clamp_grams,
)

logger = logging.getLogger(__name__)

MACRO_TOLERANCES = CONFIG["macro_tolerance"]
MAX_CONVERGENCE_ITERATIONS = CONFIG["max_convergence_iterations"]
MIN_ADJUSTMENT_GRAMS = CONFIG["min_adjustment_grams"]
CHECKED_MACROS = ["calories", "protein", "carbs", "fat"]

DayPlan = Dict[str, MealPlanEntry]

# ====================================================================


@dataclass(frozen=True)
class MacroTargets:
    calories: float
    protein: float
    carbs: float
    fat: float
    fiber: Optional[float] = None

    def get(self, macro: str) -> float:
        return getattr(self, macro)

    def times(self, n: int) -> "MacroTargets":
        return MacroTargets(
            calories=self.calories * n,
            protein=self.protein * n,
            carbs=self.carbs * n,
            fat=self.fat * n,
            fiber=self.fiber * n if self.fiber is not None else None,
        )


def macro_variance(actual: Macros, target: MacroTargets) -> Dict[str, float]:
    return {m: actual.get(m) - target.get(m) for m in CHECKED_MACROS}


# ------------------------------ tolerance ------------------------------

@dataclass(frozen=True)
class ToleranceCheck:
    within_tolerance: bool
    out_of_tolerance: Dict[str, bool]
    percentage_variance: Dict[str, float]

    @property
    def variance_score(self) -> float:
        return sum(abs(v) for v in self.percentage_variance.values())


def check_macro_tolerance(actual: Macros, target: MacroTargets) -> ToleranceCheck:
    percentage_variance = {}
    for m in CHECKED_MACROS:
        goal = target.get(m)
        percentage_variance[m] = (actual.get(m) - goal) / goal if goal > 0 else 0.0

    out_of_tolerance = {m: abs(percentage_variance[m]) > MACRO_TOLERANCES[m] for m in CHECKED_MACROS}
    return ToleranceCheck(
        within_tolerance=not any(out_of_tolerance.values()),
        out_of_tolerance=out_of_tolerance,
        percentage_variance=percentage_variance,
    )


# ------------------------------ adjustment ------------------------------

def clone_plan(plan: DayPlan) -> DayPlan:
    return {meal_type: meal.clone() for meal_type, meal in plan.items()}


def plan_macros(plan: DayPlan) -> Macros:
    total = Macros()
    for meal in plan.values():
        total = total + meal.macros
    return total


def final_plan_macros(plan: DayPlan) -> Macros:
    """Day totals as they will be reported: whole-number macros per ingredient."""
    total = Macros()
    for meal in plan.values():
        total = total + final_meal_macros(meal.ingredients)
    return total


def _set_grams(meal: MealPlanEntry, index: int, grams: int) -> Macros:
    """Replace one ingredient's grams; returns the macro change."""
    item = meal.ingredients[index]
    updated = PlannedIngredient(item.ingredient, grams)
    delta = updated.macros - item.macros
    meal.ingredients = meal.ingredients[:index] + (updated,) + meal.ingredients[index + 1:]
    meal.macros = meal.macros + delta
    return delta


def _macro_per_gram(item: PlannedIngredient, macro: str) -> float:
    return item.ingredient.ingredient.macros.get(macro) / 100


def adjust_meal_ingredients(plan: DayPlan, total: Macros, target: MacroTargets,
                            check: ToleranceCheck) -> Tuple[DayPlan, Macros, ConvergenceConstraints]:
    """
    One correction pass. Out-of-tolerance macros are handled in the fixed
    order protein -> carbs -> fat. In each meal the first ingredient whose
    role matches the macro is resized; if it hits its portion cap, the rest
    of the deficit goes to the other same-role ingredients of that meal.
    Works on a copy of `plan`.
    """
    plan = clone_plan(plan)
    constraints = ConvergenceConstraints()

    for macro in MACRO_ADJUSTMENT_ORDER:
        if not check.out_of_tolerance[macro]:
            continue
        role = MACRO_TO_ROLE[macro]
        band = target.get(macro) * MACRO_TOLERANCES[macro]
        remaining = target.get(macro) - total.get(macro)

        for meal_type in MEAL_TYPES:
            meal = plan.get(meal_type)
            if meal is None or meal.is_empty:
                continue
            matching = [i for i, item in enumerate(meal.ingredients)
                        if item.ingredient.role == role and _macro_per_gram(item, macro) > 0]
            if not matching:
                continue

            primary, others = matching[0], matching[1:]
            item = meal.ingredients[primary]
            per_gram = _macro_per_gram(item, macro)
            requested = item.grams + remaining / per_gram
            capped = requested > item.ingredient.max_grams_per_meal
            if capped:
                constraints.record(item.id, item.name, item.ingredient.max_grams_per_meal, requested)

            change = clamp_grams(requested, item.ingredient) - item.grams
            if abs(change) >= MIN_ADJUSTMENT_GRAMS:
                total = total + _set_grams(meal, primary, item.grams + change)
                remaining -= per_gram * change

            if capped and abs(remaining) >= band:
                for i in others:
                    item = meal.ingredients[i]
                    cap = math.floor(item.ingredient.max_grams_per_meal)
                    if item.grams >= cap:
                        continue
                    per_gram = _macro_per_gram(item, macro)
                    add = round(min(cap - item.grams, max(0.0, remaining / per_gram)))
                    if add < MIN_ADJUSTMENT_GRAMS:
                        continue
                    total = total + _set_grams(meal, i, item.grams + add)
                    remaining -= per_gram * add
                    if abs(remaining) < band:
                        break

            if abs(remaining) < band:
                break

    return plan, total, constraints


class BestResultTracker:
    """Keeps the lowest-variance plan seen before each adjustment pass."""

    def __init__(self):
        self.best_score = math.inf
        self.plan: Optional[DayPlan] = None
        self.total: Optional[Macros] = None

    def observe(self, plan: DayPlan, total: Macros, score: float) -> bool:
        if score < self.best_score:
            self.best_score = score
            self.plan = clone_plan(plan)
            self.total = total
            return True
        return False

    def pick(self, plan: DayPlan, total: Macros, score: float) -> Tuple[DayPlan, Macros]:
        if self.plan is not None and score > self.best_score:
            return self.plan, self.total
        return plan, total


# ------------------------------ day orchestration ------------------------------

@dataclass
class ConvergenceInfo:
    converged: bool
    iterations: int
    realism_constraint_hit: bool = False
    constraints_hit_details: List[ConstraintHit] = field(default_factory=list)
    warning_message: Optional[str] = None


@dataclass
class DailyPlanResult:
    meals: DayPlan
    total_macros: Macros
    target_macros: MacroTargets
    variance: Dict[str, float]
    convergence_info: ConvergenceInfo


def converge(plan: DayPlan, targets: MacroTargets) -> Tuple[DayPlan, Macros, ConvergenceInfo]:
    """
    Tolerance is always judged on the totals the finished day will report,
    so `converged` holds for the returned plan as rounded for display.
    """
    total = final_plan_macros(plan)
    iteration = 0
    converged = False
    tracker = BestResultTracker()
    constraints = ConvergenceConstraints()

    while iteration < MAX_CONVERGENCE_ITERATIONS:
        check = check_macro_tolerance(total, targets)
        if check.within_tolerance:
            converged = True
            break

        tracker.observe(plan, total, check.variance_score)
        plan, _, hits = adjust_meal_ingredients(plan, total, targets, check)
        total = final_plan_macros(plan)
        constraints.merge(hits)
        iteration += 1
        logger.debug("Iteration %d: %s", iteration,
                     {m: round(v * 100, 1) for m, v in check.percentage_variance.items()})

    final_check = check_macro_tolerance(total, targets)
    if final_check.within_tolerance:
        converged = True
    else:
        plan, total = tracker.pick(plan, total, final_check.variance_score)

    warning = None
    if not converged:
        if constraints.realism_constraint_hit:
            warning = (f"Convergence limited by portion caps after {iteration} iterations. "
                       "Some ingredients reached their maximum amounts.")
        else:
            warning = (f"Partial convergence after {iteration} iterations. "
                       "A minor manual adjustment may be needed.")

    info = ConvergenceInfo(
        converged=converged,
        iterations=iteration,
        realism_constraint_hit=constraints.realism_constraint_hit,
        constraints_hit_details=list(constraints.details),
        warning_message=warning,
    )
    return plan, total, info


def compose_day(pool: List[Ingredient], targets: MacroTargets, rng: random.Random,
                bodyweight_kg: Optional[float] = None) -> DayPlan:
    plan = {}
    for meal_type in MEAL_TYPES:
        try:
            plan[meal_type] = build_meal(pool, meal_type, targets.calories, rng, bodyweight_kg)
        except InsufficientIngredients as e:
            logger.warning("Could not generate %s: %s", meal_type, e)
            plan[meal_type] = placeholder_meal(meal_type, str(e))
    return plan


def generate_day_plan(selected_foods: Iterable[str], targets: MacroTargets,
                      bodyweight_kg: Optional[float] = None, seed: int = 0,
                      catalog: Optional[Dict[str, Ingredient]] = None) -> DailyPlanResult:
    """
    Build breakfast, lunch, dinner and snack from the selected foods and
    correct portions until the day's macros sit within tolerance (at most
    five passes). Meal text and totals are computed once, from final grams.
    """
    catalog = catalog if catalog is not None else default_catalog()
    pool = resolve_selection(selected_foods, catalog)
    rng = random.Random(seed)

    plan = compose_day(pool, targets, rng, bodyweight_kg)
    plan, _, info = converge(plan, targets)

    meals = {meal_type: finalize_meal(plan[meal_type]) for meal_type in MEAL_TYPES}
    total = plan_macros(meals)

    if info.converged:
        logger.info("Day converged after %d iterations", info.iterations)
    else:
        logger.info("Day did not converge: %s", info.warning_message)

    return DailyPlanResult(
        meals=meals,
        total_macros=total,
        target_macros=targets,
        variance=macro_variance(total, targets),
        convergence_info=info,
    )


def check_day_feasibility(selected_foods: Iterable[str],
                          catalog: Optional[Dict[str, Ingredient]] = None) -> Tuple[bool, List[str]]:
    """A slot is missing when it has no protein candidate or fewer than two foods."""
    catalog = catalog if catalog is not None else default_catalog()
    pool = resolve_selection(selected_foods, catalog)
    missing = []
    for meal_type in MEAL_TYPES:
        suitable = suitable_ingredients(pool, meal_type)
        has_protein = any(ing.category == "protein" for ing in suitable)
        if not has_protein or len(suitable) < 2:
            missing.append(meal_type)
    return not missing, missing


def format_day_plan(result: DailyPlanResult, title: str = "✅ Optimized Daily Plan") -> str:
    parts = [title]
    for t in MEAL_TYPES:
        meal = result.meals[t]
        if meal.is_empty:
            parts.append(f"{t.title():<9}: (no meal) {meal.recipe_text}")
            continue
        m = meal.macros
        parts.append(f"{t.title():<9}: {meal.recipe_name}  ({int(m.protein)}P {int(m.carbs)}C {int(m.fat)}F, {int(m.calories)} kcal)")
        for item in meal.ingredients:
            parts.append(f"    • {item.name}: {item.grams}g")
    tot = result.total_macros
    tgt = result.target_macros
    parts.append(f"Total: {int(tot.protein)}P {int(tot.carbs)}C {int(tot.fat)}F, {int(tot.calories)} kcal "
                 f"(target {tgt.protein:g}P {tgt.carbs:g}C {tgt.fat:g}F, {tgt.calories:g} kcal)")
    if result.convergence_info.warning_message:
        parts.append(f"⚠️ {result.convergence_info.warning_message}")
    return "\n".join(parts)
