"""
Meal composition: pick a balanced set of the client's foods for one meal slot,
scale it to the slot's calorie share, and render the final recipe text.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from config import CONFIG
from ingredient_catalog import Ingredient, Macros, macros_for_grams
from nutrition_science import EnhancedIngredient, clamp_grams, enhance_ingredient

logger = logging.getLogger(__name__)

MEAL_TYPES = CONFIG["meal_types"]
MEAL_CALORIE_SPLIT = CONFIG["meal_calorie_split"]
SCALE_MIN, SCALE_MAX = CONFIG["scale_bounds"]

# ====================================================================


class PlanningError(ValueError):
    pass


class InsufficientIngredients(PlanningError):
    """No selected food is allowed in the meal slot, or no protein source."""


class UnbalancedSelection(InsufficientIngredients):
    """Eligible foods exist but no balanced set can be built from them."""


@dataclass(frozen=True)
class PlannedIngredient:
    ingredient: EnhancedIngredient
    grams: int

    @property
    def id(self) -> str:
        return self.ingredient.id

    @property
    def name(self) -> str:
        return self.ingredient.name

    @property
    def category(self) -> str:
        return self.ingredient.ingredient.category

    @property
    def macros(self) -> Macros:
        return macros_for_grams(self.ingredient.ingredient, self.grams)


@dataclass
class MealPlanEntry:
    meal_type: str
    ingredients: Tuple[PlannedIngredient, ...] = ()
    macros: Macros = field(default_factory=Macros)
    recipe_name: str = ""
    recipe_text: str = ""

    def __post_init__(self):
        self.ingredients = tuple(self.ingredients)

    @property
    def is_empty(self) -> bool:
        return not self.ingredients

    def clone(self) -> "MealPlanEntry":
        # ingredients is a tuple of frozen items
        return MealPlanEntry(
            meal_type=self.meal_type,
            ingredients=self.ingredients,
            macros=self.macros,
            recipe_name=self.recipe_name,
            recipe_text=self.recipe_text,
        )


def meal_macros(ingredients: Sequence[PlannedIngredient]) -> Macros:
    total = Macros()
    for item in ingredients:
        total = total + item.macros
    return total


def final_meal_macros(ingredients: Sequence[PlannedIngredient]) -> Macros:
    """Whole-number macros, each ingredient rounded before summing."""
    total = Macros()
    for item in ingredients:
        total = total + item.macros.rounded()
    return total


def placeholder_meal(meal_type: str, reason: str = "") -> MealPlanEntry:
    text = (f"No suitable ingredients available for {meal_type}. "
            f"Please add more {meal_type}-appropriate foods.")
    if reason:
        text = f"{text} ({reason})"
    return MealPlanEntry(meal_type=meal_type, recipe_text=text)


# ------------------------------ composer ------------------------------

def suitable_ingredients(pool: Sequence[Ingredient], meal_type: str) -> List[Ingredient]:
    return [ing for ing in pool if ing.allows(meal_type)]


def _by_category(candidates: Sequence[Ingredient], category: str) -> List[Ingredient]:
    return [ing for ing in candidates if ing.category == category]


def select_balanced_ingredients(suitable: Sequence[Ingredient], meal_type: str,
                                rng: random.Random) -> List[Ingredient]:
    selected = []

    proteins = _by_category(suitable, "protein")
    if proteins:
        selected.append(rng.choice(proteins))

    if meal_type != "snack":
        carbs = _by_category(suitable, "carbohydrate")
        if carbs:
            selected.append(rng.choice(carbs))

    if meal_type in ("lunch", "dinner"):
        vegetables = _by_category(suitable, "vegetable")
        if vegetables:
            selected.extend(rng.sample(vegetables, min(2, len(vegetables))))

    if meal_type in ("breakfast", "snack"):
        fruits = _by_category(suitable, "fruit")
        if fruits:
            selected.append(rng.choice(fruits))

    fats = _by_category(suitable, "fat")
    if fats:
        selected.append(rng.choice(fats))

    if meal_type in ("lunch", "dinner"):
        misc = _by_category(suitable, "misc")
        if misc:
            selected.append(rng.choice(misc))

    return selected


def compose_meal(pool: Sequence[Ingredient], meal_type: str,
                 rng: random.Random) -> List[Ingredient]:
    suitable = suitable_ingredients(pool, meal_type)
    if not suitable:
        raise InsufficientIngredients(f"No suitable ingredients selected for {meal_type}")

    selected = select_balanced_ingredients(suitable, meal_type, rng)
    if not selected:
        raise UnbalancedSelection(f"Could not build a balanced {meal_type}")
    if not any(ing.category == "protein" for ing in selected):
        raise UnbalancedSelection(f"No protein source available for {meal_type}")
    return selected


# ------------------------------ scaler ------------------------------

def meal_calorie_target(daily_calories: float, meal_type: str) -> float:
    return daily_calories * MEAL_CALORIE_SPLIT[meal_type]


def scale_meal(ingredients: Sequence[Ingredient], meal_type: str, calorie_target: float,
               bodyweight_kg: Optional[float] = None) -> MealPlanEntry:
    """
    Multiply every typical serving by one factor so the meal lands near
    `calorie_target`. The factor is clamped to [0.5, 2.5]; grams are then
    rounded and kept inside each ingredient's portion bounds.
    """
    baseline = Macros()
    for ing in ingredients:
        baseline = baseline + macros_for_grams(ing, ing.typical_serving_g)

    scale = calorie_target / baseline.calories if baseline.calories > 0 else 1.0
    scale = max(SCALE_MIN, min(SCALE_MAX, scale))
    logger.debug("%s: baseline %.0f kcal, target %.0f kcal, scale %.2f",
                 meal_type, baseline.calories, calorie_target, scale)

    planned = []
    for ing in ingredients:
        enhanced = enhance_ingredient(ing, bodyweight_kg)
        planned.append(PlannedIngredient(enhanced, clamp_grams(ing.typical_serving_g * scale, enhanced)))

    return MealPlanEntry(meal_type=meal_type, ingredients=planned, macros=meal_macros(planned))


def build_meal(pool: Sequence[Ingredient], meal_type: str, daily_calories: float,
               rng: random.Random, bodyweight_kg: Optional[float] = None) -> MealPlanEntry:
    chosen = compose_meal(pool, meal_type, rng)
    return scale_meal(chosen, meal_type, meal_calorie_target(daily_calories, meal_type), bodyweight_kg)


# ------------------------------ recipe text ------------------------------

def _first_word(items: Sequence[PlannedIngredient], category: str) -> str:
    for item in items:
        if item.category == category:
            return item.name.split(" ")[0]
    return ""


def recipe_name(ingredients: Sequence[PlannedIngredient], meal_type: str) -> str:
    protein = _first_word(ingredients, "protein")
    carb = _first_word(ingredients, "carbohydrate")
    veg = _first_word(ingredients, "vegetable")
    fruit = _first_word(ingredients, "fruit")

    if meal_type == "breakfast":
        if protein and carb:
            return f"{protein} Power Bowl with {carb}"
        if protein and fruit:
            return f"Energizing {protein} & {fruit}"
        if protein:
            return f"{protein} Protein Breakfast"
        return "Balanced Breakfast"
    if meal_type == "lunch":
        if protein and veg:
            return f"Grilled {protein} with {veg}"
        if protein and carb:
            return f"{protein} & {carb} Plate"
        if protein:
            return f"{protein} Lunch"
        return "Nourishing Lunch"
    if meal_type == "dinner":
        if protein and veg:
            return f"Roasted {protein} with {veg}"
        if protein and carb:
            return f"Savory {protein} and {carb}"
        if protein:
            return f"{protein} Dinner"
        return "Complete Dinner"
    if protein and fruit:
        return f"{protein} & {fruit} Snack"
    if protein:
        return "Protein Snack"
    return "Energy Snack"


def _amounts(items: Sequence[PlannedIngredient]) -> str:
    return ", ".join(f"{i.grams}g {i.name.lower()}" for i in items)


def recipe_instructions(ingredients: Sequence[PlannedIngredient], meal_type: str) -> List[str]:
    protein = next((i for i in ingredients if i.category == "protein"), None)
    carb = next((i for i in ingredients if i.category == "carbohydrate"), None)
    vegetables = [i for i in ingredients if i.category == "vegetable"]
    fats = [i for i in ingredients if i.category == "fat"]
    fruits = [i for i in ingredients if i.category == "fruit"]

    steps = []
    if meal_type == "breakfast":
        steps.append("Gather and weigh all ingredients to the listed amounts.")
        if carb:
            steps.append(f"Prepare {carb.grams}g {carb.name.lower()} as directed.")
        if protein:
            steps.append(f"Prepare {protein.grams}g {protein.name.lower()}.")
        if fruits:
            steps.append(f"Wash and slice the fruit: {_amounts(fruits)}.")
        if fats:
            steps.append(f"Add {_amounts(fats)}.")
        steps.append("Combine everything in a bowl and serve.")
    elif meal_type == "snack":
        steps.append("Weigh the ingredients to the listed amounts.")
        if protein:
            steps.append(f"Prepare {protein.grams}g {protein.name.lower()}.")
        if fruits or fats:
            steps.append(f"Add {_amounts(fruits + fats)}.")
        steps.append("Mix and eat fresh, or refrigerate for later.")
    else:
        steps.append("Weigh and prep all ingredients before cooking.")
        if vegetables:
            names = ", ".join(v.name.lower() for v in vegetables)
            steps.append(f"Wash and cut the vegetables ({names}) into even pieces.")
        if protein:
            steps.append(f"Season {protein.grams}g {protein.name.lower()} and cook over medium-high heat until done.")
        if carb:
            steps.append(f"Meanwhile, cook {carb.grams}g {carb.name.lower()} according to the package.")
        if vegetables:
            total_veg = sum(v.grams for v in vegetables)
            steps.append(f"Saute the vegetables ({total_veg}g total) for 5-7 minutes until tender-crisp.")
        if fats:
            steps.append(f"Finish with {fats[0].grams}g {fats[0].name.lower()}.")
        steps.append("Plate the protein with the sides and serve hot.")

    return steps[:6]


def recipe_text(ingredients: Sequence[PlannedIngredient], meal_type: str,
                macros: Optional[Macros] = None) -> Tuple[str, str]:
    """Returns (name, text) built from the final grams."""
    name = recipe_name(ingredients, meal_type)
    macros = macros if macros is not None else final_meal_macros(ingredients)
    lines = [
        f"**{name}**",
        "",
        f"Macros: {int(macros.calories)} kcal | P: {int(macros.protein)}g | "
        f"C: {int(macros.carbs)}g | F: {int(macros.fat)}g",
        "",
        "**Ingredients:**",
    ]
    lines.extend(f"• {i.name}: {i.grams}g" for i in ingredients)
    lines.extend(["", "**Preparation:**"])
    lines.extend(f"{n}. {step}" for n, step in enumerate(recipe_instructions(ingredients, meal_type), 1))
    return name, "\n".join(lines)


def finalize_meal(meal: MealPlanEntry) -> MealPlanEntry:
    """Recompute macros from the final grams and render the text once."""
    if meal.is_empty:
        return MealPlanEntry(meal_type=meal.meal_type, recipe_text=meal.recipe_text)
    macros = final_meal_macros(meal.ingredients)
    name, text = recipe_text(meal.ingredients, meal.meal_type, macros)
    return MealPlanEntry(
        meal_type=meal.meal_type,
        ingredients=meal.ingredients,
        macros=macros,
        recipe_name=name,
        recipe_text=text,
    )
