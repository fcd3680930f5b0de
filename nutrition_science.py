"""
Ingredient roles and per-meal portion limits.

A role is derived from where an ingredient's calories come from, never from its
name or catalog category: protein and carbs count 4 kcal/g, fat 9 kcal/g.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from config import CONFIG
from ingredient_catalog import Ingredient, Macros

logger = logging.getLogger(__name__)

PORTION_LIMITS = CONFIG["portion_limits"]
ROLE_THRESHOLDS = CONFIG["role_thresholds"]
MIN_INGREDIENT_GRAMS = CONFIG["min_ingredient_grams"]


class IngredientRole(str, Enum):
    PROTEIN = "protein"
    CARB = "carb"
    FAT = "fat"
    SECONDARY = "secondary"


# Macros are corrected in this order.
MACRO_ADJUSTMENT_ORDER = ["protein", "carbs", "fat"]

MACRO_TO_ROLE = {
    "protein": IngredientRole.PROTEIN,
    "carbs": IngredientRole.CARB,
    "fat": IngredientRole.FAT,
}


def classify_role(macros: Macros) -> IngredientRole:
    """First match wins: protein >= 40% kcal, carbs >= 50%, fat >= 50%."""
    if macros.calories <= 0:
        return IngredientRole.SECONDARY

    protein_share = macros.protein * 4 / macros.calories
    carb_share = macros.carbs * 4 / macros.calories
    fat_share = macros.fat * 9 / macros.calories

    if protein_share >= ROLE_THRESHOLDS["protein"]:
        return IngredientRole.PROTEIN
    if carb_share >= ROLE_THRESHOLDS["carb"]:
        return IngredientRole.CARB
    if fat_share >= ROLE_THRESHOLDS["fat"]:
        return IngredientRole.FAT
    return IngredientRole.SECONDARY


def max_grams_per_meal(ingredient: Ingredient, role: IngredientRole,
                       bodyweight_kg: Optional[float] = None) -> float:
    """
    Cap for one meal. With a usable bodyweight the cap is the grams of
    ingredient carrying `macro_per_kg * bodyweight` of the limiting macro,
    bounded by the role's fallback; otherwise the fallback alone.
    Never below MIN_INGREDIENT_GRAMS.
    """
    limits = PORTION_LIMITS[role.value]
    fallback = float(limits["fallback_max_g"])

    if not bodyweight_kg or bodyweight_kg <= 0 or role == IngredientRole.SECONDARY:
        return fallback

    macro_content = ingredient.macros.get(limits["limit_macro"])
    if macro_content <= 0:
        return fallback

    max_macro_per_meal = bodyweight_kg * limits["macro_per_kg"]
    from_bodyweight = max_macro_per_meal * 100 / macro_content
    return max(float(MIN_INGREDIENT_GRAMS), min(from_bodyweight, fallback))


def preferred_range_grams(role: IngredientRole) -> Tuple[int, int]:
    return tuple(PORTION_LIMITS[role.value]["preferred_range_g"])


@dataclass(frozen=True)
class EnhancedIngredient:
    ingredient: Ingredient
    role: IngredientRole
    max_grams_per_meal: float
    preferred_range: Tuple[int, int]

    @property
    def id(self) -> str:
        return self.ingredient.id

    @property
    def name(self) -> str:
        return self.ingredient.name


def enhance_ingredient(ingredient: Ingredient, bodyweight_kg: Optional[float] = None) -> EnhancedIngredient:
    role = classify_role(ingredient.macros)
    return EnhancedIngredient(
        ingredient=ingredient,
        role=role,
        max_grams_per_meal=max_grams_per_meal(ingredient, role, bodyweight_kg),
        preferred_range=preferred_range_grams(role),
    )


def enhance_ingredients(ingredients: List[Ingredient],
                        bodyweight_kg: Optional[float] = None) -> List[EnhancedIngredient]:
    return [enhance_ingredient(ing, bodyweight_kg) for ing in ingredients]


# ---------------------- constraint tracking ----------------------

@dataclass(frozen=True)
class ConstraintHit:
    ingredient_id: str
    ingredient_name: str
    max_grams: float
    requested_grams: float


@dataclass
class ConvergenceConstraints:
    realism_constraint_hit: bool = False
    details: List[ConstraintHit] = field(default_factory=list)

    def record(self, ingredient_id: str, ingredient_name: str,
               max_grams: float, requested_grams: float) -> None:
        logger.debug("Portion cap hit: %s wanted %.0fg, max %.0fg",
                     ingredient_name, requested_grams, max_grams)
        self._add(ConstraintHit(ingredient_id, ingredient_name, max_grams, requested_grams))

    def merge(self, other: "ConvergenceConstraints") -> None:
        for hit in other.details:
            self._add(hit)

    def _add(self, hit: ConstraintHit) -> None:
        """One entry per ingredient, keeping its largest request."""
        self.realism_constraint_hit = True
        for n, seen in enumerate(self.details):
            if seen.ingredient_id == hit.ingredient_id:
                if hit.requested_grams > seen.requested_grams:
                    self.details[n] = hit
                return
        self.details.append(hit)


def clamp_grams(grams: float, enhanced: EnhancedIngredient) -> int:
    """Whole grams within [MIN_INGREDIENT_GRAMS, cap]."""
    upper = max(MIN_INGREDIENT_GRAMS, math.floor(enhanced.max_grams_per_meal))
    return int(min(max(MIN_INGREDIENT_GRAMS, round(grams)), upper))
