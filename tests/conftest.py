import pytest

from ingredient_catalog import Ingredient, Macros, default_catalog
from meal_optimizer import MacroTargets

ALL_MEALS = ("breakfast", "lunch", "dinner", "snack")


def make_ingredient(id, category, protein, carbs, fat, calories, serving, meals=ALL_MEALS, name=None):
    return Ingredient(
        id=id,
        name=name or id.replace("-", " ").title(),
        category=category,
        macros=Macros(calories=calories, protein=protein, carbs=carbs, fat=fat),
        allowed_meals=tuple(meals),
        typical_serving_g=serving,
    )


@pytest.fixture
def simple_catalog():
    """One food per category, allowed everywhere, so every pick is forced."""
    foods = [
        make_ingredient("whey", "protein", 80, 5, 5, 385, 30, name="Whey Isolate"),
        make_ingredient("rice", "carbohydrate", 0, 25, 0, 100, 150, name="White Rice"),
        make_ingredient("oil", "fat", 0, 0, 100, 900, 10, name="Sunflower Oil"),
    ]
    return {f.id: f for f in foods}


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def targets():
    return MacroTargets(calories=2200, protein=165, carbs=220, fat=73)


@pytest.fixture
def varied_foods():
    return [
        "chicken-breast", "eggs", "greek-yogurt", "salmon", "tuna",
        "brown-rice", "oats", "sweet-potato", "whole-wheat-bread",
        "olive-oil", "avocado", "almonds",
        "banana", "berries-mixed", "apple",
        "broccoli", "spinach", "carrot", "bell-pepper",
        "garlic", "lemon",
    ]


@pytest.fixture
def every_category_catalog():
    """A food for each category, allowed everywhere; balanced so the day lands in tolerance."""
    foods = [
        make_ingredient("whey", "protein", 90, 2, 2, 386, 30, name="Whey Isolate"),
        make_ingredient("rice", "carbohydrate", 0, 25, 0, 100, 150, name="White Rice"),
        make_ingredient("oil", "fat", 0, 0, 100, 900, 12, name="Sunflower Oil"),
        make_ingredient("berries", "fruit", 0, 10, 0, 40, 50, name="Mixed Berries"),
        make_ingredient("greens", "vegetable", 0, 5, 0, 20, 50, name="Baby Greens"),
        make_ingredient("herbs", "misc", 0, 0, 0, 0, 10, name="Fresh Herbs"),
    ]
    return {f.id: f for f in foods}


@pytest.fixture
def protein_pair(simple_catalog):
    """Two protein-role foods: whey (80 g protein/100 g) and egg white (11 g/100 g)."""
    egg_white = make_ingredient("egg-white", "protein", 11, 1, 0, 52, 100, name="Egg White")
    return simple_catalog["whey"], egg_white
