import pytest

from ingredient_catalog import Macros
from nutrition_science import (
    MACRO_ADJUSTMENT_ORDER, MACRO_TO_ROLE, ConvergenceConstraints, IngredientRole,
    clamp_grams, classify_role, enhance_ingredient, max_grams_per_meal, preferred_range_grams,
)


class TestClassifyRole:
    """Role comes from share of calories, first match wins"""

    def test_lean_meat_is_protein(self):
        # 31 * 4 = 124 kcal of 165 -> 75%
        assert classify_role(Macros(calories=165, protein=31, carbs=0, fat=3.6)) == IngredientRole.PROTEIN

    def test_pure_oil_is_fat(self):
        # 100 * 9 = 900 kcal of 884
        assert classify_role(Macros(calories=884, protein=0, carbs=0, fat=100)) == IngredientRole.FAT

    def test_grain_is_carb(self):
        assert classify_role(Macros(calories=111, protein=2.6, carbs=23, fat=0.9)) == IngredientRole.CARB

    def test_mixed_profile_is_secondary(self):
        # 16% protein, 48% carbs, 36% fat
        assert classify_role(Macros(calories=125, protein=5, carbs=15, fat=5)) == IngredientRole.SECONDARY

    def test_zero_calories_is_secondary(self):
        assert classify_role(Macros(calories=0, protein=5)) == IngredientRole.SECONDARY

    def test_protein_checked_before_fat(self):
        # 40% protein and 51% fat: protein wins
        assert classify_role(Macros(calories=100, protein=10, carbs=0, fat=5.7)) == IngredientRole.PROTEIN

    def test_catalog_category_is_not_used(self, catalog):
        assert classify_role(catalog["lentils"].macros) == IngredientRole.CARB
        assert classify_role(catalog["eggs"].macros) == IngredientRole.FAT
        assert classify_role(catalog["tofu"].macros) == IngredientRole.PROTEIN


class TestPortionLimits:

    def test_fallback_without_bodyweight(self, catalog):
        chicken = catalog["chicken-breast"]
        assert max_grams_per_meal(chicken, IngredientRole.PROTEIN) == 225
        assert max_grams_per_meal(chicken, IngredientRole.PROTEIN, 0) == 225
        assert max_grams_per_meal(chicken, IngredientRole.PROTEIN, -70) == 225

    def test_bodyweight_cap_is_more_conservative(self, catalog):
        # 80 kg * 0.4 g/kg = 32 g protein -> 32 / 0.31 g
        cap = max_grams_per_meal(catalog["chicken-breast"], IngredientRole.PROTEIN, 80)
        assert cap == pytest.approx(32 * 100 / 31)

    def test_fallback_wins_for_heavy_client(self, catalog):
        assert max_grams_per_meal(catalog["chicken-breast"], IngredientRole.PROTEIN, 200) == 225

    def test_fat_cap_from_bodyweight(self, catalog):
        # 70 kg * 0.325 g/kg = 22.75 g fat -> 22.75 g oil
        assert max_grams_per_meal(catalog["olive-oil"], IngredientRole.FAT, 70) == pytest.approx(22.75)

    def test_secondary_ignores_bodyweight(self, catalog):
        assert max_grams_per_meal(catalog["spinach"], IngredientRole.SECONDARY, 60) == 300

    def test_cap_never_below_minimum_grams(self, catalog):
        assert max_grams_per_meal(catalog["olive-oil"], IngredientRole.FAT, 10) == 10

    def test_preferred_ranges(self):
        assert preferred_range_grams(IngredientRole.PROTEIN) == (80, 180)
        assert preferred_range_grams(IngredientRole.FAT) == (15, 50)

    def test_enhance_ingredient(self, catalog):
        enhanced = enhance_ingredient(catalog["brown-rice"], bodyweight_kg=80)
        assert enhanced.role == IngredientRole.CARB
        assert enhanced.id == "brown-rice"
        # 80 * 1.75 = 140 g carbs -> 608 g rice, capped at 400
        assert enhanced.max_grams_per_meal == 400
        assert enhanced.preferred_range == (100, 300)


class TestClampGrams:

    def test_bounds(self, catalog):
        oil = enhance_ingredient(catalog["olive-oil"], bodyweight_kg=70)  # cap 22.75
        assert clamp_grams(3, oil) == 10
        assert clamp_grams(15.4, oil) == 15
        assert clamp_grams(22.9, oil) == 22
        assert clamp_grams(500, oil) == 22


class TestConstraints:

    def test_record_and_merge(self):
        first = ConvergenceConstraints()
        assert not first.realism_constraint_hit
        first.record("tuna", "Tuna", 225, 300)

        total = ConvergenceConstraints()
        total.merge(ConvergenceConstraints())
        assert not total.realism_constraint_hit
        total.merge(first)
        assert total.realism_constraint_hit
        assert total.details[0].ingredient_id == "tuna"
        assert total.details[0].requested_grams == 300

    def test_one_entry_per_ingredient(self):
        hits = ConvergenceConstraints()
        hits.record("tuna", "Tuna", 225, 300)
        hits.record("tuna", "Tuna", 225, 410)
        hits.record("salmon", "Salmon", 225, 260)
        hits.record("tuna", "Tuna", 225, 280)

        later = ConvergenceConstraints()
        later.record("salmon", "Salmon", 225, 240)
        hits.merge(later)

        assert [(h.ingredient_id, h.requested_grams) for h in hits.details] == [
            ("tuna", 410),
            ("salmon", 260),
        ]

    def test_adjustment_order_is_fixed(self):
        assert MACRO_ADJUSTMENT_ORDER == ["protein", "carbs", "fat"]
        assert MACRO_TO_ROLE["carbs"] == IngredientRole.CARB
