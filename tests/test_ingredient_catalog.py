import os
from importlib import resources

import pytest

from ingredient_catalog import DEFAULT_CATALOG_CSV, Macros, load_catalog, macros_for_grams, resolve_selection

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class TestLoadCatalog:
    """Reading the bundled ingredient table"""

    def test_default_catalog_has_all_ingredients(self, catalog):
        assert len(catalog) == 47
        assert list(catalog)[0] == "chicken-breast"

    def test_table_ships_inside_data_package(self):
        bundled = resources.files("catalog_data").joinpath("ingredients.csv")
        assert bundled.is_file()
        assert DEFAULT_CATALOG_CSV == str(bundled)

    def test_pyproject_installs_the_table(self):
        tomllib = pytest.importorskip("tomllib")
        with open(os.path.join(ROOT, "pyproject.toml"), "rb") as f:
            setuptools_cfg = tomllib.load(f)["tool"]["setuptools"]
        assert "catalog_data" in setuptools_cfg["packages"]
        assert setuptools_cfg["package-data"]["catalog_data"] == ["*.csv"]

    def test_row_is_parsed(self, catalog):
        chicken = catalog["chicken-breast"]
        assert chicken.name == "Chicken Breast"
        assert chicken.category == "protein"
        assert chicken.macros == Macros(calories=165, protein=31, carbs=0, fat=3.6, fiber=0)
        assert chicken.allowed_meals == ("lunch", "dinner")
        assert chicken.typical_serving_g == 150
        assert "lean" in chicken.tags

    def test_single_meal_cell(self, catalog):
        assert catalog["grapes"].allowed_meals == ("snack",)
        assert catalog["grapes"].allows("snack")
        assert not catalog["grapes"].allows("lunch")

    def test_missing_columns_raise(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("id,name,protein\nx,X,1\n")
        with pytest.raises(ValueError, match="missing columns"):
            load_catalog(str(path))

    def test_optional_columns_and_bad_numbers(self, tmp_path):
        path = tmp_path / "mini.csv"
        path.write_text(
            "id,name,category,protein,carbs,fat,calories,allowed_meals,typical_serving_g\n"
            'tofu,Tofu,Protein,8,2,n/a,76,"Lunch, Dinner",150\n'
            ",Nameless,misc,1,1,1,1,lunch,10\n"
        )
        catalog = load_catalog(str(path))
        assert list(catalog) == ["tofu"]
        tofu = catalog["tofu"]
        assert tofu.category == "protein"
        assert tofu.macros.fat == 0
        assert tofu.macros.fiber == 0
        assert tofu.allowed_meals == ("lunch", "dinner")
        assert tofu.tags == ()


class TestResolveSelection:

    def test_unknown_ids_are_dropped(self, catalog):
        resolved = resolve_selection(["unicorn-steak", "eggs"], catalog)
        assert [i.id for i in resolved] == ["eggs"]

    def test_order_kept_and_duplicates_collapsed(self, catalog):
        resolved = resolve_selection(["oats", "eggs", "oats", "banana"], catalog)
        assert [i.id for i in resolved] == ["oats", "eggs", "banana"]


class TestMacros:

    def test_macros_for_grams(self, catalog):
        m = macros_for_grams(catalog["chicken-breast"], 200)
        assert m.protein == pytest.approx(62)
        assert m.calories == pytest.approx(330)
        assert m.fat == pytest.approx(7.2)

    def test_arithmetic(self):
        a = Macros(calories=100, protein=10, carbs=5, fat=2, fiber=1)
        b = Macros(calories=50, protein=5, carbs=5, fat=1)
        assert a + b == Macros(150, 15, 10, 3, 1)
        assert a - b == Macros(50, 5, 0, 1, 1)
        assert a.scaled(2) == Macros(200, 20, 10, 4, 2)
        assert Macros(10.4, 2.6, 0.5, 1.49).rounded() == Macros(10, 3, 0, 1, 0)
