import logging
from dataclasses import dataclass
from importlib import resources
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from config import CONFIG

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_CSV = str(resources.files("catalog_data").joinpath("ingredients.csv"))

MACRO_FIELDS = ["calories", "protein", "carbs", "fat"]

# ====================================================================


@dataclass(frozen=True)
class Macros:
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0

    def __add__(self, other: "Macros") -> "Macros":
        return Macros(
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
            fiber=self.fiber + other.fiber,
        )

    def __sub__(self, other: "Macros") -> "Macros":
        return Macros(
            calories=self.calories - other.calories,
            protein=self.protein - other.protein,
            carbs=self.carbs - other.carbs,
            fat=self.fat - other.fat,
            fiber=self.fiber - other.fiber,
        )

    def scaled(self, factor: float) -> "Macros":
        return Macros(
            calories=self.calories * factor,
            protein=self.protein * factor,
            carbs=self.carbs * factor,
            fat=self.fat * factor,
            fiber=self.fiber * factor,
        )

    def rounded(self) -> "Macros":
        return Macros(*(round(getattr(self, f)) for f in MACRO_FIELDS + ["fiber"]))

    def get(self, macro: str) -> float:
        return getattr(self, macro)

    def to_dict(self) -> Dict[str, float]:
        return {f: getattr(self, f) for f in MACRO_FIELDS + ["fiber"]}


@dataclass(frozen=True)
class Ingredient:
    """One catalog entry. Macros are per 100 g."""
    id: str
    name: str
    category: str
    macros: Macros
    allowed_meals: Tuple[str, ...]
    typical_serving_g: float
    tags: Tuple[str, ...] = ()

    def allows(self, meal_type: str) -> bool:
        return meal_type in self.allowed_meals


def macros_for_grams(ingredient: Ingredient, grams: float) -> Macros:
    return ingredient.macros.scaled(grams / 100.0)


# ------------------------------ loading ------------------------------

def normalize_token(s: str) -> str:
    return s.strip().lower().replace(" ", "-")


def parse_list(cell) -> Tuple[str, ...]:
    if cell is None or pd.isna(cell):
        return ()
    return tuple(normalize_token(tok) for tok in str(cell).split(",") if tok.strip())


def load_catalog(csv_path: str = DEFAULT_CATALOG_CSV) -> Dict[str, Ingredient]:
    """
    Read the ingredient reference table. Returns {ingredient id: Ingredient},
    in file order. Rows with an empty id are dropped.
    """
    df = pd.read_csv(csv_path)
    needed = CONFIG["required_columns"]
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise ValueError(f"CSV is missing columns: {missing}")
    if "fiber" not in df.columns:
        df["fiber"] = 0
    if "tags" not in df.columns:
        df["tags"] = ""
    for c in MACRO_FIELDS + ["fiber", "typical_serving_g"]:
        df[c] = pd.to_numeric(df[c], errors="coerce").fillna(0)
    df["id"] = df["id"].fillna("").astype(str).str.strip()
    df["category"] = df["category"].fillna("misc").astype(str).str.lower().str.strip()
    df = df[df["id"] != ""]

    catalog: Dict[str, Ingredient] = {}
    for row in df.to_dict("records"):
        catalog[row["id"]] = Ingredient(
            id=row["id"],
            name=str(row["name"]).strip(),
            category=row["category"],
            macros=Macros(
                calories=float(row["calories"]),
                protein=float(row["protein"]),
                carbs=float(row["carbs"]),
                fat=float(row["fat"]),
                fiber=float(row["fiber"]),
            ),
            allowed_meals=parse_list(row["allowed_meals"]),
            typical_serving_g=float(row["typical_serving_g"]),
            tags=parse_list(row["tags"]),
        )
    logger.debug("Loaded %d ingredients from %s", len(catalog), csv_path)
    return catalog


_default_catalog = None


def default_catalog() -> Dict[str, Ingredient]:
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = load_catalog(DEFAULT_CATALOG_CSV)
    return _default_catalog


def resolve_selection(food_ids: Iterable[str], catalog: Dict[str, Ingredient]) -> List[Ingredient]:
    """Map selected ids to catalog entries, keeping the caller's order.
    Unknown ids and repeats are skipped."""
    resolved = []
    seen = set()
    for food_id in food_ids:
        if food_id in seen:
            continue
        seen.add(food_id)
        ing = catalog.get(food_id)
        if ing is None:
            logger.debug("Selected food %r not in catalog, skipping", food_id)
            continue
        resolved.append(ing)
    return resolved
