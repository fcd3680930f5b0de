"""Bundled ingredient reference table (ingredients.csv)."""
