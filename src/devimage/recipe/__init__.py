"""Recipe declaration and persistence."""

from .builder import Recipe
from .io import (
    RECIPE_VERSION,
    parse_recipe,
    read_recipe,
    serialize_recipe,
    step_from_dict,
    step_to_dict,
    write_recipe,
)

__all__ = [
    "RECIPE_VERSION",
    "Recipe",
    "parse_recipe",
    "read_recipe",
    "serialize_recipe",
    "step_from_dict",
    "step_to_dict",
    "write_recipe",
]
