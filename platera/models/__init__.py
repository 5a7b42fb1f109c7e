"""
ORM models. Importing this package registers every table on `Base.metadata`
(used by Alembic autogenerate and `Database.create_all`).
"""

from platera.models.comment import Comment
from platera.models.recipe import Recipe, RecipeCategory
from platera.models.review import Review
from platera.models.saved_recipe import SavedRecipe
from platera.models.user import User

__all__ = [
    "Comment",
    "Recipe",
    "RecipeCategory",
    "Review",
    "SavedRecipe",
    "User",
]
