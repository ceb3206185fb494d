"""Errors raised by the category manager.

Every error carries the HTTP status the console router answers with.
"""


class CategoryError(Exception):
    """Base error for category operations."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CategoryError):
    """A field is empty or malformed."""

    status_code = 422


class SlugConflictError(CategoryError):
    """Another category already uses the slug."""

    status_code = 409

    def __init__(self, slug: str):
        super().__init__(f"Slug '{slug}' is already in use")
        self.slug = slug


class CycleError(CategoryError):
    """Reparenting would make a category its own ancestor."""

    status_code = 409

    def __init__(self, category_id: str, new_parent_id: str):
        if category_id == new_parent_id:
            message = f"Category {category_id} cannot be its own parent"
        else:
            message = (
                f"Cannot move category {category_id} under its descendant {new_parent_id}"
            )
        super().__init__(message)
        self.category_id = category_id
        self.new_parent_id = new_parent_id


class NotFoundError(CategoryError):
    """Referenced category does not exist."""

    status_code = 404

    def __init__(self, category_id: str):
        super().__init__(f"Category {category_id} not found")
        self.category_id = category_id


class RepositoryError(CategoryError):
    """The underlying store failed."""

    status_code = 502
