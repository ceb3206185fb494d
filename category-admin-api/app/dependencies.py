from functools import lru_cache

from supabase import create_client, Client, ClientOptions

from app.config import get_settings
from app.models.category import DeleteStrategy
from app.repositories.base import CategoryRepository
from app.repositories.memory import InMemoryCategoryRepository
from app.repositories.supabase import SupabaseCategoryRepository
from app.services.categories import CategoryService


def get_supabase_client() -> Client:
    """
    Get Supabase client directly (for services).

    The PostgREST timeout bounds writes, which are never cut off client side.
    """
    settings = get_settings()
    options = ClientOptions(postgrest_client_timeout=settings.repository_timeout)
    return create_client(settings.supabase_url, settings.supabase_key, options=options)


@lru_cache()
def get_category_repository() -> CategoryRepository:
    """
    Get the configured category repository.

    Cached so the in-memory backend keeps its records between requests.
    """
    settings = get_settings()
    if settings.repository_backend == "memory":
        return InMemoryCategoryRepository()
    return SupabaseCategoryRepository(get_supabase_client(), settings)


@lru_cache()
def get_category_service() -> CategoryService:
    """
    Dependency that provides the category service.

    Usage in route:
        @router.get("/")
        async def list_items(service: CategoryService = Depends(get_category_service)):
            ...
    """
    settings = get_settings()
    return CategoryService(
        get_category_repository(),
        default_delete_strategy=DeleteStrategy(settings.default_delete_strategy),
    )
