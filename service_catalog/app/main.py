"""
Book catalog service.
"""

import json
import time
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ConfigurationError, NotFoundError, StoreUnavailable, ValidationError

from .caching import CachedResponse, InMemoryStore, KeyValueStore, ReadThroughCache, RedisStore
from .catalog.models import (
    BookCreateRequest, PopulateRequest, PopulateResponse, ReviewCreateRequest, UserCreateRequest
)
from .catalog.populate import generate_fake_books, generate_fake_users
from .catalog.repository import (
    CatalogRepository, InMemoryCatalogRepository, PostgresCatalogRepository
)

SERVICE_NAME = "catalog"
SERVICE_PORT = 3000

TEST_CACHE_KEY = "test_key"
TEST_CACHE_TTL = 10


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        repository: Optional[CatalogRepository] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.store = store if store is not None else self._build_store()
        self.repository = repository if repository is not None else self._build_repository()
        self.cache = ReadThroughCache(self.store, clock=clock, metrics=self.metrics)

        # Cached read handlers; wrap() rejects a bad TTL here, before serving
        ttl = self.config.cache_ttl_seconds
        self.list_reviews = self.cache.wrap(self._list_reviews, ttl, name="list_reviews")
        self.list_books = self.cache.wrap(self._list_books, ttl, name="list_books")
        self.search_by_title = self.cache.wrap(self._search_by_title, ttl, name="search_by_title")
        self.search_by_genre = self.cache.wrap(self._search_by_genre, ttl, name="search_by_genre")

        self._setup_catalog_routes()

    def _build_store(self) -> KeyValueStore:
        backend = self.config.cache_backend.lower()
        if backend == "redis":
            return RedisStore(self.config.redis_url)
        if backend == "memory":
            return InMemoryStore()
        raise ConfigurationError("Unknown cache backend", {"cache_backend": self.config.cache_backend})

    def _build_repository(self) -> CatalogRepository:
        backend = self.config.catalog_backend.lower()
        if backend == "memory":
            return InMemoryCatalogRepository()
        if backend == "postgres":
            return PostgresCatalogRepository(self.config.postgres_dsn)
        raise ConfigurationError("Unknown catalog backend", {"catalog_backend": self.config.catalog_backend})

    # Read handlers

    async def _list_reviews(self, request: Request) -> CachedResponse:
        book_id = request.path_params["book_id"]
        book = await self.repository.get_book(book_id)
        if book is None:
            raise NotFoundError("Livro não encontrado", {"book_id": book_id})
        return CachedResponse([review.to_wire() for review in book.avaliacoes])

    async def _list_books(self, request: Request) -> CachedResponse:
        books = await self.repository.list_books()
        return CachedResponse([book.to_wire() for book in books])

    async def _search_by_title(self, request: Request) -> CachedResponse:
        titulo = request.query_params.get("titulo")
        if not titulo:
            raise ValidationError("Título é obrigatório")
        books = await self.repository.search_by_title(titulo)
        return CachedResponse([book.to_wire() for book in books])

    async def _search_by_genre(self, request: Request) -> CachedResponse:
        genero = request.query_params.get("genero")
        if not genero:
            raise ValidationError("Gênero é obrigatório")
        books = await self.repository.search_by_genre(genero)
        return CachedResponse([book.to_wire() for book in books])

    @staticmethod
    def _respond(response: CachedResponse) -> JSONResponse:
        return JSONResponse(status_code=response.status_code, content=response.body)

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Book Catalog Service",
                "version": "1.0.0",
                "capabilities": ["catalog", "search", "caching"],
                "cache_backend": self.config.cache_backend,
                "catalog_backend": self.config.catalog_backend,
            }

        @self.app.get("/test-cache")
        async def test_cache():
            """Write a test value to the cache store and read it back."""
            value = {"message": "This is a test"}
            self.logger.info("Setting cache test key", key=TEST_CACHE_KEY)
            await self.store.set(TEST_CACHE_KEY, json.dumps(value).encode("utf-8"), TEST_CACHE_TTL)

            cached_value = await self.store.get(TEST_CACHE_KEY)
            self.logger.info("Read cache test key", key=TEST_CACHE_KEY, found=cached_value is not None)

            return {"cachedValue": json.loads(cached_value) if cached_value is not None else None}

        @self.app.post("/usuarios", status_code=201)
        async def create_user(request: UserCreateRequest):
            """Create a user."""
            user = await self.repository.create_user(request)
            self.metrics.record_business_event("user_created")
            return user.to_wire()

        @self.app.post("/livros", status_code=201)
        async def create_book(request: BookCreateRequest):
            """Create a book."""
            book = await self.repository.create_book(request)
            self.metrics.record_business_event("book_created")
            return book.to_wire()

        @self.app.post("/livros/{book_id}/avaliacoes", status_code=201)
        async def add_review(book_id: str, request: ReviewCreateRequest):
            """Add a review to a book."""
            book = await self.repository.add_review(book_id, request)
            if book is None:
                raise NotFoundError("Livro não encontrado", {"book_id": book_id})
            self.metrics.record_business_event("review_added")
            return book.to_wire()

        @self.app.get("/livros/{book_id}/avaliacoes")
        async def list_reviews(book_id: str, request: Request):
            """List a book's reviews."""
            return self._respond(await self.list_reviews(request))

        @self.app.get("/busca")
        async def list_books(request: Request):
            """List all books."""
            return self._respond(await self.list_books(request))

        @self.app.get("/busca/titulo")
        async def search_by_title(request: Request):
            """Search books by title."""
            return self._respond(await self.search_by_title(request))

        @self.app.get("/busca/genero")
        async def search_by_genre(request: Request):
            """Search books by genre."""
            return self._respond(await self.search_by_genre(request))

        @self.app.post("/populate")
        async def populate(request: PopulateRequest):
            """Populate the catalog with fake users and books."""
            limit = self.config.populate_max_count
            if request.users_count > limit or request.books_count > limit:
                raise ValidationError(
                    f"At most {limit} users and {limit} books per request",
                    {"usersCount": request.users_count, "booksCount": request.books_count}
                )

            for user in generate_fake_users(request.users_count):
                await self.repository.create_user(user)

            for book in generate_fake_books(request.books_count):
                await self.repository.create_book(book)

            self.logger.info(
                "Catalog populated",
                users=request.users_count,
                books=request.books_count
            )
            return PopulateResponse(
                message="Database populated successfully",
                users_created=request.users_count,
                books_created=request.books_count,
            ).to_wire()

    async def _check_dependencies(self):
        """Check catalog service dependencies."""
        dependencies = {}

        try:
            dependencies["store"] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies["store"] = "error"

        try:
            dependencies["repository"] = "ok" if await self.repository.health_check() else "error"
        except Exception:
            dependencies["repository"] = "error"

        return dependencies

    async def start(self):
        """Start catalog service components."""
        await self.repository.start()

        try:
            await self.store.start()
        except StoreUnavailable as e:
            # Reads degrade to always-miss until the store comes back
            self.logger.warning("Cache store unavailable at startup", error=str(e))

        self.logger.info(
            "Catalog service started",
            cache_backend=self.config.cache_backend,
            catalog_backend=self.config.catalog_backend,
            cache_ttl_seconds=self.config.cache_ttl_seconds
        )

    async def stop(self):
        """Stop catalog service components."""
        await self.cache.close()
        await self.store.stop()
        await self.repository.stop()

        self.logger.info("Catalog service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create catalog service application."""
    service = CatalogService(config or get_config(SERVICE_NAME, SERVICE_PORT))
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
