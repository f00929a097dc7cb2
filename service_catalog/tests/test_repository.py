"""
Unit tests for catalog repositories and fake data generation.
"""

import json
import random
import pytest
from unittest.mock import AsyncMock, MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.catalog.models import (
    GENRES, BookCreateRequest, ReviewCreateRequest, UserCreateRequest
)
from service_catalog.app.catalog.populate import generate_fake_books, generate_fake_users
from service_catalog.app.catalog.repository import (
    InMemoryCatalogRepository, PostgresCatalogRepository, _escape_like
)
from shared.errors import PersistenceError


def book_request(titulo: str = "Dune", genero: str = "Fiction") -> BookCreateRequest:
    return BookCreateRequest(titulo=titulo, autor="Frank Herbert", genero=genero, descricao="Arrakis")


class TestInMemoryCatalogRepository:
    """Test cases for InMemoryCatalogRepository."""

    @pytest.fixture
    def repository(self):
        return InMemoryCatalogRepository()

    @pytest.mark.asyncio
    async def test_create_and_get_book(self, repository):
        """Test creating a book and reading it back."""
        book = await repository.create_book(book_request())

        loaded = await repository.get_book(book.id)

        assert loaded == book
        assert loaded.avaliacoes == []

    @pytest.mark.asyncio
    async def test_get_unknown_book(self, repository):
        """Test that unknown ids return None."""
        assert await repository.get_book("missing") is None

    @pytest.mark.asyncio
    async def test_add_review_updates_user_history(self, repository):
        """Test that reviewing a book records it in the reviewer's history."""
        user = await repository.create_user(UserCreateRequest(name="Ana", email="ana@example.com"))
        book = await repository.create_book(book_request())

        updated = await repository.add_review(
            book.id, ReviewCreateRequest(nota=5, comentario="Excelente", user_id=user.id)
        )

        assert [(r.nota, r.comentario, r.user_id) for r in updated.avaliacoes] == [(5, "Excelente", user.id)]
        reloaded = await repository.get_user(user.id)
        assert reloaded.historico_de_avaliacao == [book.id]

    @pytest.mark.asyncio
    async def test_add_review_with_unknown_user(self, repository):
        """Test that an unknown reviewer is ignored but the review is kept."""
        book = await repository.create_book(book_request())

        updated = await repository.add_review(book.id, ReviewCreateRequest(nota=3, user_id="ghost"))

        assert len(updated.avaliacoes) == 1
        assert updated.avaliacoes[0].user_id is None

    @pytest.mark.asyncio
    async def test_add_review_to_unknown_book(self, repository):
        """Test that reviewing a missing book returns None."""
        assert await repository.add_review("missing", ReviewCreateRequest(nota=3)) is None

    @pytest.mark.asyncio
    async def test_returned_books_are_copies(self, repository):
        """Test that callers cannot mutate stored books."""
        book = await repository.create_book(book_request())

        book.titulo = "Changed"

        assert (await repository.get_book(book.id)).titulo == "Dune"

    @pytest.mark.asyncio
    async def test_search_by_title_is_case_insensitive(self, repository):
        """Test substring title search ignoring case."""
        await repository.create_book(book_request("Dune"))
        await repository.create_book(book_request("Dune Messiah"))
        await repository.create_book(book_request("Foundation", "Science"))

        titles = sorted(book.titulo for book in await repository.search_by_title("dUNE"))

        assert titles == ["Dune", "Dune Messiah"]

    @pytest.mark.asyncio
    async def test_search_by_title_treats_input_literally(self, repository):
        """Test that regex metacharacters are matched literally."""
        await repository.create_book(book_request("Dune"))

        assert await repository.search_by_title(".*") == []

    @pytest.mark.asyncio
    async def test_search_by_genre(self, repository):
        """Test exact genre search."""
        await repository.create_book(book_request("Dune", "Fiction"))
        await repository.create_book(book_request("Cosmos", "Science"))

        books = await repository.search_by_genre("Science")

        assert [book.titulo for book in books] == ["Cosmos"]
        assert await repository.search_by_genre("science") == []


class TestPostgresCatalogRepository:
    """Test cases for PostgresCatalogRepository."""

    @pytest.fixture
    def connection(self):
        return AsyncMock()

    @pytest.fixture
    def repository(self, connection):
        repository = PostgresCatalogRepository("postgres://localhost:5432/livraria")
        acquire = MagicMock()
        acquire.__aenter__ = AsyncMock(return_value=connection)
        acquire.__aexit__ = AsyncMock(return_value=False)
        repository.pool = MagicMock()
        repository.pool.acquire.return_value = acquire
        return repository

    @pytest.mark.asyncio
    async def test_search_by_genre_attaches_reviews(self, repository, connection):
        """Test that book rows are joined with their review rows."""
        connection.fetch.side_effect = [
            [{"id": "b1", "titulo": "Dune", "autor": "Frank Herbert", "genero": "Fiction", "descricao": ""}],
            [{"livro_id": "b1", "usuario_id": None, "nota": 4, "comentario": "Bom"}],
        ]

        books = await repository.search_by_genre("Fiction")

        assert len(books) == 1
        assert books[0].titulo == "Dune"
        assert [(r.nota, r.comentario) for r in books[0].avaliacoes] == [(4, "Bom")]
        assert connection.fetch.call_args_list[0].args[1] == "Fiction"

    @pytest.mark.asyncio
    async def test_empty_result_skips_review_query(self, repository, connection):
        """Test that no review query runs when no books match."""
        connection.fetch.return_value = []

        assert await repository.list_books() == []
        assert connection.fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_create_user_serializes_preferences(self, repository, connection):
        """Test that genre preferences are stored as JSON."""
        user = await repository.create_user(
            UserCreateRequest(name="Ana", email="ana@example.com", preferencias_genero=["Fiction"])
        )

        args = connection.execute.call_args.args
        assert args[1] == user.id
        assert json.loads(args[4]) == ["Fiction"]

    @pytest.mark.asyncio
    async def test_not_started(self):
        """Test that using an unstarted repository raises PersistenceError."""
        repository = PostgresCatalogRepository("postgres://localhost:5432/livraria")

        with pytest.raises(PersistenceError):
            await repository.list_books()

    def test_escape_like(self):
        """Test LIKE wildcard escaping."""
        assert _escape_like("50%_off\\") == "50\\%\\_off\\\\"


class TestFakeData:
    """Test cases for fake data generation."""

    def test_generate_fake_users(self):
        """Test that users get two distinct known genres."""
        users = generate_fake_users(5, random.Random(42))

        assert len(users) == 5
        for user in users:
            assert "@" in user.email
            assert len(set(user.preferencias_genero)) == 2
            assert set(user.preferencias_genero) <= set(GENRES)

    def test_generate_fake_books(self):
        """Test that books get a three word title and a known genre."""
        books = generate_fake_books(5, random.Random(42))

        assert len(books) == 5
        for book in books:
            assert len(book.titulo.split()) == 3
            assert book.genero in GENRES
            assert book.descricao

    def test_generation_is_reproducible(self):
        """Test that a seeded generator gives the same data."""
        assert generate_fake_books(3, random.Random(7)) == generate_fake_books(3, random.Random(7))

    def test_zero_count(self):
        """Test that zero requests produce nothing."""
        assert generate_fake_users(0) == []
        assert generate_fake_books(0) == []
