"""
Catalog persistence: in-memory and PostgreSQL repositories.
"""

import json
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import PersistenceError
from .models import (
    Book, BookCreateRequest, Review, ReviewCreateRequest, User, UserCreateRequest
)


def _new_id() -> str:
    return uuid.uuid4().hex


class CatalogRepository(ABC):
    """Storage for users, books and reviews."""

    async def start(self):
        """Open the repository."""

    async def stop(self):
        """Close the repository."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def create_user(self, request: UserCreateRequest) -> User:
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def create_book(self, request: BookCreateRequest) -> Book:
        ...

    @abstractmethod
    async def get_book(self, book_id: str) -> Optional[Book]:
        ...

    @abstractmethod
    async def add_review(self, book_id: str, request: ReviewCreateRequest) -> Optional[Book]:
        """Attach a review to a book.

        Returns the updated book, or None when the book does not exist. When
        ``request.user_id`` names an existing user the book is appended to
        that user's review history; unknown users are ignored.
        """

    @abstractmethod
    async def list_books(self) -> List[Book]:
        ...

    @abstractmethod
    async def search_by_title(self, titulo: str) -> List[Book]:
        """Books whose title contains ``titulo``, ignoring case."""

    @abstractmethod
    async def search_by_genre(self, genero: str) -> List[Book]:
        """Books whose genre equals ``genero``."""


class InMemoryCatalogRepository(CatalogRepository):
    """Process-local repository, used for local runs and tests."""

    def __init__(self):
        self.logger = get_logger("catalog.repository.memory")
        self._users: Dict[str, User] = {}
        self._books: Dict[str, Book] = {}

    async def stop(self):
        self._users.clear()
        self._books.clear()

    async def create_user(self, request: UserCreateRequest) -> User:
        user = User(
            id=_new_id(),
            name=request.name,
            email=request.email,
            preferencias_genero=list(request.preferencias_genero),
        )
        self._users[user.id] = user
        return user.model_copy(deep=True)

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def create_book(self, request: BookCreateRequest) -> Book:
        book = Book(
            id=_new_id(),
            titulo=request.titulo,
            autor=request.autor,
            genero=request.genero,
            descricao=request.descricao,
        )
        self._books[book.id] = book
        return book.model_copy(deep=True)

    async def get_book(self, book_id: str) -> Optional[Book]:
        book = self._books.get(book_id)
        return book.model_copy(deep=True) if book else None

    async def add_review(self, book_id: str, request: ReviewCreateRequest) -> Optional[Book]:
        book = self._books.get(book_id)
        if book is None:
            return None

        user = self._users.get(request.user_id) if request.user_id else None

        book.avaliacoes.append(Review(
            nota=request.nota,
            comentario=request.comentario,
            user_id=user.id if user else None,
        ))

        if user is not None:
            user.historico_de_avaliacao.append(book.id)

        return book.model_copy(deep=True)

    async def list_books(self) -> List[Book]:
        return [book.model_copy(deep=True) for book in self._books.values()]

    async def search_by_title(self, titulo: str) -> List[Book]:
        needle = titulo.casefold()
        return [
            book.model_copy(deep=True)
            for book in self._books.values()
            if needle in book.titulo.casefold()
        ]

    async def search_by_genre(self, genero: str) -> List[Book]:
        return [
            book.model_copy(deep=True)
            for book in self._books.values()
            if book.genero == genero
        ]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresCatalogRepository(CatalogRepository):
    """PostgreSQL repository for the catalog."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("catalog.repository.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool and create tables."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL repository started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL repository", error=str(e))
            raise PersistenceError("Failed to start PostgreSQL repository", {"error": str(e)})

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL repository stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS usuarios (
                    id VARCHAR(32) PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    email VARCHAR(255) NOT NULL,
                    preferencias_genero JSONB NOT NULL DEFAULT '[]'
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS livros (
                    id VARCHAR(32) PRIMARY KEY,
                    titulo VARCHAR(255) NOT NULL,
                    autor VARCHAR(255) NOT NULL,
                    genero VARCHAR(100) NOT NULL,
                    descricao TEXT NOT NULL DEFAULT ''
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS avaliacoes (
                    id SERIAL PRIMARY KEY,
                    livro_id VARCHAR(32) NOT NULL REFERENCES livros(id) ON DELETE CASCADE,
                    usuario_id VARCHAR(32) REFERENCES usuarios(id) ON DELETE SET NULL,
                    nota INTEGER NOT NULL,
                    comentario TEXT
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS historico_avaliacoes (
                    id SERIAL PRIMARY KEY,
                    usuario_id VARCHAR(32) NOT NULL REFERENCES usuarios(id) ON DELETE CASCADE,
                    livro_id VARCHAR(32) NOT NULL REFERENCES livros(id) ON DELETE CASCADE
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_livros_genero ON livros(genero);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_avaliacoes_livro ON avaliacoes(livro_id);
            """)

    def _acquire(self):
        if self.pool is None:
            raise PersistenceError("PostgreSQL repository not started")
        return self.pool.acquire()

    async def create_user(self, request: UserCreateRequest) -> User:
        user_id = _new_id()
        try:
            async with self._acquire() as conn:
                await conn.execute("""
                    INSERT INTO usuarios (id, name, email, preferencias_genero)
                    VALUES ($1, $2, $3, $4::jsonb)
                """, user_id, request.name, request.email, json.dumps(request.preferencias_genero))
        except asyncpg.PostgresError as e:
            self.logger.error("Error creating user", error=str(e))
            raise PersistenceError("Error creating user", {"error": str(e)})

        return User(
            id=user_id,
            name=request.name,
            email=request.email,
            preferencias_genero=list(request.preferencias_genero),
        )

    async def get_user(self, user_id: str) -> Optional[User]:
        try:
            async with self._acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT * FROM usuarios WHERE id = $1
                """, user_id)
                if not row:
                    return None

                history = await conn.fetch("""
                    SELECT livro_id FROM historico_avaliacoes
                    WHERE usuario_id = $1 ORDER BY id
                """, user_id)
        except asyncpg.PostgresError as e:
            self.logger.error("Error loading user", user_id=user_id, error=str(e))
            raise PersistenceError("Error loading user", {"user_id": user_id, "error": str(e)})

        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            preferencias_genero=json.loads(row["preferencias_genero"]),
            historico_de_avaliacao=[h["livro_id"] for h in history],
        )

    async def create_book(self, request: BookCreateRequest) -> Book:
        book_id = _new_id()
        try:
            async with self._acquire() as conn:
                await conn.execute("""
                    INSERT INTO livros (id, titulo, autor, genero, descricao)
                    VALUES ($1, $2, $3, $4, $5)
                """, book_id, request.titulo, request.autor, request.genero, request.descricao)
        except asyncpg.PostgresError as e:
            self.logger.error("Error creating book", error=str(e))
            raise PersistenceError("Error creating book", {"error": str(e)})

        return Book(
            id=book_id,
            titulo=request.titulo,
            autor=request.autor,
            genero=request.genero,
            descricao=request.descricao,
        )

    async def get_book(self, book_id: str) -> Optional[Book]:
        books = await self._fetch_books("SELECT * FROM livros WHERE id = $1", book_id)
        return books[0] if books else None

    async def add_review(self, book_id: str, request: ReviewCreateRequest) -> Optional[Book]:
        try:
            async with self._acquire() as conn:
                async with conn.transaction():
                    exists = await conn.fetchval("""
                        SELECT 1 FROM livros WHERE id = $1
                    """, book_id)
                    if not exists:
                        return None

                    user_exists = False
                    if request.user_id:
                        user_exists = bool(await conn.fetchval("""
                            SELECT 1 FROM usuarios WHERE id = $1
                        """, request.user_id))

                    await conn.execute("""
                        INSERT INTO avaliacoes (livro_id, usuario_id, nota, comentario)
                        VALUES ($1, $2, $3, $4)
                    """, book_id, request.user_id if user_exists else None, request.nota, request.comentario)

                    if user_exists:
                        await conn.execute("""
                            INSERT INTO historico_avaliacoes (usuario_id, livro_id)
                            VALUES ($1, $2)
                        """, request.user_id, book_id)
        except asyncpg.PostgresError as e:
            self.logger.error("Error adding review", book_id=book_id, error=str(e))
            raise PersistenceError("Error adding review", {"book_id": book_id, "error": str(e)})

        return await self.get_book(book_id)

    async def list_books(self) -> List[Book]:
        return await self._fetch_books("SELECT * FROM livros ORDER BY titulo")

    async def search_by_title(self, titulo: str) -> List[Book]:
        return await self._fetch_books("""
            SELECT * FROM livros
            WHERE titulo ILIKE '%' || $1 || '%'
            ORDER BY titulo
        """, _escape_like(titulo))

    async def search_by_genre(self, genero: str) -> List[Book]:
        return await self._fetch_books("""
            SELECT * FROM livros WHERE genero = $1 ORDER BY titulo
        """, genero)

    async def _fetch_books(self, query: str, *args) -> List[Book]:
        """Run a book query and attach each book's reviews."""
        try:
            async with self._acquire() as conn:
                rows = await conn.fetch(query, *args)
                if not rows:
                    return []

                review_rows = await conn.fetch("""
                    SELECT livro_id, usuario_id, nota, comentario FROM avaliacoes
                    WHERE livro_id = ANY($1::varchar[])
                    ORDER BY id
                """, [row["id"] for row in rows])
        except asyncpg.PostgresError as e:
            self.logger.error("Error loading books", error=str(e))
            raise PersistenceError("Error loading books", {"error": str(e)})

        return self._rows_to_books(rows, review_rows)

    def _rows_to_books(self, rows: Iterable, review_rows: Iterable) -> List[Book]:
        reviews: Dict[str, List[Review]] = {}
        for row in review_rows:
            reviews.setdefault(row["livro_id"], []).append(Review(
                nota=row["nota"],
                comentario=row["comentario"],
                user_id=row["usuario_id"],
            ))

        return [
            Book(
                id=row["id"],
                titulo=row["titulo"],
                autor=row["autor"],
                genero=row["genero"],
                descricao=row["descricao"],
                avaliacoes=reviews.get(row["id"], []),
            )
            for row in rows
        ]

    async def health_check(self) -> bool:
        """Check PostgreSQL health."""
        try:
            async with self._acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False
