"""
Catalog data models.

Field names on the wire follow the catalog's public API (``titulo``,
``preferenciasGenero``...); Python attributes use snake_case aliases.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


GENRES = ["Fiction", "Non-Fiction", "Science", "Fantasy", "History"]


class CatalogModel(BaseModel):
    """Base model accepting both wire names and attribute names."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class UserCreateRequest(CatalogModel):
    """User creation request."""
    name: str
    email: str
    preferencias_genero: List[str] = Field(default_factory=list, alias="preferenciasGenero")


class User(CatalogModel):
    """Catalog user."""
    id: str
    name: str
    email: str
    preferencias_genero: List[str] = Field(default_factory=list, alias="preferenciasGenero")
    historico_de_avaliacao: List[str] = Field(default_factory=list, alias="historicoDeAvaliacao")


class ReviewCreateRequest(CatalogModel):
    """Review submission for a book."""
    nota: int
    comentario: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class Review(CatalogModel):
    """Book review."""
    nota: int
    comentario: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class BookCreateRequest(CatalogModel):
    """Book creation request."""
    titulo: str
    autor: str
    genero: str
    descricao: str = ""


class Book(CatalogModel):
    """Catalog book with its reviews."""
    id: str
    titulo: str
    autor: str
    genero: str
    descricao: str = ""
    avaliacoes: List[Review] = Field(default_factory=list)


class PopulateRequest(CatalogModel):
    """Fake data population request."""
    users_count: int = Field(default=0, ge=0, alias="usersCount")
    books_count: int = Field(default=0, ge=0, alias="booksCount")


class PopulateResponse(CatalogModel):
    """Fake data population result."""
    message: str
    users_created: int = Field(alias="usersCreated")
    books_created: int = Field(alias="booksCreated")
