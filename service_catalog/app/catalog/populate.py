"""
Fake data generation for populating the catalog.
"""

import random
from typing import List, Optional

from .models import GENRES, BookCreateRequest, UserCreateRequest

FIRST_NAMES = [
    "Ana", "Bruno", "Carla", "Diego", "Elisa", "Felipe", "Gabriela", "Heitor",
    "Isabela", "João", "Larissa", "Marcos", "Natália", "Otávio", "Paula", "Rafael",
]

LAST_NAMES = [
    "Almeida", "Barbosa", "Cardoso", "Costa", "Ferreira", "Gomes", "Lima",
    "Martins", "Oliveira", "Pereira", "Ribeiro", "Santos", "Silva", "Souza",
]

EMAIL_DOMAINS = ["example.com", "example.org", "example.net"]

WORDS = [
    "amet", "aurora", "brisa", "caminho", "cidade", "dolor", "estrela", "floresta",
    "horizonte", "ipsum", "jardim", "lorem", "luz", "mar", "noite", "pedra",
    "rio", "sombra", "tempo", "vento",
]


def _full_name(rng: random.Random) -> str:
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"


def _words(rng: random.Random, count: int) -> str:
    return " ".join(rng.choice(WORDS) for _ in range(count))


def _sentence(rng: random.Random) -> str:
    return _words(rng, rng.randint(6, 12)).capitalize() + "."


def generate_fake_users(count: int, rng: Optional[random.Random] = None) -> List[UserCreateRequest]:
    """Generate ``count`` users, each preferring two distinct genres."""
    rng = rng or random.Random()
    users = []
    for _ in range(count):
        name = _full_name(rng)
        local_part = name.lower().replace(" ", ".")
        users.append(UserCreateRequest(
            name=name,
            email=f"{local_part}{rng.randint(1, 9999)}@{rng.choice(EMAIL_DOMAINS)}",
            preferencias_genero=rng.sample(GENRES, 2),
        ))
    return users


def generate_fake_books(count: int, rng: Optional[random.Random] = None) -> List[BookCreateRequest]:
    """Generate ``count`` books with a three word title and two sentence description."""
    rng = rng or random.Random()
    return [
        BookCreateRequest(
            titulo=_words(rng, 3),
            autor=_full_name(rng),
            genero=rng.choice(GENRES),
            descricao=f"{_sentence(rng)} {_sentence(rng)}",
        )
        for _ in range(count)
    ]
