"""
Unit tests for cache key derivation.
"""

import pytest
from types import SimpleNamespace

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from starlette.datastructures import QueryParams

from service_catalog.app.caching.keys import canonical_query, derive_cache_key


def make_request(path: str, query: str = "", method: str = "GET"):
    return SimpleNamespace(
        method=method,
        url=SimpleNamespace(path=path),
        query_params=QueryParams(query),
    )


class TestDeriveCacheKey:
    """Test cases for derive_cache_key."""

    def test_key_with_query(self):
        """Test key for a request with a single query parameter."""
        request = make_request("/busca/genero", "genero=Fiction")
        assert derive_cache_key(request) == "GET:/busca/genero?genero=Fiction"

    def test_key_without_query(self):
        """Test key for a request without query parameters."""
        assert derive_cache_key(make_request("/busca")) == "GET:/busca"

    def test_parameter_order_does_not_matter(self):
        """Test that query parameter order yields the same key."""
        first = make_request("/busca", "genero=Fiction&titulo=dune")
        second = make_request("/busca", "titulo=dune&genero=Fiction")
        assert derive_cache_key(first) == derive_cache_key(second)

    def test_distinct_values_give_distinct_keys(self):
        """Test that different query values produce different keys."""
        fiction = make_request("/busca/genero", "genero=Fiction")
        fantasy = make_request("/busca/genero", "genero=Fantasy")
        assert derive_cache_key(fiction) != derive_cache_key(fantasy)

    def test_method_is_part_of_key(self):
        """Test that the method is included and upper-cased."""
        assert derive_cache_key(make_request("/busca", method="head")) == "HEAD:/busca"

    def test_path_parameters_are_part_of_key(self):
        """Test that paths for different books differ."""
        assert derive_cache_key(make_request("/livros/a/avaliacoes")) != derive_cache_key(
            make_request("/livros/b/avaliacoes")
        )


class TestCanonicalQuery:
    """Test cases for canonical_query."""

    def test_repeated_names_are_kept_and_sorted(self):
        """Test that repeated parameters are preserved in sorted order."""
        assert canonical_query(QueryParams("tag=b&tag=a")) == "tag=a&tag=b"

    def test_mapping_input(self):
        """Test plain mapping input, including list values."""
        assert canonical_query({"b": "2", "a": ["3", "1"]}) == "a=1&a=3&b=2"

    def test_pair_list_input(self):
        """Test list-of-pairs input."""
        assert canonical_query([("z", 1), ("a", 2)]) == "a=2&z=1"

    def test_values_are_url_encoded(self):
        """Test that reserved characters are encoded."""
        assert canonical_query({"titulo": "a&b c"}) == "titulo=a%26b+c"

    @pytest.mark.parametrize("params", [None, {}, []])
    def test_empty(self, params):
        """Test empty parameter sets."""
        assert canonical_query(params) == ""
