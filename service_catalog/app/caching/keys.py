"""
Cache key derivation for read requests.
"""

from typing import Any, Iterable, List, Mapping, Tuple, Union
from urllib.parse import urlencode

QueryParams = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], Any]


def _query_items(params: QueryParams) -> List[Tuple[str, str]]:
    """Flatten query parameters into (name, value) pairs."""
    if params is None:
        return []

    # Starlette QueryParams keeps repeated names
    if hasattr(params, "multi_items"):
        items = params.multi_items()
    elif isinstance(params, Mapping):
        items = []
        for name, value in params.items():
            if isinstance(value, (list, tuple)):
                items.extend((name, v) for v in value)
            else:
                items.append((name, value))
    else:
        items = list(params)

    return [(str(name), str(value)) for name, value in items]


def canonical_query(params: QueryParams) -> str:
    """Encode query parameters in a stable, order-independent form.

    Pairs are sorted by name and then value, so ``b=2&a=1`` and ``a=1&b=2``
    produce the same string. Repeated names are preserved.
    """
    return urlencode(sorted(_query_items(params)))


def derive_cache_key(request: Any) -> str:
    """Derive the cache key for a request.

    The key is ``METHOD:path`` followed by ``?`` and the canonical query
    string when the request carries query parameters, for example
    ``GET:/busca/genero?genero=Fiction``.
    """
    method = request.method.upper()
    path = request.url.path
    query = canonical_query(getattr(request, "query_params", None))

    key = f"{method}:{path}"
    if query:
        key = f"{key}?{query}"
    return key
