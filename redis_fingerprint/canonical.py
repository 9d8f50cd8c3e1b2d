"""
Canonical forms of fetched values.

A canonical form is a list of strings that depends only on the type tag and
the value: unordered collections are sorted, ordered ones keep store order.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .models import TypeTag

# Canonical form of a key that vanished between enumeration and fetch.
ABSENT_SENTINEL: List[str] = [""]


def canonical_string(value: Optional[str]) -> List[str]:
    if value is None:
        return list(ABSENT_SENTINEL)
    return [value]


def canonical_list(elements: Iterable[str]) -> List[str]:
    return list(elements)


def canonical_set(members: Iterable[str]) -> List[str]:
    return sorted(members)


def canonical_hash(fields: Mapping[str, str]) -> List[str]:
    """Flatten field/value pairs sorted by field name."""
    flattened: List[str] = []
    for name in sorted(fields):
        flattened.append(name)
        flattened.append(fields[name])
    return flattened


def canonical_zset(members: Iterable[str]) -> List[str]:
    # Members arrive in rank order, which the store already fixes.
    return list(members)


def canonical_absent(_value: Any = None) -> List[str]:
    return list(ABSENT_SENTINEL)


_CANONICALIZERS: Dict[TypeTag, Callable[[Any], List[str]]] = {
    TypeTag.STRING: canonical_string,
    TypeTag.LIST: canonical_list,
    TypeTag.SET: canonical_set,
    TypeTag.HASH: canonical_hash,
    TypeTag.ZSET: canonical_zset,
    TypeTag.NONE: canonical_absent,
}


def canonicalize(type_tag: TypeTag, value: Any) -> List[str]:
    """
    Produce the canonical form of a raw value.

    Args:
        type_tag: Type reported by the store
        value: Raw value as returned by the matching read command

    Returns:
        Ordered list of strings; equal values give equal lists
    """
    return _CANONICALIZERS[type_tag](value)
