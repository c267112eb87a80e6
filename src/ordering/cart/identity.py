"""Cart line identity.

Two additions of the same product with the same option selection land in the
same cart slot. The slot is named by an identity key derived from the product
id and a canonical form of the selection, so the order in which groups or
options were picked never matters:

    "latte"                                  no options
    "latte__milk:oat|size:large"             groups sorted by id
    "bagel__extras:cheese,egg"               option ids sorted within a group

Separator characters inside ids are percent-escaped, and so is "_" in the
product id, so distinct selections can never spell the same key.
"""

from collections.abc import Iterable, Mapping

GROUP_SEPARATOR = "|"
OPTION_SEPARATOR = ","
PRODUCT_SEPARATOR = "__"

_PART_ESCAPES = str.maketrans({"%": "%25", ":": "%3A", ",": "%2C", "|": "%7C"})
_PRODUCT_ESCAPES = str.maketrans({"%": "%25", ":": "%3A", ",": "%2C", "|": "%7C", "_": "%5F"})


def canonical_options(selected) -> tuple[tuple[str, tuple[str, ...]], ...]:
    """Normalize an option selection to sorted ``(group_id, (option_id, ...))`` pairs.

    Accepts a mapping of group id to option ids or an iterable of pairs.
    A bare string option id counts as a single selection. Groups with no
    options are dropped and duplicate option ids collapse.
    """
    if not selected:
        return ()

    pairs: Iterable = selected.items() if isinstance(selected, Mapping) else selected

    merged: dict[str, set[str]] = {}
    for group_id, option_ids in pairs:
        if isinstance(option_ids, str):
            option_ids = [option_ids]
        merged.setdefault(str(group_id), set()).update(str(o) for o in option_ids or ())

    return tuple((group_id, tuple(sorted(ids))) for group_id, ids in sorted(merged.items()) if ids)


def _escape(value: str, table=_PART_ESCAPES) -> str:
    return value.translate(table)


def identity_key(product_id: str, selected=None) -> str:
    canonical = canonical_options(selected)
    product = _escape(str(product_id), _PRODUCT_ESCAPES)
    if not canonical:
        return product

    groups = GROUP_SEPARATOR.join(
        f"{_escape(group_id)}:{OPTION_SEPARATOR.join(_escape(option_id) for option_id in ids)}"
        for group_id, ids in canonical
    )
    return f"{product}{PRODUCT_SEPARATOR}{groups}"
