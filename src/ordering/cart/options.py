"""Option selection validation against a location's menu entry."""

from protean.exceptions import ValidationError

from ordering.cart.identity import canonical_options
from ordering.location.port import MenuProduct


def resolve_options(product: MenuProduct, selected) -> list[dict]:
    """Validate ``selected`` for ``product`` and return the priced selection.

    Each entry is ``{"group_id", "option_id", "name", "price_modifier"}`` with
    the modifier as a decimal string, ordered like the canonical selection.
    """
    canonical = canonical_options(selected)
    chosen = dict(canonical)
    resolved = []

    for group_id, option_ids in canonical:
        group = product.group(group_id)
        if group is None:
            raise ValidationError({"options": [f"Unknown option group '{group_id}' for {product.name}"]})

        if len(option_ids) > 1 and not group.multi_select:
            raise ValidationError({"options": [f"Only one choice is allowed for {group.name}"]})

        for option_id in option_ids:
            option = group.option(option_id)
            if option is None:
                raise ValidationError({"options": [f"Unknown option '{option_id}' in {group.name}"]})
            resolved.append(
                {
                    "group_id": group.id,
                    "option_id": option.id,
                    "name": option.name,
                    "price_modifier": str(option.price_modifier),
                }
            )

    missing = [g.name for g in product.option_groups if g.required and g.id not in chosen]
    if missing:
        raise ValidationError({"options": [f"Please choose: {', '.join(missing)}"]})

    return resolved
