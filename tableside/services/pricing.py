import json
from decimal import Decimal
from fastapi import HTTPException
from sqlalchemy.orm import Session
from tableside.config import settings
from tableside.models.core import MenuItem, Selection, SelectionOption
from tableside.services.billing import money

PRICE_TOLERANCE = Decimal("0.005")


def parse_selections(raw) -> dict[str, list[str]]:
    """
    Normalise modifier choices to {selectionId: [optionId, ...]}.

    Accepts the mapping itself or its JSON text; a single option id may be
    given instead of a list.
    """
    if raw in (None, "", {}):
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise HTTPException(400, detail="selections must be a JSON object")
    if not isinstance(raw, dict):
        raise HTTPException(400, detail="selections must be an object")

    out: dict[str, list[str]] = {}
    for sel_id, picked in raw.items():
        if picked is None:
            continue
        ids = picked if isinstance(picked, list) else [picked]
        out[str(sel_id)] = [str(i) for i in ids]
    return out


def dump_selections(selections: dict[str, list[str]]) -> str | None:
    return json.dumps(selections) if selections else None


def line_unit_price(db: Session, menu_item: MenuItem, selections: dict[str, list[str]]) -> Decimal:
    price = Decimal(menu_item.price)
    for sel_id, option_ids in selections.items():
        sel = db.get(Selection, sel_id)
        if not sel or sel.menu_item_id != menu_item.id:
            raise HTTPException(400, detail=f"selection {sel_id} does not belong to {menu_item.name}")
        if len(option_ids) > 1 and not sel.allow_multiple:
            raise HTTPException(400, detail=f"{sel.name} allows a single option")
        for opt_id in option_ids:
            opt = db.get(SelectionOption, opt_id)
            if not opt or opt.selection_id != sel.id:
                raise HTTPException(400, detail=f"option {opt_id} does not belong to {sel.name}")
            price += Decimal(opt.price_add or 0)
    return money(price)


def check_declared_price(declared, computed: Decimal, *, trust_client: bool = True) -> Decimal:
    """Pick the stored unit price for an order line."""
    if declared is None:
        return computed
    declared = money(declared)
    if declared <= 0:
        raise HTTPException(400, detail="price must be positive")
    if not trust_client or settings.ENFORCE_MENU_PRICES:
        if abs(declared - computed) > PRICE_TOLERANCE:
            raise HTTPException(400, detail=f"price {declared} does not match menu price {computed}")
        return computed
    return declared
