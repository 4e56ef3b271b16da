from fastapi import HTTPException
from sqlalchemy.orm import Session
from tableside.models.core import Selection, SelectionOption
from tableside.services.billing import money
from tableside.services.pricing import parse_selections


def resolve_selections(db: Session, raw) -> dict[str, list[str]]:
    """
    Turn stored option ids into {selectionName: ["Option (+1.50)", ...]}.

    Looks up the current menu, so options deleted since the sale drop out.
    """
    try:
        picked = parse_selections(raw)
    except HTTPException:
        # unreadable legacy value: nothing to show
        return {}

    out: dict[str, list[str]] = {}
    for sel_id, option_ids in picked.items():
        sel = db.get(Selection, sel_id)
        if not sel:
            continue
        labels = []
        for opt_id in option_ids:
            opt = db.get(SelectionOption, opt_id)
            if not opt or opt.selection_id != sel.id:
                continue
            add = money(opt.price_add)
            labels.append(f"{opt.name} (+{add})" if add > 0 else opt.name)
        if labels:
            out[sel.name] = labels
    return out
