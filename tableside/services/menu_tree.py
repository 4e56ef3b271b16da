from sqlalchemy.orm import Session
from tableside.models.core import Category, MenuItem, Selection, SelectionOption, Department
from tableside.services.billing import as_float


def row_from_option(o: SelectionOption) -> dict:
    return {
        "id": o.id,
        "name": o.name,
        "description": o.description,
        "price_add": as_float(o.price_add),
        "is_available": o.is_available,
        "sort_order": o.sort_order,
    }


def row_from_selection(db: Session, s: Selection) -> dict:
    opts = (
        db.query(SelectionOption)
        .filter(SelectionOption.selection_id == s.id)
        .order_by(SelectionOption.sort_order.asc(), SelectionOption.name.asc())
        .all()
    )
    return {
        "id": s.id,
        "menu_item_id": s.menu_item_id,
        "name": s.name,
        "description": s.description,
        "is_required": s.is_required,
        "allow_multiple": s.allow_multiple,
        "sort_order": s.sort_order,
        "options": [row_from_option(o) for o in opts],
    }


def selections_for(db: Session, item_id: str) -> list[dict]:
    rows = (
        db.query(Selection)
        .filter(Selection.menu_item_id == item_id)
        .order_by(Selection.sort_order.asc(), Selection.name.asc())
        .all()
    )
    return [row_from_selection(db, s) for s in rows]


def row_from_item(db: Session, m: MenuItem, with_selections: bool = False,
                  departments: dict[str, Department] | None = None) -> dict:
    out = {
        "id": m.id,
        "category_id": m.category_id,
        "department_id": m.department_id,
        "name": m.name,
        "description": m.description,
        "price": as_float(m.price),
        "image": m.image,
        "is_active": m.is_active,
        "is_available": m.is_available,
        "sort_order": m.sort_order,
    }
    if departments is not None:
        d = departments.get(m.department_id) if m.department_id else None
        out["department_name"] = d.name if d else None
    if with_selections:
        out["selections"] = selections_for(db, m.id)
    return out


def row_from_category(c: Category, item_count: int | None = None) -> dict:
    out = {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "is_active": c.is_active,
        "sort_order": c.sort_order,
    }
    if item_count is not None:
        out["item_count"] = item_count
    return out


def menu_tree(db: Session, owner_id: str, public: bool = False) -> list[dict]:
    """Categories -> items -> selections -> options; `public` hides what customers cannot order."""
    cq = db.query(Category).filter(Category.user_id == owner_id)
    if public:
        cq = cq.filter(Category.is_active.is_(True))
    cats = cq.order_by(Category.sort_order.asc(), Category.name.asc()).all()

    out = []
    for c in cats:
        iq = db.query(MenuItem).filter(MenuItem.category_id == c.id)
        if public:
            iq = iq.filter(MenuItem.is_active.is_(True), MenuItem.is_available.is_(True))
        items = iq.order_by(MenuItem.sort_order.asc(), MenuItem.name.asc()).all()
        if public and not items:
            continue
        row = row_from_category(c)
        row["items"] = [row_from_item(db, m, with_selections=True) for m in items]
        if public:
            for it in row["items"]:
                for sel in it["selections"]:
                    sel["options"] = [o for o in sel["options"] if o["is_available"]]
        out.append(row)
    return out
