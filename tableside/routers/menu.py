from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from tableside.db import get_db
from tableside.deps import Actor, require_actor, require_admin
from tableside.models.core import (
    Category, Department, MenuItem, Selection, SelectionOption, OrderItem,
)
from tableside.schemas.menu import (
    CategoryIn, CategoryUpdate, MenuItemIn, MenuItemUpdate, DepartmentAssign,
    SelectionIn, SelectionUpdate, OptionIn,
)
from tableside.services.billing import money
from tableside.services.lookup import owned, owned_selection
from tableside.services.menu_tree import (
    menu_tree, row_from_category, row_from_item, row_from_selection, selections_for,
)
from tableside.logging_config import get_logger

router = APIRouter(tags=["menu"])
log = get_logger(__name__)


# ---------- helpers ----------

def _category_name_taken(db: Session, owner_id: str, name: str, exclude_id: str | None = None) -> bool:
    q = db.query(Category).filter(Category.user_id == owner_id, func.lower(Category.name) == name.lower())
    if exclude_id:
        q = q.filter(Category.id != exclude_id)
    return q.first() is not None


def _item_count(db: Session, category_id: str) -> int:
    return db.query(func.count(MenuItem.id)).filter(MenuItem.category_id == category_id).scalar() or 0


def _check_department(db: Session, owner_id: str, department_id: str | None):
    if department_id is None:
        return
    d = db.get(Department, department_id)
    if not d or d.user_id != owner_id:
        raise HTTPException(400, detail="Invalid department")


def _check_category(db: Session, owner_id: str, category_id: str) -> Category:
    c = db.get(Category, category_id)
    if not c or c.user_id != owner_id:
        raise HTTPException(400, detail="Invalid category")
    return c


def _replace_options(db: Session, sel: Selection, options: List[OptionIn]):
    # options carry no history; replacing reissues their ids
    db.query(SelectionOption).filter(SelectionOption.selection_id == sel.id).delete(synchronize_session=False)
    for i, o in enumerate(options):
        db.add(SelectionOption(
            selection_id=sel.id,
            name=o.name.strip(),
            description=o.description,
            price_add=money(o.price_add),
            is_available=o.is_available,
            sort_order=i,
        ))


# ---------- full menu ----------

@router.get("/menu")
def get_menu(db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    return menu_tree(db, actor.owner_id)


# ---------- categories ----------

@router.get("/categories")
def list_categories(db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    rows: List[Category] = (
        db.query(Category)
        .filter(Category.user_id == actor.owner_id)
        .order_by(Category.sort_order.asc(), Category.name.asc())
        .all()
    )
    return [row_from_category(c, _item_count(db, c.id)) for c in rows]


@router.post("/categories", status_code=201)
def create_category(body: CategoryIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    name = body.name.strip()
    if not name:
        raise HTTPException(400, detail="Category name is required")
    if _category_name_taken(db, actor.owner_id, name):
        raise HTTPException(400, detail="Category with this name already exists")

    max_sort = (
        db.query(func.max(Category.sort_order))
        .filter(Category.user_id == actor.owner_id)
        .scalar()
    )
    try:
        c = Category(
            user_id=actor.owner_id,
            name=name,
            description=body.description,
            is_active=body.is_active,
            sort_order=(max_sort or 0) + 1,
        )
        db.add(c)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Category with this name already exists")
    return row_from_category(c, 0)


@router.get("/categories/{category_id}")
def get_category(category_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    c = owned(db, Category, category_id, actor.owner_id)
    row = row_from_category(c, _item_count(db, c.id))
    items = (
        db.query(MenuItem)
        .filter(MenuItem.category_id == c.id)
        .order_by(MenuItem.sort_order.asc(), MenuItem.name.asc())
        .all()
    )
    row["items"] = [row_from_item(db, m) for m in items]
    return row


@router.put("/categories/{category_id}")
def update_category(category_id: str, body: CategoryUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    c = owned(db, Category, category_id, actor.owner_id)
    data = body.model_dump(exclude_unset=True)

    for key in ("name", "is_active", "sort_order"):
        if key in data and data[key] is None:
            raise HTTPException(400, detail=f"{key} cannot be null")
    if "name" in data:
        data["name"] = data["name"].strip()
        if not data["name"]:
            raise HTTPException(400, detail="Category name is required")
        if _category_name_taken(db, actor.owner_id, data["name"], exclude_id=c.id):
            raise HTTPException(400, detail="Category with this name already exists")

    for k, v in data.items():
        setattr(c, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, detail="Category with this name already exists")
    return row_from_category(c, _item_count(db, c.id))


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    c = owned(db, Category, category_id, actor.owner_id)
    count = _item_count(db, c.id)
    if count > 0:
        log.warning("category delete blocked", extra={"category_id": c.id, "item_count": count})
        raise HTTPException(400, detail=f"Cannot delete category with {count} menu item(s)")
    db.delete(c)
    db.commit()
    return {"ok": True}


# ---------- menu items ----------

@router.get("/menu-items")
def list_menu_items(
    category_id: Optional[str] = None,
    department_id: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
):
    q = db.query(MenuItem).filter(MenuItem.user_id == actor.owner_id)
    if category_id:
        q = q.filter(MenuItem.category_id == category_id)
    if department_id:
        q = q.filter(MenuItem.department_id == department_id)
    rows = q.order_by(MenuItem.sort_order.asc(), MenuItem.name.asc()).all()
    departments = {d.id: d for d in db.query(Department).filter(Department.user_id == actor.owner_id).all()}
    return [row_from_item(db, m, departments=departments) for m in rows]


@router.post("/menu-items", status_code=201)
def create_menu_item(body: MenuItemIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    name = body.name.strip()
    if not name:
        raise HTTPException(400, detail="Name is required")
    _check_category(db, actor.owner_id, body.category_id)
    _check_department(db, actor.owner_id, body.department_id)

    sort_order = body.sort_order
    if sort_order is None:
        max_sort = (
            db.query(func.max(MenuItem.sort_order))
            .filter(MenuItem.category_id == body.category_id)
            .scalar()
        )
        sort_order = (max_sort or 0) + 1

    m = MenuItem(
        user_id=actor.owner_id,
        category_id=body.category_id,
        department_id=body.department_id,
        name=name,
        description=body.description,
        price=money(body.price),
        image=body.image,
        is_active=body.is_active,
        is_available=body.is_available,
        sort_order=sort_order,
    )
    db.add(m)
    db.commit()
    log.info("menu item created", extra={"owner_id": actor.owner_id, "menu_item_id": m.id})
    return row_from_item(db, m)


@router.get("/menu-items/{item_id}")
def get_menu_item(item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    return row_from_item(db, m, with_selections=True)


@router.put("/menu-items/{item_id}")
def update_menu_item(item_id: str, body: MenuItemUpdate, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    data = body.model_dump(exclude_unset=True)

    for key in ("name", "price", "category_id", "is_active", "is_available", "sort_order"):
        if key in data and data[key] is None:
            raise HTTPException(400, detail=f"{key} cannot be null")
    if "name" in data:
        data["name"] = data["name"].strip()
        if not data["name"]:
            raise HTTPException(400, detail="Name is required")
    if "category_id" in data:
        _check_category(db, actor.owner_id, data["category_id"])
    if "department_id" in data:
        _check_department(db, actor.owner_id, data["department_id"])
    if "price" in data:
        data["price"] = money(data["price"])

    for k, v in data.items():
        setattr(m, k, v)
    db.commit()
    return row_from_item(db, m, with_selections=True)


@router.put("/menu-items/{item_id}/department")
def assign_department(item_id: str, body: DepartmentAssign, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    _check_department(db, actor.owner_id, body.department_id)
    m.department_id = body.department_id
    db.commit()
    return row_from_item(db, m)


@router.delete("/menu-items/{item_id}")
def delete_menu_item(item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    if db.query(OrderItem.id).filter(OrderItem.menu_item_id == m.id).first():
        raise HTTPException(400, detail="Cannot delete a menu item that appears on orders; mark it inactive instead")

    sel_ids = [s.id for s in db.query(Selection.id).filter(Selection.menu_item_id == m.id).all()]
    if sel_ids:
        db.query(SelectionOption).filter(SelectionOption.selection_id.in_(sel_ids)).delete(synchronize_session=False)
        db.query(Selection).filter(Selection.id.in_(sel_ids)).delete(synchronize_session=False)
    db.delete(m)
    db.commit()
    return {"ok": True}


# ---------- selections ----------

@router.get("/menu-items/{item_id}/selections")
def list_selections(item_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    return selections_for(db, m.id)


@router.post("/menu-items/{item_id}/selections", status_code=201)
def create_selection(item_id: str, body: SelectionIn, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    sort_order = body.sort_order
    if sort_order is None:
        max_sort = db.query(func.max(Selection.sort_order)).filter(Selection.menu_item_id == m.id).scalar()
        sort_order = (max_sort or 0) + 1

    sel = Selection(
        menu_item_id=m.id,
        name=body.name.strip(),
        description=body.description,
        is_required=body.is_required,
        allow_multiple=body.allow_multiple,
        sort_order=sort_order,
    )
    db.add(sel)
    db.flush()
    _replace_options(db, sel, body.options)
    db.commit()
    return row_from_selection(db, sel)


@router.get("/menu-items/{item_id}/selections/{selection_id}")
def get_selection(item_id: str, selection_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_actor)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    return row_from_selection(db, owned_selection(db, m, selection_id))


@router.put("/menu-items/{item_id}/selections/{selection_id}")
def update_selection(item_id: str, selection_id: str, body: SelectionUpdate,
                     db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    sel = owned_selection(db, m, selection_id)
    data = body.model_dump(exclude_unset=True)
    options = data.pop("options", None)

    for key in ("name", "is_required", "allow_multiple", "sort_order"):
        if key in data and data[key] is None:
            raise HTTPException(400, detail=f"{key} cannot be null")
    for k, v in data.items():
        setattr(sel, k, v.strip() if k == "name" else v)
    if options is not None:
        _replace_options(db, sel, body.options)
    db.commit()
    return row_from_selection(db, sel)


@router.delete("/menu-items/{item_id}/selections/{selection_id}")
def delete_selection(item_id: str, selection_id: str, db: Session = Depends(get_db), actor: Actor = Depends(require_admin)):
    m = owned(db, MenuItem, item_id, actor.owner_id)
    sel = owned_selection(db, m, selection_id)
    db.query(SelectionOption).filter(SelectionOption.selection_id == sel.id).delete(synchronize_session=False)
    db.delete(sel)
    db.commit()
    return {"ok": True}
