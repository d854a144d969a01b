# routes_categories.py
"""
Per-user spending categories and their monthly budget ceilings.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Category, MerchantMapping, Transaction
from app.deps import get_db, require_owner
from app.schemas import BudgetIn, CategoryCreate, CategoryOut

router = APIRouter(prefix="/categories", tags=["categories"])


def get_owned_category(db: Session, category_id: int, owner_id: int) -> Optional[Category]:
    return (
        db.query(Category)
        .filter(Category.id == category_id, Category.owner_id == owner_id)
        .first()
    )


def ensure_category_owned(db: Session, category_id: Optional[int], owner_id: int) -> None:
    """404 unless category_id is None or belongs to owner_id."""
    if category_id is not None and get_owned_category(db, category_id, owner_id) is None:
        raise HTTPException(status_code=404, detail="Category not found")


@router.get("", response_model=List[CategoryOut])
def categories_list(db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    return db.query(Category).filter(Category.owner_id == owner_id).order_by(Category.name).all()


@router.post("", response_model=CategoryOut, status_code=201)
def categories_create(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
):
    category = Category(owner_id=owner_id, **payload.model_dump())
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Category {payload.name!r} already exists")
    db.refresh(category)
    return category


@router.patch("/{category_id}/budget", response_model=CategoryOut)
def categories_set_budget(
    category_id: int,
    payload: BudgetIn,
    db: Session = Depends(get_db),
    owner_id: int = Depends(require_owner),
):
    category = get_owned_category(db, category_id, owner_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")

    category.budget_limit = payload.budget_limit
    db.commit()
    db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=204)
def categories_delete(category_id: int, db: Session = Depends(get_db), owner_id: int = Depends(require_owner)):
    category = get_owned_category(db, category_id, owner_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")

    # unlink first; transactions and rules stay, uncategorized
    db.query(Transaction).filter(
        Transaction.category_id == category_id, Transaction.owner_id == owner_id
    ).update({Transaction.category_id: None}, synchronize_session=False)
    db.query(MerchantMapping).filter(
        MerchantMapping.category_id == category_id, MerchantMapping.owner_id == owner_id
    ).update({MerchantMapping.category_id: None}, synchronize_session=False)

    db.delete(category)
    db.commit()
