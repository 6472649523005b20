from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, policies, schemas
from ..deps import get_db, get_optional_user, require_admin
from ..services import menus as menu_service

router = APIRouter(prefix="/menus", tags=["menus"])


@router.get("", response_model=schemas.MenuTree)
def get_menu_tree(
    include_hidden: bool = Query(False, alias="includeHidden"),
    db: Session = Depends(get_db),
    current_user: Optional[models.User] = Depends(get_optional_user),
):
    """
    Return the whole navigation tree. No authentication required.

    Hidden items (and everything below them) are left out unless an admin
    asks for them with ``includeHidden=true``.
    """
    include_hidden = include_hidden and policies.is_admin(current_user)
    return {"data": menu_service.get_tree(db, include_hidden=include_hidden)}


@router.put("/reorder", response_model=schemas.MessageResponse)
def reorder_menu_items(
    body: schemas.MenuReorder,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Set the display order of several items at once. *(Admin)*

    Unknown ids are ignored.
    """
    updated = menu_service.reorder(db, {item.id: item.display_order for item in body.items})
    return {"message": f"Reordered {updated} menu items"}


@router.post("", response_model=schemas.MenuItemOut, status_code=status.HTTP_201_CREATED)
def create_menu_item(
    item_in: schemas.MenuItemCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Create a menu item. *(Admin)*

    Raises
    ------
    ValidationError
        - 422 if the link target does not match ``linkType``, the linked
          article does not exist, or the parent does not exist.
    """
    return menu_service.create_menu_item(db, item_in)


@router.get("/{item_id}", response_model=schemas.MenuItemOut)
def get_menu_item(item_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a single menu item by its ID.
    """
    return menu_service.get_menu_item(db, item_id)


@router.put("/{item_id}", response_model=schemas.MenuItemOut)
def update_menu_item(
    item_id: int,
    changes: schemas.MenuItemUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Update a menu item. *(Admin)*

    Switching ``linkType`` drops the old target. Moving an item under
    itself or one of its descendants is rejected.
    """
    return menu_service.update_menu_item(db, item_id, changes)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_menu_item(
    item_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Delete a menu item and all of its children. *(Admin)*
    """
    menu_service.delete_menu_item(db, item_id)
