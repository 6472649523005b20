"""
Navigation menu tree.

Items are stored flat with a ``parent_id`` back-reference. The tree view is
built from a single query grouped by parent in memory. Each item links to
exactly one target: an article (``LinkType.ARTICLE``) or an external URL
(``LinkType.EXTERNAL_URL``).
"""

from collections import defaultdict
from typing import Dict, List, Optional

import structlog
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..exceptions import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def _sort_key(item: models.MenuItem):
    return (item.display_order, item.id)


def get_tree(db: Session, include_hidden: bool = False) -> List[schemas.MenuTreeNode]:
    items = db.query(models.MenuItem).options(joinedload(models.MenuItem.article)).all()

    by_parent: Dict[Optional[int], List[models.MenuItem]] = defaultdict(list)
    for item in items:
        if item.is_visible or include_hidden:
            by_parent[item.parent_id].append(item)

    def build(parent_id: Optional[int]) -> List[schemas.MenuTreeNode]:
        nodes = []
        for item in sorted(by_parent.get(parent_id, []), key=_sort_key):
            fields = schemas.MenuItemOut.model_validate(item).model_dump()
            nodes.append(schemas.MenuTreeNode(**fields, children=build(item.id)))
        return nodes

    # children of a filtered-out parent are never reached from the roots
    return build(None)


def get_menu_item(db: Session, item_id: int) -> models.MenuItem:
    item = db.get(models.MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item")
    return item


def _validate_link(
    db: Session,
    link_type: models.LinkType,
    article_id: Optional[int],
    external_url: Optional[str],
) -> None:
    if link_type == models.LinkType.ARTICLE:
        if article_id is None:
            raise ValidationError("articleId is required when linkType is Article", field="articleId")
        if external_url:
            raise ValidationError("externalUrl must be empty when linkType is Article", field="externalUrl")
        if db.get(models.ContentArticle, article_id) is None:
            raise ValidationError("Linked article does not exist", field="articleId")
    else:
        if not external_url or not external_url.strip():
            raise ValidationError(
                "externalUrl is required when linkType is ExternalUrl", field="externalUrl"
            )
        if article_id is not None:
            raise ValidationError("articleId must be empty when linkType is ExternalUrl", field="articleId")


def _validate_parent(db: Session, parent_id: Optional[int], item_id: Optional[int] = None) -> None:
    if parent_id is None:
        return
    parent = db.get(models.MenuItem, parent_id)
    if parent is None:
        raise ValidationError("Parent menu item does not exist", field="parentId")
    if item_id is None:
        return

    # walk up from the new parent; meeting the item itself means a cycle
    node = parent
    while node is not None:
        if node.id == item_id:
            raise ValidationError("A menu item cannot be moved under itself", field="parentId")
        node = node.parent


def create_menu_item(db: Session, item_in: schemas.MenuItemCreate) -> models.MenuItem:
    _validate_parent(db, item_in.parent_id)
    _validate_link(db, item_in.link_type, item_in.article_id, item_in.external_url)

    item = models.MenuItem(**item_in.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("menu_item_created", menu_item_id=item.id, parent_id=item.parent_id)
    return item


def update_menu_item(
    db: Session, item_id: int, changes: schemas.MenuItemUpdate
) -> models.MenuItem:
    """Partial update. Exclusivity is checked on the merged state, and
    switching the link type drops the target of the old type unless the
    request sets it explicitly."""
    item = get_menu_item(db, item_id)
    data = changes.model_dump(exclude_unset=True)

    link_type = data.get("link_type") or item.link_type
    article_id = data["article_id"] if "article_id" in data else item.article_id
    external_url = data["external_url"] if "external_url" in data else item.external_url

    if link_type != item.link_type:
        if link_type == models.LinkType.ARTICLE and "external_url" not in data:
            external_url = None
        elif link_type == models.LinkType.EXTERNAL_URL and "article_id" not in data:
            article_id = None

    _validate_link(db, link_type, article_id, external_url)
    if "parent_id" in data:
        _validate_parent(db, data["parent_id"], item.id)
        item.parent_id = data["parent_id"]

    item.link_type = link_type
    item.article_id = article_id
    item.external_url = external_url
    for field in ("name", "display_order", "is_visible"):
        if data.get(field) is not None:
            setattr(item, field, data[field])

    db.commit()
    db.refresh(item)
    return item


def delete_menu_item(db: Session, item_id: int) -> None:
    """Delete an item together with its whole subtree."""
    item = get_menu_item(db, item_id)
    db.delete(item)
    db.commit()
    logger.info("menu_item_deleted", menu_item_id=item_id)


def reorder(db: Session, orders: Dict[int, int]) -> int:
    """Assign display orders in bulk. Unknown ids are skipped."""
    if not orders:
        raise ValidationError("At least one item is required", field="items")

    items = db.query(models.MenuItem).filter(models.MenuItem.id.in_(list(orders))).all()
    for item in items:
        item.display_order = orders[item.id]
    db.commit()
    logger.info("menu_reordered", updated=len(items), requested=len(orders))
    return len(items)
