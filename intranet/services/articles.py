r"""
Content articles and their publication workflow.

    Draft --submit--> PendingApproval --approve--> Published
                                      \--reject--> Rejected

Published and Rejected are terminal. A transition requested from the wrong
state raises ``InvalidStateTransitionError`` and leaves the row untouched.
"""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from .. import models, policies, schemas
from ..exceptions import ConflictError, InvalidStateTransitionError, NotFoundError, ValidationError
from ..pagination import Pagination, paginate
from ..timeutils import utcnow

logger = structlog.get_logger(__name__)

Status = models.PublicationStatus


def _base_query(db: Session):
    return db.query(models.ContentArticle).options(
        joinedload(models.ContentArticle.author),
        joinedload(models.ContentArticle.publisher),
    )


def _load(db: Session, article_id: int) -> models.ContentArticle:
    article = _base_query(db).filter(models.ContentArticle.id == article_id).first()
    if article is None:
        raise NotFoundError("Article")
    return article


def _require_status(article: models.ContentArticle, expected: Status, action: str) -> None:
    if article.publication_status != expected:
        raise InvalidStateTransitionError(
            f"Cannot {action} an article in {article.publication_status.value} state",
            article.publication_status.value,
        )


def create_article(
    db: Session, article_in: schemas.ArticleCreate, author: models.User
) -> models.ContentArticle:
    article = models.ContentArticle(
        title=article_in.title,
        content=article_in.content,
        author_id=author.id,
        publication_status=Status.DRAFT,
    )
    db.add(article)
    db.commit()
    logger.info("article_created", article_id=article.id, author_id=author.id)
    return _load(db, article.id)


def list_articles(
    db: Session,
    pagination: Pagination,
    actor: models.User,
    status: Optional[Status] = None,
    author_id: Optional[int] = None,
):
    """Admins see every state; everyone else only Published articles."""
    query = _base_query(db)
    if not policies.is_admin(actor):
        query = query.filter(models.ContentArticle.publication_status == Status.PUBLISHED)
    if status is not None:
        query = query.filter(models.ContentArticle.publication_status == status)
    if author_id is not None:
        query = query.filter(models.ContentArticle.author_id == author_id)
    query = query.order_by(models.ContentArticle.created_at.desc(), models.ContentArticle.id.desc())
    return paginate(query, pagination)


def list_published(db: Session, pagination: Pagination, now: Optional[datetime] = None):
    """Published articles whose availability window contains ``now``."""
    now = now or utcnow()
    query = _base_query(db).filter(
        models.ContentArticle.publication_status == Status.PUBLISHED,
        models.ContentArticle.available_from <= now,
        or_(
            models.ContentArticle.available_until.is_(None),
            models.ContentArticle.available_until >= now,
        ),
    )
    query = query.order_by(models.ContentArticle.published_at.desc(), models.ContentArticle.id.desc())
    return paginate(query, pagination)


def get_article(db: Session, article_id: int, actor: Optional[models.User]) -> models.ContentArticle:
    """Fetch an article for reading.

    Unpublished articles are hidden (404) from everyone but admins and
    their author. Reading a Published article counts as a view.
    """
    article = _load(db, article_id)
    if article.publication_status != Status.PUBLISHED:
        if actor is None or not policies.can_edit_article(actor, article):
            raise NotFoundError("Article")
        return article

    article.view_count = (article.view_count or 0) + 1
    db.commit()
    return _load(db, article_id)


def update_article(
    db: Session, article_id: int, changes: schemas.ArticleUpdate, actor: models.User
) -> models.ContentArticle:
    article = _load(db, article_id)
    policies.ensure(policies.can_edit_article(actor, article), "Not allowed to edit this article")

    data = changes.model_dump(exclude_unset=True)
    for field, value in data.items():
        if value is not None:
            setattr(article, field, value)
    db.commit()
    return _load(db, article_id)


def delete_article(db: Session, article_id: int, actor: models.User) -> None:
    article = _load(db, article_id)
    policies.ensure(policies.can_edit_article(actor, article), "Not allowed to delete this article")

    linked = (
        db.query(models.MenuItem.id)
        .filter(models.MenuItem.article_id == article.id)
        .first()
    )
    if linked:
        raise ConflictError(
            "Article is linked from a menu item", code="ARTICLE_IN_USE", details={"menuItemId": linked[0]}
        )

    db.delete(article)
    db.commit()
    logger.info("article_deleted", article_id=article_id, actor_id=actor.id)


def submit_article(db: Session, article_id: int, actor: models.User) -> models.ContentArticle:
    article = _load(db, article_id)
    policies.ensure(policies.can_edit_article(actor, article), "Not allowed to submit this article")
    _require_status(article, Status.DRAFT, "submit")

    article.publication_status = Status.PENDING_APPROVAL
    db.commit()
    logger.info("article_submitted", article_id=article.id, actor_id=actor.id)
    return _load(db, article_id)


def approve_article(
    db: Session, article_id: int, approval: schemas.ArticleApprove, publisher: models.User
) -> models.ContentArticle:
    if approval.available_until is not None and approval.available_until <= approval.available_from:
        raise ValidationError(
            "availableUntil must be after availableFrom",
            field="availableUntil",
            code="INVALID_DATE_RANGE",
            status_code=400,
        )

    article = _load(db, article_id)
    _require_status(article, Status.PENDING_APPROVAL, "approve")

    article.publication_status = Status.PUBLISHED
    article.available_from = approval.available_from
    article.available_until = approval.available_until
    article.published_by = publisher.id
    article.published_at = utcnow()
    db.commit()
    logger.info("article_approved", article_id=article.id, publisher_id=publisher.id)
    return _load(db, article_id)


def reject_article(
    db: Session, article_id: int, actor: models.User, reason: Optional[str] = None
) -> models.ContentArticle:
    article = _load(db, article_id)
    _require_status(article, Status.PENDING_APPROVAL, "reject")

    article.publication_status = Status.REJECTED
    db.commit()
    logger.info("article_rejected", article_id=article.id, actor_id=actor.id, reason=reason)
    return _load(db, article_id)
