from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_current_user, get_db, get_optional_user, get_pagination, require_admin
from ..pagination import Pagination, page_payload
from ..services import articles as article_service

router = APIRouter(prefix="/articles", tags=["articles"])


@router.get("/published", response_model=schemas.Page[schemas.PublishedArticleOut])
def list_published_articles(
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    """
    Public listing of articles that are Published and currently inside
    their availability window. No authentication required.
    """
    items, total = article_service.list_published(db, pagination)
    return page_payload(items, total, pagination)


@router.get("", response_model=schemas.Page[schemas.ArticleOut])
def list_articles(
    publication_status: Optional[models.PublicationStatus] = Query(None, alias="status"),
    author_id: Optional[int] = Query(None, alias="authorId"),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List articles.

    - Admins see articles in every state and may filter by ``status``.
    - Everyone else sees only Published articles.
    """
    items, total = article_service.list_articles(
        db, pagination, current_user, status=publication_status, author_id=author_id
    )
    return page_payload(items, total, pagination)


@router.post("", response_model=schemas.ArticleOut, status_code=status.HTTP_201_CREATED)
def create_article(
    article_in: schemas.ArticleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Create a new article in Draft state, authored by the caller.
    """
    return article_service.create_article(db, article_in, current_user)


@router.get("/{article_id}", response_model=schemas.ArticleOut)
def get_article(
    article_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[models.User] = Depends(get_optional_user),
):
    """
    Read an article. Reading a Published article increments its view count.

    Raises
    ------
    NotFoundError
        - 404 if the article does not exist, or is unpublished and the
          caller is neither its author nor an admin.
    """
    return article_service.get_article(db, article_id, current_user)


@router.put("/{article_id}", response_model=schemas.ArticleOut)
def update_article(
    article_id: int,
    changes: schemas.ArticleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update title and/or content. *(Author or Admin)*
    """
    return article_service.update_article(db, article_id, changes, current_user)


@router.delete("/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_article(
    article_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Delete an article. *(Author or Admin)*

    Raises
    ------
    ConflictError
        - 409 ``ARTICLE_IN_USE`` while a menu item links to the article.
    """
    article_service.delete_article(db, article_id, current_user)


@router.post("/{article_id}/submit", response_model=schemas.ArticleOut)
def submit_article(
    article_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Submit a Draft for approval. *(Author or Admin)*

    Raises
    ------
    InvalidStateTransitionError
        - 400 if the article is not a Draft.
    """
    return article_service.submit_article(db, article_id, current_user)


@router.post("/{article_id}/approve", response_model=schemas.ArticleOut)
def approve_article(
    article_id: int,
    approval: schemas.ArticleApprove,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    """
    Publish an article that is pending approval. *(Admin)*

    Raises
    ------
    ValidationError
        - 400 ``INVALID_DATE_RANGE`` if ``availableUntil`` is not after
          ``availableFrom``. Checked before anything changes.
    InvalidStateTransitionError
        - 400 if the article is not PendingApproval.
    """
    return article_service.approve_article(db, article_id, approval, admin)


@router.post("/{article_id}/reject", response_model=schemas.ArticleOut)
def reject_article(
    article_id: int,
    body: Optional[schemas.ArticleReject] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    """
    Reject an article that is pending approval. *(Admin)*

    Raises
    ------
    InvalidStateTransitionError
        - 400 if the article is not PendingApproval.
    """
    reason = body.reason if body else None
    return article_service.reject_article(db, article_id, admin, reason=reason)
