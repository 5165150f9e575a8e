"""Help-center endpoints: searchable article catalogue and rendered articles."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from api.auth import require_user
from api.errors import NotFoundError
from api.models import UserProfile
from utils.help_content import ARTICLE_BODIES, find_article, search_categories
from utils.markup import render_article

router = APIRouter(prefix="/help", tags=["help"])


def load_article(article_id: str) -> dict:
    """Article metadata plus its body rendered to HTML sections."""
    found = find_article(article_id)
    if found is None or article_id not in ARTICLE_BODIES:
        raise NotFoundError(f"Help article {article_id} not found")
    category, article = found
    return {
        **asdict(article),
        "category": {"id": category.id, "name": category.name},
        "sections": [
            {"title": section.title, "html": str(section.html)}
            for section in render_article(ARTICLE_BODIES[article_id])
        ],
    }


@router.get("", summary="Help categories, optionally filtered")
def help_index(
    q: str = Query("", description="Case-insensitive title/excerpt filter"),
    user: UserProfile = Depends(require_user),
) -> list[dict]:
    return [asdict(category) for category in search_categories(q)]


@router.get("/{article_id}", summary="One help article")
def help_article(article_id: str, user: UserProfile = Depends(require_user)) -> dict:
    return load_article(article_id)
