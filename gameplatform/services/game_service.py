"""
Game Platform Backend: Game Catalog Service
=============================================

What:  Catalog listing/search, game CRUD for verified developers, view
       counting and rating propagation from the reviews module.
Why:   The catalog is the hottest read path of the platform, so listings and
       game pages are served from Redis whenever possible.
How:   Listing pages are cached per query (5 minutes) and game pages per id
       (1 hour). Any write to a game drops its page and every listing page.

Visibility:
    published         everyone
    draft / archived  the owning developer and admins only (404 for others)
"""

import hashlib
import json
import logging
import re
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.cache import cache
from gameplatform.exceptions import ForbiddenError, NotFoundError, ValidationError
from gameplatform.models.game import Game
from gameplatform.models.review import GameRating, Review
from gameplatform.models.user import User
from gameplatform.schemas.common import page_count
from gameplatform.schemas.game import (
    GameAnalyticsResponse,
    GameCreateRequest,
    GameListResponse,
    GameQueryParams,
    GameResponse,
    GameUpdateRequest,
)
from gameplatform.services.verification_service import verification_service

logger = logging.getLogger(__name__)

LIST_CACHE_TTL = 300
ITEM_CACHE_TTL = 3600

SORT_ORDER = {
    "newest": (Game.created_at.desc(),),
    "oldest": (Game.created_at.asc(),),
    "price_asc": (Game.price.asc(), Game.created_at.desc()),
    "price_desc": (Game.price.desc(), Game.created_at.desc()),
    "rating": (Game.average_rating.desc(), Game.reviews_count.desc()),
    "title": (Game.title.asc(),),
}


def slugify(title: str) -> str:
    """
    URL slug for a title.

    Example:
        "Space Quest: Part II!" → "space-quest-part-ii"
    """
    slug = title.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug or "game"


def _item_key(game_id: uuid.UUID) -> str:
    return f"games:item:{game_id}"


def _list_key(params: GameQueryParams) -> str:
    raw = json.dumps(params.model_dump(mode="json"), sort_keys=True)
    return f"games:list:{hashlib.sha1(raw.encode()).hexdigest()}"


def _json_label(value: str) -> str:
    # Labels are stored as JSON arrays; match the quoted element
    return f'%"{value}"%'


class GameService:

    # ══════════════════════════════════════════════════════════════════════
    # Reads
    # ══════════════════════════════════════════════════════════════════════

    async def list_games(self, db: AsyncSession, params: GameQueryParams) -> GameListResponse:
        key = _list_key(params)
        cached = await cache.get(key)
        if cached is not None:
            return GameListResponse(**cached)

        conditions = [Game.status == "published"]
        if params.genre:
            conditions.append(cast(Game.genres, String).ilike(_json_label(params.genre)))
        if params.tag:
            conditions.append(cast(Game.tags, String).ilike(_json_label(params.tag)))
        if params.q:
            pattern = f"%{params.q.strip()}%"
            conditions.append(or_(Game.title.ilike(pattern), Game.description.ilike(pattern)))
        if params.min_price is not None:
            conditions.append(Game.price >= params.min_price)
        if params.max_price is not None:
            conditions.append(Game.price <= params.max_price)

        result = await db.execute(
            select(Game)
            .where(*conditions)
            .order_by(*SORT_ORDER[params.sort])
            .limit(params.limit)
            .offset((params.page - 1) * params.limit)
        )
        total = (await db.execute(select(func.count(Game.id)).where(*conditions))).scalar() or 0
        response = GameListResponse(
            items=[GameResponse.model_validate(g) for g in result.scalars().all()],
            total=total,
            page=params.page,
            limit=params.limit,
            pages=page_count(total, params.limit),
        )
        await cache.set(key, response.model_dump(mode="json"), ttl=LIST_CACHE_TTL)
        return response

    async def search_games(self, db: AsyncSession, q: str, limit: int = 20) -> List[GameResponse]:
        pattern = f"%{q.strip()}%"
        result = await db.execute(
            select(Game)
            .where(
                Game.status == "published",
                or_(Game.title.ilike(pattern), Game.description.ilike(pattern)),
            )
            .order_by(Game.title.asc())
            .limit(limit)
        )
        return [GameResponse.model_validate(g) for g in result.scalars().all()]

    def _can_manage(self, game: Game, user: Optional[User]) -> bool:
        return user is not None and (user.role == "admin" or game.developer_id == user.id)

    async def _load(self, db: AsyncSession, game_id: uuid.UUID) -> Game:
        game = await db.get(Game, game_id)
        if game is None:
            raise NotFoundError(resource="game", resource_id=str(game_id))
        return game

    async def _count_view(self, db: AsyncSession, game_id: uuid.UUID) -> None:
        await db.execute(
            update(Game)
            .where(Game.id == game_id)
            .values(views_count=Game.views_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def _serve(self, db: AsyncSession, game: Game, viewer: Optional[User]) -> GameResponse:
        if game.status != "published" and not self._can_manage(game, viewer):
            raise NotFoundError(resource="game", resource_id=str(game.id))
        await self._count_view(db, game.id)
        response = GameResponse.model_validate(game)
        response = response.model_copy(update={"views_count": game.views_count + 1})
        if game.status == "published":
            await cache.set(_item_key(game.id), response.model_dump(mode="json"), ttl=ITEM_CACHE_TTL)
        return response

    async def get_game(
        self, db: AsyncSession, game_id: uuid.UUID, viewer: Optional[User] = None
    ) -> GameResponse:
        cached = await cache.get(_item_key(game_id))
        if cached is not None:
            await self._count_view(db, game_id)
            cached["views_count"] = cached.get("views_count", 0) + 1
            await cache.set(_item_key(game_id), cached, keep_ttl=True)
            return GameResponse(**cached)
        return await self._serve(db, await self._load(db, game_id), viewer)

    async def get_game_by_slug(
        self, db: AsyncSession, slug: str, viewer: Optional[User] = None
    ) -> GameResponse:
        result = await db.execute(select(Game).where(Game.slug == slug))
        game = result.scalars().first()
        if game is None:
            raise NotFoundError(resource="game", resource_id=slug)
        return await self._serve(db, game, viewer)

    async def list_by_developer(
        self,
        db: AsyncSession,
        developer_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        viewer: Optional[User] = None,
    ) -> GameListResponse:
        conditions = [Game.developer_id == developer_id]
        if viewer is None or (viewer.id != developer_id and viewer.role != "admin"):
            conditions.append(Game.status == "published")

        result = await db.execute(
            select(Game)
            .where(*conditions)
            .order_by(Game.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total = (await db.execute(select(func.count(Game.id)).where(*conditions))).scalar() or 0
        return GameListResponse(
            items=[GameResponse.model_validate(g) for g in result.scalars().all()],
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    # ══════════════════════════════════════════════════════════════════════
    # Writes
    # ══════════════════════════════════════════════════════════════════════

    async def _unique_slug(
        self, db: AsyncSession, title: str, exclude_id: Optional[uuid.UUID] = None
    ) -> str:
        base = slugify(title)
        query = select(Game.slug).where(or_(Game.slug == base, Game.slug.like(f"{base}-%")))
        if exclude_id is not None:
            query = query.where(Game.id != exclude_id)
        taken = set((await db.execute(query)).scalars().all())
        if base not in taken:
            return base
        suffix = 1
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    async def _invalidate(self, game_id: Optional[uuid.UUID] = None) -> None:
        if game_id is not None:
            await cache.delete(_item_key(game_id))
        await cache.delete_pattern("games:list:*")

    async def create_game(self, db: AsyncSession, user: User, data: GameCreateRequest) -> GameResponse:
        developer = await verification_service.get_approved_profile(db, user.id, "developer")
        if developer is None and user.role != "admin":
            raise ForbiddenError("Only verified developers can publish games")

        publisher_name = None
        if data.publisher_id is not None:
            publisher = await verification_service.get_approved_profile(db, data.publisher_id, "publisher")
            if publisher is None:
                raise ValidationError("Publisher is not verified", field="publisher_id")
            publisher_name = publisher.company_name

        game = Game(
            **data.model_dump(exclude={"publisher_id"}),
            slug=await self._unique_slug(db, data.title),
            developer_id=user.id,
            developer_name=developer.company_name if developer else (user.display_name or user.username),
            publisher_id=data.publisher_id,
            publisher_name=publisher_name,
        )
        db.add(game)
        await db.flush()
        await self._invalidate()
        logger.info("Game %s ('%s') created by %s", game.id, game.slug, user.id)
        return GameResponse.model_validate(game)

    async def update_game(
        self, db: AsyncSession, user: User, game_id: uuid.UUID, data: GameUpdateRequest
    ) -> GameResponse:
        game = await self._load(db, game_id)
        if not self._can_manage(game, user):
            raise ForbiddenError("Only the developer can modify this game")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        if "title" in changes and changes["title"] != game.title:
            game.slug = await self._unique_slug(db, changes["title"], exclude_id=game.id)
        for field, value in changes.items():
            setattr(game, field, value)
        await db.flush()
        await db.refresh(game)
        await self._invalidate(game.id)
        logger.info("Game %s updated: %s", game.id, sorted(changes))
        return GameResponse.model_validate(game)

    async def delete_game(self, db: AsyncSession, user: User, game_id: uuid.UUID) -> None:
        game = await self._load(db, game_id)
        if not self._can_manage(game, user):
            raise ForbiddenError("Only the developer can delete this game")
        await db.execute(delete(Review).where(Review.game_id == game_id))
        await db.execute(delete(GameRating).where(GameRating.game_id == game_id))
        await db.delete(game)
        await db.flush()
        await self._invalidate(game_id)
        await cache.delete(f"game_rating_{game_id}")
        logger.info("Game %s deleted by %s", game_id, user.id)

    async def get_game_analytics(
        self, db: AsyncSession, user: User, game_id: uuid.UUID
    ) -> GameAnalyticsResponse:
        game = await self._load(db, game_id)
        if not self._can_manage(game, user):
            raise ForbiddenError("Only the developer can view analytics for this game")
        return GameAnalyticsResponse(
            game_id=game.id,
            title=game.title,
            status=game.status,
            views_count=game.views_count,
            average_rating=game.average_rating,
            reviews_count=game.reviews_count,
        )

    async def apply_rating(
        self, db: AsyncSession, game_id: uuid.UUID, average: float, count: int
    ) -> None:
        """Denormalized rating written by the reviews module after every review change."""
        await db.execute(
            update(Game)
            .where(Game.id == game_id)
            .values(average_rating=average, reviews_count=count)
        )
        await self._invalidate(game_id)


# ── Singleton Instance ────────────────────────────────────────────────────
game_service = GameService()
