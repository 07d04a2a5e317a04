"""Data access for the NFT collection."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import selectinload

from marketplace.db.models import NFT
from marketplace.db.query import CollectionQuery
from marketplace.db.session import Database
from marketplace.domain.nfts import HIDDEN_FIELDS, prepare_nft_for_save, visible_criteria

# Column attributes whose API name differs from the attribute key.
_ATTRIBUTE_NAMES = {"metadata": "metadata_"}


def _aggregate_filters() -> list:
    return [NFT.is_secret.is_(False), NFT.status != "deleted"]


class NFTRepository:
    """CRUD and aggregation helpers for NFTs."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # -------------------------- queries --------------------------
    def find(self, criteria: Mapping[str, Any] | None = None, *, show_all: bool = False) -> CollectionQuery:
        return CollectionQuery(NFT, visible_criteria(criteria, show_all=show_all), hidden=HIDDEN_FIELDS)

    def top(self, sort: list[str], *, criteria: Mapping[str, Any] | None = None, limit: int = 5) -> list[dict]:
        query = self.find(criteria).sort(sort + ["id"]).exclude(["revision"]).limit(limit)
        with self.db.session() as session:
            return query.all(session)

    def get(self, nft_id: int, *, show_all: bool = False) -> Optional[NFT]:
        stmt = (
            select(NFT)
            .where(NFT.id == nft_id)
            .options(selectinload(NFT.creator), selectinload(NFT.owner))
        )
        if not show_all:
            stmt = stmt.where(NFT.is_secret.is_(False))
        with self.db.session() as session:
            return session.execute(stmt).scalar_one_or_none()

    def get_by_name(self, name: str) -> Optional[NFT]:
        with self.db.session() as session:
            return session.execute(select(NFT).where(NFT.name == name)).scalar_one_or_none()

    # -------------------------- writes --------------------------
    def create(self, data: Mapping[str, Any], *, creator_id: int | None, owner_id: int | None = None) -> NFT:
        nft = NFT(creator_id=creator_id, owner_id=owner_id if owner_id is not None else creator_id)
        self._assign(nft, data)
        prepare_nft_for_save(nft)
        with self.db.session() as session:
            session.add(nft)
            session.commit()
            nft_id = nft.id
        return self.get(nft_id, show_all=True)

    def update(self, nft_id: int, changes: Mapping[str, Any]) -> Optional[NFT]:
        with self.db.session() as session:
            nft = session.get(NFT, nft_id)
            if not nft:
                return None
            self._assign(nft, changes)
            prepare_nft_for_save(nft)
            session.commit()
        return self.get(nft_id, show_all=True)

    def delete(self, nft_id: int) -> bool:
        with self.db.session() as session:
            result = session.execute(delete(NFT).where(NFT.id == nft_id))
            session.commit()
            return result.rowcount > 0

    def delete_all(self) -> int:
        with self.db.session() as session:
            result = session.execute(delete(NFT))
            session.commit()
            return result.rowcount

    def increment_views(self, nft_id: int) -> None:
        with self.db.session() as session:
            session.execute(update(NFT).where(NFT.id == nft_id).values(views=NFT.views + 1))
            session.commit()

    @staticmethod
    def _assign(nft: NFT, data: Mapping[str, Any]) -> None:
        for key, value in data.items():
            setattr(nft, _ATTRIBUTE_NAMES.get(key, key), value)

    # -------------------------- aggregations --------------------------
    def stats_by_category(self) -> list[dict]:
        stmt = (
            select(
                NFT.category,
                func.count(NFT.id),
                func.avg(NFT.price),
                func.min(NFT.price),
                func.max(NFT.price),
                func.sum(NFT.price),
            )
            .where(NFT.status == "listed", *_aggregate_filters())
            .group_by(NFT.category)
            .order_by(func.avg(NFT.price).desc())
        )
        with self.db.session() as session:
            rows = session.execute(stmt).all()
        return [
            {
                "category": category,
                "num_nfts": count,
                "avg_price": avg,
                "min_price": low,
                "max_price": high,
                "total_value": total,
            }
            for category, count, avg, low, high, total in rows
        ]

    def monthly_plan(self, year: int) -> list[dict]:
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        stmt = (
            select(NFT.created_at, NFT.name)
            .where(NFT.created_at >= start, NFT.created_at < end, *_aggregate_filters())
            .order_by(NFT.created_at)
        )
        with self.db.session() as session:
            rows = session.execute(stmt).all()
        months: dict[int, list[str]] = defaultdict(list)
        for created_at, name in rows:
            months[created_at.month].append(name)
        return [
            {"month": month, "num_nfts_created": len(names), "nfts": names}
            for month, names in sorted(months.items())
        ]

    def top_stats(self) -> dict[str, Any]:
        filters = _aggregate_filters()
        by_category_stmt = (
            select(
                NFT.category,
                func.count(NFT.id),
                func.avg(NFT.price),
                func.sum(NFT.price),
                func.avg(NFT.ratings_average),
                func.sum(NFT.views),
            )
            .where(*filters)
            .group_by(NFT.category)
            .order_by(func.count(NFT.id).desc())
        )
        overall_stmt = select(
            func.count(NFT.id),
            func.avg(NFT.price),
            func.sum(NFT.price),
            func.avg(NFT.ratings_average),
            func.sum(NFT.views),
        ).where(*filters)

        def _top(order, *columns):
            return select(NFT.id, *columns).where(*filters).order_by(order, NFT.id).limit(5)

        with self.db.session() as session:
            by_category = session.execute(by_category_stmt).all()
            overall = session.execute(overall_stmt).one()
            by_price = session.execute(_top(NFT.price.desc(), NFT.name, NFT.price, NFT.category)).mappings().all()
            by_rating = session.execute(
                _top(NFT.ratings_average.desc(), NFT.name, NFT.ratings_average, NFT.ratings_quantity)
            ).mappings().all()
            by_views = session.execute(_top(NFT.views.desc(), NFT.name, NFT.views)).mappings().all()

        total, avg_price, total_value, avg_rating, total_views = overall
        return {
            "by_category": [
                {
                    "category": category,
                    "count": count,
                    "avg_price": avg,
                    "total_value": value,
                    "avg_rating": rating,
                    "total_views": views,
                }
                for category, count, avg, value, rating, views in by_category
            ],
            "by_price": [dict(row) for row in by_price],
            "by_rating": [dict(row) for row in by_rating],
            "by_views": [dict(row) for row in by_views],
            "overall": {
                "total_nfts": total,
                "avg_price": avg_price,
                "total_value": total_value or 0,
                "avg_rating": avg_rating,
                "total_views": total_views or 0,
            },
        }
