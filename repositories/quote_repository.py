"""
Quote Repository - data access layer for the daily Quote store.
"""

from typing import Dict, List, Optional, Sequence
from datetime import date
from sqlmodel import Session, func, select

from db_engine import get_engine
from models import Quote
from models.common import utc_now
from repositories.common import upsert


class QuoteRepository:
    """Repository for daily asset prices. One row per (asset, day)."""

    @staticmethod
    def upsert(
        asset_id: int,
        quote_date: date,
        price: float,
        session: Optional[Session] = None
    ) -> None:
        """
        Store the price for an asset on a day, overwriting a same-day row.

        Args:
            asset_id: Asset ID
            quote_date: Calendar day the price belongs to
            price: Price in the asset's home currency
            session: Optional existing session for transaction reuse
        """
        def _upsert(sess: Session) -> None:
            upsert(
                sess,
                Quote,
                {
                    'asset_id': asset_id,
                    'quote_date': quote_date,
                    'price': float(price),
                    'created_at': utc_now(),
                },
                conflict_columns=('asset_id', 'quote_date'),
                update_columns=('price',)
            )
            sess.commit()

        if session is not None:
            return _upsert(session)
        else:
            with Session(get_engine()) as session:
                return _upsert(session)

    @staticmethod
    def get_latest(asset_id: int, session: Optional[Session] = None) -> Optional[Quote]:
        """Get the most recent quote for an asset."""
        def _get_latest(sess: Session) -> Optional[Quote]:
            statement = select(Quote).where(
                Quote.asset_id == asset_id
            ).order_by(Quote.quote_date.desc()).limit(1)
            return sess.exec(statement).first()

        if session is not None:
            return _get_latest(session)
        else:
            with Session(get_engine()) as session:
                return _get_latest(session)

    @staticmethod
    def get_latest_for_assets(
        asset_ids: Sequence[int],
        session: Optional[Session] = None
    ) -> Dict[int, Quote]:
        """
        Get the most recent quote for each of several assets.

        Returns:
            Mapping of asset_id to its latest Quote; assets never quoted are absent
        """
        if not asset_ids:
            return {}

        def _get_latest_for_assets(sess: Session) -> Dict[int, Quote]:
            statement = select(Quote).where(
                Quote.asset_id.in_(list(asset_ids))
            ).order_by(Quote.asset_id, Quote.quote_date.desc())
            latest: Dict[int, Quote] = {}
            for quote in sess.exec(statement):
                if quote.asset_id not in latest:
                    latest[quote.asset_id] = quote
            return latest

        if session is not None:
            return _get_latest_for_assets(session)
        else:
            with Session(get_engine()) as session:
                return _get_latest_for_assets(session)

    @staticmethod
    def get_history(asset_id: int, limit: int = 60) -> List[Quote]:
        """Get historical quotes for an asset, newest first."""
        with Session(get_engine()) as session:
            statement = select(Quote).where(
                Quote.asset_id == asset_id
            ).order_by(Quote.quote_date.desc()).limit(limit)
            return list(session.exec(statement).all())

    @staticmethod
    def get_by_date(asset_id: int, quote_date: date) -> Optional[Quote]:
        """Get the quote stored for an asset on a specific day."""
        with Session(get_engine()) as session:
            statement = select(Quote).where(
                Quote.asset_id == asset_id,
                Quote.quote_date == quote_date
            )
            return session.exec(statement).first()

    @staticmethod
    def count() -> int:
        """Total number of stored quote rows."""
        with Session(get_engine()) as session:
            return session.exec(select(func.count()).select_from(Quote)).one()
