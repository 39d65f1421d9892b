"""
DollarRate Repository - data access layer for daily USD/ARS rates.
"""

from typing import List, Optional
from datetime import date
from sqlmodel import Session, func, select

from db_engine import get_engine
from models import DollarRate
from models.common import utc_now
from repositories.common import upsert


class DollarRateRepository:
    """Repository for dollar rates. One row per (day, rate type)."""

    @staticmethod
    def upsert(
        rate_date: date,
        rate_type: str,
        buy_price: float,
        sell_price: float,
        session: Optional[Session] = None
    ) -> None:
        """
        Store the buy/sell pair for a rate type on a day, overwriting a same-day row.

        Args:
            rate_date: Calendar day
            rate_type: "oficial", "mep", "blue", ...
            buy_price: ARS per USD, buy side
            sell_price: ARS per USD, sell side
            session: Optional existing session for transaction reuse
        """
        def _upsert(sess: Session) -> None:
            upsert(
                sess,
                DollarRate,
                {
                    'rate_date': rate_date,
                    'rate_type': rate_type,
                    'buy_price': float(buy_price),
                    'sell_price': float(sell_price),
                    'created_at': utc_now(),
                },
                conflict_columns=('rate_date', 'rate_type'),
                update_columns=('buy_price', 'sell_price')
            )
            sess.commit()

        if session is not None:
            return _upsert(session)
        else:
            with Session(get_engine()) as session:
                return _upsert(session)

    @staticmethod
    def get_latest(limit: int = 10, session: Optional[Session] = None) -> List[DollarRate]:
        """
        Get the most recent rate rows across all types, newest day first.

        Args:
            limit: Maximum number of rows
            session: Optional existing session for transaction reuse
        """
        def _get_latest(sess: Session) -> List[DollarRate]:
            statement = select(DollarRate).order_by(
                DollarRate.rate_date.desc(), DollarRate.id.desc()
            ).limit(limit)
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_latest(session)
        else:
            with Session(get_engine()) as session:
                return _get_latest(session)

    @staticmethod
    def count() -> int:
        """Total number of stored rate rows."""
        with Session(get_engine()) as session:
            return session.exec(select(func.count()).select_from(DollarRate)).one()
