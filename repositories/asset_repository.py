"""
Asset Repository - data access layer for Asset model.
Optimized with optional session parameter for transaction reuse.
"""

from typing import Any, Dict, Optional, List, Sequence
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from db_engine import get_engine
from models import Asset, AssetType, Transaction
from errors import ConflictError


class AssetRepository:
    """Repository for Asset CRUD operations."""

    @staticmethod
    def add(asset: Asset, session: Optional[Session] = None) -> Asset:
        """
        Add a new asset to the database.

        Args:
            asset: Unsaved Asset instance
            session: Optional existing session for transaction reuse

        Returns:
            Created Asset object

        Raises:
            ConflictError: if the (ticker, type) pair already exists
        """
        def _create_asset(sess: Session) -> Asset:
            sess.add(asset)
            try:
                sess.commit()
            except IntegrityError as e:
                sess.rollback()
                raise ConflictError(
                    f"Asset {asset.ticker} of type {asset.asset_type.value} already exists"
                ) from e
            sess.refresh(asset)
            return asset

        if session is not None:
            return _create_asset(session)
        else:
            with Session(get_engine()) as session:
                return _create_asset(session)

    @staticmethod
    def get_all(session: Optional[Session] = None) -> List[Asset]:
        """Retrieve all assets ordered by type and ticker."""
        def _get_all(sess: Session) -> List[Asset]:
            statement = select(Asset).order_by(Asset.asset_type, Asset.ticker)
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_by_id(asset_id: int, session: Optional[Session] = None) -> Optional[Asset]:
        """Retrieve an asset by its ID."""
        def _get_by_id(sess: Session) -> Optional[Asset]:
            return sess.get(Asset, asset_id)

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def get_by_ids(asset_ids: Sequence[int], session: Optional[Session] = None) -> Dict[int, Asset]:
        """
        Retrieve several assets at once.

        Returns:
            Mapping of asset_id to Asset
        """
        if not asset_ids:
            return {}

        def _get_by_ids(sess: Session) -> Dict[int, Asset]:
            statement = select(Asset).where(Asset.id.in_(list(asset_ids)))
            return {asset.id: asset for asset in sess.exec(statement)}

        if session is not None:
            return _get_by_ids(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_ids(session)

    @staticmethod
    def get_by_ticker_and_type(
        ticker: str,
        asset_type: AssetType,
        session: Optional[Session] = None
    ) -> Optional[Asset]:
        """Retrieve the asset identified by its (ticker, type) pair."""
        def _get(sess: Session) -> Optional[Asset]:
            statement = select(Asset).where(
                Asset.ticker == ticker,
                Asset.asset_type == asset_type
            )
            return sess.exec(statement).first()

        if session is not None:
            return _get(session)
        else:
            with Session(get_engine()) as session:
                return _get(session)

    @staticmethod
    def get_by_types(
        asset_types: Sequence[AssetType],
        session: Optional[Session] = None
    ) -> List[Asset]:
        """Retrieve all assets whose type is one of the given types."""
        def _get_by_types(sess: Session) -> List[Asset]:
            statement = select(Asset).where(
                Asset.asset_type.in_(list(asset_types))
            ).order_by(Asset.ticker)
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_by_types(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_types(session)

    @staticmethod
    def update(
        asset_id: int,
        changes: Dict[str, Any],
        session: Optional[Session] = None
    ) -> Optional[Asset]:
        """
        Update fields of an existing asset.

        Args:
            asset_id: Asset ID to update
            changes: Field name to new value
            session: Optional existing session for transaction reuse

        Returns:
            Updated Asset object or None if not found

        Raises:
            ConflictError: if the change collides with another (ticker, type)
        """
        def _update(sess: Session) -> Optional[Asset]:
            asset = sess.get(Asset, asset_id)
            if not asset:
                return None
            for field, value in changes.items():
                setattr(asset, field, value)
            sess.add(asset)
            try:
                sess.commit()
            except IntegrityError as e:
                sess.rollback()
                raise ConflictError(
                    f"Asset {asset.ticker} of type {asset.asset_type.value} already exists"
                ) from e
            sess.refresh(asset)
            return asset

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(asset_id: int, session: Optional[Session] = None) -> bool:
        """
        Delete an asset. Its quotes go with it.

        Args:
            asset_id: Asset ID to delete
            session: Optional existing session for transaction reuse

        Returns:
            True if deleted, False if not found

        Raises:
            ConflictError: if any transaction references the asset
        """
        def _delete(sess: Session) -> bool:
            asset = sess.get(Asset, asset_id)
            if not asset:
                return False

            referenced = sess.exec(
                select(func.count()).select_from(Transaction).where(Transaction.asset_id == asset_id)
            ).one()
            if referenced:
                raise ConflictError("Cannot delete asset with existing transactions")

            try:
                sess.delete(asset)
                sess.commit()
            except IntegrityError as e:
                sess.rollback()
                raise ConflictError("Cannot delete asset with existing transactions") from e
            return True

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
