"""
Transaction Repository - data access layer for Transaction model.
Optimized with optional session parameter for transaction reuse.
"""

from typing import Any, Dict, Optional, List
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from db_engine import get_engine
from models import Transaction
from errors import ConflictError


class TransactionRepository:
    """Repository for Transaction CRUD operations."""

    @staticmethod
    def add(transaction: Transaction, session: Optional[Session] = None) -> Transaction:
        """
        Add a new transaction to the database.

        Args:
            transaction: Unsaved Transaction instance
            session: Optional existing session for transaction reuse

        Returns:
            Created Transaction object
        """
        def _create_transaction(sess: Session) -> Transaction:
            sess.add(transaction)
            try:
                sess.commit()
            except IntegrityError as e:
                sess.rollback()
                raise ConflictError(f"Could not store transaction: {e.orig}") from e
            sess.refresh(transaction)
            return transaction

        if session is not None:
            return _create_transaction(session)
        else:
            with Session(get_engine()) as session:
                return _create_transaction(session)

    @staticmethod
    def get_by_user(user_id: str, session: Optional[Session] = None) -> List[Transaction]:
        """
        Retrieve a user's full ledger, newest first.

        Args:
            user_id: Opaque authenticated-user identifier
            session: Optional existing session for transaction reuse

        Returns:
            List of Transaction objects
        """
        def _get_by_user(sess: Session) -> List[Transaction]:
            statement = select(Transaction).where(
                Transaction.user_id == user_id
            ).order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_by_user(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_user(session)

    @staticmethod
    def get_by_id(transaction_id: int, session: Optional[Session] = None) -> Optional[Transaction]:
        """Retrieve a transaction by its ID."""
        def _get_by_id(sess: Session) -> Optional[Transaction]:
            return sess.get(Transaction, transaction_id)

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def update(
        transaction_id: int,
        changes: Dict[str, Any],
        session: Optional[Session] = None
    ) -> Optional[Transaction]:
        """
        Update an existing transaction.

        Args:
            transaction_id: Transaction ID to update
            changes: Field name to new value
            session: Optional existing session for transaction reuse

        Returns:
            Updated Transaction object or None if not found
        """
        def _update(sess: Session) -> Optional[Transaction]:
            transaction = sess.get(Transaction, transaction_id)
            if not transaction:
                return None
            for field, value in changes.items():
                setattr(transaction, field, value)
            sess.add(transaction)
            try:
                sess.commit()
            except IntegrityError as e:
                sess.rollback()
                raise ConflictError(f"Could not update transaction: {e.orig}") from e
            sess.refresh(transaction)
            return transaction

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(transaction_id: int, session: Optional[Session] = None) -> bool:
        """
        Delete a transaction by its ID.

        Returns:
            True if successful, False if not found
        """
        def _delete(sess: Session) -> bool:
            try:
                transaction = sess.get(Transaction, transaction_id)
                if transaction:
                    sess.delete(transaction)
                    sess.commit()
                    return True
                return False
            except Exception as e:
                sess.rollback()
                raise e

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
