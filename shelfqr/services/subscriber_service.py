"""
Subscriber Service

Email sign-ups on a collection's public page. Subscribing again after an
unsubscribe re-activates the existing row.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfqr.core.exceptions import CollectionNotFoundError, DatabaseError
from shelfqr.db.models import Collection, CollectionSubscriber, new_id
from shelfqr.db.sqlite_adapter import get_session_adapter


class SubscriberService:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def subscribe(self, collection_id: str, email: str) -> None:
        """
        Subscribe an email address to an active collection.

        Raises:
            CollectionNotFoundError: If the collection is missing or inactive
            DatabaseError: If the subscriber write fails
        """
        result = await self.session.execute(
            select(Collection.id)
            .where(Collection.id == collection_id)
            .where(Collection.active == True)  # noqa: E712
        )
        if result.scalar_one_or_none() is None:
            raise CollectionNotFoundError(collection_id)

        statement = get_session_adapter(self.session).build_upsert(
            CollectionSubscriber,
            values={
                "id": new_id(),
                "collection_id": collection_id,
                "email": email.lower().strip(),
                "unsubscribed": False,
                "created_at": datetime.utcnow(),
            },
            conflict_columns=["collection_id", "email"],
            update_columns=["unsubscribed"],
        )
        try:
            await self.session.execute(statement)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseError(f"Failed to subscribe to collection {collection_id}", original_error=e)
