"""
Book store backed by MongoDB for the FastAPI application.
"""

from typing import Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from books_api.models import Book, BookCreate, BookUpdate

logger = structlog.get_logger(__name__)


class BookStoreError(RuntimeError):
    """Raised when the book store cannot complete an operation."""


class MongoBookStore:
    """
    Async CRUD operations over the books collection.

    Book ids are integers drawn from a sequence kept in the ``counters``
    collection and stored as the document ``_id``.
    """

    COUNTER_ID = "books"

    def __init__(self, database: AsyncIOMotorDatabase, collection_name: str = "books"):
        self.database = database
        self.books_collection = database[collection_name]
        self.counters_collection = database["counters"]

    @staticmethod
    def _to_book(book_doc: Dict) -> Book:
        book_doc = dict(book_doc)
        book_doc["id"] = book_doc.pop("_id")
        return Book(**book_doc)

    async def _next_id(self) -> int:
        counter = await self.counters_collection.find_one_and_update(
            {"_id": self.COUNTER_ID},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(counter["seq"])

    async def ensure_indexes(self) -> None:
        """Create the index used by owner-scoped queries."""
        try:
            await self.books_collection.create_index([("registered_by", ASCENDING)])
            logger.info("Book indexes ensured")
        except PyMongoError as e:
            logger.error("Failed to create indexes", error=str(e))
            raise BookStoreError("Failed to create indexes") from e

    async def find_all(self) -> List[Book]:
        """Return every book ordered by id."""
        try:
            cursor = self.books_collection.find({}).sort("_id", ASCENDING)
            book_docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list books", error=str(e))
            raise BookStoreError("Failed to list books") from e
        return [self._to_book(doc) for doc in book_docs]

    async def find_by_owner(self, owner: str) -> List[Book]:
        """Return the books registered by ``owner`` ordered by id."""
        try:
            cursor = self.books_collection.find({"registered_by": owner}).sort("_id", ASCENDING)
            book_docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list books for owner", owner=owner, error=str(e))
            raise BookStoreError("Failed to list books for owner") from e
        return [self._to_book(doc) for doc in book_docs]

    async def insert(self, book: BookCreate) -> Book:
        """
        Insert a new book.

        Args:
            book: Validated book payload

        Returns:
            The stored book with its assigned id
        """
        try:
            book_id = await self._next_id()
            book_doc = {"_id": book_id, **book.model_dump()}
            await self.books_collection.insert_one(book_doc)
        except PyMongoError as e:
            logger.error("Failed to insert book", title=book.title, error=str(e))
            raise BookStoreError("Failed to insert book") from e

        logger.info("Book inserted", book_id=book_id, registered_by=book.registered_by)
        return self._to_book(book_doc)

    async def update_by_id(self, book_id: int, patch: BookUpdate) -> Optional[Book]:
        """
        Apply a partial update to a book.

        Args:
            book_id: Book identifier
            patch: Fields to change

        Returns:
            The updated book, or None if no book has this id
        """
        try:
            book_doc = await self.books_collection.find_one_and_update(
                {"_id": book_id},
                {"$set": patch.to_patch()},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise BookStoreError("Failed to update book") from e

        if book_doc is None:
            return None
        return self._to_book(book_doc)

    async def delete_by_id(self, book_id: int) -> int:
        """Delete one book. Returns the number of books removed (0 or 1)."""
        try:
            result = await self.books_collection.delete_one({"_id": book_id})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise BookStoreError("Failed to delete book") from e
        return result.deleted_count

    async def delete_by_owner(self, owner: str) -> int:
        """Delete every book registered by ``owner``. Returns the count removed."""
        try:
            result = await self.books_collection.delete_many({"registered_by": owner})
        except PyMongoError as e:
            logger.error("Failed to delete books for owner", owner=owner, error=str(e))
            raise BookStoreError("Failed to delete books for owner") from e
        return result.deleted_count

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.books_collection.count_documents({})
            return {
                "status": "healthy",
                "books_collection": "accessible",
                "books_count": books_count
            }
        except PyMongoError as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
