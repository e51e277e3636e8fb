"""
Book routes: list, owner-scoped list, create, update and delete.
"""

import asyncio
from typing import Awaitable, List, Optional, TypeVar

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

from books_api.auth import authorize_write, require_identity
from books_api.database import BookStoreError, MongoBookStore
from books_api.models import Book, BookCreate, BookUpdate, DeleteResponse, ErrorResponse, Identity

logger = structlog.get_logger(__name__)

T = TypeVar("T")

router = APIRouter(prefix="/books", tags=["Books"])

# Ids are stored as BSON int64.
MIN_BOOK_ID = -(2 ** 63)
MAX_BOOK_ID = 2 ** 63 - 1

STORE_ERROR_RESPONSES = {
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse, "description": "Book store unavailable"},
}


def get_book_store(request: Request) -> MongoBookStore:
    """Get the book store the application was built with."""
    store = request.app.state.book_store
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    return store


async def call_store(request: Request, operation: str, call: Awaitable[T]) -> T:
    """
    Await a store call bounded by the configured timeout.

    Store failures and timeouts become a 503 for this request only.
    """
    timeout = request.app.state.config.store_timeout_seconds
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Book store call timed out", operation=operation, timeout_seconds=timeout)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Book store timed out"
        )
    except BookStoreError as e:
        logger.error("Book store call failed", operation=operation, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Book store unavailable"
        )


@router.get("", response_model=List[Book], responses=STORE_ERROR_RESPONSES)
async def list_books(
    request: Request,
    store: MongoBookStore = Depends(get_book_store),
):
    """Get every registered book."""
    return await call_store(request, "find_all", store.find_all())


@router.get(
    "/mybooks",
    response_model=List[Book],
    responses={status.HTTP_403_FORBIDDEN: {"model": ErrorResponse}, **STORE_ERROR_RESPONSES},
)
async def list_my_books(
    request: Request,
    identity: Identity = Depends(require_identity),
    username: str = Query(..., min_length=1, description="Owner whose books to list"),
    store: MongoBookStore = Depends(get_book_store),
):
    """
    Get the books registered by one owner.

    Requires `Authorization: Bearer <token>`.
    """
    books = await call_store(request, "find_by_owner", store.find_by_owner(username))
    logger.info("Listed books for owner", username=username, caller=identity.username, count=len(books))
    return books


@router.post("", response_model=Book, status_code=status.HTTP_201_CREATED, responses=STORE_ERROR_RESPONSES)
async def create_book(
    request: Request,
    book: BookCreate,
    _: Optional[Identity] = Depends(authorize_write),
    store: MongoBookStore = Depends(get_book_store),
):
    """
    Register a new book.

    - **author**, **title**, **registered_by**: non-empty strings
    - **date_finished**: ISO-8601 timestamp
    """
    return await call_store(request, "insert", store.insert(book))


@router.put(
    "",
    response_model=Book,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}, **STORE_ERROR_RESPONSES},
)
async def update_book(
    request: Request,
    book_id: int = Query(..., alias="id", ge=MIN_BOOK_ID, le=MAX_BOOK_ID, description="Book identifier"),
    patch: BookUpdate = Body(...),
    _: Optional[Identity] = Depends(authorize_write),
    store: MongoBookStore = Depends(get_book_store),
):
    """
    Change some fields of a book. Fields left out of the body keep their values.

    Only **author**, **title** and **date_finished** can be changed.
    """
    book = await call_store(request, "update_by_id", store.update_by_id(book_id, patch))
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with ID '{book_id}' not found"
        )
    logger.info("Book updated", book_id=book_id, fields=sorted(patch.to_patch()))
    return book


@router.delete("", response_model=DeleteResponse, responses=STORE_ERROR_RESPONSES)
async def delete_book(
    request: Request,
    book_id: int = Query(..., alias="id", ge=MIN_BOOK_ID, le=MAX_BOOK_ID, description="Book identifier"),
    _: Optional[Identity] = Depends(authorize_write),
    store: MongoBookStore = Depends(get_book_store),
):
    """Delete a book by id. Deleting an unknown id succeeds with `deleted: 0`."""
    deleted = await call_store(request, "delete_by_id", store.delete_by_id(book_id))
    logger.info("Book deleted", book_id=book_id, deleted=deleted)
    return DeleteResponse(deleted=deleted)


@router.delete("/mybooks", response_model=DeleteResponse, responses=STORE_ERROR_RESPONSES)
async def delete_my_books(
    request: Request,
    username: str = Query(..., min_length=1, description="Owner whose books to delete"),
    _: Optional[Identity] = Depends(authorize_write),
    store: MongoBookStore = Depends(get_book_store),
):
    """Delete every book registered by one owner."""
    deleted = await call_store(request, "delete_by_owner", store.delete_by_owner(username))
    logger.info("Books deleted for owner", username=username, deleted=deleted)
    return DeleteResponse(deleted=deleted)
