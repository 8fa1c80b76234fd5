import logging

from circulation.core.errors import BookNotFound
from circulation.models import models
from circulation.models.enums import BookStatus
from circulation.repositories.repositories import BookRepository

logger = logging.getLogger("circulation.books")


class BookStatusTracker:
    """Holds the status of each book.

    Writes are unconditional: whether a status change is legal is decided by
    the coordinator before it calls ``set_status``.
    """

    def __init__(self, books: BookRepository) -> None:
        self.books = books

    def get_book(self, book_id: str) -> models.Book:
        book = self.books.find_by_id(book_id)
        if book is None:
            raise BookNotFound(f"Book not found with ID: {book_id}")
        return book

    def get_status(self, book_id: str) -> BookStatus:
        return self.get_book(book_id).status

    def set_status(self, book_id: str, new_status: BookStatus) -> models.Book:
        book = self.get_book(book_id)
        old_status = book.status
        book.status = new_status
        self.books.save(book)
        logger.info(f"Book {book_id} status {old_status.value} -> {new_status.value}")
        return book
