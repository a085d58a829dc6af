"""
CRUD operations (Create, Read, Update, Delete) for database models.

This layer provides a clean separation between API routes and database operations,
following the Repository pattern.
"""

from intake.crud import application, file_upload

__all__ = ["application", "file_upload"]
