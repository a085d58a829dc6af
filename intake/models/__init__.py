"""
Database models package.
"""

from intake.models.application import Application, ApplicationStatus, Gender
from intake.models.file_upload import FileStatus, FileUpload, UploadSource

__all__ = ["Application", "ApplicationStatus", "Gender", "FileUpload", "FileStatus", "UploadSource"]
