"""Read-only catalog of courses, modules and quiz attempts."""

from .models import CATALOG_TABLES_CQL, CourseInfo, ModuleInfo, QuizAttempt
from .reader import CassandraQuizAttemptReader, CatalogReader


__all__ = [
    "CATALOG_TABLES_CQL",
    "CassandraQuizAttemptReader",
    "CatalogReader",
    "CourseInfo",
    "ModuleInfo",
    "QuizAttempt",
]
