# API endpoints
from . import booklets, students, editors, health

__all__ = ["booklets", "students", "editors", "health"]
