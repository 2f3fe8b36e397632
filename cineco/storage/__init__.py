"""Storage module for database operations."""

from cineco.storage.db import Base, close_engine, create_tables, get_engine, get_session_factory
from cineco.storage.json_utils import decode_int_list, encode_int_list
from cineco.storage.models import Decision, User
from cineco.storage.repo_decisions import DecisionsRepo, decision_genre_ids, make_doc_id
from cineco.storage.repo_users import UsersRepo

__all__ = [
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "create_tables",
    "close_engine",
    # JSON codec
    "encode_int_list",
    "decode_int_list",
    # Models
    "User",
    "Decision",
    # Repositories
    "UsersRepo",
    "DecisionsRepo",
    "decision_genre_ids",
    "make_doc_id",
]
