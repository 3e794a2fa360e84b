from gainz.db.session import async_session_maker, dispose_db, get_db, init_db, session_scope
from gainz.db.base import Base

__all__ = ["Base", "async_session_maker", "dispose_db", "get_db", "init_db", "session_scope"]
