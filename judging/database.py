from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_URL_STRICT = str(os.getenv("DATABASE_URL_STRICT", "")).strip().lower() in {"1", "true", "yes"}

def _normalize_database_url(url: str | None) -> str | None:
    """Point bare postgres:// URLs at the psycopg (v3) driver."""
    raw = (url or "").strip()
    for prefix in ("postgres://", "postgresql://"):
        if raw.startswith(prefix):
            return "postgresql+psycopg://" + raw[len(prefix) :]
    return raw or None

DATABASE_URL = _normalize_database_url(DATABASE_URL)

def _engine_info(engine) -> dict:
    url = engine.url
    return {"driver": url.drivername, "host": url.host, "port": url.port, "database": url.database}

def _is_memory_sqlite(url: str) -> bool:
    return url in {"sqlite://", "sqlite:///:memory:"}

def _connect_args_for(url: str) -> dict:
    # Sessions are handed across FastAPI's threadpool.
    return {"check_same_thread": False} if url.startswith("sqlite") else {}

def create_db_engine(url: str):
    kwargs = {
        "echo": False,
        "connect_args": _connect_args_for(url),
    }
    if _is_memory_sqlite(url):
        # A single shared connection, otherwise every session sees an empty database.
        kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(url, **kwargs)

def _try_engine(url: str):
    if not url:
        return None, "empty url"
    engine = create_db_engine(url)
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        return engine, None
    except Exception as e:
        return None, str(e)[:200]

engine = None
engine_error = None
DB_SOURCE = None  # "DATABASE_URL" | "SQLITE"

if DATABASE_URL:
    engine, engine_error = _try_engine(DATABASE_URL)
    if engine_error:
        print(f"[DB] DATABASE_URL connection failed: {engine_error}")
    else:
        DB_SOURCE = "DATABASE_URL"

if engine is None and DATABASE_URL and DATABASE_URL_STRICT:
    raise RuntimeError("DATABASE_URL_STRICT is enabled, refusing to fall back after DATABASE_URL failure.")

if engine is None:
    sqlite_url = os.getenv("SQLITE_FALLBACK_URL", "sqlite:///./judging.dev.db")
    engine, engine_error = _try_engine(sqlite_url)
    if engine_error:
        print(f"[DB] SQLite fallback failed: {engine_error}")
        raise RuntimeError("Database initialization failed after all fallbacks.")
    DB_SOURCE = "SQLITE"

DB_INFO = _engine_info(engine)
if DATABASE_URL and DB_SOURCE != "DATABASE_URL":
    print(f"[DB] Using fallback database (source={DB_SOURCE}).")
    print("[DB] Hint: set DATABASE_URL_STRICT=1 to disable fallbacks after DATABASE_URL failure.")
print(
    f"[DB] Active database: source={DB_SOURCE} driver={DB_INFO.get('driver')} "
    f"host={DB_INFO.get('host')} port={DB_INFO.get('port')} db={DB_INFO.get('database')}"
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
