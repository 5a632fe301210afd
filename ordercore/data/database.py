# ordercore/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ordercore.utils.settings import DATABASE_URL

Base = declarative_base()


def build_engine(url: str) -> Engine:
    # sqlite (testy/dev) potrzebuje check_same_thread=False przy wielu watkach
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False)


engine = build_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


def create_tables(bind: Engine | None = None) -> None:
    # import modeli rejestruje tabele w Base.metadata
    import ordercore.data.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
