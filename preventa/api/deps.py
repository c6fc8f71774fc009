from sqlmodel import Session

from preventa.core.database import engine


def get_session():
    with Session(engine) as session:
        yield session
