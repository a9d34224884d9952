import uuid

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """An API caller. Users act on projects they are members of."""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=255)
    api_key: str = Field(unique=True, index=True, max_length=128)
