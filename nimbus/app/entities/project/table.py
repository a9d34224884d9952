import uuid

from sqlmodel import Field, SQLModel


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=255)
    # Optional project-scoped deploy credential
    api_key: str | None = Field(default=None, unique=True, index=True, max_length=128)


class ProjectMember(SQLModel, table=True):
    __tablename__ = "project_members"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", primary_key=True)
