import uuid

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class ServiceRecord(SQLModel, table=True):
    """Exposure metadata of a reconciled service that the cluster does not keep.

    A record exists exactly as long as the service's workload does.
    """

    __tablename__ = "services"
    __table_args__ = (UniqueConstraint("project_id", "branch", "name"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", index=True)
    branch: str = Field(max_length=255)
    name: str = Field(max_length=255)
    node_ports: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    ingress: str | None = Field(default=None, max_length=255)
