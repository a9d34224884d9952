import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class VolumeRecord(SQLModel, table=True):
    """Stable identifier of a declared volume.

    The storage claim backing the volume is named after ``identifier``, which
    is allocated once per (namespace, volume name) and never regenerated.
    """

    __tablename__ = "volumes"
    __table_args__ = (UniqueConstraint("namespace", "volume_name"),)

    identifier: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    namespace: str = Field(max_length=255, index=True)
    volume_name: str = Field(max_length=255)
    project_id: uuid.UUID = Field(foreign_key="projects.id", index=True)
    branch: str = Field(max_length=255)
    size: int = Field(default=100, gt=0)
