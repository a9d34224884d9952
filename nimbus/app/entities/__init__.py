from nimbus.app.entities.project.table import Project, ProjectMember
from nimbus.app.entities.service.table import ServiceRecord
from nimbus.app.entities.user.table import User
from nimbus.app.entities.volume.table import VolumeRecord

__all__ = ["Project", "ProjectMember", "ServiceRecord", "User", "VolumeRecord"]
