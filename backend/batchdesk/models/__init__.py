from batchdesk.models.batch import Batch
from batchdesk.models.student import Student
from batchdesk.models.person import Person
from batchdesk.models.point_update import PointUpdate
from batchdesk.models.weekly_best_performer import WeeklyBestPerformer
from batchdesk.models.session_report import SessionReport

__all__ = ["Batch", "Student", "Person", "PointUpdate", "WeeklyBestPerformer", "SessionReport"]
