from schoolboard.models.activity_log import ActivityLog  # noqa: F401
from schoolboard.models.announcement import Announcement, AnnouncementType  # noqa: F401
from schoolboard.models.lesson import Lesson  # noqa: F401
from schoolboard.models.parliament import (  # noqa: F401
    ParliamentDate,
    ParliamentNote,
    ParliamentSubject,
    SubjectStatus,
)
from schoolboard.models.school_class import SchoolClass  # noqa: F401
from schoolboard.models.timetable_entry import TimetableEntry  # noqa: F401
from schoolboard.models.user import User, UserRole  # noqa: F401
