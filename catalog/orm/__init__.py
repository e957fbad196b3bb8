from .base import Base

# Courses
from .course import (
    Course, OnlineCourse, OfflineCourse, FreeCourse,
    CourseVariant, CourseStatus, CourseLevel, EnrollmentWindowStatus,
    COURSE_MODELS, model_for
)
from .module import CourseModule
from .batch import Batch, BatchStatus
from .enrollment import Enrollment, EnrollmentStatus
from .review import Review, ReviewStatus
from .offer import Offer
from .search_term import CourseSearchTerm
