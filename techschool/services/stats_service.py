from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from techschool.models import Course, Enrollment, EnrollmentStatus, Group, Level


def revenue_by_course(db: Session) -> list[dict]:
    rows = (
        db.query(
            Course.id,
            Course.name,
            func.coalesce(func.sum(Enrollment.agreed_price), 0.0),
            func.count(Enrollment.id),
        )
        .outerjoin(Level, Level.course_id == Course.id)
        .outerjoin(Group, Group.level_id == Level.id)
        .outerjoin(
            Enrollment,
            (Enrollment.group_id == Group.id) & (Enrollment.status != EnrollmentStatus.CANCELLED.value),
        )
        .filter(Course.is_active.is_(True))
        .group_by(Course.id, Course.name)
        .all()
    )
    result = [
        {
            'id': course_id,
            'name': name,
            'total_revenue': round(float(total or 0.0), 2),
            'total_students': int(count or 0),
        }
        for course_id, name, total, count in rows
    ]
    result.sort(key=lambda item: (-item['total_revenue'], item['name']))
    return result
