from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    identifier: str = ''
    password: str = ''


class UserCreate(BaseModel):
    username: str = ''
    password: str = ''
    first_name: str = ''
    paternal_surname: str = ''
    maternal_surname: str = ''
    email: str | None = None
    phone: str = ''
    role_ids: list[int] = Field(default_factory=list)


class UserUpdate(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None
    first_name: str | None = None
    paternal_surname: str | None = None
    maternal_surname: str | None = None
    phone: str | None = None
    is_active: bool | None = None
    role_ids: list[int] | None = None


class UserStatusUpdate(BaseModel):
    is_active: bool


class AttendanceRecordIn(BaseModel):
    enrollment_id: int
    status: str
    notes: str | None = None
    arrival_time: str | None = None


class AttendanceBatchRequest(BaseModel):
    group_id: int
    attendance_date: date = Field(alias='date')
    records: list[AttendanceRecordIn]

    class Config:
        populate_by_name = True


class NotificationSendRequest(BaseModel):
    user_id: int
    title: str
    message: str
    type: str = 'INFO'


class NotificationBroadcastRequest(BaseModel):
    role_name: str
    title: str
    message: str
    type: str = 'INFO'


class NotificationBulkRequest(BaseModel):
    user_ids: list[int]
    title: str
    message: str
    type: str = 'INFO'


class NotificationRead(BaseModel):
    id: int
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class SettingUpdate(BaseModel):
    value: str


class SchoolCreate(BaseModel):
    name: str
    sie_code: str | None = None
    director_name: str = ''
    address: str = ''
    district: str = ''
    city: str = ''
    phone: str = ''
    email: str = ''
    contact_person: str = ''


class SchoolUpdate(BaseModel):
    name: str | None = None
    sie_code: str | None = None
    director_name: str | None = None
    address: str | None = None
    district: str | None = None
    city: str | None = None
    phone: str | None = None
    email: str | None = None
    contact_person: str | None = None


class SchoolSummary(BaseModel):
    id: int
    name: str
    code: str

    class Config:
        from_attributes = True


class SchoolRead(SchoolSummary):
    sie_code: str | None = None
    director_name: str = ''
    address: str = ''
    district: str = ''
    city: str = ''
    phone: str = ''
    email: str = ''
    contact_person: str = ''
    is_active: bool


class AgreementCreate(BaseModel):
    name: str
    discount_type: Literal['PERCENTAGE', 'FIXED_AMOUNT']
    discount_value: float = Field(ge=0)
    start_date: date
    end_date: date | None = None
    notes: str = ''
    school_ids: list[int] = Field(default_factory=list)


class AgreementUpdate(BaseModel):
    name: str | None = None
    discount_type: Literal['PERCENTAGE', 'FIXED_AMOUNT'] | None = None
    discount_value: float | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None
    is_active: bool | None = None
    school_ids: list[int] | None = None


class AgreementRead(BaseModel):
    id: int
    name: str
    code: str
    discount_type: str
    discount_value: float
    start_date: date
    end_date: date | None = None
    notes: str = ''
    is_active: bool
    schools: list[SchoolSummary] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ClassroomCreate(BaseModel):
    name: str
    capacity: int = Field(default=20, gt=0)
    location: str = ''
    description: str = ''


class ClassroomUpdate(BaseModel):
    name: str | None = None
    capacity: int | None = Field(default=None, gt=0)
    location: str | None = None
    description: str | None = None


class ClassroomRead(BaseModel):
    id: int
    name: str
    capacity: int
    location: str = ''
    description: str = ''
    is_active: bool

    class Config:
        from_attributes = True


class CourseCreate(BaseModel):
    name: str
    code: str
    description: str = ''
    min_age: int | None = None
    max_age: int | None = None
    duration_months: int | None = None


class LevelCreate(BaseModel):
    name: str
    code: str
    description: str = ''
    order_index: int = 1
    duration_weeks: int | None = None
    total_hours: int | None = None
    base_price: float | None = Field(default=None, ge=0)


class LevelRead(BaseModel):
    id: int
    course_id: int
    name: str
    code: str
    description: str = ''
    order_index: int
    duration_weeks: int | None = None
    total_hours: int | None = None
    base_price: float | None = None
    is_active: bool

    class Config:
        from_attributes = True


class CourseRead(BaseModel):
    id: int
    name: str
    code: str
    description: str = ''
    min_age: int | None = None
    max_age: int | None = None
    duration_months: int | None = None
    is_active: bool

    class Config:
        from_attributes = True


class CourseDetail(CourseRead):
    levels: list[LevelRead] = Field(default_factory=list)


class GroupCreate(BaseModel):
    level_id: int
    teacher_id: int
    start_date: date
    end_date: date | None = None
    name: str | None = None
    code: str | None = None
    max_capacity: int = Field(default=20, gt=0)
    min_capacity: int = Field(default=5, ge=0)
    classroom: str = ''
    notes: str = ''


class GroupUpdate(BaseModel):
    teacher_id: int | None = None
    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    max_capacity: int | None = Field(default=None, gt=0)
    min_capacity: int | None = Field(default=None, ge=0)
    classroom: str | None = None
    notes: str | None = None


class GroupRead(BaseModel):
    id: int
    level_id: int
    teacher_id: int | None = None
    name: str
    code: str
    start_date: date
    end_date: date | None = None
    max_capacity: int
    min_capacity: int
    classroom: str = ''
    status: str
    notes: str = ''

    class Config:
        from_attributes = True


class TeacherCreate(BaseModel):
    email: str
    first_name: str
    paternal_surname: str
    maternal_surname: str = ''
    phone: str = ''
    password: str | None = None
    document_number: str
    specialization: str = ''
    hire_date: date
    contract_type: str
    hourly_rate: float | None = Field(default=None, ge=0)


class TeacherUpdate(BaseModel):
    first_name: str | None = None
    paternal_surname: str | None = None
    maternal_surname: str | None = None
    phone: str | None = None
    document_number: str | None = None
    specialization: str | None = None
    hire_date: date | None = None
    contract_type: str | None = None
    hourly_rate: float | None = Field(default=None, ge=0)


class GuardianIn(BaseModel):
    email: str
    first_name: str
    paternal_surname: str
    maternal_surname: str = ''
    phone: str = ''
    password: str | None = None
    document_number: str = ''
    relationship_type: str = ''
    occupation: str = ''


class StudentCreate(BaseModel):
    email: str | None = None
    password: str | None = None
    first_name: str
    paternal_surname: str
    maternal_surname: str = ''
    phone: str = ''
    document_number: str = ''
    date_of_birth: date
    gender: str = ''
    address: str = ''
    school_id: int | None = None
    emergency_contact_name: str = ''
    emergency_contact_phone: str = ''
    guardian: GuardianIn | None = None


class StudentUpdate(BaseModel):
    first_name: str | None = None
    paternal_surname: str | None = None
    maternal_surname: str | None = None
    phone: str | None = None
    address: str | None = None
    school_id: int | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None


class EnrollmentCreate(BaseModel):
    student_id: int
    group_id: int
    agreement_id: int | None = None
    notes: str = ''


class GradeItem(BaseModel):
    type: str
    progress_test: float | None = Field(default=None, ge=0, le=100)
    class_performance: float | None = Field(default=None, ge=0, le=100)
    score: float | None = Field(default=None, ge=0, le=100)
    comments: str = ''


class GradeSaveRequest(BaseModel):
    enrollment_id: int
    grades: list[GradeItem]


class ScheduleItemIn(BaseModel):
    day_of_week: str
    start_time: str
    end_time: str


class ScheduleTemplateCreate(BaseModel):
    name: str
    description: str = ''
    items: list[ScheduleItemIn]
