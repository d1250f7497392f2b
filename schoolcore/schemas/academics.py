from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, validator

from schoolcore.services.terms import Term, parse_term, validate_session_label


def _date_part(value):
    # The API sends full ISO timestamps for dates that only carry a day
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return value.split("T")[0] or None
    return value


# Academic Session schemas
class AcademicSession(BaseModel):
    id: str
    current_session: str = Field(..., alias="current_Session")
    current_term: Term = Field(Term.FIRST, alias="current_Term")
    school_name: Optional[str] = Field(None, alias="schoolName")
    school_logo_file_path: Optional[str] = Field(None, alias="schoolLogoFilePath")
    current_term_ends_on: Optional[date] = Field(None, alias="currentTermEndsOn")
    next_term_begins_on: Optional[date] = Field(None, alias="nextTermBeginsOn")
    is_active: bool = Field(False, alias="isActive")

    class Config:
        populate_by_name = True

    @validator("id", pre=True)
    def id_as_string(cls, v):
        return str(v) if v is not None else v

    @validator("current_term", pre=True)
    def decode_term(cls, v):
        return parse_term(v)

    @validator("current_term_ends_on", "next_term_begins_on", pre=True)
    def strip_time(cls, v):
        return _date_part(v)


class SessionCreate(BaseModel):
    label: str
    term: Term = Term.FIRST

    @validator("label")
    def label_format(cls, v):
        return validate_session_label(v)


class SessionIdentityUpdate(BaseModel):
    label: str
    term: Term
    current_term_ends_on: Optional[date] = None
    next_term_begins_on: Optional[date] = None

    @validator("label")
    def label_format(cls, v):
        return validate_session_label(v)


class SessionDatesUpdate(BaseModel):
    current_term_ends_on: Optional[date] = None
    next_term_begins_on: Optional[date] = None


class SessionDatesResult(BaseModel):
    success: bool
    message: str


class MigrationRequest(BaseModel):
    confirm: bool = False
    target_label: Optional[str] = None
