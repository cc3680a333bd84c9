"""
Parent profile, children, and child condition models.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Integer, Boolean, Date, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    PREFER_NOT_TO_SAY = "Prefer not to say"


class SchoolType(str, enum.Enum):
    MAINSTREAM = "Mainstream"
    SPECIAL_SCHOOL = "Special School"
    HOMESCHOOLED = "Homeschooled"
    NOT_IN_SCHOOL = "Not in school"


class DiagnosisStatus(str, enum.Enum):
    DIAGNOSED = "Diagnosed"
    SUSPECTED = "Suspected"
    UNDER_EVALUATION = "Under Evaluation"
    NONE = "None"


class ConditionType(str, enum.Enum):
    AUTISM_SPECTRUM = "Autism Spectrum Disorder"
    ADHD = "ADHD"
    CEREBRAL_PALSY = "Cerebral Palsy"
    DOWN_SYNDROME = "Down Syndrome"
    LEARNING_DISABILITIES = "Learning Disabilities"
    SPEECH_DISORDERS = "Speech Disorders"
    SENSORY_PROCESSING = "Sensory Processing Disorder"
    DEVELOPMENTAL_DELAY = "Developmental Delay"
    DYSLEXIA = "Dyslexia"
    DYSPRAXIA = "Dyspraxia"
    INTELLECTUAL_DISABILITY = "Intellectual Disability"
    ANXIETY_DISORDER = "Anxiety Disorder"
    OTHER = "Other"


class Severity(str, enum.Enum):
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"
    PROFOUND = "Profound"


class TherapyType(str, enum.Enum):
    SPEECH_THERAPY = "Speech Therapy"
    OCCUPATIONAL_THERAPY = "Occupational Therapy (OT)"
    APPLIED_BEHAVIOR_ANALYSIS = "Applied Behavior Analysis (ABA)"
    PHYSICAL_THERAPY = "Physical Therapy"
    BEHAVIORAL_THERAPY = "Behavioral Therapy"
    PLAY_THERAPY = "Play Therapy"
    MUSIC_THERAPY = "Music Therapy"
    ART_THERAPY = "Art Therapy"
    SENSORY_INTEGRATION = "Sensory Integration Therapy"
    COGNITIVE_BEHAVIORAL_THERAPY = "Cognitive Behavioral Therapy (CBT)"
    EQUINE_THERAPY = "Equine Therapy"
    AQUATIC_THERAPY = "Aquatic Therapy"


# =============================================================================
# UserProfile Model
# =============================================================================


class UserProfile(Base):
    """
    Parent-facing profile. One per user, created lazily on first read.

    ``completeness_score`` is derived (see services.completeness) and is
    rewritten together with ``last_completed_at`` whenever the profile, one
    of its children, or one of their conditions changes.
    """

    __tablename__ = "user_profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    full_name = Column(String(200), nullable=True)
    relationship_to_child = Column(String(50), nullable=True)
    phone_number = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    occupation = Column(String(100), nullable=True)
    education_level = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)

    onboarding_completed = Column(Boolean, nullable=False, default=False)
    completeness_score = Column(Integer, nullable=False, default=0)
    last_completed_at = Column(UTCDateTime(), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="profile")
    children = relationship(
        "Child",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="Child.date_of_birth",
    )

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, user_id={self.user_id}, score={self.completeness_score})>"


# =============================================================================
# Child Model
# =============================================================================


class Child(Base):
    __tablename__ = "children"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    first_name = Column(String(50), nullable=False)
    nickname = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(SQLEnum(Gender, name="gender", values_callable=enum_values), nullable=False)
    school_type = Column(SQLEnum(SchoolType, name="school_type", values_callable=enum_values), nullable=True)
    grade = Column(String(50), nullable=True)
    has_condition = Column(Boolean, nullable=False, default=False)
    diagnosis_status = Column(SQLEnum(DiagnosisStatus, name="diagnosis_status", values_callable=enum_values), nullable=True)
    primary_language = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    profile = relationship("UserProfile", back_populates="children")
    conditions = relationship(
        "ChildCondition",
        back_populates="child",
        cascade="all, delete-orphan",
        order_by="ChildCondition.created_at",
    )

    def __repr__(self) -> str:
        return f"<Child(id={self.id}, profile_id={self.profile_id})>"


# =============================================================================
# ChildCondition Model
# =============================================================================


class ChildCondition(Base):
    __tablename__ = "child_conditions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    child_id = Column(Uuid(as_uuid=True), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)

    condition_type = Column(SQLEnum(ConditionType, name="condition_type", values_callable=enum_values), nullable=False)
    specific_diagnosis = Column(String(200), nullable=True)
    severity = Column(SQLEnum(Severity, name="severity", values_callable=enum_values), nullable=True)
    diagnosed_at = Column(Date, nullable=True)
    diagnosed_by = Column(String(200), nullable=True)
    current_therapies = Column(JSONType(), nullable=False, default=list)
    medications = Column(JSONType(), nullable=False, default=list)
    primary_challenges = Column(Text, nullable=True)
    strengths = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    child = relationship("Child", back_populates="conditions")

    def __repr__(self) -> str:
        return f"<ChildCondition(id={self.id}, child_id={self.child_id}, type={self.condition_type.value})>"
