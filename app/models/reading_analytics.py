"""
Reading Analytics Models
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class CompletionStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    SKIPPED = "skipped"


class PageType(str, Enum):
    STORY = "story"
    CUE = "cue"
    ACTIVITY = "activity"


class ScrollBehavior(str, Enum):
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"


class ReadingSession(BaseModel):
    """One sitting with a book. Immutable once session_end is set."""
    id: str
    user_id: str
    book_id: str
    session_start: datetime
    session_end: Optional[datetime] = None
    total_duration: int = 0  # seconds
    pages_visited: List[int] = []
    interactions_count: int = 0
    device_type: Optional[str] = None
    browser_info: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.session_end is not None


class Interaction(BaseModel):
    type: str
    element: Optional[str] = None
    timestamp: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class PageData(BaseModel):
    page_number: int = Field(..., ge=0)
    chapter_name: Optional[str] = None
    page_type: PageType = PageType.STORY
    completion_status: CompletionStatus = CompletionStatus.PARTIAL


class TimingData(BaseModel):
    time_on_page: float = Field(0, ge=0)  # seconds


class InteractionPatterns(BaseModel):
    clicks_per_page: float = 0
    scroll_behavior: ScrollBehavior = ScrollBehavior.MODERATE
    pause_frequency: float = 0


class UserAnalyticsProfile(BaseModel):
    """Lifetime aggregate for one user. Counters only ever grow."""
    user_id: str
    total_sessions: int = 0
    total_reading_time: int = 0  # seconds
    average_session_duration: int = 0
    pages_read: int = 0
    completion_rate: float = 0
    engagement_score: float = 0
    engagement_samples: int = 0
    interaction_patterns: InteractionPatterns = Field(default_factory=InteractionPatterns)
    last_calculated: Optional[datetime] = None


class TrackAnalyticsRequest(BaseModel):
    token: str
    session_id: str
    page_data: PageData
    timing_data: TimingData = Field(default_factory=TimingData)
    interactions: List[Interaction] = []


class TrackResult(BaseModel):
    success: bool = True
    analytics_processed: bool
    session_id: str
    engagement_score: Optional[int] = None


class StartSessionRequest(BaseModel):
    token: str
    device_type: Optional[str] = None
    browser_info: Optional[str] = None


class FinalMetrics(BaseModel):
    total_duration: int = Field(0, ge=0)
    pages_visited: List[int] = []
    final_interactions: int = Field(0, ge=0)


class EndSessionRequest(BaseModel):
    token: str
    session_id: str
    final_metrics: FinalMetrics = Field(default_factory=FinalMetrics)


class SessionStart(BaseModel):
    """Session-authenticated variant of StartSessionRequest"""
    book_id: str
    device_type: Optional[str] = None
    browser_info: Optional[str] = None


class EndSessionResult(BaseModel):
    success: bool = True
    session_id: str
    already_closed: bool = False


class ProgressUpdate(BaseModel):
    """Session-authenticated progress write"""
    progress: float = Field(..., ge=0, le=100)
    current_page: Optional[int] = Field(None, ge=0)
    current_chapter: Optional[str] = None
    time_spent: int = Field(0, ge=0)


class TopUser(BaseModel):
    user_id: str = Field(..., alias="userId")
    user_name: str = Field(..., alias="userName")
    user_email: str = Field(..., alias="userEmail")
    engagement_score: float = Field(..., alias="engagementScore")
    total_sessions: int = Field(..., alias="totalSessions")
    total_reading_time: int = Field(..., alias="totalReadingTime")  # minutes

    class Config:
        populate_by_name = True


class AnalyticsSummary(BaseModel):
    total_users: int = Field(..., alias="totalUsers")
    new_users_today: int = Field(..., alias="newUsersToday")
    active_users: int = Field(..., alias="activeUsers")
    total_reading_time: int = Field(..., alias="totalReadingTime")
    total_sessions: int = Field(..., alias="totalSessions")
    average_engagement_score: int = Field(..., alias="averageEngagementScore")
    top_users: List[TopUser] = Field(..., alias="topUsers")

    class Config:
        populate_by_name = True
