from pydantic import BaseModel, Field
from typing import Literal, Optional

Category = Literal["ACADEMIC", "CAREER", "PERSONAL"]
TaskStatus = Literal["ACTIVE", "PAUSED", "COMPLETED"]
EnergyMode = Literal["focused", "normal", "low"]
TonePreference = Literal["SUPPORTIVE", "STRUCTURED", "CASUAL"]
DetailLevel = Literal["DETAILED", "BRIEF"]

CATEGORIES = ("ACADEMIC", "CAREER", "PERSONAL")


class Step(BaseModel):
    id: str
    task_id: str
    title: str
    description: Optional[str] = None
    estimated_minutes: Optional[int] = None
    order_index: int  # Zero-based, dense within a task
    completed: bool = False
    completed_at: Optional[str] = None  # ISO format datetime string

class Task(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category: Category = "PERSONAL"
    status: TaskStatus = "ACTIVE"
    guidance: Optional[str] = None
    target_date: Optional[str] = None  # ISO format: YYYY-MM-DD
    created_at: str  # ISO format datetime string
    updated_at: Optional[str] = None
    last_interacted_at: Optional[str] = None
    steps: list[Step] = Field(default_factory=list)


# Shape the model is asked to return. Field names match the JSON contract
# in prompts.TASK_BREAKDOWN_PROMPT.
class StepDraft(BaseModel):
    title: str
    description: str = ""
    estimatedMinutes: int = Field(ge=0)

class Decomposition(BaseModel):
    taskTitle: str = Field(min_length=1)
    subtasks: list[StepDraft] = Field(min_length=1)
    guidance: str
    encouragement: str = ""


class BehavioralProfile(BaseModel):
    """Signals derived from a user's recent task history.

    Only trustworthy once task_count reaches patterns.MIN_SAMPLE_SIZE;
    below that every other field holds its neutral default.
    """
    task_count: int = 0
    most_active_time_of_day: Optional[Literal["morning", "afternoon", "evening", "night"]] = None
    dominant_category: Optional[Category] = None
    avg_completion_rate: float = 0.0
    preferred_complexity: Literal["simple", "moderate", "complex"] = "moderate"
    pause_frequency: Literal["low", "moderate", "high"] = "low"

class PreferenceSet(BaseModel):
    user_id: str
    tone_preference: TonePreference = "SUPPORTIVE"
    task_detail_level: DetailLevel = "DETAILED"
    updated_at: Optional[str] = None

class PreferenceUpdate(BaseModel):
    tone_preference: Optional[str] = None
    task_detail_level: Optional[str] = None


class BreakdownRequest(BaseModel):
    taskId: Optional[str] = None
    energyMode: Optional[EnergyMode] = None

class RecapRequest(BaseModel):
    taskId: Optional[str] = None
    lastInteractedAt: Optional[str] = None

class ToneTestRequest(BaseModel):
    taskDescription: str = ""
    promptVersion: Literal["current", "v1"] = "current"


class StreamEvent(BaseModel):
    type: Literal["chunk", "done", "error"]
    text: Optional[str] = None  # chunk
    taskId: Optional[str] = None  # done
    message: Optional[str] = None  # error, always user-safe
    reason: Optional[Literal["upstream", "parse", "persistence"]] = None  # error
