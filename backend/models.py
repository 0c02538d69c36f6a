"""
Pydantic models used across the backend.

`HydrationState` is the single persisted aggregate; its JSON shape (camelCase
aliases) is exactly what lives under `settings.state_key` in the key-value
table. `ProgressSnapshot` is the read-only view handed to the presentation
layer after every mutation.

Guidelines:
- Keep the persisted shape stable. New fields must carry a default so older
  records still load (see `HydrationService.load`).
- Derived values (percentage, remaining, tip) belong in the snapshot, never
  in the persisted record.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

CUP_PRESETS_ML = (250, 350, 500, 750)
DEFAULT_CUP_SIZE_ML = 350


class DrinkEvent(BaseModel):
    """One logged drink. Frozen once created.

    Fields:
    - `time`: wall-clock time of the drink, `HH:MM`.
    - `amount_ml`: size of the cup at the moment of drinking.
    - `total_after_ml`: running intake right after this drink.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: str
    amount_ml: int = Field(alias="amountMl", gt=0)
    total_after_ml: int = Field(alias="totalAfterMl", ge=0)


class HydrationState(BaseModel):
    """Everything the tracker remembers between runs.

    `weight_kg == 0` means no goal has been set yet. `daily_goal_ml` is always
    derived from the weight and never edited on its own. `history` is in
    chronological order and is capped by the service.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    weight_kg: float = Field(default=0, alias="weightKg", ge=0)
    daily_goal_ml: int = Field(default=0, alias="dailyGoalMl", ge=0)
    current_intake_ml: int = Field(default=0, alias="currentIntakeMl", ge=0)
    cup_size_ml: int = Field(default=DEFAULT_CUP_SIZE_ML, alias="cupSizeMl", gt=0)
    history: List[DrinkEvent] = Field(default_factory=list)
    last_date: Optional[date] = Field(default=None, alias="lastDate")
    goal_reached_today: bool = Field(default=False, alias="goalReachedToday")
    lifetime_total_ml: int = Field(default=0, alias="lifetimeTotalMl", ge=0)

    def to_record(self) -> dict:
        """JSON-ready dict using the persisted (camelCase) keys."""

        return self.model_dump(mode="json", by_alias=True)

    @property
    def has_goal(self) -> bool:
        return self.daily_goal_ml > 0


class WeightIn(BaseModel):
    """Body of `POST /weight`. Range checks happen in the service."""

    weight_kg: float


class CupSizeIn(BaseModel):
    size_ml: int


class ProgressSnapshot(BaseModel):
    """Everything a view needs to redraw itself."""

    weight_kg: float
    daily_goal_ml: int
    current_intake_ml: int
    remaining_ml: int
    percentage: int
    cup_size_ml: int
    history: List[DrinkEvent]
    goal_reached_today: bool
    lifetime_total_ml: int
    last_date: Optional[date] = None
    tip: str
    last_saved_at: Optional[datetime] = None
