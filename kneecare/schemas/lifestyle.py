"""
Activity, diet and weight schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

DataSourceValue = Literal["knee_band", "mobile_app", "manual"]


class ActivityCreate(BaseModel):
    user_id: Optional[int] = None
    date: Optional[datetime] = None
    steps: int = Field(0, ge=0)
    distance: float = Field(0, ge=0)
    calories_burned: float = Field(0, ge=0)
    active_minutes: int = Field(0, ge=0, le=1440)
    knee_band_data: Optional[Dict[str, Any]] = None
    adherence_score: Optional[float] = Field(None, ge=0, le=100)
    target_steps: int = Field(10000, ge=0)
    target_active_minutes: int = Field(60, ge=0)
    data_source: DataSourceValue = "manual"


class ActivityUpdate(BaseModel):
    steps: Optional[int] = Field(None, ge=0)
    distance: Optional[float] = Field(None, ge=0)
    calories_burned: Optional[float] = Field(None, ge=0)
    active_minutes: Optional[int] = Field(None, ge=0, le=1440)
    knee_band_data: Optional[Dict[str, Any]] = None
    adherence_score: Optional[float] = Field(None, ge=0, le=100)
    target_steps: Optional[int] = Field(None, ge=0)
    target_active_minutes: Optional[int] = Field(None, ge=0)


class ActivityResponse(BaseModel):
    id: int
    user_id: int
    date: datetime
    steps: int
    distance: Optional[float] = None
    calories_burned: Optional[float] = None
    active_minutes: Optional[int] = None
    knee_band_data: Optional[Dict[str, Any]] = None
    adherence_score: Optional[float] = None
    target_steps: int
    target_active_minutes: int
    data_source: str
    step_goal_achievement: float = 0

    class Config:
        from_attributes = True


class Nutrients(BaseModel):
    protein: float = Field(0, ge=0)
    carbs: float = Field(0, ge=0)
    fat: float = Field(0, ge=0)
    fiber: float = Field(0, ge=0)
    omega3: float = Field(0, ge=0)


class Food(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    quantity: Optional[str] = None
    calories: float = Field(0, ge=0)
    nutrients: Nutrients = Nutrients()


class Meal(BaseModel):
    type: Literal["breakfast", "lunch", "dinner", "snack"]
    time: Optional[str] = None
    foods: List[Food] = []


class DietCreate(BaseModel):
    user_id: Optional[int] = None
    date: Optional[datetime] = None
    meals: List[Meal] = []
    dietary_score: Optional[float] = Field(None, ge=0, le=100)
    anti_inflammatory_foods: List[str] = []
    data_source: DataSourceValue = "manual"


class DietUpdate(BaseModel):
    meals: Optional[List[Meal]] = None
    dietary_score: Optional[float] = Field(None, ge=0, le=100)
    anti_inflammatory_foods: Optional[List[str]] = None


class DietResponse(BaseModel):
    id: int
    user_id: int
    date: datetime
    meals: List[Dict[str, Any]]
    total_calories: float
    total_nutrients: Optional[Dict[str, float]] = None
    dietary_score: Optional[float] = None
    anti_inflammatory_foods: Optional[List[str]] = None
    data_source: str

    class Config:
        from_attributes = True


class WeightCreate(BaseModel):
    user_id: Optional[int] = None
    weight_kg: float = Field(..., ge=20, le=300)
    bmi: Optional[float] = Field(None, ge=10, le=60)
    measured_at: Optional[datetime] = None
    data_source: Literal["bluetooth_scale", "manual"] = "manual"
    notes: Optional[str] = Field(None, max_length=200)


class WeightUpdate(BaseModel):
    weight_kg: Optional[float] = Field(None, ge=20, le=300)
    bmi: Optional[float] = Field(None, ge=10, le=60)
    measured_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=200)


class WeightResponse(BaseModel):
    id: int
    user_id: int
    weight_kg: float
    bmi: Optional[float] = None
    bmi_category: Optional[str] = None
    measured_at: datetime
    data_source: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True
