"""
Pure functions computing derived fields.

These run in the service write path before a record is persisted, so they
can be tested without a database.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

NUTRIENT_KEYS = ("protein", "carbs", "fat", "fiber", "omega3")

SEVERITY_BY_GRADE = {
    0: "Normal",
    1: "Mild",
    2: "Moderate",
    3: "Severe",
    4: "Very Severe",
}


def compute_diet_totals(meals: Iterable[Mapping[str, Any]]) -> Tuple[float, Dict[str, float]]:
    """Sum calories and nutrients over every food of every meal."""
    total_calories = 0.0
    nutrients = {key: 0.0 for key in NUTRIENT_KEYS}
    for meal in meals or []:
        for food in meal.get("foods") or []:
            total_calories += food.get("calories") or 0
            for key, value in (food.get("nutrients") or {}).items():
                if key in nutrients and value:
                    nutrients[key] += value
    return round(total_calories, 2), {key: round(value, 2) for key, value in nutrients.items()}


def compute_bmi(weight_kg: Optional[float], height_cm: Optional[float]) -> Optional[float]:
    """BMI rounded to one decimal, or None without a usable height."""
    if not weight_kg or not height_cm:
        return None
    height_m = height_cm / 100
    return round(weight_kg / (height_m * height_m), 1)


def bmi_category(bmi: Optional[float]) -> Optional[str]:
    if bmi is None:
        return None
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal weight"
    if bmi < 30:
        return "Overweight"
    return "Obese"


def adherence_percentage(doses: Iterable[Any]) -> int:
    """Share of logged doses that were taken, as a whole percentage."""
    doses = list(doses)
    if not doses:
        return 0
    taken = sum(1 for dose in doses if _get(dose, "taken"))
    return round(taken / len(doses) * 100)


def step_goal_achievement(steps: Optional[int], target_steps: Optional[int]) -> float:
    """Percentage of the step target reached, capped at 100."""
    if not target_steps:
        return 0.0
    return round(min(100.0, (steps or 0) / target_steps * 100), 1)


def severity_description(kl_grade: Optional[int]) -> str:
    return SEVERITY_BY_GRADE.get(kl_grade, "Unknown")


def conversation_key(user_a: int, user_b: int) -> str:
    """Stable conversation id for a pair of users, independent of order."""
    low, high = sorted((user_a, user_b))
    return f"conv_{low}_{high}"


def summarize_activity(logs: Iterable[Any]) -> Dict[str, Any]:
    """Totals and averages over a set of activity logs."""
    logs = list(logs)
    count = len(logs)
    total_steps = sum(_get(log, "steps") or 0 for log in logs)
    total_distance = sum(_get(log, "distance") or 0 for log in logs)
    total_calories = sum(_get(log, "calories_burned") or 0 for log in logs)
    total_minutes = sum(_get(log, "active_minutes") or 0 for log in logs)
    goals_met = sum(
        1 for log in logs
        if step_goal_achievement(_get(log, "steps"), _get(log, "target_steps")) >= 100
    )
    return {
        "days": count,
        "total_steps": total_steps,
        "total_distance": round(total_distance, 2),
        "total_calories_burned": round(total_calories, 2),
        "total_active_minutes": total_minutes,
        "average_steps": round(total_steps / count) if count else 0,
        "average_active_minutes": round(total_minutes / count) if count else 0,
        "step_goal_days": goals_met,
    }


def summarize_weight(logs: List[Any]) -> Dict[str, Any]:
    """Latest value and change over logs ordered oldest first."""
    if not logs:
        return {"count": 0, "latest_weight": None, "latest_bmi": None, "bmi_category": None, "change": None}
    first, last = logs[0], logs[-1]
    latest_bmi = _get(last, "bmi")
    return {
        "count": len(logs),
        "latest_weight": _get(last, "weight_kg"),
        "latest_bmi": latest_bmi,
        "bmi_category": bmi_category(latest_bmi),
        "change": round(_get(last, "weight_kg") - _get(first, "weight_kg"), 1),
    }


def _trend(before: Optional[float], after: Optional[float], tolerance: float, up: str, down: str) -> str:
    if before is None or after is None or abs(after - before) <= tolerance:
        return "stable"
    return up if after > before else down


def _halves(items: List[Any]) -> Tuple[List[Any], List[Any]]:
    middle = len(items) // 2
    return items[:middle], items[middle:]


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def progress_metrics(
    activity_logs: List[Any],
    weight_logs: List[Any],
    doses: List[Any],
    symptoms: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Metrics for a reporting period. Every input list is ordered oldest first."""
    activity = summarize_activity(activity_logs)
    early_logs, late_logs = _halves(activity_logs)
    early_steps = _mean([_get(log, "steps") or 0 for log in early_logs])
    late_steps = _mean([_get(log, "steps") or 0 for log in late_logs])
    improvement = 0.0
    if early_steps and late_steps is not None:
        improvement = round((late_steps - early_steps) / early_steps * 100, 1)

    early_doses, late_doses = _halves(doses)
    adherence_trend = "stable"
    if early_doses and late_doses:
        adherence_trend = _trend(
            adherence_percentage(early_doses), adherence_percentage(late_doses), 5, "improving", "declining"
        )

    weight_change = bmi_change = None
    weight_trend = "stable"
    if len(weight_logs) >= 2:
        weight_change = round(_get(weight_logs[-1], "weight_kg") - _get(weight_logs[0], "weight_kg"), 1)
        first_bmi, last_bmi = _get(weight_logs[0], "bmi"), _get(weight_logs[-1], "bmi")
        if first_bmi is not None and last_bmi is not None:
            bmi_change = round(last_bmi - first_bmi, 1)
        weight_trend = _trend(0, weight_change, 0.5, "gaining", "losing")

    return {
        "adherence": {"average": adherence_percentage(doses), "trend": adherence_trend, "doses_logged": len(doses)},
        "activity": {
            "average_steps": activity["average_steps"],
            "active_minutes": activity["average_active_minutes"],
            "improvement": improvement,
            "days_logged": activity["days"],
        },
        "weight": {"weight_change": weight_change, "bmi_change": bmi_change, "trend": weight_trend},
        "symptoms": dict(symptoms or {}),
    }


def progress_insights(metrics: Mapping[str, Any]) -> Dict[str, List[str]]:
    """Rule-based achievements, concerns and recommendations for a report."""
    achievements: List[str] = []
    concerns: List[str] = []
    recommendations: List[str] = []

    adherence = metrics.get("adherence") or {}
    if adherence.get("doses_logged"):
        if adherence.get("average", 0) >= 80:
            achievements.append(f"Medication adherence at {adherence['average']}%")
        elif adherence.get("average", 0) < 60:
            concerns.append(f"Medication adherence is low at {adherence['average']}%")
            recommendations.append("Set reminders for every scheduled medication dose")

    activity = metrics.get("activity") or {}
    if activity.get("days_logged"):
        if activity.get("improvement", 0) >= 10:
            achievements.append(f"Daily steps improved by {activity['improvement']}%")
        elif activity.get("improvement", 0) <= -10:
            concerns.append(f"Daily steps dropped by {abs(activity['improvement'])}%")
        if activity.get("average_steps", 0) < 5000:
            recommendations.append("Build up gradually towards 5000 low-impact steps a day")
    else:
        concerns.append("No activity was logged in this period")

    weight = metrics.get("weight") or {}
    if weight.get("trend") == "losing":
        achievements.append(f"Lost {abs(weight['weight_change'])} kg")
    elif weight.get("trend") == "gaining":
        concerns.append(f"Gained {weight['weight_change']} kg")
        recommendations.append("Review diet with an anti-inflammatory focus to reduce knee load")

    symptoms = metrics.get("symptoms") or {}
    if (symptoms.get("pain_score") or 0) >= 7:
        concerns.append(f"High reported pain score of {symptoms['pain_score']}/10")
        recommendations.append("Discuss pain management at the next consultation")

    return {"achievements": achievements, "concerns": concerns, "recommendations": recommendations}


def kl_grade_trend(history: List[Mapping[str, Any]]) -> str:
    """Direction of the KL grade between the first and the latest entry."""
    if len(history) < 2:
        return "insufficient_data"
    ordered = sorted(history, key=lambda entry: entry["predicted_at"])
    first, last = ordered[0]["grade"], ordered[-1]["grade"]
    if last > first:
        return "worsening"
    if last < first:
        return "improving"
    return "stable"


def progression_rate(history: List[Mapping[str, Any]]) -> str:
    """Classify grade change per year as slow, moderate or rapid."""
    if len(history) < 2:
        return "stable"
    ordered = sorted(history, key=lambda entry: entry["predicted_at"])
    grade_change = ordered[-1]["grade"] - ordered[0]["grade"]
    days = (_as_datetime(ordered[-1]["predicted_at"]) - _as_datetime(ordered[0]["predicted_at"])).days
    if grade_change <= 0 or days <= 0:
        return "stable"
    per_year = grade_change / days * 365
    if per_year > 1:
        return "rapid"
    if per_year > 0.5:
        return "moderate"
    return "slow"


def progression_risk_level(current_grade: Optional[int]) -> str:
    if current_grade is None:
        return "low"
    if current_grade >= 3:
        return "high"
    if current_grade >= 2:
        return "medium"
    return "low"


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)

def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)
