"""
Derived-field computations.
"""
from types import SimpleNamespace

from kneecare.services.derivations import (
    adherence_percentage, bmi_category, compute_bmi, compute_diet_totals, conversation_key, kl_grade_trend,
    progress_insights, progress_metrics, progression_rate, progression_risk_level, severity_description,
    step_goal_achievement, summarize_activity, summarize_weight,
)
from kneecare.services.forum_service import toggle_like


def test_diet_totals_sum_every_food_of_every_meal():
    meals = [
        {"meal_type": "breakfast", "foods": [
            {"name": "oats", "calories": 150, "nutrients": {"protein": 5, "fiber": 4}},
            {"name": "milk", "calories": 100.5, "nutrients": {"protein": 8, "fat": 2.5}},
        ]},
        {"meal_type": "dinner", "foods": [
            {"name": "salmon", "calories": 300, "nutrients": {"protein": 25, "omega3": 1.8, "sodium": 90}},
        ]},
    ]
    calories, nutrients = compute_diet_totals(meals)
    assert calories == 550.5
    assert nutrients["protein"] == 38
    assert nutrients["omega3"] == 1.8
    assert nutrients["carbs"] == 0
    assert "sodium" not in nutrients


def test_diet_totals_of_nothing():
    calories, nutrients = compute_diet_totals([])
    assert calories == 0
    assert set(nutrients) == {"protein", "carbs", "fat", "fiber", "omega3"}


def test_bmi():
    assert compute_bmi(72.25, 170) == 25.0
    assert compute_bmi(70, None) is None
    assert compute_bmi(70, 0) is None


def test_bmi_category_boundaries():
    assert bmi_category(None) is None
    assert bmi_category(18.4) == "Underweight"
    assert bmi_category(18.5) == "Normal weight"
    assert bmi_category(25) == "Overweight"
    assert bmi_category(30) == "Obese"


def test_adherence_percentage():
    assert adherence_percentage([]) == 0
    doses = [{"taken": True}, {"taken": False}, SimpleNamespace(taken=True)]
    assert adherence_percentage(doses) == 67


def test_step_goal_achievement_is_capped():
    assert step_goal_achievement(5000, 10000) == 50.0
    assert step_goal_achievement(15000, 10000) == 100.0
    assert step_goal_achievement(5000, None) == 0.0
    assert step_goal_achievement(None, 8000) == 0.0


def test_severity_description():
    assert severity_description(0) == "Normal"
    assert severity_description(4) == "Very Severe"
    assert severity_description(None) == "Unknown"


def test_conversation_key_is_order_independent():
    assert conversation_key(9, 3) == conversation_key(3, 9) == "conv_3_9"


def test_summarize_activity():
    logs = [
        SimpleNamespace(steps=10000, target_steps=8000, distance=7.5, calories_burned=300, active_minutes=60),
        SimpleNamespace(steps=4000, target_steps=8000, distance=2.5, calories_burned=100, active_minutes=20),
    ]
    summary = summarize_activity(logs)
    assert summary["days"] == 2
    assert summary["total_steps"] == 14000
    assert summary["average_steps"] == 7000
    assert summary["total_distance"] == 10.0
    assert summary["step_goal_days"] == 1


def test_summarize_activity_empty():
    assert summarize_activity([])["average_steps"] == 0


def test_summarize_weight():
    logs = [{"weight_kg": 80.0, "bmi": 27.7}, {"weight_kg": 78.4, "bmi": 27.1}]
    summary = summarize_weight(logs)
    assert summary["count"] == 2
    assert summary["latest_weight"] == 78.4
    assert summary["bmi_category"] == "Overweight"
    assert summary["change"] == -1.6

    assert summarize_weight([])["latest_weight"] is None


def test_progress_metrics_compare_the_two_halves_of_the_period():
    activity = [{"steps": 4000, "active_minutes": 20}, {"steps": 4000, "active_minutes": 30},
                {"steps": 6000, "active_minutes": 40}, {"steps": 6000, "active_minutes": 50}]
    weight = [{"weight_kg": 80.0, "bmi": 27.7}, {"weight_kg": 78.4, "bmi": 27.1}]
    doses = [{"taken": False}, {"taken": False}, {"taken": True}, {"taken": True}]

    metrics = progress_metrics(activity, weight, doses, symptoms={"pain_score": 8})

    assert metrics["activity"] == {"average_steps": 5000, "active_minutes": 35, "improvement": 50.0, "days_logged": 4}
    assert metrics["adherence"] == {"average": 50, "trend": "improving", "doses_logged": 4}
    assert metrics["weight"] == {"weight_change": -1.6, "bmi_change": -0.6, "trend": "losing"}
    assert metrics["symptoms"] == {"pain_score": 8}


def test_progress_metrics_without_data():
    metrics = progress_metrics([], [], [])
    assert metrics["activity"]["improvement"] == 0.0
    assert metrics["adherence"] == {"average": 0, "trend": "stable", "doses_logged": 0}
    assert metrics["weight"] == {"weight_change": None, "bmi_change": None, "trend": "stable"}
    assert progress_insights(metrics)["concerns"] == ["No activity was logged in this period"]


def test_progress_insights():
    metrics = progress_metrics(
        [{"steps": 4000}, {"steps": 6000}],
        [{"weight_kg": 80.0}, {"weight_kg": 78.4}],
        [{"taken": False}, {"taken": True}],
        symptoms={"pain_score": 8},
    )
    insights = progress_insights(metrics)
    assert "Daily steps improved by 50.0%" in insights["achievements"]
    assert "Lost 1.6 kg" in insights["achievements"]
    assert "Medication adherence is low at 50%" in insights["concerns"]
    assert "High reported pain score of 8/10" in insights["concerns"]
    assert "Discuss pain management at the next consultation" in insights["recommendations"]


def test_progression_rate_per_year():
    def history(*entries):
        return [{"grade": grade, "predicted_at": when} for grade, when in entries]

    assert progression_rate(history((1, "2024-01-01T00:00:00+00:00"))) == "stable"
    assert progression_rate(history((1, "2024-01-01T00:00:00+00:00"), (3, "2025-01-01T00:00:00+00:00"))) == "rapid"
    assert progression_rate(history((1, "2024-01-01T00:00:00+00:00"), (2, "2025-01-01T00:00:00+00:00"))) == "moderate"
    assert progression_rate(history((1, "2024-01-01T00:00:00+00:00"), (2, "2026-01-01T00:00:00+00:00"))) == "slow"
    # Order of entry does not matter, improvement is not progression
    assert progression_rate(history((1, "2025-01-01T00:00:00+00:00"), (2, "2024-01-01T00:00:00+00:00"))) == "stable"


def test_kl_grade_trend_and_risk_level():
    first = {"grade": 2, "predicted_at": "2024-01-01T00:00:00+00:00"}
    assert kl_grade_trend([first]) == "insufficient_data"
    assert kl_grade_trend([first, {"grade": 3, "predicted_at": "2024-06-01T00:00:00+00:00"}]) == "worsening"
    assert kl_grade_trend([first, {"grade": 1, "predicted_at": "2024-06-01T00:00:00+00:00"}]) == "improving"
    assert kl_grade_trend([first, {"grade": 2, "predicted_at": "2024-06-01T00:00:00+00:00"}]) == "stable"

    assert [progression_risk_level(grade) for grade in (None, 0, 1, 2, 3, 4)] == [
        "low", "low", "low", "medium", "high", "high",
    ]


def test_toggle_like():
    likers, liked = toggle_like(None, 4)
    assert (likers, liked) == ([4], True)
    likers, liked = toggle_like(likers, 4)
    assert (likers, liked) == ([], False)
