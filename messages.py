from typing import List

from meals import MealEntry, Totals, round_half_up

ANALYZING = "🔍 Analyzing your meal..."
NO_MEALS = "No meals logged today yet. Send a photo to get started!"
NOTHING_TO_SAVE = "No meals logged today yet, nothing to save!"
SAVE_FAILED = "❌ Could not save to your sheet. Your meals are still here, try *log today* again later."
GENERIC_FAILURE = "Something went wrong. Please try again."
HINT = "Send a meal photo to log macros, or type *help* for commands."

HELP = (
    "*Macro Tracker Commands:*\n\n"
    "📸 Send a photo → analyze meal\n"
    "*OK* → confirm a meal\n"
    "*protein 35* → edit a value (calories, protein, carbs, fat, fiber)\n"
    "*today* → see running totals\n"
    "*log today* → save to your sheet\n"
    "*help* → show this message"
)


def _number(value: float):
    # 35.0 reads better as 35
    return int(value) if float(value).is_integer() else value


def format_meal(entry: MealEntry) -> str:
    return (
        f"🍽 *{entry.meal}*\n"
        f"• Calories: {_number(entry.calories)} kcal\n"
        f"• Protein: {_number(entry.protein_g)}g\n"
        f"• Carbs: {_number(entry.carbs_g)}g\n"
        f"• Fat: {_number(entry.fat_g)}g\n"
        f"• Fiber: {_number(entry.fiber_g)}g"
    )


def format_totals(totals: Totals, title: str = "Today's Totals") -> str:
    return (
        f"📊 *{title}*\n"
        f"• Calories: {round_half_up(totals.calories)} kcal\n"
        f"• Protein: {round_half_up(totals.protein)}g\n"
        f"• Carbs: {round_half_up(totals.carbs)}g\n"
        f"• Fat: {round_half_up(totals.fat)}g\n"
        f"• Fiber: {round_half_up(totals.fiber)}g"
    )


def format_pending(entry: MealEntry, replaced: bool = False) -> str:
    text = f"{format_meal(entry)}\n\nReply *OK* to confirm, or correct values (e.g. \"protein 35\" or \"calories 420\")."
    if replaced:
        text = f"(Your previous unconfirmed meal was replaced.)\n\n{text}"
    return text


def format_corrected(entry: MealEntry) -> str:
    return f"Updated! Here's the corrected entry:\n\n{format_meal(entry)}\n\nReply *OK* to confirm or keep editing."


def format_confirmed(entry: MealEntry, totals: Totals) -> str:
    return (
        f"✅ *{entry.meal}* logged!\n\n{format_totals(totals)}\n\n"
        "Send more meal photos or type *log today* to save to your sheet."
    )


def format_day(totals: Totals, meals: List[MealEntry]) -> str:
    meal_list = "\n".join(f"{i}. {meal.meal}" for i, meal in enumerate(meals, start=1))
    return f"{format_totals(totals)}\n\n*Meals logged:*\n{meal_list}"


def format_saved(row: dict) -> str:
    return (
        f"✅ Saved to your sheet!\n\n*{row['date']}*\n"
        f"• Calories: {row['calories']} kcal\n"
        f"• Protein: {row['protein']}g\n"
        f"• Carbs: {row['carbs']}g\n"
        f"• Fat: {row['fat']}g\n"
        f"• Fiber: {row['fiber']}g\n\n"
        f"Meals: {row['meals']}"
    )


def format_extraction_error(error: Exception) -> str:
    return f"❌ Error: {error}"


def format_auto_save(totals: Totals) -> str:
    return (
        f"🌙 Daily auto-save complete!\n\n{format_totals(totals)}\n\n"
        "Your log resets when the day changes, and meals that were never saved are dropped. "
        "Type *log today* to save anything you add after this."
    )
