import os
import json
import logging
from typing import Dict, List, Tuple

from telegram import Update
from telegram.ext import ApplicationBuilder, CommandHandler, ContextTypes, MessageHandler, filters

from config import CONFIG
from ingredient_catalog import DEFAULT_CATALOG_CSV, Ingredient, load_catalog, normalize_token
from meal_composer import PlanningError
from meal_optimizer import MacroTargets, format_day_plan, generate_day_plan
from week_planner import (
    GroceryItem, format_grocery_list, format_week_summary, generate_week_plan, validate_selection,
    weekly_grocery_list,
)

logger = logging.getLogger(__name__)

DATA_PATH = os.getenv("DATA_JSON", "data.json")
INGREDIENTS_CSV = os.getenv("INGREDIENTS_CSV", DEFAULT_CATALOG_CSV)

# Telegram rejects messages above 4096 characters
MAX_MESSAGE_CHARS = 4000

_catalog = None


def get_catalog() -> Dict[str, Ingredient]:
    global _catalog
    if _catalog is None:
        _catalog = load_catalog(INGREDIENTS_CSV)
    return _catalog


def load_state() -> Dict:
    if os.path.exists(DATA_PATH):
        with open(DATA_PATH, "r") as f:
            return json.load(f)
    return {}


def save_state(state: Dict):
    with open(DATA_PATH, "w") as f:
        json.dump(state, f, indent=2)


def get_user(state: Dict, user_id: str) -> Dict:
    return state.setdefault(user_id, {
        "selected_foods": [],
        "targets": dict(CONFIG["default_targets"]),
        "bodyweight_kg": None,
        "grocery": [],
    })


def user_targets(u: Dict) -> MacroTargets:
    t = u.get("targets") or CONFIG["default_targets"]
    return MacroTargets(calories=t["calories"], protein=t["protein"], carbs=t["carbs"], fat=t["fat"])


def parse_food_list(raw: str, catalog: Dict[str, Ingredient]) -> Tuple[List[str], List[str]]:
    """Match comma-separated ids or names against the catalog. Returns (ids, unknown)."""
    by_name = {normalize_token(ing.name): ing.id for ing in catalog.values()}
    ids, unknown = [], []
    for tok in raw.split(","):
        if not tok.strip():
            continue
        key = normalize_token(tok)
        food_id = key if key in catalog else by_name.get(key)
        if food_id is None:
            unknown.append(tok.strip())
        elif food_id not in ids:
            ids.append(food_id)
    return ids, unknown


def parse_targets(args: List[str]) -> Dict[str, float]:
    if len(args) != 4:
        raise ValueError("Usage: /targets <kcal> <protein> <carbs> <fat>")
    try:
        values = [float(a) for a in args]
    except ValueError:
        raise ValueError("Targets must be numbers, e.g. /targets 2200 165 220 73")
    if any(v <= 0 for v in values):
        raise ValueError("Targets must be positive")
    return dict(zip(["calories", "protein", "carbs", "fat"], values))


def split_message(text: str, limit: int = MAX_MESSAGE_CHARS) -> List[str]:
    chunks, current = [], ""
    for line in text.split("\n"):
        if current and len(current) + len(line) + 1 > limit:
            chunks.append(current)
            current = ""
        current = f"{current}\n{line}" if current else line
    if current:
        chunks.append(current)
    return chunks


async def send_long(update: Update, text: str):
    for chunk in split_message(text):
        await update.effective_chat.send_message(chunk)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(
        "Hi! I’m your Macro Meal Planner Bot 🍽️\n\n"
        "• /foods – see the ingredient catalog\n"
        "• /select – tell me which foods you like\n"
        "• /targets – set daily kcal, protein, carbs, fat\n"
        "• /plan_week – build a 7-day plan hitting your macros\n"
        "• /help – see commands"
    )


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(
        "/foods – List available ingredients\n"
        "/select – Set the foods you like (comma-separated)\n"
        "/targets <kcal> <protein> <carbs> <fat> – Set daily macro targets\n"
        "/weight <kg> – Set bodyweight for portion limits\n"
        "/plan_day – Plan one day\n"
        "/plan_week – Plan the whole week\n"
        "/grocery – Grocery list for the last weekly plan\n"
        "/cancel – Clear your food selection"
    )


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    u["selected_foods"] = []
    u["grocery"] = []
    save_state(state)
    await update.message.reply_text("Cleared your food selection.")


async def list_foods(update: Update, context: ContextTypes.DEFAULT_TYPE):
    by_category: Dict[str, List[str]] = {}
    for ing in get_catalog().values():
        by_category.setdefault(ing.category, []).append(f"{ing.name} ({ing.id})")
    parts = []
    for category in sorted(by_category):
        parts.append(f"*{category.title()}*: " + ", ".join(by_category[category]))
    await update.message.reply_text("\n".join(parts), parse_mode="Markdown")


# --- Select Foods ---
async def select_foods(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(
        "List the foods you like (comma-separated ids or names), e.g.:\n"
        "`chicken-breast, brown rice, broccoli, olive-oil, greek-yogurt`",
        parse_mode="Markdown"
    )


async def select_foods_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    ids, unknown = parse_food_list(update.message.text or "", get_catalog())
    u["selected_foods"] = ids
    save_state(state)

    reply = f"Got it. Selected {len(ids)} foods."
    if unknown:
        reply += f"\nNot in catalog (ignored): {', '.join(unknown)}"
    check = validate_selection(ids, "weekly")
    if check.message:
        reply += f"\n{check.message}"
    await update.message.reply_text(reply)


async def set_targets(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        targets = parse_targets(context.args or [])
    except ValueError as e:
        await update.message.reply_text(str(e))
        return
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    u["targets"] = targets
    save_state(state)
    await update.message.reply_text(
        f"Daily targets: {targets['calories']:g} kcal, {targets['protein']:g}P "
        f"{targets['carbs']:g}C {targets['fat']:g}F"
    )


async def set_weight(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        weight = float(context.args[0])
    except (IndexError, TypeError, ValueError):
        await update.message.reply_text("Usage: /weight <kg>")
        return
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    u["bodyweight_kg"] = weight if weight > 0 else None
    save_state(state)
    await update.message.reply_text(f"Bodyweight set to {weight:g} kg.")


# --- Planning ---
async def plan_day(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    check = validate_selection(u["selected_foods"], "daily")
    if not check.valid:
        await update.message.reply_text(check.message)
        return

    result = generate_day_plan(u["selected_foods"], user_targets(u), u.get("bodyweight_kg"),
                               catalog=get_catalog())
    await send_long(update, format_day_plan(result))


async def plan_week(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    user_id = str(update.effective_user.id)
    u = get_user(state, user_id)
    check = validate_selection(u["selected_foods"], "weekly")
    if not check.valid:
        await update.message.reply_text(check.message)
        return

    try:
        week = generate_week_plan(u["selected_foods"], user_targets(u), u.get("bodyweight_kg"),
                                  catalog=get_catalog())
    except PlanningError as e:
        await update.effective_chat.send_message(f"❌ No feasible plan. {e}")
        return

    groceries = weekly_grocery_list(week)
    u["grocery"] = [{"ingredient_id": g.ingredient_id, "ingredient": g.ingredient,
                     "total_amount": g.total_amount, "category": g.category} for g in groceries]
    save_state(state)
    await send_long(update, format_week_summary(week))


async def grocery(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    if not u.get("grocery"):
        await update.message.reply_text("No weekly plan yet. Run /plan_week first.")
        return
    items = [GroceryItem(**g) for g in u["grocery"]]
    await send_long(update, format_grocery_list(items))


def main():
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
    token = os.getenv("TELEGRAM_TOKEN")
    if not token:
        raise RuntimeError("Missing TELEGRAM_TOKEN environment variable")

    app = ApplicationBuilder().token(token).build()

    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("help", help_cmd))
    app.add_handler(CommandHandler("cancel", cancel))

    app.add_handler(CommandHandler("foods", list_foods))
    app.add_handler(CommandHandler("select", select_foods))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, select_foods_text))
    app.add_handler(CommandHandler("targets", set_targets))
    app.add_handler(CommandHandler("weight", set_weight))

    app.add_handler(CommandHandler("plan_day", plan_day))
    app.add_handler(CommandHandler("plan_week", plan_week))
    app.add_handler(CommandHandler("grocery", grocery))

    logger.info("Starting bot polling")
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
