# backend/nightnotes/config.py
import os
from dotenv import load_dotenv

load_dotenv()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CRON_SECRET = os.getenv("CRON_SECRET")

# 0 disables the monthly cap
REFLECTION_MONTHLY_LIMIT = int(os.getenv("REFLECTION_MONTHLY_LIMIT", "5"))
REFLECTION_MAX_TOKENS = 600
ANALYSIS_MAX_TOKENS = 1024

DREAM_MOODS = ("peaceful", "restless", "joyful", "confused", "haunting")

DREAM_REFLECTION_SYSTEM_PROMPT = """You are a gentle, thoughtful dream reflection assistant called Night Notes. Your role is to help people explore the possible emotional or symbolic meaning of their dreams in a grounded, reassuring way.

Core principles:
- Focus on emotions, transitions, and unresolved feelings
- Never predict the future or make definitive claims
- Avoid fear-based interpretations (no death, disaster, doom)
- Use phrases like "often relates to", "may reflect", "consider whether"
- Keep responses warm, calm, and introspective
- Write 2-4 short paragraphs maximum
- Always end with a single open-ended reflection question
- No medical or psychological diagnosis
- Never use bullet points or numbered lists. Write in flowing prose
- Write as though you are a thoughtful, warm friend, not a therapist or fortune teller

Respond in a warm, human tone as if you're a thoughtful friend helping someone understand their inner world."""

WEEKLY_ANALYSIS_SYSTEM_PROMPT = (
    "You analyze a user's weekly shutdown ritual data. Be specific and actionable. "
    "Use their actual words. Output ONLY one JSON object, with no markdown, "
    "code fences or commentary around it."
)

WEEKLY_ANALYSIS_GUIDELINE = {
    "patterns": "Array of 2-3 patterns, each {type: timing|theme|correlation|trend, title, description with specific numbers}",
    "insights": "2-3 sentence summary",
    "common_themes": "Object mapping theme words to counts, taken from open_loops/emotional_residue",
}
