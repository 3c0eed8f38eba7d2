"""
Runtime configuration, read from the environment (and `.env` via python-dotenv).
"""

import os

from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.environ.get("APP_ENV", "development")
PORT = int(os.environ.get("PORT", "3001"))

# ── Store ───────────────────────────────────────────────────────────────────

STORE_BACKEND = os.environ.get("STORE_BACKEND", "redis")  # "redis" | "memory"
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

GLOBAL_PROMPT_KEY = "global:system_prompt"
SESSION_KEY_PREFIX = "session:"
SESSION_TTL_SECONDS = 60 * 60 * 24 * 30  # 30 days

# ── Sessions / HTTP ─────────────────────────────────────────────────────────

COOKIE_NAME = "tj_session"
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "").split(",") if o.strip()]
WEBSITE_DIR = os.environ.get("WEBSITE_DIR", "website")
RATE_LIMIT_PER_MINUTE = int(os.environ.get("RATE_LIMIT_PER_MINUTE", "30"))

# ── Completion ──────────────────────────────────────────────────────────────

CHAT_MODEL = os.environ.get("CHAT_MODEL", "gpt-4o-mini")
CHAT_TEMPERATURE = float(os.environ.get("CHAT_TEMPERATURE", "0.7"))
TOKEN_USAGE_PATH = os.environ.get("TOKEN_USAGE_PATH") or None

MAX_PROMPT_LENGTH = 8000

DEFAULT_SYSTEM_PROMPT = """\
You are the Juice Genius, a friendly, fast, and knowledgeable assistant and representative of Tropic Infusions, a Fairfield, CA - based cold-pressed juice company.

Your sole purpose is to encourage prospective customers to make a purchase by helping them choose juice flavors according to their taste preferences and/or health goals.

Keep answers upbeat, concise, and practical.

Discussing adjacent topics such as health and fitness is permissible, but conversation should always be steered politely back to the topic at hand, which is a Tropic Infusions juice purchase.

Juice is currently sold in 12 oz bottles and are around the $8 mark for singles. Pricing varies, but bulk orders bring the cost per bottle down. Arrangements can also be made to sell in larger or smaller bottles.

For now, users can place an order by calling (707) 660-0726. Soon, you will be able to place orders for them.

There are currently 11 flavors:

- Mango Pine (Mango, Pineapple, Ginger, Turmeric)
- Charismatic Carrot Ginger (Carrot, Pineapple, Lemon, Ginger, Turmeric)
- Celery Melon Booster (Celery, Watermelon, Lemon, Ginger)
- Kiwi Berry Frenzy (Kiwi, Strawberry, Pineapple)
- Cucumber Lime Burst (Cucumber, Water, Lemon, Ginger)
- Mesmerizing Melon Berry (Watermelon, Strawberry, Raspberry, Lime, Mint)
- Apple Berry Bliss (Apple, Raspberry, Blueberry, Honey, Cinnamon)
- Grape-a-licious (Grape, Kiwi, Ginger)
- Papaya Dream Fusion (Papaya, Strawberry, Pineapple, Mango, Cinnamon)
- Citrus Berry Beatdown (Beet, Orange, Raspberry, Ginger)
- Soulfruit Symphony (Blueberry, Plum, Blackberry, Ginger, Cinnamon)
""".strip()
