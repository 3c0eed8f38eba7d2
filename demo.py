#!/usr/bin/env python3
"""
Terminal chat with the Juice Genius, using the same conversation state as the API.

Usage:
    python demo.py              # chat against the configured store (redis by default)
    python demo.py --memory     # keep everything in process
    python demo.py --session ID # resume a stored session

Inside the REPL, `/prompt <text>` replaces the global system prompt.
"""

import sys
import uuid

from dotenv import load_dotenv

load_dotenv()

from src import config
from src.completion import CompletionClient, CompletionError
from src.conversation import ConversationManager, InvalidMessage
from src.kv_store import build_store
from src.prompt_store import InvalidPrompt, PromptStore
from src.token_tracker import TokenTracker


def _arg_value(flag: str) -> str | None:
    if flag in sys.argv:
        i = sys.argv.index(flag)
        if i + 1 < len(sys.argv):
            return sys.argv[i + 1]
    return None


def run_interactive(manager: ConversationManager, session_id: str):
    print("\nSay something to the Juice Genius (or 'quit' to exit):\n")

    while True:
        try:
            text = input("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not text:
            continue
        if text.lower() in ("quit", "exit", "q"):
            break

        if text.startswith("/prompt "):
            try:
                manager.update_prompt(session_id, text[len("/prompt "):])
                print("  (global prompt updated)\n")
            except InvalidPrompt as e:
                print(f"  Prompt rejected: {e.message}\n")
            continue

        try:
            reply = manager.chat(session_id, text)
        except InvalidMessage as e:
            print(f"  {e.message}\n")
            continue
        except CompletionError as e:
            print(f"  Completion failed: {e}\n", file=sys.stderr)
            continue
        print(f"genius> {reply}\n")


def main():
    backend = "memory" if "--memory" in sys.argv else config.STORE_BACKEND
    session_id = _arg_value("--session") or str(uuid.uuid4())

    store = build_store(backend, config.REDIS_URL)
    prompts = PromptStore(store)
    prompts.ensure_seeded()
    tracker = TokenTracker(config.TOKEN_USAGE_PATH)
    manager = ConversationManager(store, prompts, CompletionClient(tracker=tracker))
    print(f"Session {session_id} ({type(store).__name__})")

    run_interactive(manager, session_id)

    tracker.write_report()
    s = tracker.summary()
    print(f"\nToken usage: {s['total_calls']} API calls, ${s['total_cost_usd']:.6f} total cost")
    print("Report written to TOKENS.md")


if __name__ == "__main__":
    main()
