"""
Token usage tracker for chat completion calls.
Optionally appends every call to a JSON file so totals accumulate across runs,
and writes a human-readable Markdown report.
"""

import json
import time
from dataclasses import dataclass, asdict
from pathlib import Path

# Pricing per 1M tokens
PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
}


@dataclass
class CompletionCall:
    timestamp: float
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float


def _load_store(path: Path) -> list[dict]:
    if path.exists():
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, ValueError):
            return []
    return []


class TokenTracker:
    def __init__(self, store_path: str | Path | None = None):
        self.store_path = Path(store_path) if store_path else None
        self._calls: list[CompletionCall] = []

    def log(self, model: str, input_tokens: int, output_tokens: int = 0) -> CompletionCall:
        pricing = PRICING.get(model, {"input": 0.0, "output": 0.0})
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000

        call = CompletionCall(
            timestamp=time.time(),
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost,
        )
        self._calls.append(call)

        if self.store_path is not None:
            stored = _load_store(self.store_path)
            stored.append(asdict(call))
            self.store_path.write_text(json.dumps(stored, indent=2) + "\n")

        return call

    @property
    def calls(self) -> list[CompletionCall]:
        return list(self._calls)

    def summary(self) -> dict:
        """Summary of calls made by this process."""
        return _summarize(self._calls)

    def write_report(self, path: str | Path = "TOKENS.md"):
        s = self.summary()
        lines = [
            "# Token Usage Report\n",
            f"**Completion calls:** {s['total_calls']}",
            f"**Total cost:** ${s['total_cost_usd']:.6f}\n",
            "| Model | Calls | Input Tokens | Output Tokens | Cost |",
            "|-------|-------|-------------|---------------|------|",
        ]
        for model, data in s["by_model"].items():
            lines.append(
                f"| {model} | {data['count']} | {data['input_tokens']:,} | "
                f"{data['output_tokens']:,} | ${data['cost_usd']:.6f} |"
            )
        Path(path).write_text("\n".join(lines) + "\n")

    def reset(self):
        self._calls.clear()


def _summarize(calls: list[CompletionCall]) -> dict:
    by_model: dict[str, dict] = {}
    for call in calls:
        if call.model not in by_model:
            by_model[call.model] = {
                "count": 0, "input_tokens": 0, "output_tokens": 0, "cost_usd": 0.0
            }
        s = by_model[call.model]
        s["count"] += 1
        s["input_tokens"] += call.input_tokens
        s["output_tokens"] += call.output_tokens
        s["cost_usd"] += call.cost_usd

    total_cost = sum(s["cost_usd"] for s in by_model.values())
    total_calls = sum(s["count"] for s in by_model.values())
    return {"by_model": by_model, "total_calls": total_calls, "total_cost_usd": total_cost}
