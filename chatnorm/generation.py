"""Model-name aliasing, thinking detection and generation config mapping."""

from typing import Any, Dict, Mapping, Optional

from .models import NormalizerConfig

DEFAULT_STOP_SEQUENCES = [
    "<|user|>",
    "<|bot|>",
    "<|context_request|>",
    "<|endoftext|>",
    "<|end_of_turn|>",
]

REASONING_EFFORT_BUDGETS = {
    "low": 1024,
    "medium": 16000,
    "high": 32000,
}


def model_mapping(model_name: Optional[str], settings: NormalizerConfig) -> str:
    """Resolve a client-facing model name to the backend model name."""
    name = model_name if isinstance(model_name, str) else ""
    return settings.model_aliases.get(name, name)


def is_enable_thinking(model_name: Optional[str], settings: NormalizerConfig) -> bool:
    if not isinstance(model_name, str) or not model_name:
        return False
    return (
        "-thinking" in model_name
        or model_name in settings.thinking_models
        or any(model_name.startswith(prefix) for prefix in settings.thinking_model_prefixes)
    )


def _thinking_budget(params: Mapping[str, Any], settings: NormalizerConfig) -> int:
    raw_budget = params.get("thinking_budget")
    if raw_budget is not None:
        try:
            return max(0, int(raw_budget))
        except (TypeError, ValueError):
            return settings.default_thinking_budget

    # Claude 风格: {"thinking": {"type": "enabled", "budget_tokens": N}}
    thinking = params.get("thinking")
    if isinstance(thinking, dict) and thinking.get("budget_tokens") is not None:
        try:
            return max(0, int(thinking["budget_tokens"]))
        except (TypeError, ValueError):
            return settings.default_thinking_budget

    effort = params.get("reasoning_effort")
    if isinstance(effort, str):
        mapped = REASONING_EFFORT_BUDGETS.get(effort.lower())
        if mapped is not None:
            return mapped

    return settings.default_thinking_budget


def _stop_sequences(params: Mapping[str, Any]) -> list:
    stop = params.get("stop", params.get("stop_sequences"))
    if isinstance(stop, str):
        return [stop]
    if isinstance(stop, (list, tuple)):
        stops = [item for item in stop if isinstance(item, str)]
        if stops:
            return stops
    return list(DEFAULT_STOP_SEQUENCES)


def generate_generation_config(
    params: Optional[Mapping[str, Any]],
    enable_thinking: bool,
    actual_model_name: str,
    settings: NormalizerConfig,
) -> Dict[str, Any]:
    """Map client sampling parameters onto the backend generationConfig."""
    params = params or {}

    def pick(key: str, default: Any) -> Any:
        value = params.get(key)
        return default if value is None else value

    config: Dict[str, Any] = {
        "topP": pick("top_p", settings.default_top_p),
        "topK": pick("top_k", settings.default_top_k),
        "temperature": pick("temperature", settings.default_temperature),
        "candidateCount": 1,
        "maxOutputTokens": pick("max_tokens", settings.default_max_tokens),
        "stopSequences": _stop_sequences(params),
        "thinkingConfig": {
            "includeThoughts": enable_thinking,
            "thinkingBudget": _thinking_budget(params, settings) if enable_thinking else 0,
        },
    }
    if enable_thinking and "claude" in (actual_model_name or "").lower():
        config.pop("topP", None)
    return config
