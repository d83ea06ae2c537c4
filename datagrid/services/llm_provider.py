"""
LLM provider utilities for the Data Grid API.

This module turns a selection of vehicle records into a natural-language
comparison. Providers are tried in order (OpenAI, Anthropic, Mistral,
DeepSeek) and the first non-empty answer wins.
"""
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import anthropic
import httpx
from mistralai import Mistral
from openai import AsyncOpenAI

from datagrid.config import llm_api_keys
from datagrid.errors import ComparisonUnavailable
from datagrid.operators import to_text
from datagrid.registry import ColumnRegistry

TextGenerator = Callable[[str], Awaitable[str]]

OPENAI_MODEL = "gpt-4o-mini"
ANTHROPIC_MODEL = "claude-3-5-haiku-latest"
MISTRAL_MODEL = "mistral-small-latest"
DEEPSEEK_MODEL = "deepseek-chat"
DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"

MAX_TOKENS = 1024
TEMPERATURE = 0.3


def build_comparison_prompt(records: Sequence[Mapping[str, Any]], registry: ColumnRegistry) -> str:
    """Render the selected records, labelled, into a comparison prompt."""
    blocks = []
    for index, record in enumerate(records, start=1):
        title = " ".join(
            to_text(record.get(name)) for name in ("Brand", "Model") if record.get(name)
        ) or f"Vehicle {index}"
        lines = [f"Vehicle {index}: {title}"]
        for column in registry.columns:
            value = record.get(column.name)
            if value is None or value == "":
                continue
            lines.append(f"- {column.label}: {to_text(value)}")
        blocks.append("\n".join(lines))

    vehicles = "\n\n".join(blocks)
    return f"""You are an automotive analyst helping a buyer choose between electric vehicles.
Compare the following {len(records)} vehicles using only the data provided.

{vehicles}

Requirements:
1. Summarise the key differences in price, range, performance, efficiency and charging
2. Point out which vehicle is strongest for each of those aspects
3. Finish with a short recommendation for different kinds of buyers
4. Do not invent specifications that are not listed above"""


async def _openai_completion(prompt: str, api_key: str) -> str:
    async with AsyncOpenAI(api_key=api_key) as client:
        response = await client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )
    return response.choices[0].message.content or ""


async def _anthropic_completion(prompt: str, api_key: str) -> str:
    async with anthropic.AsyncAnthropic(api_key=api_key) as client:
        response = await client.messages.create(
            model=ANTHROPIC_MODEL,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            messages=[{"role": "user", "content": prompt}],
        )
    return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")


async def _mistral_completion(prompt: str, api_key: str) -> str:
    async with Mistral(api_key=api_key) as client:
        response = await client.chat.complete_async(
            model=MISTRAL_MODEL,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )
    return response.choices[0].message.content or ""


async def _deepseek_completion(prompt: str, api_key: str) -> str:
    async with httpx.AsyncClient(timeout=60.0) as http_client:
        client = AsyncOpenAI(api_key=api_key, base_url=DEEPSEEK_BASE_URL, http_client=http_client)
        response = await client.chat.completions.create(
            model=DEEPSEEK_MODEL,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )
    return response.choices[0].message.content or ""


PROVIDERS: Dict[str, Callable[[str, str], Awaitable[str]]] = {
    "openai": _openai_completion,
    "anthropic": _anthropic_completion,
    "mistral": _mistral_completion,
    "deepseek": _deepseek_completion,
}


def get_available_llm_providers(api_keys: Optional[Dict[str, Optional[str]]] = None) -> List[Tuple[str, str]]:
    """Return (provider, api_key) pairs for every configured provider, in priority order."""
    api_keys = llm_api_keys() if api_keys is None else api_keys
    return [(name, api_keys[name]) for name in PROVIDERS if api_keys.get(name)]


async def try_llm_provider(provider_name: str, prompt: str, api_key: str) -> Tuple[Optional[str], Optional[str]]:
    """Helper function to try an LLM provider and capture errors."""
    try:
        print(f"[compare] Attempting comparison with {provider_name}")
        text = (await PROVIDERS[provider_name](prompt, api_key)).strip()
        if not text:
            print(f"[compare] {provider_name} returned an empty completion")
            return None, f"{provider_name} returned an empty completion"
        return text, None
    except Exception as e:
        error_msg = f"{provider_name} error: {str(e)}"
        print(f"[compare] {error_msg}")
        return None, error_msg


async def generate_text(prompt: str) -> str:
    """
    Generate a completion with the first provider that answers.

    Raises:
        ComparisonUnavailable: If no provider is configured or all of them fail
    """
    providers = get_available_llm_providers()
    if not providers:
        raise ComparisonUnavailable(
            "No LLM API key found. Please set at least one of: "
            "OPENAI_API_KEY, ANTHROPIC_API_KEY, MISTRAL_API_KEY, DEEPSEEK_API_KEY"
        )

    errors = []
    for provider_name, api_key in providers:
        text, error = await try_llm_provider(provider_name, prompt, api_key)
        if text:
            return text
        errors.append(error)

    raise ComparisonUnavailable("All LLMs failed to generate a comparison. Errors: {}".format("; ".join(errors)))


async def compare_records(records: Sequence[Mapping[str, Any]], registry: ColumnRegistry,
                          text_generator: TextGenerator = generate_text) -> str:
    prompt = build_comparison_prompt(records, registry)
    return await text_generator(prompt)
