"""Thin gateway to the hosted language model (OpenAI chat completions)"""

import json
import re
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

import config
from core import ExternalServiceError, UnprocessableError, get_logger
from llm.retry_utils import call_llm_with_retry

logger = get_logger(__name__)

_client: Optional[OpenAI] = None

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _client


def _create(**kwargs):
    try:
        return call_llm_with_retry(
            get_client().chat.completions.create,
            max_retries=config.LLM_MAX_RETRIES,
            **kwargs,
        )
    except openai.OpenAIError as e:
        logger.error("llm_request_failed", exc=e, model=kwargs.get("model"))
        raise ExternalServiceError("AI", str(e))


def complete_chat(
    messages: List[Dict[str, Any]],
    max_tokens: int = 1024,
    temperature: Optional[float] = None,
) -> str:
    params: Dict[str, Any] = {"model": config.LLM_MODEL, "messages": messages, "max_tokens": max_tokens}
    if temperature is not None:
        params["temperature"] = temperature

    resp = _create(**params)
    text = (resp.choices[0].message.content or "").strip()
    if not text:
        raise ExternalServiceError("AI", "Empty response from model")
    return text


def complete_text(
    prompt: str,
    system: Optional[str] = None,
    max_tokens: int = 1024,
    temperature: Optional[float] = None,
) -> str:
    messages: List[Dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return complete_chat(messages, max_tokens=max_tokens, temperature=temperature)


def _file_part(data_b64: str, media_type: str) -> Dict[str, Any]:
    data_url = f"data:{media_type};base64,{data_b64}"
    if media_type == "application/pdf":
        return {"type": "file", "file": {"filename": "bill.pdf", "file_data": data_url}}
    return {"type": "image_url", "image_url": {"url": data_url}}


def complete_vision(data_b64: str, media_type: str, prompt: str, max_tokens: int = 2048) -> str:
    """Ask the vision model about an image or PDF passed as base64."""
    resp = _create(
        model=config.LLM_VISION_MODEL,
        max_tokens=max_tokens,
        messages=[
            {
                "role": "user",
                "content": [_file_part(data_b64, media_type), {"type": "text", "text": prompt}],
            }
        ],
    )
    text = (resp.choices[0].message.content or "").strip()
    if not text:
        raise ExternalServiceError("AI", "Empty response from model")
    return text


def chat_with_tools(messages: List[Dict[str, Any]], tools: List[Dict[str, Any]], max_tokens: int = 1024):
    """One tool-enabled chat turn. Returns the first choice."""
    resp = _create(
        model=config.LLM_MODEL,
        messages=messages,
        tools=tools,
        tool_choice="auto",
        max_tokens=max_tokens,
    )
    return resp.choices[0]


def extract_json_object(
    text: str, error: str = "Could not extract structured data"
) -> Dict[str, Any]:
    """Pull the first {...} block out of a model reply."""
    cleaned = FENCE.sub("", text or "").strip()
    match = JSON_BLOCK.search(cleaned)
    if match:
        try:
            parsed = json.loads(match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass
    logger.warning("llm_json_parse_failed", preview=(text or "")[:200])
    raise UnprocessableError(error, payload={"rawResponse": text})
