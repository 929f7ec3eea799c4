"""Finance advisor chat: a single-shot variant and a tool-calling variant"""

import json
from typing import Any, Dict, List, Optional

from core import ExternalServiceError, ValidationError, get_logger
from financial_context import build_advisor_context, build_simple_context
from llm import prompt_manager
from llm.client import chat_with_tools, complete_chat
from llm.executor import execute_action
from llm.tools import TOOLS_DEFINITIONS
from services.account_service import AccountContext
from services.member_service import fetch_members

logger = get_logger(__name__)

MAX_TOOL_ROUNDS = 10
HISTORY_TURNS = 4


def _require_message(message: Optional[str]) -> str:
    message = (message or "").strip()
    if not message:
        raise ValidationError("No message provided", field="message")
    return message


def simple_advice(
    db, ctx: AccountContext, message: str, language: str = "en", history: Optional[List[Dict]] = None
) -> Dict[str, Any]:
    message = _require_message(message)
    system = prompt_manager.simple_advisor_system(build_simple_context(db, ctx.account_id))
    messages = (
        [{"role": "system", "content": system}]
        + prompt_manager.history_to_messages(history or [], keep=10)
        + [{"role": "user", "content": message}]
    )
    answer = complete_chat(messages, max_tokens=2048, temperature=0.3)
    logger.info("advisor_answered", account_id=ctx.account_id, language=language)
    return {"response": answer}


def _tool_call_dict(tc) -> Dict[str, Any]:
    return {
        "id": tc.id,
        "type": "function",
        "function": {"name": tc.function.name, "arguments": tc.function.arguments or "{}"},
    }


def _parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}


def agentic_advice(
    db, ctx: AccountContext, message: str, language: str = "en", history: Optional[List[Dict]] = None
) -> Dict[str, Any]:
    """
    Chat with tool use.

    While the model asks for tools (at most MAX_TOOL_ROUNDS rounds) every
    requested tool is executed and its JSON result fed back, then the model
    is called again.
    """
    message = _require_message(message)
    context = build_advisor_context(db, ctx.account, fetch_members(db, ctx.account_id))
    messages: List[Dict[str, Any]] = (
        [{"role": "system", "content": prompt_manager.agentic_advisor_system(context, language)}]
        + prompt_manager.history_to_messages(history or [], keep=HISTORY_TURNS)
        + [{"role": "user", "content": message}]
    )

    choice = chat_with_tools(messages, TOOLS_DEFINITIONS, max_tokens=2048)
    results: List[Dict[str, Any]] = []
    rounds = 0

    while choice.message.tool_calls and rounds < MAX_TOOL_ROUNDS:
        rounds += 1
        tool_calls = choice.message.tool_calls
        messages.append(
            {
                "role": "assistant",
                "content": choice.message.content,
                "tool_calls": [_tool_call_dict(tc) for tc in tool_calls],
            }
        )
        for tc in tool_calls:
            result = execute_action(db, ctx, tc.function.name, _parse_arguments(tc.function.arguments))
            results.append({"name": tc.function.name, "result": result})
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": tc.id,
                    "content": json.dumps(result, default=str),
                }
            )
        choice = chat_with_tools(messages, TOOLS_DEFINITIONS, max_tokens=2048)

    text = (choice.message.content or "").strip()
    logger.info(
        "advisor_agentic_answered",
        account_id=ctx.account_id,
        rounds=rounds,
        tools=[r["name"] for r in results],
    )

    if results:
        return {
            "response": text or "Actions completed!",
            "tool_used": ", ".join(r["name"] for r in results),
            "tool_result": results[0]["result"] if len(results) == 1 else results,
            "tools_count": len(results),
        }
    if not text:
        raise ExternalServiceError("AI", "No response from AI")
    return {"response": text}
