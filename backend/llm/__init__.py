"""
LLM Module - everything that talks to the hosted language model
Includes the client gateway, prompts, advisor tools and extraction
"""

from .tools import TOOLS_DEFINITIONS
from .retry_utils import call_llm_with_retry

__all__ = [
    "TOOLS_DEFINITIONS",
    "call_llm_with_retry",
]
