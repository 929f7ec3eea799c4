"""LLM tool definitions for the agentic advisor (OpenAI function format)"""

_DAYS = {
    "type": "object",
    "properties": {
        "days": {"type": "number", "description": "Number of days to look back (default 30)"}
    },
}

TOOLS_DEFINITIONS = [
    {
        "type": "function",
        "function": {
            "name": "create_transaction",
            "description": (
                "Create an income or expense transaction when the user says they spent, earned "
                "or received money. Do not also fetch an overview; just confirm briefly."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["income", "expense"]},
                    "amount": {"type": "number", "description": "Amount in PKR"},
                    "category": {
                        "type": "string",
                        "description": "Category name in English, e.g. Groceries, Transport, Salary",
                    },
                    "description": {"type": "string"},
                    "date": {
                        "type": "string",
                        "description": "YYYY-MM-DD. Use today's date if not specified.",
                    },
                },
                "required": ["type", "amount", "category"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_recent_transactions",
            "description": (
                "Recent transactions with the family member who added each. Use for "
                "recent purchases, last transaction or activity questions."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "number",
                        "description": "How many to fetch (default 10, max 50)",
                    },
                    "type": {"type": "string", "enum": ["income", "expense", "all"]},
                    "category": {
                        "type": "string",
                        "description": "Optional category filter, e.g. Groceries",
                    },
                },
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_spending_summary",
            "description": (
                "Spending and income by category with a per-member breakdown. Use for "
                "budget, spending pattern and 'where does my money go' questions."
            ),
            "parameters": _DAYS,
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_financial_overview",
            "description": (
                "Totals, savings rate, top categories and recent activity. Use only when the "
                "user asks for an overview or how much they have saved."
            ),
            "parameters": _DAYS,
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_member_spending",
            "description": (
                "Per-member spending and income. Use for 'who spends the most' or "
                "'how much did <member> spend' questions."
            ),
            "parameters": _DAYS,
        },
    },
]

TOOL_NAMES = [tool["function"]["name"] for tool in TOOLS_DEFINITIONS]
