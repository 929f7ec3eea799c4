"""Prompt templates for extraction, advice and phone-call scripts

All prompts target Pakistani users: amounts are PKR and input may be
English, Urdu or Roman Urdu.
"""

from typing import Dict, List

from core.dates import today_pkt

LANGUAGE_NAMES = {"en": "English", "ur": "Urdu"}

EXPENSE_CATEGORIES = [
    "Groceries", "Transport", "Shopping", "Bills", "Healthcare",
    "Entertainment", "Education", "Food", "Other",
]
INCOME_CATEGORIES = ["Salary", "Business", "Investment", "Freelance", "Gift", "Other"]


def _language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, "English")


def voice_prompt(transcript: str, language: str) -> str:
    return f"""You are a financial transaction parser for a Pakistani finance app.
Parse this {_language_name(language)} voice input and extract one transaction.

Voice Input: "{transcript}"

Return JSON with:
- type: "income" or "expense"
- amount: numeric value only (no currency)
- category: one of food, transport, shopping, bills, healthcare, entertainment, education, salary, business, investment, other
- description: brief description of the transaction
- confidence: your confidence (0-1) in the extraction

Hints:
- خرچ/spent/paid = expense
- آمدنی/received/earned/salary = income
- خوراک/food/groceries, ٹرانسپورٹ/transport/petrol, بل/bill, دوائی/medicine

Return ONLY valid JSON, no markdown or explanations."""


def voice_agentic_prompt(transcript: str, language: str) -> str:
    return f"""You are a financial transaction parser for HisaabKitaab, a Pakistani finance app.
The user spoke naturally and may have mentioned several transactions at once.
Parse ALL transactions from this {_language_name(language)} voice input.

Voice Input: "{transcript}"

Rules:
1. Extract every transaction mentioned, one or many.
2. Each transaction needs type, amount, category, description and confidence.
3. If the user does not remember a detail, still log it with category "Other" and say so in the description.
4. Amount is a plain number. Currency is always PKR.

Type hints:
- خرچ/spent/paid/kharch/kharcha = expense
- آمدنی/received/earned/mili/kamai/salary = income

Use these exact category names:
- Expenses: {", ".join(EXPENSE_CATEGORIES)}
- Income: {", ".join(INCOME_CATEGORIES)}
- petrol/fuel → Transport, biryani/khana/restaurant → Food, dawai/medicine → Healthcare,
  kapre/clothes → Shopping, freelance work → Freelance

Return a JSON object with exactly this structure:
{{
  "transactions": [
    {{"type": "income" or "expense", "amount": <number>, "category": "<name>",
      "description": "<brief description>", "confidence": <0-1>}}
  ],
  "summary": "<one-line summary of all transactions>"
}}

Return ONLY valid JSON. No markdown, no explanations, no code fences."""


def bill_prompt() -> str:
    today = today_pkt()
    return f"""You are an expert bill and receipt scanner for Pakistani documents.
You read printed and handwritten text in English and Urdu (اردو).

FIRST decide whether the image is a bill, receipt, invoice or other financial document.
If it shows a person, landscape, animal, meme, unrelated screenshot or anything else, return:
{{"is_bill": false, "amount": 0, "items": [], "confidence": 0, "rejection_reason": "<brief reason>", "category": "other", "date": "{today}", "description": "", "merchant": ""}}

If it IS a bill:
1. Use the TOTAL PAYABLE / GRAND TOTAL / NET TOTAL as the amount.
2. Utility bills (LESCO, K-Electric, SNGPL, SSGC, PTCL and similar): use "PAYABLE WITHIN DUE DATE" or "AMOUNT PAYABLE".
3. Pakistani amounts use comma grouping: 6,733.93 is six thousand seven hundred thirty-three rupees and 93 paisa.
4. List every line item with its price. If no total is printed, sum the items yourself.
5. Handwritten shop bills are common. Urdu terms: کل (total), رقم (amount), واجب الادا (payable).

Return JSON:
{{
  "is_bill": true,
  "amount": <total as a plain number>,
  "category": "<one of: food, transport, shopping, bills, healthcare, entertainment, education, rent, utilities, other>",
  "date": "<YYYY-MM-DD from the bill, or {today} if not visible>",
  "description": "<short English description>",
  "merchant": "<vendor name, or 'Local Shop'>",
  "items": [{{"name": "<item>", "price": <number>}}],
  "confidence": <0.0 to 1.0>
}}

Return ONLY valid JSON, no markdown code fences, no explanations."""


FINANCE_ONLY_REFUSAL = (
    "معذرت، میں صرف مالیات کے سوالات کا جواب دے سکتا ہوں۔ / "
    "Sorry, I can only answer questions related to personal finance and money management."
)


def simple_advisor_system(context: str) -> str:
    return f"""You are a friendly AI financial advisor for HisaabKitaab (حساب کتاب), a Pakistani personal finance app.

You MUST ONLY answer questions about personal finance, budgeting, savings, investments in Pakistan,
Islamic banking, debt, Pakistani taxes and the HisaabKitaab app.
For anything else reply exactly: "{FINANCE_ONLY_REFUSAL}"

Guidelines:
- Reply in the language of the user's current message (English or Urdu).
- Use PKR and Pakistani context (local banks, NSS, Prize Bonds, gold).
- Keep answers concise, friendly and actionable.
- Mention when something needs a professional.

User's financial data:
{context}"""


def agentic_advisor_system(context: str, language: str) -> str:
    return f"""You are an AI financial advisor for HisaabKitaab (حساب کتاب), a Pakistani family finance app.

LANGUAGE:
- Reply in the language of the user's current message (English or Urdu).
- The app UI language is {_language_name(language)}, but the message language wins.

SCOPE:
Refuse anything that is not about personal finance, budgeting, savings, investments, taxes,
banking or the app. For such questions do not use tools and reply only:
"Sorry, I can only help with financial matters." (or the Urdu equivalent).

TOOLS:
- "I spent X on Y" / "add X as income" → create_transaction only, then confirm in one sentence.
- Recent activity or last transaction → get_recent_transactions
- Where money goes, category totals → get_spending_summary
- Overall finances, savings → get_financial_overview
- Who spends or earns most → get_member_spending
- Always call a tool for questions about the user's data instead of guessing.

STYLE:
- 2-4 sentences unless the user asks for detail. Cite PKR amounts.
- "Current balance" means the all-time balance, not the period net.
- Only state numbers that appear in tool results or the data below. If the user quotes a
  different number, say what the data shows.
{context}"""


def call_script_prompt(name: str, summary: Dict) -> str:
    top = ", ".join(f"{cat}: {round(amount)} rupay" for cat, amount in summary["top_expenses"])
    net = summary["net"]
    return f"""Generate a SHORT phone call message in URDU (Urdu script) for HisaabKitaab (حساب کتاب),
a Pakistani family finance app.

The call is to: {name}
Family members in account: {summary["member_count"]}

This month's financial summary:
- Total Income: PKR {round(summary["total_income"])}
- Total Expenses: PKR {round(summary["total_expense"])}
- Net Cash Flow: PKR {round(net)} ({"positive" if net >= 0 else "negative"})
- All-time Balance: PKR {round(summary["balance"])}
- Top expense categories: {top or "none yet"}
- Total transactions this month: {summary["transaction_count"]}

Rules:
1. Write entirely in Urdu script.
2. Start with "السلام علیکم {name}".
3. Stay under 150 words. It will be read aloud.
4. Mention income, expenses and balance.
5. Give one brief tip based on the data.
6. End with "حساب کتاب کا استعمال کرنے کا شکریہ".
7. Return only the Urdu message."""


def default_call_message(name: str, income: float, expenses: float, balance: float) -> str:
    return (
        f"السلام علیکم {name}۔ یہ حساب کتاب سے ایک خودکار مالی رپورٹ کال ہے۔ "
        f"اس مہینے آپ کی کل آمدنی {round(income)} روپے ہے اور کل اخراجات {round(expenses)} روپے ہیں۔ "
        f"آپ کا موجودہ بیلنس {round(balance)} روپے ہے۔ "
        "اپنے اخراجات پر نظر رکھیں اور بچت کی کوشش کریں۔ حساب کتاب کا استعمال کرنے کا شکریہ۔"
    )


def history_to_messages(history: List[Dict], keep: int = 4) -> List[Dict[str, str]]:
    """Trim chat history to the last ``keep`` turns, starting on a user turn."""
    if not isinstance(history, list):
        history = []
    turns = [
        {"role": h.get("role"), "content": str(h.get("content") or "")}
        for h in history
        if isinstance(h, dict) and h.get("role") in ("user", "assistant") and h.get("content")
    ][-keep:]
    while turns and turns[0]["role"] != "user":
        turns.pop(0)
    return turns
