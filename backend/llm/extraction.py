"""Transaction extraction from voice transcripts and bill images"""

import math
import re
from typing import Any, Dict, List, Optional, Tuple

from core import UnprocessableError, ValidationError, get_logger
from core.validators import validate_date
from core.dates import today_pkt
from llm import prompt_manager
from llm.client import complete_text, complete_vision, extract_json_object
from services.transaction_service import round_half_up

logger = get_logger(__name__)

ALLOWED_UPLOAD_PREFIXES = (
    "data:image/jpeg",
    "data:image/jpg",
    "data:image/png",
    "data:application/pdf",
)
DATA_URL_PREFIX = re.compile(r"^data:[^;]+;base64,")
IMAGE_MEDIA_TYPE = re.compile(r"^data:(image/\w+);base64,")

MIN_AUTOSAVE_CONFIDENCE = 0.4


def _to_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # NaN and 0 both fall back, matching `parseFloat(x) || default`
    return number if number and not math.isnan(number) else default


# === Voice ===


def sanitize_transcript(text: str) -> str:
    """Normalise currency mentions to PKR and collapse whitespace."""
    text = text.replace("₹", "PKR ")
    text = re.sub(r"\bRs\.?\s*", "PKR ", text, flags=re.IGNORECASE)
    text = re.sub(r"\bINR\s*", "PKR ", text, flags=re.IGNORECASE)
    return re.sub(r"\s+", " ", text).strip()


def extract_voice_transaction(transcript: str, language: str = "en") -> Dict[str, Any]:
    """Single transaction from a transcript, with defaults filled in."""
    raw = complete_text(prompt_manager.voice_prompt(transcript, language), max_tokens=512)
    parsed = extract_json_object(raw)
    return {
        "type": parsed.get("type") or "expense",
        "amount": parsed.get("amount") or "0",
        "category": parsed.get("category") or "other",
        "description": parsed.get("description") or "",
        "confidence": parsed.get("confidence") or 0.5,
    }


def normalize_voice_transactions(parsed: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Accept the multi-transaction shape or a bare single transaction."""
    if isinstance(parsed.get("transactions"), list):
        items = parsed["transactions"]
    elif parsed.get("type") and parsed.get("amount"):
        items = [parsed]
    else:
        items = []

    return [
        {
            "type": "income" if tx.get("type") == "income" else "expense",
            "amount": _to_float(tx.get("amount"), 0.0),
            "category": tx.get("category") or "Other",
            "description": tx.get("description") or "",
            "confidence": _to_float(tx.get("confidence"), 0.7),
            "saved": False,
        }
        for tx in items
        if isinstance(tx, dict)
    ]


def extract_voice_transactions(transcript: str, language: str = "en") -> Tuple[List[Dict[str, Any]], str]:
    """All transactions mentioned in a transcript, plus the model's summary."""
    clean = sanitize_transcript(transcript)
    raw = complete_text(prompt_manager.voice_agentic_prompt(clean, language), max_tokens=2048)
    parsed = extract_json_object(raw)

    transactions = normalize_voice_transactions(parsed)
    if not transactions:
        raise UnprocessableError("No transactions could be extracted from the input.")

    summary = parsed.get("summary") or f"{len(transactions)} transaction(s) extracted"
    logger.info("voice_transactions_extracted", count=len(transactions), language=language)
    return transactions, summary


def should_autosave(tx: Dict[str, Any]) -> bool:
    return tx["confidence"] >= MIN_AUTOSAVE_CONFIDENCE and tx["amount"] > 0


# === Bills ===


def parse_amount(raw: Any) -> int:
    """
    Parse an amount the model may return as a formatted string.

    Keeps digits, dots, commas and minus, drops comma grouping, rounds.
    "Rs. 6,733.93" → 6734
    """
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, (int, float)):
        return round_half_up(raw)
    if not raw:
        return 0
    cleaned = re.sub(r"[^\d.,\-]", "", str(raw)).replace(",", "")
    # Search, not match: "Rs. 6,733" leaves a stray leading dot
    match = re.search(r"-?\d+(?:\.\d+)?", cleaned)
    if not match:
        return 0
    return round_half_up(float(match.group(0)))


def detect_media_type(image: str) -> str:
    if image.lower().startswith("data:application/pdf"):
        return "application/pdf"
    match = IMAGE_MEDIA_TYPE.match(image)
    if match:
        media_type = match.group(1).lower()
        return "image/jpeg" if media_type == "image/jpg" else media_type
    return "image/jpeg"


def prepare_upload(image: Optional[str]) -> Tuple[str, str]:
    """Validate an uploaded data URL (or bare base64) → (base64, media type)."""
    if not image:
        raise ValidationError("No image provided", field="image")
    lowered = image.lower()
    if lowered.startswith("data:") and not lowered.startswith(ALLOWED_UPLOAD_PREFIXES):
        match = re.match(r"^data:([^;]+);", image)
        detected = match.group(1) if match else "unknown"
        raise ValidationError(
            f"Unsupported file format: {detected}. Only JPG, PNG, and PDF are accepted.",
            field="image",
        )
    return DATA_URL_PREFIX.sub("", image), detect_media_type(image)


def rejected_bill(reason: Optional[str]) -> Dict[str, Any]:
    return {
        "is_bill": False,
        "amount": 0,
        "items": [],
        "confidence": 0,
        "rejection_reason": reason or "This image does not appear to be a bill or receipt.",
        "category": "other",
        "date": today_pkt(),
        "description": "",
        "merchant": "",
    }


def normalize_bill(parsed: Dict[str, Any]) -> Dict[str, Any]:
    bill = dict(parsed)
    bill["amount"] = parse_amount(bill.get("amount"))

    if isinstance(bill.get("items"), list):
        items = [item if isinstance(item, dict) else {} for item in bill["items"]]
        bill["items"] = [
            {"name": item.get("name") or "Item", "price": parse_amount(item.get("price"))}
            for item in items
        ]
        if bill["items"] and bill["amount"] <= 0:
            bill["amount"] = sum(item["price"] for item in bill["items"])

    if bill.get("is_bill") is False:
        return rejected_bill(bill.get("rejection_reason"))

    bill["category"] = bill.get("category") or "other"
    try:
        bill["date"] = validate_date(bill["date"]) if bill.get("date") else today_pkt()
    except ValidationError:
        logger.warning("bill_date_unreadable", date=bill.get("date"))
        bill["date"] = today_pkt()
    if not bill.get("description"):
        merchant = bill.get("merchant")
        bill["description"] = f"Bill from {merchant}" if merchant else "Scanned bill"
    if bill.get("confidence") is None:
        bill["confidence"] = 0.5
    return bill


def scan_bill(image: Optional[str]) -> Dict[str, Any]:
    data_b64, media_type = prepare_upload(image)
    raw = complete_vision(data_b64, media_type, prompt_manager.bill_prompt())
    parsed = extract_json_object(raw, error="Could not extract structured data from the bill")
    bill = normalize_bill(parsed)
    logger.info(
        "bill_scanned",
        media_type=media_type,
        is_bill=bill.get("is_bill", True),
        amount=bill["amount"],
        items=len(bill.get("items") or []),
    )
    return bill
