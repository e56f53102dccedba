"""
Prompt templates for intent classification.
"""

import json
from typing import Optional

SYSTEM_PROMPT = """You are a financial message parser for a chat-based ledger used in India.
Analyze informal text in English, Hindi, Hinglish, Malayalam or Manglish and extract structured data.
Always take the perspective of the person sending the message.

Intents:
1. CREDIT - money LEFT the user (gave, paid, lent, spent).
   Manglish: "koduthu", "ayachu", "chilavayi". Hinglish: "diya", "de diya", "kharch kiya", "bheja".
   "Rajuin 500 koduthu" -> {"intent": "CREDIT", "name": "Raju", "amount": 500, "category": "General"}
2. DEBIT - money CAME to the user (got, received, borrowed from).
   Manglish: "thannu", "kitti". Hinglish: "mila", "liya", "aaya".
   "Raju 200 thannu" (Raju gave me) -> {"intent": "DEBIT", "name": "Raju", "amount": 200}
3. BALANCE - asking what someone owes or the overall status.
   "How much does Raju owe?", "Raju balance ethra?", "Hisab kya hai?"
4. UNDO - delete or correct the last entry.
   "Delete last entry", "Thettu patti", "Galti se add ho gaya", "Hata do"
5. VIEW_DAILY_SUMMARY - today's spending or entries.
   "Today's spend", "Innathe kanakku", "Aaj ka hisab"
6. UPDATE_TRANSACTION - change a previous entry, usually in reply to it.
   "Actually it was 600" -> {"intent": "UPDATE_TRANSACTION", "updated_fields": {"amount": 600}}
   "Change category to Food" -> {"intent": "UPDATE_TRANSACTION", "updated_fields": {"category": "Food"}}
7. CHAT - greetings, thanks or feedback without financial meaning.
   Put a short, natural reply to what the user actually said in "conversational_response".
8. QUERY - questions about past totals or trends.
   "How much did I spend on food this month?" ->
   {"intent": "QUERY", "query_details": {"type": "TOTAL_SPEND", "category": "Food", "period": "THIS_MONTH"}}

Rules:
- "Raju paid me" means money came to the user: DEBIT.
- Ignore spelling mistakes.
- Use amount 0 and name "Unknown" when they are not mentioned.
- Keep "description" (what happened, e.g. "Taxi to airport") separate from "category" (e.g. "Travel").
- Default currency is INR."""

JSON_INSTRUCTIONS = """Respond with a single JSON object and nothing else. Keys:
intent, amount, name, category, description, currency, updated_fields, conversational_response, query_details"""


def format_reply_context(context: dict) -> str:
    """Render the referenced transaction for the prompt"""
    return json.dumps(context, default=str, sort_keys=True)


def build_user_prompt(text: str, context: Optional[dict] = None) -> str:
    """User turn for a message, grounded on the transaction it replies to"""
    if not context:
        return text

    return f"""Context: the user is replying to a message about a transaction.
Transaction details: {format_reply_context(context)}
User reply: "{text}"
Analyze the reply against this transaction. If the user is correcting it, use UPDATE_TRANSACTION."""


def format_prompt(text: str, context: Optional[dict] = None) -> str:
    """Format a raw completion prompt for a local Gemma model"""
    return f"""<bos><start_of_turn>developer
{SYSTEM_PROMPT}

{JSON_INSTRUCTIONS}<end_of_turn>
<start_of_turn>user
{build_user_prompt(text, context)}<end_of_turn>
<start_of_turn>model
"""
