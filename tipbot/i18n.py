# tipbot/i18n.py
from __future__ import annotations

from typing import Dict


def normalize_lang(code: str | None) -> str:
    """
    Map a Telegram language_code (he-IL, en-US, ...) to a supported short
    code: en / he. Anything else falls back to en.
    """
    if not code:
        return "en"

    code = code.lower()

    if code.startswith("he"):
        return "he"
    if code.startswith("iw"):  # old Telegram clients
        return "he"

    return "en"


LANG_DATA: Dict[str, Dict[str, str]] = {
    "en": {
        # ----- /start, /help -----
        "START": (
            "Welcome to the {symbol} tip bot.\n\n"
            "/{balance_cmd} – show your balance\n"
            "/tip <amount> – reply to someone's message to tip them\n"
            "/top – leaderboard"
        ),
        "HELP": (
            "Commands:\n"
            "/{balance_cmd} – your {symbol} balance\n"
            "/tip <amount> – reply to a message to tip its author (groups only)\n"
            "/top – top {symbol} holders\n"
            "/help – this message"
        ),

        # ----- balance -----
        "NO_USER_ID": "Could not determine your user ID.",
        "BALANCE": "You have {balance} {symbol}",
        "BALANCE_ERROR": "Error fetching balance. Please try again later.",

        # ----- leaderboard -----
        "TOP_TITLE": "🏆 Top {symbol} holders:",
        "TOP_ROW": "{rank}. {name} – {balance} {symbol}",
        "TOP_EMPTY": "Nobody holds {symbol} yet.",
        "TOP_ERROR": "Error fetching the leaderboard. Please try again later.",

        # ----- /tip rejections -----
        "TIP_PRIVATE_CHAT": "This command can only be used in groups.",
        "TIP_BUSY": "A transfer is pending. Try later.",
        "TIP_MISSING_SOURCE": "Could not determine your user ID.",
        "TIP_MISSING_TARGET": "Usage: Reply to a message with /tip <amount>",
        "TIP_BAD_AMOUNT": "Usage: Reply with /tip <amount>, where <amount> is a positive whole number.",
        "TIP_ZERO_AMOUNT": "Amount must be greater than zero.",
        "TIP_SELF": "You cannot tip yourself.",
        "TIP_BOT": "You cannot tip the bot.",
        "TIP_INSUFFICIENT": "Insufficient balance, you have {balance} {symbol}",
        "TIP_QUERY_FAILED": "Could not check your balance. Nothing was sent, please try again later.",
        "TIP_SUBMIT_FAILED": "Transfer failed. Nothing was sent, please try again later.",
        "TIP_REVERTED": "Transfer was rejected by the ledger. Nothing moved.\ntx: {tx_hash}",
        "TIP_INTERNAL_ERROR": "Transfer failed. Please try again later.",

        # ----- /tip progress & result -----
        "TIP_SUBMITTED": "Tipping {amount} {symbol} to {target}...\ntx: {tx_hash}",
        "TIP_CONFIRMED": "{source} tipped {amount} {symbol} to {target}. tx: {tx_hash}",
        "TIP_AMBIGUOUS": (
            "⚠️ The tip of {amount} {symbol} to {target} was sent but not confirmed in time.\n"
            "It may still go through. Do NOT resend; check the transaction first:\n"
            "tx: {tx_hash}"
        ),
        "TIP_AMBIGUOUS_NO_TX": (
            "⚠️ The tip of {amount} {symbol} to {target} has an unknown status.\n"
            "Check your balance with /{balance_cmd} before trying again."
        ),

        # ----- generic -----
        "GENERIC_ERROR": "⚠️ Temporary error. Please try again.",
    },
    "he": {
        "START": (
            "ברוכים הבאים לבוט הטיפים של {symbol}.\n\n"
            "/{balance_cmd} – הצגת היתרה שלך\n"
            "/tip <amount> – השב/י להודעה של מישהו כדי לתת לו טיפ\n"
            "/top – טבלת מובילים"
        ),
        "HELP": (
            "פקודות:\n"
            "/{balance_cmd} – יתרת {symbol} שלך\n"
            "/tip <amount> – השב/י להודעה כדי לתת טיפ לכותב/ת (בקבוצות בלבד)\n"
            "/top – המחזיקים המובילים ב-{symbol}\n"
            "/help – הודעה זו"
        ),

        "NO_USER_ID": "לא ניתן לזהות את מזהה המשתמש שלך.",
        "BALANCE": "יש לך {balance} {symbol}",
        "BALANCE_ERROR": "שגיאה בשליפת היתרה. נסה/י שוב מאוחר יותר.",

        "TOP_TITLE": "🏆 המחזיקים המובילים ב-{symbol}:",
        "TOP_ROW": "{rank}. {name} – {balance} {symbol}",
        "TOP_EMPTY": "עדיין אין מחזיקים ב-{symbol}.",
        "TOP_ERROR": "שגיאה בשליפת טבלת המובילים. נסה/י שוב מאוחר יותר.",

        "TIP_PRIVATE_CHAT": "ניתן להשתמש בפקודה זו רק בקבוצות.",
        "TIP_BUSY": "העברה אחרת בתהליך. נסה/י שוב בעוד רגע.",
        "TIP_MISSING_SOURCE": "לא ניתן לזהות את מזהה המשתמש שלך.",
        "TIP_MISSING_TARGET": "שימוש: השב/י להודעה עם /tip <amount>",
        "TIP_BAD_AMOUNT": "שימוש: /tip <amount> כאשר <amount> הוא מספר שלם חיובי.",
        "TIP_ZERO_AMOUNT": "הסכום חייב להיות גדול מאפס.",
        "TIP_SELF": "אי אפשר לתת טיפ לעצמך.",
        "TIP_BOT": "אי אפשר לתת טיפ לבוט.",
        "TIP_INSUFFICIENT": "אין מספיק יתרה, יש לך {balance} {symbol}",
        "TIP_QUERY_FAILED": "לא ניתן לבדוק את היתרה. לא נשלח דבר, נסה/י שוב מאוחר יותר.",
        "TIP_SUBMIT_FAILED": "ההעברה נכשלה. לא נשלח דבר, נסה/י שוב מאוחר יותר.",
        "TIP_REVERTED": "ההעברה נדחתה על ידי החוזה. לא הועבר דבר.\ntx: {tx_hash}",
        "TIP_INTERNAL_ERROR": "ההעברה נכשלה. נסה/י שוב מאוחר יותר.",

        "TIP_SUBMITTED": "מעביר {amount} {symbol} אל {target}...\ntx: {tx_hash}",
        "TIP_CONFIRMED": "{source} העביר/ה {amount} {symbol} אל {target}. tx: {tx_hash}",
        "TIP_AMBIGUOUS": (
            "⚠️ הטיפ של {amount} {symbol} אל {target} נשלח אך לא אושר בזמן.\n"
            "ייתכן שהוא עוד יעבור. אין לשלוח שוב; בדקו קודם את העסקה:\n"
            "tx: {tx_hash}"
        ),
        "TIP_AMBIGUOUS_NO_TX": (
            "⚠️ מצב הטיפ של {amount} {symbol} אל {target} אינו ידוע.\n"
            "בדקו את היתרה עם /{balance_cmd} לפני ניסיון נוסף."
        ),

        "GENERIC_ERROR": "⚠️ תקלה זמנית. נסה/י שוב.",
    },
}


def t(lang: str, key: str) -> str:
    """
    Simple lookup:
    1. by lang
    2. fallback to en
    3. fallback to the key itself
    """
    lang = normalize_lang(lang)
    data = LANG_DATA.get(lang, {})
    if key in data:
        return data[key]
    data_en = LANG_DATA.get("en", {})
    if key in data_en:
        return data_en[key]
    return key
