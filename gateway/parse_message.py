"""Compact projection of upstream chat messages for constrained clients.

The client renderer cannot draw custom image emoji or unicode pictographs,
so text is rewritten into colon names, and everything the client does not
display is dropped from the message object.
"""
import re
from typing import Optional

import emoji

# Discord snowflake ids
SNOWFLAKE = r"\d{17,30}"

GUILD_EMOJI_RE = re.compile(r"<a?:([A-Za-z0-9_]+):" + SNOWFLAKE + ">")
REGIONAL_INDICATOR_RE = re.compile("[\U0001F1E6-\U0001F1FF]")
LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

# system message kinds above this are not rendered by the client
MAX_MESSAGE_TYPE = 11
# recipient add / remove in group DMs
MEMBERSHIP_TYPES = (1, 2)

REPLY_MAX_LEN = 50
REPLY_CUT_LEN = 47

USER_FIELDS = ("id", "avatar", "global_name")
MENTION_FIELDS = ("id", "global_name")
ATTACHMENT_FIELDS = ("filename", "size", "width", "height", "proxy_url")
EMBED_FIELDS = ("title", "description")


class NormalizationError(ValueError):
    """Raised when an upstream object lacks a field the projection needs."""


def _pick(obj: dict, fields) -> dict:
    # absent keys stay absent, explicit nulls are kept
    return {k: obj[k] for k in fields if k in obj}


def _regional_indicator_name(match) -> str:
    letter = chr(ord(match.group(0)) - 0x1F1E6 + ord("a"))
    return f":regional_indicator_{letter}:"


def normalize_content(text: str, show_guild_emoji: bool = False) -> str:
    if not show_guild_emoji:
        text = GUILD_EMOJI_RE.sub(r":\1:", text)
    # before demojize: it would fold indicator pairs into country flag names
    text = REGIONAL_INDICATOR_RE.sub(_regional_indicator_name, text)
    return emoji.demojize(text, language="alias")


def reply_preview(text: Optional[str], show_guild_emoji: bool = False) -> str:
    """One-line, length-limited preview of a replied-to message."""
    content = normalize_content(text or "", show_guild_emoji)
    content = LINE_BREAK_RE.sub("  ", content)
    if len(content) > REPLY_MAX_LEN:
        content = content[:REPLY_CUT_LEN].strip() + "..."
    return content


def project_user(user: dict, fields=USER_FIELDS) -> dict:
    """Display name is preferred, the login name is only sent as fallback."""
    if not isinstance(user, dict):
        raise NormalizationError(f"expected a user object, got {type(user).__name__}")
    result = _pick(user, fields)
    if user.get("global_name") is None and "username" in user:
        result["username"] = user["username"]
    return result


def project_message(msg: dict, show_guild_emoji: bool = False) -> dict:
    if not isinstance(msg, dict):
        raise NormalizationError("message payload is not an object")
    try:
        result = {"id": msg["id"], "channel_id": msg["channel_id"]}
    except KeyError as e:
        raise NormalizationError(f"message without {e.args[0]}") from None
    if "guild_id" in msg:
        result["guild_id"] = msg["guild_id"]

    if msg.get("author"):
        result["author"] = project_user(msg["author"])

    msg_type = msg.get("type")
    if isinstance(msg_type, int) and 1 <= msg_type <= MAX_MESSAGE_TYPE:
        result["type"] = msg_type

    content = msg.get("content")
    if content:
        result["content"] = normalize_content(content, show_guild_emoji)
        if result["content"] != content:
            # raw text, in case the client wants to show the original
            result["_rc"] = content

    ref = msg.get("referenced_message")
    if ref:
        result["referenced_message"] = {
            "author": project_user(ref.get("author") or {}),
            "content": reply_preview(ref.get("content"), show_guild_emoji),
        }

    if msg.get("attachments"):
        result["attachments"] = [_pick(att, ATTACHMENT_FIELDS) for att in msg["attachments"]]

    if msg.get("sticker_items"):
        # the client shows a single sticker name
        result["sticker_items"] = [{"name": msg["sticker_items"][0].get("name")}]

    if msg.get("embeds"):
        result["embeds"] = [_pick(emb, EMBED_FIELDS) for emb in msg["embeds"]]

    # group DM join/leave notices name the affected users
    if msg_type in MEMBERSHIP_TYPES and msg.get("mentions"):
        result["mentions"] = [project_user(m, MENTION_FIELDS) for m in msg["mentions"]]

    return result
