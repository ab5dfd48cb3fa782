"""
Transcript formatting helpers used by text front-ends.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from swarm_chat.models.message import Message, MessageKind

EXPLORER_TX_URL = "https://sepolia.arbiscan.io/tx/"
PLAN_URL = "https://testing.nevermined.app/en/plan/"

URL_RE = re.compile(r"https?://[^\s]+")
DID_RE = re.compile(r"did:nv:[a-f0-9]+")
MEDIA_SUFFIX_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|mp3|mp4)$", re.IGNORECASE)

# Kinds shown in their own grouped block
GROUPED_KINDS = {MessageKind.REASONING, MessageKind.ANSWER, MessageKind.FINAL_ANSWER}

KIND_LABELS = {
    MessageKind.TRANSACTION: "Blockchain Transaction",
    MessageKind.USER_TRANSACTION: "NVM Transaction (User <-> Agent)",
    MessageKind.AGENT_TRANSACTION: "NVM Transaction (Agent <-> Agent)",
    MessageKind.ERROR: "Error",
    MessageKind.WARNING: "Warning",
    MessageKind.AGENT_CALL: "Agent Call",
    MessageKind.COST_INFO: "Cost",
}


def explorer_url(tx_hash: str) -> str:
    return f"{EXPLORER_TX_URL}{tx_hash}"


def plan_url(plan_id: Optional[str]) -> Optional[str]:
    return f"{PLAN_URL}{plan_id}" if plan_id else None


def short_hash(tx_hash: Optional[str]) -> str:
    if not tx_hash:
        return ""
    if len(tx_hash) <= 10:
        return tx_hash
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"


def friendly_link_name(url: str) -> str:
    """Short display name for a URL: a plan DID, a media file name, or domain/first-path."""
    did = DID_RE.search(url)
    if did:
        return did.group(0)
    parsed = urlparse(url)
    if MEDIA_SUFFIX_RE.search(url):
        return parsed.path.rsplit("/", 1)[-1] or url
    domain = parsed.hostname or ""
    if domain.startswith("www."):
        domain = domain[4:]
    first = parsed.path.split("/")[1] if parsed.path.count("/") >= 1 else ""
    return f"{domain}/{first}" if first else domain


def split_links(text: str) -> list[tuple[str, bool]]:
    """Split text into (chunk, is_url) pieces, in order."""
    pieces: list[tuple[str, bool]] = []
    last = 0
    for match in URL_RE.finditer(text):
        if match.start() > last:
            pieces.append((text[last:match.start()], False))
        pieces.append((match.group(0), True))
        last = match.end()
    if last < len(text):
        pieces.append((text[last:], False))
    return pieces


def credits_label(credits: Optional[float]) -> str:
    if not credits or credits <= 0:
        return ""
    return f"{credits:g} credit{'' if credits == 1 else 's'}"


def group_messages(messages: list[Message]) -> list[list[Message]]:
    """Group consecutive messages from the same side with the same groupable kind.

    Transactions, errors and notices always stand alone.
    """
    groups: list[list[Message]] = []
    for message in messages:
        if groups:
            head = groups[-1][0]
            if (head.is_user == message.is_user and head.kind == message.kind
                    and message.kind in GROUPED_KINDS and not message.is_user):
                groups[-1].append(message)
                continue
        groups.append([message])
    return groups
