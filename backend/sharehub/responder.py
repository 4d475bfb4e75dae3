import random
import re

# Ordered keyword groups; the first group with a keyword in the message wins.
# Keywords match at the start of a word ("uploads" hits "upload"); groups
# flagged whole-word only match the bare word, so "this" is not "hi".
REPLY_RULES: list[tuple[tuple[str, ...], str, bool]] = [
    (
        ("upload", "share", "sharing"),
        "You can share up to 10 files at once (100MB each) from the Files tab. Uploads are public unless you mark them private.",
        False,
    ),
    (
        ("download", "link"),
        "Download links are signed and stay valid for one hour. Just request a fresh link if yours has expired.",
        False,
    ),
    (
        ("error", "problem", "broken"),
        "Sorry you're running into trouble! Describe the exact error and what you were doing, and an admin will take a look.",
        False,
    ),
    (
        ("admin", "account", "password"),
        "Account changes are handled by the hub administrators. Reach out to one of them if you need your access updated.",
        False,
    ),
    (
        ("hello", "hi", "hey"),
        "Hello! Welcome to ShareHub. I'm the hub assistant, ask me about uploads, downloads or your account.",
        True,
    ),
]

FALLBACK_REPLIES = [
    "Interesting! I'm the ShareHub assistant, here to help with sharing and finding files.",
    "I can help with uploads, download links and general questions about the hub.",
    "Thanks for your message! What would you like to know about ShareHub?",
    "Feel free to ask about uploading, downloading or managing your files.",
    "Let me help you with that. The Files tab lists everything shared publicly on the hub.",
    "Good question! The hub administrators can help with anything I can't answer.",
]


def _matcher(keywords: tuple[str, ...], whole_word: bool) -> re.Pattern:
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    suffix = r"\b" if whole_word else ""
    return re.compile(rf"\b(?:{alternatives}){suffix}", re.IGNORECASE)


_MATCHERS = [(_matcher(keywords, whole_word), reply) for keywords, reply, whole_word in REPLY_RULES]


def generate_reply(message: str, rng: random.Random | None = None) -> str:
    for pattern, reply in _MATCHERS:
        if pattern.search(message):
            return reply
    return (rng or random).choice(FALLBACK_REPLIES)
