"""Reply and profile text."""

import random

from .aggregator import RankedTerm

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}

# Replies used when someone asks the bot to audit itself
WHIMSICAL_RESPONSES = [
    "Nice try, buddy! 😏",
    "Hey now, that's not how this works! 🙃",
    "Trying to break me? I'm unbreakable! 💪",
    "I don't analyze myself, I'm perfect! ✨",
    "Plot twist: I'm squeaky clean! 🧼",
    "Error 404: Self-audit not found! 🤓",
    "My books are balanced, thank you very much! 📚⚖️",
    "I've already reconciled my accounts - they're spotless! 🧮✨",
    "Attempting to audit the auditor? Frig off buddy!",
    "My profanity ledger shows zero entries for this account! 📋✅",
]


def random_whimsical_response(rng: random.Random | None = None) -> str:
    """Pick one of the self-audit responses."""
    return (rng or random).choice(WHIMSICAL_RESPONSES)


def build_reply(handle: str, total_count: int, unit_count: int, ranked: list[RankedTerm]) -> str:
    """
    Build the reply summarizing a subject's analysis.

    Examples:
        >>> build_reply("alice.bsky.social", 0, 12, [])
        '@alice.bsky.social has been a good citizen! No profanity found in their last 12 posts.'
    """
    if total_count == 0:
        return f"@{handle} has been a good citizen! No profanity found in their last {unit_count} posts."

    lines = [f"@{handle} has used {total_count} profanities in their last {unit_count} posts."]
    if ranked:
        lines.append("")
        for item in ranked[:3]:
            lines.append(f'{MEDALS[item.rank]}"{item.term}" ({item.count} times)')
    return "\n".join(lines)


def profile_description(total_count: int) -> str:
    """Profile text advertising the running total."""
    return (
        "A bot which tells you how much profanity a user has poasted.\n\n"
        f"{total_count:,} total profanities counted, you pottymouths!\n\n"
        "Simply tag me and I will respond telling you how much a profanity you "
        "(or the user you're replying to) has used in the last year "
        "(might take me a few minutes to respond)."
    )
