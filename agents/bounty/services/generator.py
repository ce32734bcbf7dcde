"""
Bounty Generator — asks Claude for a fresh bounty idea, falling back to a
fixed local list when the model is unavailable or answers with junk.
"""
import random
from pathlib import Path
import anthropic
from pydantic import ValidationError
from shared.claude_client import ask_claude_json
from shared.config import settings
from agents.bounty.models.schemas import GeneratedBounty
import structlog

logger = structlog.get_logger()

PROMPT_PATH = Path(__file__).parent.parent / "templates" / "generation_prompt.txt"
_system_prompt: str | None = None

FALLBACK_BOUNTIES = [
    GeneratedBounty(
        title="Top Hat Tea Time",
        description="Share a photo of yourself enjoying tea while wearing a distinguished top hat in an unexpected location.",
    ),
    GeneratedBounty(
        title="Formal Pet Portrait",
        description="Dress your pet in a top hat and take a Victorian-style portrait photo.",
    ),
    GeneratedBounty(
        title="Top Hat Trick Shot",
        description="Capture a photo of yourself successfully landing a small object into a top hat from at least 10 feet away.",
    ),
    GeneratedBounty(
        title="Historical Hat Recreation",
        description="Recreate a famous historical photo or painting while wearing a top hat.",
    ),
    GeneratedBounty(
        title="Top Hat Garden Party",
        description="Host an impromptu garden party with at least 3 people wearing top hats, even if it's in your living room.",
    ),
    GeneratedBounty(
        title="Breakfast with Class",
        description="Take a photo of your morning breakfast setup with a miniature top hat perched on something in the scene.",
    ),
    GeneratedBounty(
        title="Top Hat Transportation",
        description="Capture yourself wearing a top hat while using an unusual form of transportation (skateboard, unicycle, etc).",
    ),
    GeneratedBounty(
        title="Hat Stack Challenge",
        description="Successfully balance and photograph at least 3 top hats stacked on your head.",
    ),
    GeneratedBounty(
        title="Top Hat Wildlife",
        description="Edit a top hat onto a photo you take of local wildlife (bird, squirrel, etc).",
    ),
    GeneratedBounty(
        title="Formal Fitness",
        description="Share a photo of yourself exercising while wearing a top hat.",
    ),
]


class FallbackRotation:
    """Hands out fallback bounties without repeats until the list runs out.

    The used-set lives for the life of the process; once every entry has
    been handed out it is cleared and the rotation starts over.
    """

    def __init__(self, entries: list[GeneratedBounty] | None = None, rng: random.Random | None = None):
        self.entries = list(FALLBACK_BOUNTIES if entries is None else entries)
        if not self.entries:
            raise ValueError("fallback list is empty")
        self.used: set[int] = set()
        self._rng = rng or random.Random()

    def next(self) -> GeneratedBounty:
        available = [i for i in range(len(self.entries)) if i not in self.used]
        if not available:
            self.used.clear()
            available = list(range(len(self.entries)))
        index = self._rng.choice(available)
        self.used.add(index)
        return self.entries[index]


def _get_system_prompt(recent_titles: list[str]) -> str:
    global _system_prompt
    if _system_prompt is None:
        _system_prompt = PROMPT_PATH.read_text(encoding="utf-8")
    listing = "\n".join(f"- {t}" for t in recent_titles) or "(none yet)"
    return _system_prompt.replace("{recent_titles}", listing)


def _parse_idea(payload: dict, recent_titles: list[str]) -> GeneratedBounty:
    idea = GeneratedBounty.model_validate(payload)
    if idea.title.casefold() in {t.casefold() for t in recent_titles}:
        raise ValueError(f"generated title repeats a recent bounty: {idea.title}")
    return idea


async def generate_bounty_idea(recent_titles: list[str], fallback: FallbackRotation) -> GeneratedBounty:
    """Generate new bounty content, avoiding the recent titles."""
    try:
        payload = ask_claude_json(
            system_prompt=_get_system_prompt(recent_titles),
            user_message="Generate a unique POIDH bounty",
            model=settings.GENERATION_MODEL,
            max_tokens=300,
        )
        idea = _parse_idea(payload, recent_titles)
        logger.info("bounty_idea_generated", title=idea.title)
        return idea
    except (anthropic.APIError, RuntimeError, ValidationError, ValueError) as e:
        idea = fallback.next()
        logger.warning("bounty_idea_fallback", error=str(e), title=idea.title)
        return idea
