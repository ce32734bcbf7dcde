"""
Scoring Oracle — asks a vision model how well an image satisfies a bounty.

The model is treated as an opaque oracle returning a 1-10 score. Anything
that is not a clean in-range integer is a MalformedScoreError; anything that
stops us from getting an answer at all is an OracleUnavailableError.
"""
import re
from pathlib import Path
import anthropic
from shared.claude_client import ask_claude, image_block
from shared.config import settings
from agents.bounty.config import SCORE_MAX, SCORE_MIN
from agents.bounty.errors import MalformedScoreError, OracleUnavailableError
import structlog

logger = structlog.get_logger()

PROMPT_PATH = Path(__file__).parent.parent / "templates" / "scoring_prompt.txt"
_system_prompt: str | None = None

_LEADING_INT = re.compile(r"^\s*(\d+)")


def _get_system_prompt() -> str:
    global _system_prompt
    if _system_prompt is None:
        _system_prompt = PROMPT_PATH.read_text(encoding="utf-8")
    return _system_prompt


def parse_score(text: str | None) -> int:
    """Read the leading integer of the reply ("8", "8/10", "7 - close")."""
    match = _LEADING_INT.match(text or "")
    if not match:
        raise MalformedScoreError(f"no score in reply: {(text or '')[:40]!r}")
    score = int(match.group(1))
    if not SCORE_MIN <= score <= SCORE_MAX:
        raise MalformedScoreError(f"score {score} outside {SCORE_MIN}-{SCORE_MAX}")
    return score


def score_evidence(title: str, description: str, image_url: str) -> int:
    """Score one piece of evidence against a bounty's requirements."""
    content = [
        {
            "type": "text",
            "text": (
                f"Bounty Title: {title}\n"
                f"Bounty Description: {description}\n"
                f"Rate how well the image satisfies the bounty requirements on a scale of {SCORE_MIN}-{SCORE_MAX}:"
            ),
        },
        image_block(image_url),
    ]
    try:
        reply = ask_claude(
            system_prompt=_get_system_prompt(),
            user_message=content,
            model=settings.SCORING_MODEL,
            max_tokens=10,
            temperature=0.0,
        )
    except (anthropic.APIError, RuntimeError) as e:
        raise OracleUnavailableError(str(e)) from e
    except ValueError as e:
        raise MalformedScoreError(str(e)) from e

    score = parse_score(reply)
    logger.info("oracle_scored", title=title, score=score)
    return score
