import json
import anthropic
from shared.config import settings

# No SDK-level retries: every call is bounded by HTTP_TIMEOUT and a failure
# is handed back to the caller, which has its own fallback.
client = anthropic.Anthropic(
    api_key=settings.ANTHROPIC_API_KEY,
    timeout=float(settings.HTTP_TIMEOUT),
    max_retries=0,
) if settings.ANTHROPIC_API_KEY else None


def image_block(url: str) -> dict:
    """Content block referencing a remote image by URL."""
    return {"type": "image", "source": {"type": "url", "url": url}}


def ask_claude(
    system_prompt: str,
    user_message: str | list[dict],
    model: str | None = None,
    max_tokens: int = 1024,
    temperature: float = 0.3,
) -> str:
    """Send a prompt to Claude and return the text response.

    ``user_message`` is either plain text or a list of content blocks
    (text and image blocks mixed).
    """
    if not client:
        raise RuntimeError("ANTHROPIC_API_KEY not configured")
    response = client.messages.create(
        model=model or settings.GENERATION_MODEL,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system_prompt,
        messages=[{"role": "user", "content": user_message}],
    )
    texts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
    if not texts:
        raise ValueError("Claude response contained no text block")
    return texts[0]


def ask_claude_json(
    system_prompt: str,
    user_message: str,
    model: str | None = None,
    max_tokens: int = 1024,
) -> dict:
    """Send a prompt to Claude and parse JSON response."""
    text = ask_claude(
        system_prompt=system_prompt + "\n\nRespond ONLY with valid JSON, no markdown fences.",
        user_message=user_message,
        model=model,
        max_tokens=max_tokens,
        temperature=0.9,
    )
    text = text.strip()
    if text.startswith("```"):
        text = text.partition("\n")[2]
        text = text.rsplit("```", 1)[0]
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object from Claude")
    return parsed
