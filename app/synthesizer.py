# app/synthesizer.py
import json
import logging

from pydantic import ValidationError

from app.errors import MalformedModelOutput
from app.schemas import ContentOutputs
from app.settings import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional content repurposing expert. Generate high-quality, "
    "engaging content in the requested formats. Always respond with a single valid JSON object."
)

PROMPT_TEMPLATE = """Repurpose this transcript into ten content formats. Return a JSON object with exactly this structure:

{{
  "twitter_posts": ["5 Twitter posts, each 280 characters or less, with 2-3 relevant hashtags, a hook and a call-to-action"],
  "linkedin_posts": ["3 LinkedIn posts, each up to 1,300 characters, professional tone with personal insights"],
  "instagram_captions": ["2 Instagram captions, each up to 2,200 characters, with relevant hashtags"],
  "blog_article": {{
    "title": "SEO-optimized title (60 characters or less)",
    "content": "1,500-2,500 word blog article in markdown with H2 headings, intro, conclusion and actionable insights",
    "word_count": 0
  }},
  "email_newsletter": {{
    "subject": "Compelling subject line (50 characters or less)",
    "content": "500-word newsletter with a personal touch, actionable tips and a clear call-to-action",
    "word_count": 0
  }},
  "quote_graphics": ["5 quotable statements, 1-2 sentences each, no quotation marks"],
  "twitter_thread": ["8-12 connected tweets under 280 characters that flow into each other"],
  "podcast_show_notes": ["bullet-point show notes with key topics and actionable takeaways"],
  "video_script_summary": "key talking points and themes as a structured bullet summary",
  "tiktok_hooks": ["5 TikTok/Reels hooks that grab attention in the first 3 seconds"]
}}

TRANSCRIPT:
{transcript}

Return only the JSON object, no additional text."""


def build_prompt(transcript: str, max_chars: int = settings.SYNTH_MAX_TRANSCRIPT_CHARS) -> str:
    return PROMPT_TEMPLATE.format(transcript=transcript[:max_chars])


def parse_outputs(raw: str | None) -> ContentOutputs:
    if not raw:
        raise MalformedModelOutput("Model returned no content")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedModelOutput(f"Model output is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedModelOutput("Model output is not a JSON object")
    try:
        return ContentOutputs.model_validate(payload)
    except ValidationError as e:
        raise MalformedModelOutput(f"Model output has unexpected structure: {e.error_count()} errors") from e


class ContentSynthesizer:
    """One chat completion per transcript, parsed into ``ContentOutputs``."""

    def __init__(
        self,
        client,
        model: str = settings.OPENAI_MODEL,
        temperature: float = settings.OPENAI_TEMPERATURE,
        max_tokens: int = settings.OPENAI_MAX_TOKENS,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(self, transcript: str) -> ContentOutputs:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(transcript)},
            ],
            response_format={"type": "json_object"},
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        content = resp.choices[0].message.content if resp.choices else None
        outputs = parse_outputs(content)
        logger.debug("Synthesized outputs with model %s", self.model)
        return outputs


def build_synthesizer(openai_client=None) -> ContentSynthesizer:
    if openai_client is None:
        from openai import OpenAI
        openai_client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_SECONDS)
    return ContentSynthesizer(openai_client)
