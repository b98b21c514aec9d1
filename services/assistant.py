"""
Appraisal assistant - every OpenAI call the app makes.

- Vision appraisal (one-shot chat completion)
- Streaming appraisal on an Assistants thread, plus follow-up messages
- Audio summary, speech synthesis and transcription
"""

import json
import logging
import re
from typing import AsyncIterator, Dict, List, Optional, Tuple

import openai

from config import AIConfig, AI
from prompts import get_appraisal_prompt, get_follow_up_instructions, get_summary_prompt
from services.exceptions import ConfigurationError, OpenAIAPIError, ServiceTimeoutError

logger = logging.getLogger(__name__)

# Blank line followed by a letter starts a new section of the appraisal
SECTION_BREAK = re.compile(r"\n\n(?=[A-Za-zÀ-ÖØ-öø-ÿ])")
SENTENCE_BREAK = re.compile(r"[.!?]+\s+")

DEFAULT_IMAGE_REMARK = "What do you think about this image?"
DEFAULT_ITEM_REMARK = "What do you think about this item?"

ANALYSIS_TIMEOUT_MESSAGE = (
    "The image analysis is taking too long. Please try with a smaller image or try again later."
)


def split_appraisal(content: str, default_remark: str = DEFAULT_IMAGE_REMARK) -> Dict[str, str]:
    """Split assistant output into the description and the remaining remarks."""
    sections = SECTION_BREAK.split(content)
    description = sections[0] or content
    remarks = "\n\n".join(sections[1:]) if len(sections) > 1 else default_remark
    return {"description": description, "remarks": remarks}


def fallback_summary(text: str) -> str:
    """First three sentences, used when the summary model is unavailable."""
    sentences = SENTENCE_BREAK.split(text)
    summary = ". ".join(sentences[:3])
    if len(sentences) > 3:
        summary += "..."
    return summary


def chunk_text(text: str, size: int) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def ndjson(event_type: str, content) -> str:
    return json.dumps({"type": event_type, "content": content}) + "\n"


def image_parts(image_urls: List[str]) -> List[Dict]:
    return [{"type": "image_url", "image_url": {"url": url}} for url in image_urls]


class AppraisalAssistant:
    """Thin async wrapper over the OpenAI SDK with app-level error mapping."""

    def __init__(self, client, assistant_id: Optional[str] = None, ai_config: AIConfig = AI):
        self.client = client
        self.assistant_id = assistant_id
        self.config = ai_config

    def _require_assistant(self) -> str:
        if not self.assistant_id:
            raise ConfigurationError("Assistant is not configured", config_key="OPENAI_ASSISTANT_ID")
        return self.assistant_id

    # ============================================================
    # VISION APPRAISAL
    # ============================================================

    async def analyze_images(self, image_urls: List[str], language: str) -> Dict[str, str]:
        """One-shot appraisal of the uploaded images."""
        content = [{"type": "text", "text": get_appraisal_prompt(language, len(image_urls))}]
        content.extend(image_parts(image_urls))

        logger.info(f"[ASSISTANT] Vision appraisal: {len(image_urls)} image(s), lang={language}")
        try:
            response = await self.client.chat.completions.create(
                model=self.config.vision_model,
                messages=[{"role": "user", "content": content}],
                max_tokens=self.config.vision_max_tokens,
                timeout=self.config.request_timeout,
            )
        except openai.APITimeoutError as e:
            raise ServiceTimeoutError("openai", ANALYSIS_TIMEOUT_MESSAGE, cause=e)
        except openai.OpenAIError as e:
            raise OpenAIAPIError(f"AI Service Error: {e}", model=self.config.vision_model, cause=e)

        text = (response.choices[0].message.content if response.choices else None) or ""
        return split_appraisal(text)

    # ============================================================
    # ASSISTANT THREADS
    # ============================================================

    async def start_thread(self, image_urls: List[str], language: str) -> str:
        """Create a thread holding the appraisal prompt and images."""
        self._require_assistant()
        content = [{"type": "text", "text": get_appraisal_prompt(language, len(image_urls))}]
        content.extend(image_parts(image_urls))

        try:
            thread = await self.client.beta.threads.create()
            await self.client.beta.threads.messages.create(thread.id, role="user", content=content)
        except openai.APITimeoutError as e:
            raise ServiceTimeoutError("openai", ANALYSIS_TIMEOUT_MESSAGE, cause=e)
        except openai.OpenAIError as e:
            raise OpenAIAPIError(f"AI Assistant Error: {e}", cause=e)

        logger.info(f"[ASSISTANT] Thread {thread.id} created with {len(image_urls)} image(s)")
        return thread.id

    async def stream_thread_analysis(self, thread_id: str) -> AsyncIterator[str]:
        """
        Run the assistant on a prepared thread, yielding NDJSON lines.

        Event types: status, start, delta, complete, error. An error event
        ends the stream.
        """
        yield ndjson("status", "Starting image processing...")
        yield ndjson("status", "Images uploaded. Creating assistant thread...")
        yield ndjson("status", "Processing images with AI...")

        full_text = ""
        started = False
        try:
            async with self.client.beta.threads.runs.stream(
                thread_id=thread_id,
                assistant_id=self._require_assistant(),
                model=self.config.assistant_model,
            ) as stream:
                async for event in stream:
                    if event.event == "thread.message.created":
                        if not started:
                            started = True
                            yield ndjson("start", "Analysis starting...")
                    elif event.event == "thread.message.delta":
                        delta = _text_delta(event)
                        if delta:
                            full_text += delta
                            yield ndjson("delta", delta)
                    elif event.event == "thread.run.completed":
                        yield ndjson("complete", split_appraisal(full_text, DEFAULT_ITEM_REMARK))
        except Exception as e:
            logger.error(f"[ASSISTANT] Streaming error on thread {thread_id}: {e}")
            yield ndjson("error", str(e) or type(e).__name__)

    async def stream_follow_up(self, thread_id: str, message: str, language: str) -> AsyncIterator[bytes]:
        """Post the user's message and stream the updated report as text."""
        assistant_id = self._require_assistant()
        try:
            await self.client.beta.threads.messages.create(thread_id, role="user", content=message.strip())
        except openai.OpenAIError as e:
            raise OpenAIAPIError(f"AI Assistant Error: {e}", cause=e)

        logger.info(f"[ASSISTANT] Follow-up on thread {thread_id} (lang={language})")
        return self._follow_up_chunks(thread_id, assistant_id, language)

    async def _follow_up_chunks(self, thread_id: str, assistant_id: str, language: str) -> AsyncIterator[bytes]:
        # Headers are already sent once this runs, so failures can only end the body
        try:
            async with self.client.beta.threads.runs.stream(
                thread_id=thread_id,
                assistant_id=assistant_id,
                instructions=get_follow_up_instructions(language),
            ) as stream:
                async for event in stream:
                    if event.event == "thread.message.delta":
                        delta = _text_delta(event)
                        if delta:
                            yield delta.encode("utf-8")
        except openai.OpenAIError as e:
            logger.error(f"[ASSISTANT] Follow-up stream failed on thread {thread_id}: {e}")

    # ============================================================
    # SUMMARY
    # ============================================================

    async def summarize(self, text: str, language: str) -> Tuple[str, bool]:
        """
        Audio-friendly summary of an appraisal.

        Returns (summary, degraded). On API failure the summary is built from
        the first sentences of the text and degraded is True.
        """
        if len(text) > self.config.summary_max_chars:
            logger.info(f"[ASSISTANT] Truncating text from {len(text)} to {self.config.summary_max_chars} characters")
            text = text[:self.config.summary_max_chars] + "..."

        logger.info(f"[ASSISTANT] Summary request for {len(text)} chars in {language}")
        try:
            completion = await self.client.chat.completions.create(
                model=self.config.summary_model,
                messages=[
                    {"role": "system", "content": get_summary_prompt(language)},
                    {"role": "user", "content": text},
                ],
                temperature=self.config.summary_temperature,
                max_tokens=self.config.summary_max_tokens,
                timeout=self.config.summary_timeout,
            )
        except openai.OpenAIError as e:
            logger.warning(f"[ASSISTANT] Summary failed, using fallback: {e}")
            return fallback_summary(text), True

        summary = (completion.choices[0].message.content if completion.choices else None) or ""
        return summary, False

    # ============================================================
    # AUDIO
    # ============================================================

    async def synthesize_speech(self, text: str) -> bytes:
        try:
            response = await self.client.audio.speech.create(
                model=self.config.tts_model,
                voice=self.config.tts_voice,
                input=text,
            )
        except openai.OpenAIError as e:
            raise OpenAIAPIError(f"Speech generation error: {e}", model=self.config.tts_model, cause=e)
        return response.content

    async def stream_speech(self, text: str) -> AsyncIterator[bytes]:
        """Synthesize chunk by chunk; a failed chunk yields silence."""
        chunks = chunk_text(text, self.config.tts_chunk_chars)
        for i, chunk in enumerate(chunks):
            try:
                response = await self.client.audio.speech.create(
                    model=self.config.tts_model,
                    voice=self.config.tts_stream_voice,
                    input=chunk,
                    speed=self.config.tts_stream_speed,
                    timeout=self.config.tts_chunk_timeout,
                )
                yield response.content
            except openai.OpenAIError as e:
                logger.error(f"[ASSISTANT] Error processing TTS chunk {i}: {e}")
                yield b""

    async def transcribe(self, audio: bytes, filename: str = "audio.webm", language: str = "en") -> str:
        try:
            transcription = await self.client.audio.transcriptions.create(
                file=(filename, audio, "audio/webm"),
                model=self.config.transcription_model,
                language=language,
                response_format="json",
            )
        except openai.OpenAIError as e:
            raise OpenAIAPIError(f"OpenAI API Error: {e}", model=self.config.transcription_model, cause=e)
        return transcription.text


def _text_delta(event) -> str:
    """Text value of a thread.message.delta event, or empty string."""
    content = getattr(getattr(event.data, "delta", None), "content", None) or []
    parts = []
    for part in content:
        if getattr(part, "type", None) == "text" and getattr(part, "text", None) is not None:
            parts.append(part.text.value or "")
    return "".join(parts)
