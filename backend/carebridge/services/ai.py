"""
AI clinical tooling.

Wraps an OpenAI-compatible ``/chat/completions`` endpoint for:
- post summaries (prompt depends on post type)
- clinical insight extraction
- session note summaries in SOAP, DAP or NARRATIVE form
- clinical language enhancement
- PII/PHI redaction
- smart tags for community posts

Every operation has a deterministic fallback that is used when no API key
is configured or when the request ultimately fails. 429 and 5xx responses
and transport errors are retried with exponential backoff; other 4xx
responses fail immediately.
"""

import json
import logging
import re
from typing import Any, Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.exceptions import BadRequestError


logger = logging.getLogger(__name__)


class AIRequestError(Exception):
    """Non-retryable AI provider failure."""


class RetryableAIError(AIRequestError):
    """429, 5xx or transport failure."""


# =============================================================================
# Prompts
# =============================================================================

POST_PROMPTS = {
    "CASE_STUDY": (
        "You are a clinical summarizer. Focus on the patient case, intervention, and outcome.",
        "Provide a 2-3 sentence summary covering: Patient background/condition, "
        "Intervention/Therapy used, and Key Outcome/Result. Do not use generic filler.",
    ),
    "QUESTION": (
        "You are summarizing a clinical question.",
        "Summarize the core question and the specific context or help needed in 1-2 sentences. Be direct.",
    ),
    "RESOURCE": (
        "You are summarizing a shared medical resource.",
        "Summarize what this resource is, who it is for, and its primary utility in 2 sentences.",
    ),
    "DISCUSSION": (
        "You are summarizing a professional discussion.",
        "Summarize the main topic, key arguments, or points raised in 2-3 sentences. "
        "Capture the essence of the discussion.",
    ),
}

SESSION_BASE_PROMPT = [
    "You are a clinical documentation specialist for pediatric therapy.",
    "Transform raw therapist session notes into a structured professional summary.",
    "Use appropriate clinical terminology throughout.",
    "Be concise but thorough. Do not fabricate information not present in the notes.",
]

SESSION_FORMAT_PROMPTS = {
    "SOAP": [
        "Format the summary using the SOAP format:",
        "**Subjective**: Patient/caregiver reports, complaints, history relevant to session.",
        "**Objective**: Observable findings, measurements, test results, therapist observations.",
        "**Assessment**: Clinical interpretation of findings, progress toward goals.",
        "**Plan**: Next steps, treatment modifications, follow-up, home program.",
    ],
    "DAP": [
        "Format the summary using the DAP format:",
        "**Data**: Objective observations, what was done, how the patient responded.",
        "**Assessment**: Therapist interpretation, progress, clinical reasoning.",
        "**Plan**: Goals for next session, modifications, recommendations.",
    ],
    "NARRATIVE": [
        "Write a professional narrative summary in paragraph form.",
        "Include: session overview, interventions used, patient response, progress observations, and plan.",
    ],
}

ENHANCE_PROMPT = " ".join([
    "You are a clinical documentation specialist.",
    "Transform the following informal therapist notes into professional clinical language.",
    "Preserve all factual content and observations.",
    "Maintain a professional, objective tone.",
    "Do NOT add information that is not present in the original notes.",
    "Return only the enhanced text, no explanations.",
])

INSIGHT_PATTERN = re.compile(r"\d+%|improved|decreased|increased|significant|effective", re.IGNORECASE)
SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+")

REDACT_PROMPT = "\n".join([
    "Replace all PII/PHI with [REDACTED] including:",
    "- Names (patients, doctors, family)",
    "- Ages, dates, years",
    "- Locations (cities, hospitals, clinics)",
    "- Contact info (emails, phones)",
    "- ID numbers (MRN, SSN)",
    "",
    "Keep all clinical information intact. Return only the redacted text.",
])

# Applied in order: dashed dates must be replaced before phone numbers
REDACTION_PATTERNS = [
    (re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE), "[EMAIL_REDACTED]"),
    (re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"), "[DATE_REDACTED]"),
    (
        re.compile(r"\b(?:MRN|Medical Record|Patient ID|Case)\s*(?:#|No\.?|:)?\s*\w*\d\w*", re.IGNORECASE),
        "[ID_REDACTED]",
    ),
    (re.compile(r"(?<!\w)\+?\d[\d\s().-]{6,}\d\b"), "[PHONE_REDACTED]"),
    (re.compile(r"\b(?:age|aged)\s*\d{1,3}\b", re.IGNORECASE), "[AGE_REDACTED]"),
    (re.compile(r"\b(?:Mr|Ms|Mrs|Dr|Prof)\.?\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?"), "[NAME_REDACTED]"),
]

TAG_TERMS = [
    # therapies
    "occupational-therapy", "speech-therapy", "physical-therapy",
    "aba-therapy", "dir-floortime", "sensory-integration",
    # conditions
    "autism", "adhd", "cerebral-palsy", "down-syndrome",
    "developmental-delay", "selective-mutism",
]
GENERAL_TAGS = ["therapy", "pediatric", "clinical"]


# =============================================================================
# Fallbacks
# =============================================================================

def fallback_summary(content: str) -> str:
    """First two sentences, capped at 200 characters."""
    cleaned = re.sub(r"\s+", " ", content or "").strip()
    sentences = [s.strip() for s in SENTENCE_PATTERN.findall(cleaned)]
    summary = " ".join(sentences[:2])
    if len(summary) > 200:
        return summary[:197] + "..."
    return summary


def fallback_insights(content: str) -> list[str]:
    """Up to five outcome-bearing lines of 20-100 characters."""
    insights: list[str] = []
    for line in re.split(r"[.\n]", content or ""):
        if not line.strip():
            continue
        if INSIGHT_PATTERN.search(line):
            insight = line.strip()[:100]
            if len(insight) > 20:
                insights.append(insight)
        if len(insights) >= 5:
            break
    return insights


def fallback_redact(text: str) -> str:
    """Regex redaction of emails, dates, record numbers, phones, ages and titled names."""
    out = text or ""
    for pattern, replacement in REDACTION_PATTERNS:
        out = pattern.sub(replacement, out)
    return out


def normalize_tag(tag: str) -> str:
    tag = re.sub(r"[^a-z0-9-]", "-", tag.lower())
    return re.sub(r"-+", "-", tag).strip("-")


def fallback_tags(title: str, content: str) -> list[str]:
    """Known therapy and condition terms found in the text, padded with general tags."""
    text = f"{title} {content}".lower()
    tags = [term for term in TAG_TERMS if term in text or term.replace("-", " ") in text]
    if len(tags) < 3:
        tags.extend(t for t in GENERAL_TAGS if t not in tags)
    return tags[:7]


def fallback_session_summary(raw_notes: str, note_format: str, duration: Optional[int] = None) -> str:
    if note_format == "SOAP":
        parts = [
            "**Subjective**: See raw notes.",
            f"**Objective**: Session conducted{f' ({duration} min)' if duration else ''}.",
            "**Assessment**: Refer to goal progress entries.",
            "**Plan**: See next session plan.",
        ]
    elif note_format == "DAP":
        parts = [
            f"**Data**: {raw_notes[:200]}...",
            "**Assessment**: Refer to goal progress entries.",
            "**Plan**: See next session plan.",
        ]
    else:
        parts = [raw_notes[:500]]
    return "\n\n".join(parts)


def _format_value(value: Any) -> str:
    return getattr(value, "value", value) or ""


# =============================================================================
# AI Service
# =============================================================================

class AIService:
    """
    OpenAI-compatible chat client with deterministic fallbacks.

    Example usage:
        ai = AIService()
        result = ai.summarize_post(post.content, post.type.value)
    """

    def __init__(self, client: Optional[httpx.Client] = None):
        self._client = client

    @property
    def enabled(self) -> bool:
        return settings.ai_enabled or self._client is not None

    def _post_chat(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{settings.ai_api_base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {settings.ai_api_key}"}

        try:
            if self._client is not None:
                response = self._client.post(url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=settings.ai_timeout_seconds) as client:
                    response = client.post(url, json=payload, headers=headers)
        except httpx.TransportError as e:
            raise RetryableAIError(f"AI transport error: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableAIError(f"AI provider returned {response.status_code}")
        if response.status_code >= 400:
            raise AIRequestError(f"AI provider returned {response.status_code}")
        return response.json()

    def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> str:
        """
        Run one chat completion and return the assistant text.

        Raises:
            AIRequestError: the provider failed after all retry attempts
        """
        payload: dict[str, Any] = {
            "model": settings.ai_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        retrying = Retrying(
            stop=stop_after_attempt(max(settings.ai_max_attempts, 1)),
            wait=wait_exponential(multiplier=0.5, max=8),
            retry=retry_if_exception_type(RetryableAIError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                data = self._post_chat(payload)

        try:
            return (data["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError) as e:
            raise AIRequestError("Malformed AI response") from e

    # =========================================================================
    # Community
    # =========================================================================

    def summarize_post(self, content: str, post_type: str = "DISCUSSION") -> dict[str, Any]:
        if not self.enabled:
            return {"summary": fallback_summary(content), "ai_generated": False}

        system_prompt, instructions = POST_PROMPTS.get(post_type, POST_PROMPTS["DISCUSSION"])
        try:
            summary = self.chat(
                system_prompt,
                f"{instructions}\n\nContent:\n{content[:3000]}\n\nSummary:",
                max_tokens=200,
            )
        except AIRequestError as e:
            logger.warning(f"AI post summary failed, using fallback: {e}")
            return {"summary": fallback_summary(content), "ai_generated": False}

        if not summary:
            return {"summary": fallback_summary(content), "ai_generated": False}
        return {"summary": summary, "ai_generated": True}

    def extract_insights(self, content: str) -> dict[str, Any]:
        if not self.enabled:
            return {"insights": fallback_insights(content), "ai_generated": False}

        try:
            raw = self.chat(
                "You are a clinical insights extractor for healthcare professionals.",
                "Extract 3-5 actionable clinical insights (each <=100 chars).\n\n"
                f"Post:\n{content[:3000]}\n\n"
                'Respond with JSON: {"insights": ["insight1", "insight2", "insight3"]}',
                max_tokens=300,
                json_mode=True,
            )
            parsed = json.loads(raw)
        except AIRequestError as e:
            logger.warning(f"AI insights failed, using fallback: {e}")
            return {"insights": fallback_insights(content), "ai_generated": False}
        except json.JSONDecodeError:
            logger.warning("AI insights returned invalid JSON, using fallback")
            return {"insights": fallback_insights(content), "ai_generated": False}

        candidates = parsed.get("insights") if isinstance(parsed, dict) else None
        insights = [i for i in (candidates or []) if isinstance(i, str) and len(i) <= 100]
        if len(insights) < 3:
            return {"insights": fallback_insights(content), "ai_generated": False}
        return {"insights": insights, "ai_generated": True}

    def redact_sensitive_info(self, text: str) -> dict[str, Any]:
        if not self.enabled:
            return {"content": fallback_redact(text), "ai_generated": False}

        try:
            redacted = self.chat(
                "You are a medical privacy filter specializing in HIPAA compliance.",
                f"{REDACT_PROMPT}\n\nText:\n{text[:5000]}\n\nRedacted text:",
                max_tokens=min(1500, max(1, int(len(text) * 1.2) + 1)),
                temperature=0.1,
            )
        except AIRequestError as e:
            logger.error(f"AI redaction failed, using regex: {e}")
            return {"content": fallback_redact(text), "ai_generated": False}

        if not redacted:
            return {"content": fallback_redact(text), "ai_generated": False}
        return {"content": redacted, "ai_generated": True}

    def generate_smart_tags(self, content: str, title: str = "", post_type: str = "DISCUSSION") -> dict[str, Any]:
        """
        Suggest lowercase hyphenated tags for a post.

        Model tags are normalized and deduplicated; fewer than three are
        topped up from the keyword heuristic. At most ten are returned.
        """
        if not self.enabled:
            return {"tags": fallback_tags(title, content), "ai_generated": False}

        try:
            raw = self.chat(
                "You are a content tagger for a healthcare professional community.",
                f"Generate 5-8 relevant tags for this {post_type}.\n"
                "Use lowercase, hyphenated format (e.g., sensory-processing). Mix clinical terms "
                "with broader topics as appropriate. Be specific but not obscure.\n\n"
                f"Title: {title}\nContent: {content[:2000]}\n\n"
                'Respond with JSON: {"tags": ["tag-1", "tag-2", "tag-3"]}',
                max_tokens=200,
                temperature=0.4,
                json_mode=True,
            )
            parsed = json.loads(raw)
        except AIRequestError as e:
            logger.error(f"AI tags failed, using heuristic: {e}")
            return {"tags": fallback_tags(title, content), "ai_generated": False}
        except json.JSONDecodeError:
            logger.warning("AI tags returned invalid JSON, using heuristic")
            return {"tags": fallback_tags(title, content), "ai_generated": False}

        candidates = parsed.get("tags") if isinstance(parsed, dict) else None
        tags: list[str] = []
        for candidate in candidates or []:
            if not isinstance(candidate, str):
                continue
            tag = normalize_tag(candidate)
            if 2 <= len(tag) <= 40 and tag not in tags:
                tags.append(tag)

        if not tags:
            return {"tags": fallback_tags(title, content), "ai_generated": False}
        if len(tags) < 3:
            tags.extend(t for t in fallback_tags(title, content) if t not in tags)
        return {"tags": tags[:10], "ai_generated": True}

    # =========================================================================
    # Clinical
    # =========================================================================

    def summarize_session(
        self,
        raw_notes: Optional[str],
        note_format: Any = "NARRATIVE",
        session_type: Optional[str] = None,
        duration: Optional[int] = None,
        goals: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        """
        Summarize raw session notes in the requested note format.

        Raises:
            BadRequestError: raw notes are blank
        """
        if not raw_notes or not raw_notes.strip():
            raise BadRequestError("Raw notes are required to generate a summary")

        fmt = _format_value(note_format) or "NARRATIVE"
        if not self.enabled:
            return {
                "summary": fallback_session_summary(raw_notes, fmt, duration),
                "format": fmt,
                "ai_generated": False,
            }

        system_prompt = "\n".join(SESSION_BASE_PROMPT + SESSION_FORMAT_PROMPTS.get(fmt, []))
        parts: list[str] = []
        if session_type:
            parts.append(f"Session Type: {session_type}")
        if duration:
            parts.append(f"Duration: {duration} minutes")
        parts.extend(["", "--- Raw Session Notes ---", raw_notes])
        if goals:
            parts.extend(["", "--- Goals Addressed ---"])
            for i, goal in enumerate(goals, start=1):
                progress = goal.get("progress_value")
                suffix = f" (Progress: {progress}%)" if progress is not None else ""
                parts.append(f"{i}. [{goal.get('domain')}] {goal.get('goal_text')}{suffix}")
        parts.extend(["", "Generate the professional clinical summary now:"])

        try:
            summary = self.chat(system_prompt, "\n".join(parts), max_tokens=1000, temperature=0.2)
        except AIRequestError as e:
            logger.error(f"AI session summary failed, using fallback: {e}")
            summary = ""

        if not summary:
            return {
                "summary": fallback_session_summary(raw_notes, fmt, duration),
                "format": fmt,
                "ai_generated": False,
            }
        return {"summary": summary, "format": fmt, "ai_generated": True}

    def enhance_clinical_text(self, text: Optional[str]) -> dict[str, Any]:
        """Rewrite informal notes in clinical language. Falls back to the input."""
        text = text or ""
        if not self.enabled or not text.strip():
            return {"enhanced": text, "ai_generated": False}

        try:
            enhanced = self.chat(ENHANCE_PROMPT, text[:3000], max_tokens=1000, temperature=0.2)
        except AIRequestError as e:
            logger.warning(f"Clinical language enhancement failed: {e}")
            return {"enhanced": text, "ai_generated": False}

        if not enhanced:
            return {"enhanced": text, "ai_generated": False}
        return {"enhanced": enhanced, "ai_generated": True}

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "ai_enabled": self.enabled,
            "model": settings.ai_model if self.enabled else None,
            "mode": "model" if self.enabled else "fallback",
        }


def get_ai_service() -> AIService:
    """FastAPI dependency."""
    return AIService()
