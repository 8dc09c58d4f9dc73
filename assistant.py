"""
Generative-text boundary for the health tracker.

- Prompt builders: pure string formatting (chat with recent history, symptom analysis)
- LLM: Groq chat completion, client created lazily from GROQ_KEY unless injected

The completion text is returned as-is (stripped); nothing here post-processes medical content.
Flask routes import and use HealthAssistant.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

from groq import Groq

import config
from errors import UpstreamFailure

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10

CHAT_PREAMBLE = """You are a friendly, engaging AI medical assistant. You provide general health information, wellness tips, and guidance in a modern, visually appealing format.

RESPONSE FORMATTING GUIDELINES:
- Use emojis strategically to make responses more engaging (🌡️ for fever, 💊 for medicine, etc.)
- Structure information with clear headings and bullet points
- Use modern formatting like bold text, italics, and clear sections
- Make responses conversational and easy to read
- Include practical tips and actionable advice
- Use visual separators and clear organization

IMPORTANT MEDICAL GUIDELINES:
- Always remind users that you are not a substitute for professional medical advice
- For serious symptoms or emergencies, advise users to consult healthcare professionals
- Provide evidence-based health information when possible
- Be empathetic and supportive in your responses
- Keep responses informative but engaging
- If asked about specific medical conditions, provide general information and recommend consulting a doctor

Previous conversation context:"""

SYMPTOM_TEMPLATE = """You are a friendly, engaging AI medical assistant analyzing symptoms. The user has reported the following symptoms: {symptoms}.

Please provide a well-formatted, engaging response that includes:

🎯 **Quick Assessment**
- Brief overview of what these symptoms might indicate

📋 **Possible Conditions**
- General information about conditions that could cause these symptoms (not a diagnosis)

⚠️ **When to Seek Help**
- Clear guidance on when immediate medical attention is needed

💡 **Self-Care Tips**
- Practical recommendations for managing symptoms at home

🔍 **Next Steps**
- Suggestions for monitoring and follow-up

FORMATTING REQUIREMENTS:
- Use emojis strategically to make it visually appealing
- Structure with clear headings and bullet points
- Use bold text for important information
- Make it conversational and easy to scan
- Include practical, actionable advice

IMPORTANT: Always remind users that this is not a diagnosis and professional medical consultation is needed for proper evaluation."""


def _fmt(obj: Any) -> str:
    return str(obj) if obj is not None else ""


def build_chat_prompt(message: str, history: Sequence[Mapping[str, Any]] = ()) -> str:
    """Preamble, the last ten ``role: content`` lines, then the new user turn."""
    recent = list(history)[-HISTORY_WINDOW:]
    context = "\n".join(f"{_fmt(m.get('role'))}: {_fmt(m.get('content'))}" for m in recent)
    return f"{CHAT_PREAMBLE}\n{context}\n\nUser: {message}\nAssistant:"


def build_symptom_prompt(symptoms: Sequence[str]) -> str:
    return SYMPTOM_TEMPLATE.format(symptoms=", ".join(symptoms))


class HealthAssistant:
    def __init__(self, client=None, model: Optional[str] = None, api_key: Optional[str] = None):
        self._client = client
        self._client_lock = threading.Lock()
        self._api_key = api_key or config.GROQ_KEY
        self.model = model or config.GROQ_CHAT_MODEL

    def _get_client(self):
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = Groq(api_key=self._api_key)
        return self._client

    def generate(self, prompt: str) -> str:
        """Single-turn completion. Any client error surfaces as UpstreamFailure."""
        try:
            chat = self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
            text = chat.choices[0].message.content
        except Exception as e:
            logger.exception("Groq completion failed")
            raise UpstreamFailure(f"Failed to generate AI response: {e}") from e
        return (text or "").strip()

    def chat_reply(self, message: str, history: Sequence[Mapping[str, Any]] = ()) -> str:
        return self.generate(build_chat_prompt(message, history))

    def analyze_symptoms(self, symptoms: List[str]) -> str:
        return self.generate(build_symptom_prompt(symptoms))


def history_from_payload(raw: Any) -> List[Dict[str, str]]:
    """Keep only well-formed ``{role, content}`` entries from a client-sent history."""
    if not isinstance(raw, list):
        return []
    out = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role in ("user", "assistant") and isinstance(content, str):
            out.append({"role": role, "content": content})
    return out
