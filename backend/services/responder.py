"""Answer generation: prompt assembly around the chat-completion call."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from models.conversation import Turn
from models.course import ScoredCourse
from services.llm_client import LLMClient
from services.reply_guard import ReplyGuard
from config import (
    RESPONSE_MODEL,
    RESPONSE_TEMPERATURE,
    RESPONSE_MAX_TOKENS,
    CONTEXT_CHAR_LIMIT,
    MAX_HISTORY_TURNS,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
أنت مستشار رسمي داخل منصة Easy-T فقط.

مهم جدًا:

❌ ممنوع اقتراح أي مصادر خارج Easy-T.
❌ ممنوع ذكر الإنترنت أو مقالات أو فيديوهات أو منصات أخرى.
❌ لا تقدم نصائح عامة خارج الدورات.
❌ لا تخترع أسماء دورات أو أسعار أو مدد غير موجودة في المعلومات المتاحة.
❌ لا تكتب أي روابط.

✅ أجب باللغة العربية وبأسلوب ودود ومختصر.
✅ اشرح المجال بإيجاز وحفّز المستخدم.
✅ دع نظام البحث يعرض الدورات؛ لا تكرر قائمة الدورات بالكامل.

اكتب نصًا عاديًا بدون HTML، ويمكنك استخدام نقاط (-) للقوائم.
""".strip()

CONTEXT_HEADER = "الدورات المتاحة على المنصة والمتعلقة بسؤال المستخدم:"


@dataclass
class GeneratedReply:
    text: str
    flags: List[str] = field(default_factory=list)
    tokens_input: int = 0
    tokens_output: int = 0
    latency_ms: int = 0


class Responder:
    """Drafts the assistant reply from course context and recent history."""

    def __init__(
        self,
        llm_client: LLMClient,
        reply_guard: Optional[ReplyGuard] = None,
        model: str = RESPONSE_MODEL,
        context_char_limit: int = CONTEXT_CHAR_LIMIT,
        max_history_turns: int = MAX_HISTORY_TURNS
    ):
        self.llm_client = llm_client
        self.reply_guard = reply_guard or ReplyGuard()
        self.model = model
        self.context_char_limit = context_char_limit
        self.max_history_turns = max_history_turns

    def build_context(self, courses: Sequence[ScoredCourse]) -> str:
        """Concatenate course titles and descriptions, truncated to the character limit."""
        parts = []
        for scored in courses:
            course = scored.course
            entry = f"- {course.title}"
            if course.description:
                entry += f": {course.description.strip()}"
            if course.price:
                entry += f" (السعر: {course.price})"
            if course.duration:
                entry += f" (المدة: {course.duration})"
            parts.append(entry)

        context = "\n".join(parts)
        if len(context) > self.context_char_limit:
            context = context[:self.context_char_limit].rstrip() + "…"
        return context

    def build_messages(
        self,
        message: str,
        history: Optional[Sequence[Turn]] = None,
        courses: Optional[Sequence[ScoredCourse]] = None
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]

        if courses:
            messages.append({
                "role": "system",
                "content": f"{CONTEXT_HEADER}\n{self.build_context(courses)}"
            })

        if history:
            messages.extend(turn.as_message() for turn in list(history)[-self.max_history_turns:])

        messages.append({"role": "user", "content": message})
        return messages

    def generate(
        self,
        message: str,
        history: Optional[Sequence[Turn]] = None,
        courses: Optional[Sequence[ScoredCourse]] = None
    ) -> GeneratedReply:
        """
        Generate a cleaned reply.

        Raises:
            LLMClientError: If the completion call fails
        """
        response = self.llm_client.generate(
            model=self.model,
            messages=self.build_messages(message, history, courses),
            max_tokens=RESPONSE_MAX_TOKENS,
            temperature=RESPONSE_TEMPERATURE
        )

        guarded = self.reply_guard.clean(response.text)
        if guarded.flags:
            logger.info(f"Reply guard flags: {guarded.flags}")

        return GeneratedReply(
            text=guarded.text,
            flags=guarded.flags,
            tokens_input=response.tokens_input,
            tokens_output=response.tokens_output,
            latency_ms=response.latency_ms
        )
