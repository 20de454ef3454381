"""Configuration management for the Easy-T support assistant."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# Model Configuration
CLASSIFIER_MODEL = os.getenv("CLASSIFIER_MODEL", "llama-3.1-8b-instant")
RESPONSE_MODEL = os.getenv("RESPONSE_MODEL", "llama-3.3-70b-versatile")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/paraphrase-multilingual-mpnet-base-v2")
INTENT_CLASSIFIER = os.getenv("INTENT_CLASSIFIER", "llm")  # "llm" or "rules"
RESPONSE_TEMPERATURE = 0.3
RESPONSE_MAX_TOKENS = 700

# Embedding retry policy (fixed backoff)
EMBEDDING_MAX_RETRIES = int(os.getenv("EMBEDDING_MAX_RETRIES", "3"))
EMBEDDING_RETRY_DELAY = float(os.getenv("EMBEDDING_RETRY_DELAY", "2.0"))
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "60.0"))

# Session Configuration
SESSION_BACKEND = os.getenv("SESSION_BACKEND", "memory")  # "memory" or "supabase"
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(6 * 60 * 60)))
MAX_SESSION_TURNS = int(os.getenv("MAX_SESSION_TURNS", "200"))
MAX_HISTORY_TURNS = int(os.getenv("MAX_HISTORY_TURNS", "6"))
CHAT_MESSAGES_TABLE = "chat_messages"

# Retrieval Configuration
COURSES_TABLE = "courses"
COURSE_SEARCH_RPC = os.getenv("COURSE_SEARCH_RPC", "smart_course_search")
MATCH_COUNT = int(os.getenv("MATCH_COUNT", "5"))
SIMILARITY_THRESHOLDS = [
    float(t) for t in os.getenv("SIMILARITY_THRESHOLDS", "0.75,0.65,0.55").split(",") if t.strip()
]
MIN_SIMILARITY = float(os.getenv("MIN_SIMILARITY", "0.55"))
ENABLE_FALLBACK_SCAN = os.getenv("ENABLE_FALLBACK_SCAN", "false").lower() == "true"
CONTEXT_CHAR_LIMIT = int(os.getenv("CONTEXT_CHAR_LIMIT", "3000"))
RETRIEVAL_INTENTS = {"learning_intent", "search", "advice"}

# Follow-up shortcut
FOLLOW_UP_MAX_WORDS = 4

# Activity feed
ACTIVITY_TABLE = "recent_activity"
ACTIVITY_EVENTS = [
    e.strip() for e in os.getenv("ACTIVITY_EVENTS", "Sale.created,Enrollment.created").split(",") if e.strip()
]
RECENT_ACTIVITY_LIMIT = 10

# Interaction log (JSON Lines)
INTERACTION_LOG_PATH = os.getenv("INTERACTION_LOG_PATH", "logs/interactions.jsonl")

# Localized replies
REPLY_MISSING_MESSAGE = "لم يتم إرسال رسالة."
REPLY_SERVER_ERROR = "حدث خطأ مؤقت."
REPLY_TEMPORARY_ERROR = "عذرًا، حدث خطأ مؤقت. حاول مرة أخرى بعد قليل."
REPLY_NOT_AVAILABLE = "عذرًا، هذا المحتوى غير متوفر حاليًا على منصة Easy-T."
COURSES_TITLE = "استعرض الدورات المتاحة:"

# Words stripped from model replies (external resources are not allowed)
FORBIDDEN_WORDS = [
    "عبر الإنترنت",
    "الإنترنت",
    "مقالات",
    "فيديوهات",
    "يوتيوب",
    "منصات",
    "موارد",
    "البحث",
    "جوجل",
]

# Hard-coded keyword courses answered without any model call
PROMOTED_COURSES = [
    {
        "keywords": ["فوتوشوب", "photoshop"],
        "title": "دورة الفوتوشوب بالذكاء الاصطناعي",
        "url": "https://easyt.online/p/photoshop-ai",
        "description": (
            "تعلّم الفوتوشوب من الصفر حتى الاحتراف مع أدوات الذكاء الاصطناعي الحديثة.\n"
            "تصميمات احترافية، تعديل الصور، وتجهيز أعمالك للسوشيال ميديا خطوة بخطوة."
        ),
    },
]

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
