"""
Bootstrap module for application initialization.
Handles initial setup tasks such as creating the default admin user and
seeding the sample audit templates on first startup.
"""
import os
import logging
from speech_audit.config import settings
from speech_audit.models import AuditTemplate, Question, QuestionType, User
from speech_audit.core.security import hash_password

logger = logging.getLogger("uvicorn.error")

async def ensure_default_admin() -> None:
    """
    If no admin exists in the database, create a default admin based on environment variables.
    Only takes effect under the following conditions:
      - Currently no user with role="admin"
      - And ADMIN_PASSWORD is set (to avoid using default weak password)
    Environment variables:
      ADMIN_EMAIL    (default: "admin@example.com")
      ADMIN_NAME     (default: "Administrator")
      ADMIN_PASSWORD (required, otherwise won't create)
    """
    if await User.filter(role="admin").exists():
        return

    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_password:
        logger.warning("[bootstrap] No admin present, but ADMIN_PASSWORD not set -> skip creating default admin.")
        return

    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.com").lower()
    admin_name = os.getenv("ADMIN_NAME", "Administrator")

    existing = await User.get_or_none(email=admin_email)
    if existing:
        # Promote the account that already owns the address instead of duplicating it
        existing.role = "admin"
        if not existing.password_hash:
            existing.password_hash = hash_password(admin_password)
        await existing.save()
        logger.warning("[bootstrap] Promoted existing user to admin -> email=%s id=%s", existing.email, existing.id)
        return

    u = await User.create(
        email=admin_email,
        name=admin_name,
        password_hash=hash_password(admin_password),
        role="admin",
    )
    logger.warning("[bootstrap] Created default admin -> email=%s id=%s", u.email, u.id)


_REFLECTION_FOLLOWUPS = [
    "Could you tell me more about that?",
    "Can you expand on that thought?",
    "What else comes to mind about this?",
]
_BUSINESS_FOLLOWUPS = [
    "Can you elaborate on that?",
    "What specific steps are you taking?",
    "How is that impacting your business?",
]

SAMPLE_TEMPLATES = [
    {
        "name": "Daily Reflection",
        "description": "Personal daily reflection covering personal control, alignment, goals, challenges, gratitude, and current learning.",
        "estimated_duration_minutes": 10,
        "intro_message": "Welcome to your daily reflection. I'll be asking you six questions to help you process your day. Please speak naturally and take your time with each response.",
        "outro_message": "Thank you for completing your daily reflection. Your insights will help you stay aligned with your values and goals.",
        "default_voice": "en-US-Neural2-C",
        "followups": _REFLECTION_FOLLOWUPS,
        "questions": [
            ("What was within my control today, and how did I act accordingly?",
             "First question: What was within my control today, and how did I act accordingly?",
             180, ["control", "decisions", "actions", "response", "choice", "influence", "agency"]),
            ("Did I embody my personal alignment today? Where did I succeed or fall short?",
             "Second question: Did I embody my personal alignment today? Where did I succeed or fall short?",
             180, ["alignment", "values", "authentic", "integrity", "consistent", "principles", "character"]),
            ("What was one action I took today that moved me closer to my highest goals?",
             "Third question: What was one action I took today that moved me closer to my highest goals?",
             150, ["action", "progress", "goals", "achievement", "step", "advance", "momentum"]),
            ("What challenges did I face, and how did I respond?",
             "Fourth question: What challenges did I face, and how did I respond?",
             180, ["challenges", "obstacles", "difficulties", "problems", "response", "handled", "overcame"]),
            ("What am I grateful for at the end of this day?",
             "Fifth question: What am I grateful for at the end of this day?",
             150, ["grateful", "thankful", "appreciate", "blessed", "positive", "good", "wonderful"]),
            ("Currently reading: [Book Title] by [Author]",
             "Sixth question: What are you currently reading? Please share the book title and author, or tell me about any learning you're engaged in.",
             120, ["reading", "book", "learning", "studying", "author", "title", "knowledge"]),
        ],
    },
    {
        "name": "Small Business Health Check",
        "description": "Quick assessment of small business operations, finances, and growth opportunities.",
        "estimated_duration_minutes": 20,
        "intro_message": "Welcome to your business health check. I'll ask you several questions about your business operations, finances, and goals. Please provide detailed responses.",
        "outro_message": "Thank you for completing your business health check. We'll analyze your responses and provide actionable insights to help grow your business.",
        "default_voice": "en-US-Neural2-D",
        "followups": _BUSINESS_FOLLOWUPS,
        "questions": [
            ("Please describe your business, what you do, and how long you've been operating.",
             "Please describe your business. What do you do, and how long have you been operating?",
             180, None),
            ("How has your business performance been over the past 12 months compared to your expectations?",
             None, 150, None),
            ("What are your biggest business challenges or obstacles right now?", None, 180, None),
            ("How do you currently find and attract new customers or clients?", None, 120, None),
            ("What are your business goals for the next year, and what support do you need to achieve them?",
             "What are your business goals for the next year? What support do you need to achieve them?",
             180, None),
        ],
    },
]

async def seed_sample_templates() -> int:
    """
    Create the sample templates that don't exist yet (matched by name).
    Returns the number of templates created.
    """
    created = 0
    for definition in SAMPLE_TEMPLATES:
        if await AuditTemplate.filter(name=definition["name"]).exists():
            continue
        template = await AuditTemplate.create(
            name=definition["name"],
            description=definition["description"],
            estimated_duration_minutes=definition["estimated_duration_minutes"],
            intro_message=definition["intro_message"],
            outro_message=definition["outro_message"],
            default_voice=definition["default_voice"],
        )
        for index, (text, speech_text, max_seconds, keywords) in enumerate(definition["questions"], start=1):
            await Question.create(
                template=template,
                text=text,
                speech_text=speech_text or text,
                sequence=index,
                question_type=QuestionType.OPEN_ENDED,
                max_response_seconds=max_seconds,
                expected_keywords=keywords,
                followup_prompts=definition["followups"],
            )
        created += 1
        logger.info("[bootstrap] Seeded template %r with %d questions", template.name, len(definition["questions"]))
    return created

async def run_bootstrap() -> None:
    await ensure_default_admin()
    if settings.seed_sample_templates:
        await seed_sample_templates()
