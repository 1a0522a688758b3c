# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import logging
import sentry_sdk
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from neuroleaf.database import engine, Base
from neuroleaf.routers import analytics, decks, flashcards, payments, subscription, test_mode, webhooks
from neuroleaf.middleware import RequestTimingMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
        environment=os.getenv("ENVIRONMENT", "development"),
    )

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    for name in ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "OPENAI_API_KEY", "SUPABASE_JWT_SECRET"):
        if not os.getenv(name):
            logger.warning("%s is not set; dependent endpoints will fail", name)

    yield  # Application runs here

    logger.info("Shutting down...")

# OpenAPI tag metadata for organized documentation
tags_metadata = [
    {
        "name": "decks",
        "description": "Flashcard decks. Creation is limited by subscription tier.",
    },
    {
        "name": "flashcards",
        "description": "Cards within a deck, including AI generation from study material.",
    },
    {
        "name": "test-mode",
        "description": "AI-generated tests with objective and AI grading.",
    },
    {
        "name": "analytics",
        "description": "Per-flashcard mastery and test performance.",
    },
    {
        "name": "subscription",
        "description": "Tier limits, usage counters and entitlement checks.",
    },
    {
        "name": "billing",
        "description": "Stripe checkout, customer portal and cancellation.",
    },
    {
        "name": "webhooks",
        "description": "Stripe webhook receiver. Signature verified.",
    },
]

app = FastAPI(
    title="Neuroleaf API",
    description="""
## Neuroleaf AI Flashcard Platform

Neuroleaf turns study material into flashcards and tests learners with
AI-generated questions and feedback.

### Tier limits
| Tier | Decks | Cards/Deck | AI Generations/Month | Tests/Month |
|------|-------|------------|----------------------|-------------|
| Free | 3 | 50 | 10 | 5 |
| Pro | Unlimited | Unlimited | Unlimited | Unlimited |
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=tags_metadata,
)

# CORS middleware for the Next.js frontend
# SECURITY: Explicitly list allowed origins - no wildcards
ALLOWED_ORIGINS = [
    "http://localhost:3000",  # Next.js dev server
    "http://localhost:3001",  # Next.js dev server (alternate port)
]

# Allow additional origins from environment (production and preview deploys)
extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
if extra_origins:
    ALLOWED_ORIGINS.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
)

app.add_middleware(RequestTimingMiddleware)

# Include routers
app.include_router(decks.router)
app.include_router(flashcards.router)
app.include_router(test_mode.router)  # AI test mode
app.include_router(analytics.router)  # Mastery analytics
app.include_router(subscription.router)  # Tier limits & usage
app.include_router(payments.router)  # Stripe billing
app.include_router(webhooks.router)  # Stripe webhooks


@app.get("/")
def root():
    return {
        "message": "Neuroleaf API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}
