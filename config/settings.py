"""
Application settings and configuration

This file contains all the settings for the comment analysis pipeline.
Think of it like a control panel where you can adjust how the system works.

Most settings can be changed by creating a .env file in the project root.
If a setting isn't in .env, it uses the default value shown here.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file (if it exists)
load_dotenv()


class Settings:
    """
    Application configuration settings

    This class holds all the configuration for the analysis pipeline.
    You can change these values by setting environment variables in a .env file.
    """

    # ============================================================
    # Storage Settings
    # ============================================================
    # The JSON stores used by the CLI live under DATA_DIR
    DATA_DIR = os.getenv("DATA_DIR", "data")  # Main data folder
    COMMENTS_FILE = os.getenv("COMMENTS_FILE", os.path.join(DATA_DIR, "comments.json"))  # Comment store
    ACCOUNTS_FILE = os.getenv("ACCOUNTS_FILE", os.path.join(DATA_DIR, "accounts.json"))  # Posts + connected accounts
    RESULTS_DIR = os.getenv("RESULTS_DIR", os.path.join(DATA_DIR, "results"))  # Saved analysis results
    JOBS_DIR = os.getenv("JOBS_DIR", os.path.join(DATA_DIR, "jobs"))  # Job status records

    # ============================================================
    # Gemini API Settings
    # ============================================================
    # Google's Gemini AI is used to:
    # - Classify comment sentiment and emotions
    # - Write the narrative summary
    # Without an API key every LLM step falls back to the rule-based results
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

    # ============================================================
    # LLM Batching, Retry & Timeout
    # ============================================================
    # Batching = sending several comments in one prompt
    # Every attempt is bounded by LLM_REQUEST_TIMEOUT; failed attempts back off
    # exponentially: LLM_RETRY_DELAY_BASE * 2^(attempt-1) + random jitter
    SENTIMENT_BATCH_SIZE = int(os.getenv("SENTIMENT_BATCH_SIZE", "10"))  # Comments per sentiment prompt
    LLM_RETRY_ATTEMPTS = int(os.getenv("LLM_RETRY_ATTEMPTS", "3"))  # Attempts per batch before fallback
    LLM_RETRY_DELAY_BASE = float(os.getenv("LLM_RETRY_DELAY_BASE", "1.0"))  # Seconds
    LLM_RATE_LIMIT_MULTIPLIER = float(os.getenv("LLM_RATE_LIMIT_MULTIPLIER", "5.0"))  # Base delay x5 on rate limits
    LLM_RETRY_JITTER = float(os.getenv("LLM_RETRY_JITTER", "1.0"))  # Upper bound of random jitter (seconds)
    LLM_REQUEST_TIMEOUT = float(os.getenv("LLM_REQUEST_TIMEOUT", "30.0"))  # Hard limit per LLM call
    LLM_BATCH_DELAY = float(os.getenv("LLM_BATCH_DELAY", "0.5"))  # Pause between sentiment batches

    # ============================================================
    # Summary Generation
    # ============================================================
    SUMMARY_MAX_RETRIES = int(os.getenv("SUMMARY_MAX_RETRIES", "3"))
    SUMMARY_RETRY_DELAY = float(os.getenv("SUMMARY_RETRY_DELAY", "1.0"))  # Multiplied by the attempt number
    SUMMARY_MIN_WORDS = int(os.getenv("SUMMARY_MIN_WORDS", "75"))
    SUMMARY_MAX_WORDS = int(os.getenv("SUMMARY_MAX_WORDS", "150"))

    # ============================================================
    # Theme Clustering Settings
    # ============================================================
    # These control how comments are grouped together into themes
    THEME_MIN_CLUSTER_SIZE = int(os.getenv("THEME_MIN_CLUSTER_SIZE", "2"))  # Min comments to form a theme
    THEME_MAX_CLUSTERS = int(os.getenv("THEME_MAX_CLUSTERS", "10"))  # Max number of themes
    THEME_SIMILARITY_THRESHOLD = float(os.getenv("THEME_SIMILARITY_THRESHOLD", "0.15"))  # Jaccard cut-off
    THEME_MAX_KEYWORDS = int(os.getenv("THEME_MAX_KEYWORDS", "50"))  # Keywords kept per run

    # ============================================================
    # Pipeline Settings
    # ============================================================
    # A stored result younger than this is reused instead of re-running
    CACHE_TTL_HOURS = float(os.getenv("CACHE_TTL_HOURS", "24"))
    MIN_VALID_COMMENTS = int(os.getenv("MIN_VALID_COMMENTS", "5"))  # Prerequisite for a meaningful run

    # ============================================================
    # Logging Settings
    # ============================================================
    # Options: DEBUG (very detailed), INFO (normal), WARNING (only problems), ERROR (only errors)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE", "logs/app.log")  # Where to save log files

    @staticmethod
    def ensure_directories():
        """
        Create necessary directories if they don't exist

        This prevents errors when the JSON stores try to save files.
        """
        os.makedirs(Settings.DATA_DIR, exist_ok=True)
        os.makedirs(Settings.RESULTS_DIR, exist_ok=True)
        os.makedirs(Settings.JOBS_DIR, exist_ok=True)
        os.makedirs(os.path.dirname(Settings.LOG_FILE) if os.path.dirname(Settings.LOG_FILE) else "logs", exist_ok=True)


# Global settings instance
settings = Settings()
