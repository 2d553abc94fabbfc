import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables (only in development)
# In containers, environment variables are set directly
if os.getenv("ENVIRONMENT") != "production":
    load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Data directories - created lazily by the components that write to them
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
BLOB_DIR = Path(os.getenv("BLOB_DIR", str(DATA_DIR / "blobs")))
STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(DATA_DIR / "storage")))

# AI provider configuration
AI_PROVIDER = os.getenv("AI_PROVIDER", "gemini")  # Options: 'gemini', 'openrouter', 'local'
AI_REQUEST_TIMEOUT = float(os.getenv("AI_REQUEST_TIMEOUT", "8"))

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-exp")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "anthropic/claude-3-haiku")

# Storage configuration
# Comma-separated list of enabled backends: 'indexed', 'keyvalue', 'memory'
STORAGE_BACKENDS = [
    name.strip().lower()
    for name in os.getenv("STORAGE_BACKENDS", "indexed,keyvalue,memory").split(",")
    if name.strip()
]
DOCUMENT_CATEGORY = "documents"
DOCUMENT_SERVICE_ID = "document-intelligence"

# Document constraints
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(200 * 1024 * 1024)))  # 200MB per file
MAX_FILENAME_LENGTH = 255
SUPPORTED_TYPES = ["pdf", "docx", "txt", "jpg", "jpeg", "png", "webp"]
OCR_ONLY_TYPES = ["jpg", "jpeg", "png", "webp"]

# Text processing
TEXT_CHUNK_CHAR_TARGET = int(os.getenv("TEXT_CHUNK_CHAR_TARGET", "1500"))
PREVIEW_CHAR_LIMIT = int(os.getenv("PREVIEW_CHAR_LIMIT", "400"))
ANALYSIS_CHAR_BUDGET = int(os.getenv("ANALYSIS_CHAR_BUDGET", "12000"))
LANGUAGE_SAMPLE_CHARS = 500

# Processing queue
EVENT_HISTORY_LIMIT = 25

# Search configuration
SEARCH_MAX_RESULTS = int(os.getenv("SEARCH_MAX_RESULTS", "50"))
SEARCH_SNIPPET_LENGTH = 200
SEARCH_CONTEXT_LENGTH = 100
SEARCH_SIMILARITY_THRESHOLD = float(os.getenv("SEARCH_SIMILARITY_THRESHOLD", "0.3"))
SEARCH_CACHE_TTL_SECONDS = int(os.getenv("SEARCH_CACHE_TTL_SECONDS", str(5 * 60)))
SEARCH_MAX_SUGGESTIONS = 10
SEARCH_MIN_QUERY_LENGTH = 2
SEARCH_SIMILARITY_STRATEGY = os.getenv("SEARCH_SIMILARITY_STRATEGY", "jaccard")  # Options: 'jaccard', 'cosine'
