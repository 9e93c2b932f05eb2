import os
from pathlib import Path

# Define the root directory of the project
ROOT_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


# Define paths for commonly used files
DATA_DIR = Path(os.getenv("AGENTFLOW_DATA_DIR", str(ROOT_DIR / "data")))
WORKFLOWS_FILE = DATA_DIR / "workflows.json"
CHROMA_PATH = DATA_DIR / ".chroma_db"

# Provider credentials
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

AIML_API_KEY = os.getenv("AIML_API_KEY", "")
AIML_BASE_URL = os.getenv("AIML_BASE_URL", "https://api.aimlapi.com/v1")
AIML_MODEL = os.getenv("AIML_MODEL", "llama-3.3-70b-instruct")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

PROVIDERS = {
    "aiml": (AIML_BASE_URL, AIML_API_KEY, AIML_MODEL),
    "openai": (OPENAI_BASE_URL, OPENAI_API_KEY, OPENAI_MODEL),
    "gemini": (GEMINI_BASE_URL, GEMINI_API_KEY, GEMINI_MODEL),
}


def _select_provider() -> str:
    explicit = os.getenv("LLM_PROVIDER", "").strip().lower()
    if explicit in PROVIDERS:
        return explicit
    for name, (_, key, _) in PROVIDERS.items():
        if key:
            return name
    return "aiml"


LLM_PROVIDER = _select_provider()

# App Defaults - LLM Configuration
LLM_BASE_URL, LLM_API_KEY, LLM_MODEL = PROVIDERS[LLM_PROVIDER]
LLM_API_KEY = LLM_API_KEY or "not-configured"
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "600"))
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

# Use the provider's structured tool calls instead of USE_TOOL/FINAL_ANSWER markers
NATIVE_TOOL_CALLING = _env_bool("NATIVE_TOOL_CALLING", False)

# Agent / memory limits
MAX_AGENT_ITERATIONS = 10
MEMORY_MAX_SESSIONS = 100
MEMORY_SESSION_TIMEOUT = 3600  # seconds
MEMORY_WINDOW_SIZE = 10

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
