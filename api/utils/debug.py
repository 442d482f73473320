# CRITICAL: Set Windows event loop policy FIRST, before any other imports
# This must be the very first thing that happens so httpx/uvicorn share one loop type
import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Constants
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[2]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]


# ==============================================================================
# DEBUG FUNCTIONS
# ==============================================================================
def _emit(flag: str, prefix: str, msg: str) -> None:
    if os.environ.get(flag, "0") == "1":
        print(f"[{prefix}] {msg}")
        sys.stdout.flush()


def print__debug(msg: str) -> None:
    """Print general DEBUG messages when debug mode is enabled.

    Args:
        msg: The message to print
    """
    _emit("DEBUG", "DEBUG", msg)


def print__generation_debug(msg: str) -> None:
    """Print mind map generation messages (orchestrator, Gemini client).

    Args:
        msg: The message to print
    """
    _emit("print__generation_debug", "print__generation_debug", msg)


def print__decoder_debug(msg: str) -> None:
    """Print response decoding and JSON clean-up messages.

    Args:
        msg: The message to print
    """
    _emit("print__decoder_debug", "print__decoder_debug", msg)


def print__grouping_debug(msg: str) -> None:
    """Print groups index rebuild messages."""
    _emit("print__grouping_debug", "print__grouping_debug", msg)


def print__storage_debug(msg: str) -> None:
    """Print key-value store and repository messages."""
    _emit("print__storage_debug", "print__storage_debug", msg)


def print__pipeline_debug(msg: str) -> None:
    """Print fragment save/delete/regenerate flow messages.

    Args:
        msg: The message to print
    """
    _emit("print__pipeline_debug", "print__pipeline_debug", msg)


def print__api_debug(msg: str) -> None:
    """Print API route messages when debug mode is enabled."""
    _emit("print__api_debug", "print__api_debug", msg)


def print__startup_debug(msg: str) -> None:
    """Print application startup/shutdown messages."""
    _emit("print__startup_debug", "print__startup_debug", msg)
