# =========================================
#     CodeCollab — AI Assistant (OpenAI)
#     Stateless prompt forwarding: suggest / review / explain / fix
# =========================================

import os

from openai import OpenAI

from collab.config import OPENAI_MODEL, DEFAULT_LANGUAGE
from collab.logger import log_info, log_warning, log_exception

_openai_client = None
_openai_disabled = False


class AssistantUnavailable(Exception):
    """No usable OpenAI client (missing key or failed init)."""


def _get_openai_client():
    """
    Lazy initialization of the OpenAI client.
    The server must never crash if OpenAI is unavailable.
    """
    global _openai_client, _openai_disabled

    if _openai_disabled:
        return None

    if _openai_client is not None:
        return _openai_client

    if not os.getenv("OPENAI_API_KEY"):
        log_warning("assistant", "OPENAI_API_KEY missing, assistant disabled.")
        _openai_disabled = True
        return None

    try:
        _openai_client = OpenAI()
        log_info("assistant", "OpenAI client initialized.")
        return _openai_client
    except Exception:
        log_exception("assistant", "Failed to initialize OpenAI client.")
        _openai_disabled = True
        return None


def reset_client():
    global _openai_client, _openai_disabled
    _openai_client = None
    _openai_disabled = False


# =========================================
#   PROMPTS
# =========================================
def build_suggest_prompt(code, language, context=None):
    return (
        f"You are a helpful coding assistant. Given the following {language} code, "
        f"provide a helpful suggestion or completion:\n"
        f"Context: {context or 'No additional context'}\n\n"
        f"Code:\n```{language}\n{code}\n```\n\n"
        f"Provide a concise suggestion or code completion. "
        f"Only return the suggested code without explanations."
    )


def build_review_prompt(code, language):
    return (
        f"You are an expert code reviewer. Review the following {language} code thoroughly:\n\n"
        f"Code:\n```{language}\n{code}\n```\n\n"
        "Provide a short review covering:\n"
        "1. **Bugs & Issues:** Any potential bugs or errors\n"
        "2. **Code Quality:** Readability, maintainability, structure\n"
        "3. **Best Practices:** Are coding standards followed?\n"
        "4. **Performance:** Any performance concerns or optimizations\n"
        "5. **Security:** Security vulnerabilities (if any)\n"
        "6. **Suggestions:** Specific improvements to make\n"
        "7. **Overall Rating:** Rate the code from 1-10\n\n"
        "Be constructive and helpful in your feedback."
    )


def build_explain_prompt(code, language):
    return (
        f"Explain the following {language} code in simple terms. "
        f"Break it down line by line if needed:\n\n"
        f"```{language}\n{code}\n```\n\n"
        "Provide a clear, easy-to-understand explanation."
    )


def build_fix_prompt(code, language, issue=None):
    problem = f"The issue is: {issue}" if issue else "Find and fix any bugs or issues."
    return (
        f"Fix the following {language} code. {problem}\n\n"
        f"Original Code:\n```{language}\n{code}\n```\n\n"
        "Provide the fixed code and a brief explanation of what was wrong."
    )


# =========================================
#   COMPLETION
# =========================================
def complete(prompt: str) -> str:
    """
    Send one prompt and return the model's text.
    Raises AssistantUnavailable when no client is configured; API errors
    propagate to the caller.
    """
    client = _get_openai_client()
    if not client:
        raise AssistantUnavailable("AI assistant is not configured")

    resp = client.chat.completions.create(
        model=OPENAI_MODEL,
        messages=[{"role": "user", "content": prompt}],
        temperature=0.2,
    )
    text = (resp.choices[0].message.content or "").strip()
    log_info("assistant", f"Completion received ({len(text)} chars).")
    return text


def suggest(code, language=None, context=None):
    return complete(build_suggest_prompt(code, language or DEFAULT_LANGUAGE, context))


def review(code, language=None):
    return complete(build_review_prompt(code, language or DEFAULT_LANGUAGE))


def explain(code, language=None):
    return complete(build_explain_prompt(code, language or DEFAULT_LANGUAGE))


def fix(code, language=None, issue=None):
    return complete(build_fix_prompt(code, language or DEFAULT_LANGUAGE, issue))
