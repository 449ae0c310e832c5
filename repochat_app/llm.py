"""Calls to the configured OpenAI-compatible model for repository chat and summaries."""
import logging
import os
import time

import openai
from openai import OpenAI

from repochat_app.config import BudgetConfig, LLMSettings, SummarySettings
from repochat_app.models import ParsedDigest, SelectedContext
from repochat_app.summary import build_summary_prompt

logger = logging.getLogger(__name__)

CHAT_PROMPT_PATH = os.path.join(os.path.dirname(__file__), "chat_prompt.txt")


class LLMError(RuntimeError):
    pass


def create_client(settings: LLMSettings) -> OpenAI:
    return OpenAI(api_key=settings.api_key, base_url=settings.base_url, timeout=settings.timeout)


def complete(client: OpenAI, settings: LLMSettings, messages: list[dict]) -> str:
    kwargs = {
        "model": settings.model,
        "messages": messages,
        "max_tokens": settings.max_output_tokens,
    }
    if settings.temperature is not None:
        kwargs["temperature"] = settings.temperature

    logger.info("Calling LLM (provider=%s, model=%s, max_tokens=%d)",
                settings.provider, settings.model, settings.max_output_tokens)
    t0 = time.time()
    response = client.chat.completions.create(**kwargs)
    elapsed = time.time() - t0

    content = response.choices[0].message.content
    if content is None:
        raise LLMError("LLM returned null content; the model may have exhausted its output tokens")
    logger.info("LLM response received in %.1fs (%d words)", elapsed, len(content.split()))
    return content


def generate_summary(digest: ParsedDigest, client: OpenAI, settings: LLMSettings,
                     summary_settings: SummarySettings, budget: BudgetConfig) -> str:
    """Ask the model for a fresh summary; the reply still carries its keyword block."""
    prompt = build_summary_prompt(digest, summary_settings, budget)
    return complete(client, settings, [{"role": "user", "content": prompt}])


def build_system_instruction(title: str | None) -> str:
    with open(CHAT_PROMPT_PATH, "r") as f:
        template = f.read().strip()
    return template.replace("{title}", title or "this repository")


def build_chat_prompt(query: str, context: SelectedContext, repository_name: str | None = None) -> str:
    full_context = ""
    if repository_name:
        full_context += f"The user is asking about the '{repository_name}' repository.\n\n"
    if context.summary:
        full_context += f"REPOSITORY SUMMARY:\n{context.summary}\n\n"
    if context.tree:
        full_context += f"DIRECTORY STRUCTURE:\n{context.tree}\n\n"
    if context.context_files:
        full_context += "RELEVANT FILE CONTENTS:\n"
        for file in context.context_files:
            full_context += f"--- File: {file.path} ---\n{file.content}\n\n"

    if not full_context:
        return f"USER QUESTION: {query}"

    return (
        f"Here is some context from the repository digest:\n\n{full_context}\n"
        "Based on this context, please answer the following question. Format your response using "
        "Markdown, especially for code blocks (triple backticks with a language identifier if possible), "
        "lists, and text emphasis (bold, italic).\n\n"
        f"USER QUESTION: {query}"
    )


def send_chat(client: OpenAI, settings: LLMSettings, query: str, context: SelectedContext,
              title: str | None, history: list[dict] | None = None) -> str:
    """Answer ``query`` with the selected context.

    Model errors come back as readable answer text rather than exceptions.
    """
    messages = [{"role": "system", "content": build_system_instruction(title)}]
    messages.extend(history or [])
    messages.append({"role": "user", "content": build_chat_prompt(query, context, title)})
    try:
        return complete(client, settings, messages)
    except openai.AuthenticationError as e:
        logger.error("LLM rejected the API key: %s", e)
        return "Error: The LLM API key is not valid. Please check your configuration."
    except (openai.OpenAIError, LLMError) as e:
        logger.error("LLM error during chat: %s", e)
        return f"Error communicating with the LLM: {e}"
