# api/deps.py
from collections.abc import Callable

from fastapi import Request
from openai import OpenAI

from repochat_app.config import BudgetConfig, LLMSettings, SummarySettings
from repochat_app.llm import create_client


def get_config(request: Request) -> dict:
    return request.app.state.config


def get_budget(request: Request) -> BudgetConfig:
    return BudgetConfig.from_config(request.app.state.config)


def get_summary_settings(request: Request) -> SummarySettings:
    return SummarySettings.from_config(request.app.state.config)


def get_llm_factory(request: Request) -> Callable[[], tuple[OpenAI, LLMSettings]]:
    """Return a callable building the LLM client, so only endpoints that call the model need a key."""
    config = request.app.state.config

    def build() -> tuple[OpenAI, LLMSettings]:
        settings = LLMSettings.from_config(config)
        return create_client(settings), settings

    return build
