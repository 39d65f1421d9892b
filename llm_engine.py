"""
LLM Engine - chat model factory and the portfolio-aware investment assistant.
Supports OpenAI-compatible APIs (cloud or a local Ollama server).
The assistant is given a text summary of the user's portfolio as context.
"""

from typing import Dict, List, Literal, Mapping, Optional, Tuple
from langchain_openai import ChatOpenAI
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
import logging

from config import Settings, get_settings
from prompts import get_system_prompt_template

logger = logging.getLogger(__name__)

NO_HOLDINGS_TEXT = "El usuario no tiene posiciones activas."
NO_RATES_TEXT = "No disponibles"

# Cap on tool round-trips per answer
MAX_TOOL_ROUNDS = 3


def format_holding_line(holding) -> str:
    """One line per holding: quantity, average cost, current price and return."""
    price = (
        f"{holding.currency} {holding.current_price:,.2f}"
        if holding.has_quote else "N/A"
    )
    pnl = f"{holding.return_pct:.1f}%" if holding.has_quote else "N/A"
    return (
        f"- {holding.ticker} ({holding.asset_type}): {holding.quantity:.4f} unidades | "
        f"Costo prom: {holding.currency} {holding.avg_price:,.2f} | "
        f"Precio actual: {price} | P&L: {pnl}"
    )


def build_portfolio_context(
    summary,
    transaction_count: int,
    dollar_rates: Mapping[str, float],
    language: str = "es"
) -> str:
    """
    Render the system prompt with the user's holdings and dollar rates.

    Args:
        summary: PortfolioSummary for the user
        transaction_count: Number of transactions in the user's ledger
        dollar_rates: Stored sell price per rate type; only these are listed
        language: Prompt template language

    Returns:
        System prompt text
    """
    if summary.holdings:
        holdings_text = "\n".join(format_holding_line(h) for h in summary.holdings)
    else:
        holdings_text = NO_HOLDINGS_TEXT

    dollar_rates_text = "\n".join(
        f"- {rate_type}: ${rate:,.2f}" for rate_type, rate in dollar_rates.items()
    ) or NO_RATES_TEXT

    return get_system_prompt_template(language).format(
        holdings=holdings_text,
        dollar_rates=dollar_rates_text,
        transaction_count=transaction_count,
    )


class LLMClient:
    """
    Builds a ChatOpenAI model for either backend.
    "cloud" talks to an OpenAI-compatible API and needs a key and model name;
    "local" talks to an Ollama server, which accepts any key.
    """

    def __init__(
        self,
        mode: Literal["cloud", "local"] = "cloud",
        model_name: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        settings: Optional[Settings] = None
    ):
        self.mode = mode
        self.settings = settings or get_settings()
        self.model_name, self.base_url, self.api_key = self._resolve(model_name, base_url, api_key)
        self.temperature = temperature
        self.max_tokens = max_tokens

        logger.info(f"Initializing {mode} LLM: {self.model_name} at {self.base_url or 'OpenAI official'}")
        self.llm = ChatOpenAI(
            model=self.model_name,
            api_key=self.api_key,
            base_url=self.base_url,
            temperature=temperature,
            max_tokens=max_tokens
        )

    def _resolve(
        self,
        model_name: Optional[str],
        base_url: Optional[str],
        api_key: Optional[str]
    ) -> Tuple[str, Optional[str], str]:
        """Fill unset connection values from settings for the chosen mode."""
        if self.mode == "cloud":
            key = api_key or self.settings.openai_api_key
            model = model_name or self.settings.openai_model
            if not key:
                raise ValueError("API key not found. Set OPENAI_API_KEY environment variable.")
            if not model:
                raise ValueError("Model name not found. Set OPENAI_MODEL environment variable.")
            return model, base_url or self.settings.openai_base_url, key

        if self.mode == "local":
            return (
                model_name or self.settings.local_model,
                base_url or self.settings.local_llm_url,
                api_key or "ollama",
            )

        raise ValueError(f"Invalid mode: {self.mode}. Must be 'cloud' or 'local'.")

    def get_llm(self) -> ChatOpenAI:
        return self.llm


def create_chat_model(settings: Optional[Settings] = None) -> ChatOpenAI:
    """Cloud model when an OpenAI key and model are configured, local otherwise."""
    settings = settings or get_settings()
    mode = "cloud" if settings.is_openai_configured else "local"
    return LLMClient(mode=mode, settings=settings).get_llm()


class PortfolioAssistant:
    """
    Answers investment questions with the user's portfolio as context.
    The chat model may call the news tools before answering.
    """

    def __init__(self, llm=None, tools: Optional[List] = None, portfolio_service=None, transaction_service=None):
        if llm is None:
            llm = create_chat_model()
        if tools is None:
            from tools import all_tools
            tools = all_tools
        if portfolio_service is None:
            from services.portfolio import PortfolioService
            portfolio_service = PortfolioService()
        if transaction_service is None:
            from services.ledger import TransactionService
            transaction_service = TransactionService()

        self.tools = {t.name: t for t in tools}
        self.llm = llm.bind_tools(tools) if tools else llm
        self.portfolio_service = portfolio_service
        self.transaction_service = transaction_service

    def system_prompt(self, user_id: str) -> str:
        summary = self.portfolio_service.get_summary(user_id)
        dollar_rates = self.portfolio_service.get_latest_dollar_rates()
        transaction_count = len(self.transaction_service.list(user_id))
        return build_portfolio_context(summary, transaction_count, dollar_rates)

    def answer(self, user_id: str, question: str, history: Optional[List[Dict]] = None) -> str:
        """
        Answer a question.

        Args:
            user_id: Opaque authenticated-user identifier
            question: Latest user message
            history: Earlier turns as [{"role": "user"|"assistant", "content": str}]

        Returns:
            Assistant reply text
        """
        messages = [SystemMessage(content=self.system_prompt(user_id))]
        for turn in history or []:
            if turn.get("role") == "assistant":
                messages.append(AIMessage(content=turn.get("content", "")))
            else:
                messages.append(HumanMessage(content=turn.get("content", "")))
        messages.append(HumanMessage(content=question))

        response = self.llm.invoke(messages)
        for _ in range(MAX_TOOL_ROUNDS):
            tool_calls = getattr(response, "tool_calls", None)
            if not tool_calls:
                break
            messages.append(response)
            for call in tool_calls:
                selected = self.tools.get(call["name"])
                if selected is None:
                    output = f"Herramienta desconocida: {call['name']}"
                else:
                    logger.info(f"Assistant calling tool {call['name']} with {call['args']}")
                    output = selected.invoke(call["args"])
                messages.append(ToolMessage(content=str(output), tool_call_id=call["id"]))
            response = self.llm.invoke(messages)

        return response.content
