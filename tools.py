"""
LangChain tools for the investment assistant: news search and stored prices.
"""

from langchain_core.tools import tool
from duckduckgo_search import DDGS
from typing import Dict, List
import logging

from repositories import AssetRepository, QuoteRepository

logger = logging.getLogger(__name__)

MARKET_NEWS_QUERIES = {
    "general": "mercado financiero Argentina acciones dólar",
    "crypto": "crypto bitcoin ethereum market news",
}


def format_news(results: List[Dict], subject: str) -> str:
    """Render news results as a numbered markdown list with links."""
    if not results:
        return f"No se encontraron noticias recientes para {subject}."

    lines = []
    for i, result in enumerate(results, 1):
        title = result.get('title', 'Sin título')
        url = result.get('url', '')
        source = result.get('source', 'Desconocida')
        date = result.get('date', 'Reciente')
        body = (result.get('body') or '')[:150]

        lines.append(f"{i}. [{title}]({url}) ({date})\n   Fuente: {source}\n   {body}...")

    return "\n\n".join(lines)


def _search_news(query: str, max_results: int) -> List[Dict]:
    ddgs = DDGS()
    return list(ddgs.news(query, max_results=max_results) or [])


@tool
def search_stock_news(ticker: str, max_results: int = 5) -> str:
    """
    Busca noticias recientes sobre una acción o ticker específico.

    Args:
        ticker: Símbolo del ticker (ej: AAPL, MSFT, YPF, GGAL)
        max_results: Cantidad máxima de noticias (default: 5)

    Returns:
        Lista de noticias con links en markdown
    """
    try:
        logger.info(f"Searching news for ticker: {ticker}")
        return format_news(_search_news(f"{ticker} stock news", max_results), ticker)
    except Exception as e:
        logger.error(f"Error searching news for {ticker}: {e}")
        return f"Error buscando noticias para {ticker}: {str(e)}"


@tool
def get_market_news(category: str = "general", max_results: int = 5) -> str:
    """
    Obtiene noticias generales del mercado financiero.

    Args:
        category: 'general' para mercado general, 'crypto' para criptomonedas
        max_results: Cantidad máxima de noticias (default: 5)

    Returns:
        Lista de noticias con links en markdown
    """
    query = MARKET_NEWS_QUERIES.get(category, MARKET_NEWS_QUERIES["general"])
    try:
        logger.info(f"Searching market news: {category}")
        return format_news(_search_news(query, max_results), f"la categoría {category}")
    except Exception as e:
        logger.error(f"Error searching market news: {e}")
        return f"Error buscando noticias del mercado: {str(e)}"


@tool
def get_stored_price(ticker: str) -> str:
    """
    Devuelve el último precio guardado para un ticker del catálogo.

    Args:
        ticker: Ticker local (ej: AAPL, GGAL, BTC)

    Returns:
        Precio, moneda y fecha de la última cotización guardada
    """
    matches = [asset for asset in AssetRepository.get_all() if asset.ticker == ticker.upper()]
    if not matches:
        return f"{ticker} no está en el catálogo de activos."

    lines = []
    for asset in matches:
        quote = QuoteRepository.get_latest(asset.id)
        if quote:
            lines.append(
                f"{asset.ticker} ({asset.asset_type.value}): {asset.currency} {quote.price:,.2f} "
                f"al {quote.quote_date.isoformat()}"
            )
        else:
            lines.append(f"{asset.ticker} ({asset.asset_type.value}): sin cotización guardada")
    return "\n".join(lines)


# Export all tools for LangChain
all_tools = [search_stock_news, get_market_news, get_stored_price]
