import logging

import requests
from bs4 import BeautifulSoup
from duckduckgo_search import DDGS

from .base import Tool

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
MAX_TEXT_CHARS = 10000

FALLBACK_RESULTS = [
    {
        "title": "AI hardware investment remains strong (demo)",
        "snippet": "Analysts report continued demand for high-performance AI chips. (Demo fallback headline)",
        "url": "https://news.demo.ai/ai-hardware-trends",
    },
    {
        "title": "Multi-agent workflows are powering enterprise automation (demo)",
        "snippet": "Sample research note on autonomous agents orchestrating tools. Replace with a real news API.",
        "url": "https://news.demo.ai/multi-agent-report",
    },
]


def html_to_text(html: str, max_chars: int = MAX_TEXT_CHARS) -> str:
    """Readable text of an HTML page, without scripts, styles and page chrome."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text().splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    text = "\n".join(chunk for chunk in chunks if chunk)
    if max_chars > 0 and len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


def http_request(params):
    url = params.get("url", "")
    method = str(params.get("method", "GET")).upper()
    if not url:
        return {"success": False, "error": "url is required"}
    if method not in HTTP_METHODS:
        return {"success": False, "error": f"Unsupported method: {method}"}

    logger.info(f"HTTP tool: {method} {url}")
    body = params.get("body")
    try:
        response = requests.request(
            method,
            url,
            headers=params.get("headers") or {},
            json=body if isinstance(body, (dict, list)) else None,
            data=body if isinstance(body, str) else None,
            timeout=30,
        )
    except requests.RequestException as e:
        logger.error(f"HTTP tool error: {e}")
        return {"success": False, "error": str(e)}

    try:
        data = response.json()
    except ValueError:
        if "html" in response.headers.get("Content-Type", ""):
            data = html_to_text(response.text)
        else:
            data = response.text[:MAX_TEXT_CHARS]

    return {
        "success": response.ok,
        "status": response.status_code,
        "statusText": response.reason,
        "data": data,
        "headers": dict(response.headers),
    }


def search_web(params):
    query = str(params.get("query", "")).strip()
    num_results = int(params.get("numResults", 5) or 5)
    if not query:
        return {"success": False, "error": "query is required"}

    logger.info(f"Search tool: '{query}' (max {num_results})")
    try:
        raw_results = DDGS().text(query, max_results=num_results) or []
    except Exception as e:
        logger.error(f"Search tool error: {e}")
        return {
            "success": False,
            "error": str(e),
            "message": f"Search failed: {e}. Use the http_request tool with a search API instead.",
        }

    results = [
        {
            "title": r.get("title") or "No title",
            "snippet": r.get("body") or "No description available",
            "url": r.get("href", ""),
        }
        for r in raw_results
    ]
    if not results:
        fallback = [
            {**item, "snippet": f"{item['snippet']} (fallback for \"{query}\")"}
            for item in FALLBACK_RESULTS[:num_results]
        ]
        return {
            "success": True,
            "query": query,
            "results": fallback,
            "count": len(fallback),
            "message": "Returned demo fallback headlines. Plug in a real search/news API for production data.",
        }
    return {"success": True, "query": query, "results": results, "count": len(results)}

http_tool = Tool(
    name="http_request",
    description="Make an HTTP request to any API endpoint. Use this to fetch data from external services or APIs.",
    func=http_request,
    parameters={
        "url": "The URL to make the request to",
        "method": "HTTP method (GET, POST, PUT, DELETE, PATCH)",
        "headers": "HTTP headers as key-value pairs",
        "body": "Request body (for POST, PUT, PATCH)",
    },
    required=["url", "method"],
)

search_tool = Tool(
    name="search_web",
    description="Search the web for current information and facts. Use this when you need recent data or news.",
    func=search_web,
    parameters={"query": "The search query", "numResults": "Number of results to return (default: 5)"},
    required=["query"],
)
