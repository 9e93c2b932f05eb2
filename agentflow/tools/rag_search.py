import logging

from .base import Tool

logger = logging.getLogger(__name__)


def make_rag_tool(get_rag_service) -> Tool:
    """`get_rag_service` is called on first use so the vector store is only opened when needed."""

    def rag_search(params):
        query = str(params.get("query", "")).strip()
        if not query:
            return {"success": False, "error": "query is required"}
        k = int(params.get("k", 4) or 4)
        collection = params.get("collectionName") or None
        try:
            hits = get_rag_service().query(query, k=k, collection=collection)
        except Exception as e:
            logger.error(f"RAG search failed: {e}")
            return {"success": False, "error": str(e)}
        return {
            "success": True,
            "query": query,
            "results": [{"content": h["content"], "source": h["metadata"].get("source", "unknown")} for h in hits],
            "count": len(hits),
        }

    return Tool(
        name="rag_search",
        description="Search the uploaded knowledge base documents for passages relevant to a question.",
        func=rag_search,
        parameters={
            "query": "What to look for in the knowledge base",
            "k": "Number of passages to return (default: 4)",
            "collectionName": "Knowledge base collection (optional)",
        },
        required=["query"],
    )
