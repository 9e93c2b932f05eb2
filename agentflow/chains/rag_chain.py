import logging
from typing import Any, Dict, Optional

from ..errors import ChainError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant that answers questions based on the provided context.
Use only the information from the context to answer the question.
If the context doesn't contain enough information to answer the question, say so.
Cite your sources when providing information."""

ANSWER_TEMPLATE = """{system_prompt}

Context:
{context}

Question: {question}

Answer:"""

EMPTY_STORE_ANSWER = (
    "There are no documents uploaded to the vector store. "
    "Please upload documents first using the RAG upload page."
)


def execute_rag_chain(
    runtime,
    query: str,
    k: int = 4,
    score_threshold: Optional[float] = None,
    system_prompt: Optional[str] = None,
    include_sources: bool = True,
    collection: Optional[str] = None,
    temperature: float = 0.7,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    """Retrieve the `k` closest chunks and answer `query` from them."""
    rag = runtime.rag
    try:
        hits = rag.query(query, k=k, collection=collection)
        if score_threshold is not None:
            hits = [h for h in hits if h["score"] >= score_threshold]

        if not hits:
            if rag.count(collection) == 0:
                logger.warning("Vector store is empty")
                answer = EMPTY_STORE_ANSWER
            else:
                logger.warning(f"No documents matched query '{query}'")
                answer = (
                    f"I couldn't find any relevant information in the uploaded documents to answer your "
                    f"question about \"{query}\". Try rephrasing your question or uploading more relevant documents."
                )
            return {"answer": answer, "sources": []}

        context = "\n\n---\n\n".join(
            f"[Source {i}: {hit['metadata'].get('source', 'Unknown')}]\n{hit['content']}"
            for i, hit in enumerate(hits, start=1)
        )
        prompt = ANSWER_TEMPLATE.format(system_prompt=system_prompt or DEFAULT_SYSTEM_PROMPT, context=context, question=query)
        chat_model = runtime.chat_model(temperature=temperature, model=model)
        answer = chat_model.invoke(prompt)
    except Exception as e:
        logger.error(f"RAG chain execution failed: {e}")
        raise ChainError(f"RAG chain failed: {e}")

    logger.info(f"RAG answer generated from {len(hits)} documents ({len(answer)} characters)")
    result = {"answer": answer}
    if include_sources:
        result["sources"] = [
            {"content": hit["content"][:200] + "...", "metadata": hit["metadata"], "score": hit["score"]}
            for hit in hits
        ]
    return result
