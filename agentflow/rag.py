"""
Document store for retrieval augmented generation, backed by ChromaDB.

Uploaded text is split into overlapping chunks and embedded through an
OpenAI compatible embeddings endpoint. Collections persist under
`config.CHROMA_PATH`.
"""
import logging
import os
import uuid
from typing import Any, Dict, List, Optional

import chromadb
import openai

import config

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = os.getenv("VECTOR_STORE_COLLECTION_NAME", "documents")
SEPARATORS = ["\n\n", "\n", " ", ""]


class OpenAIEmbeddingFunction(chromadb.EmbeddingFunction):
    def __init__(self, base_url: str, api_key: str, model_name: str):
        self.client = openai.OpenAI(base_url=base_url, api_key=api_key)
        self.model = model_name

    def __call__(self, input):
        if isinstance(input, str):
            input = [input]
        response = self.client.embeddings.create(input=list(input), model=self.model)
        return [e.embedding for e in response.data]


def _split(text: str, chunk_size: int, separators: List[str]) -> List[str]:
    if len(text) <= chunk_size:
        return [text]
    separator = next((s for s in separators if s == "" or s in text), "")
    if separator == "":
        return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]
    rest = separators[separators.index(separator) + 1:]
    pieces = []
    for part in text.split(separator):
        if len(part) > chunk_size:
            pieces.extend(_split(part, chunk_size, rest))
        elif part:
            pieces.append(part)
    return [p + separator if i < len(pieces) - 1 else p for i, p in enumerate(pieces)]


def split_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> List[str]:
    """
    Split on paragraph, then line, then word boundaries into chunks of at
    most `chunk_size` characters. Consecutive chunks share up to
    `chunk_overlap` trailing characters of whole pieces.
    """
    text = (text or "").strip()
    if not text:
        return []

    chunks: List[str] = []
    current: List[str] = []
    length = 0
    for piece in _split(text, chunk_size, SEPARATORS):
        if current and length + len(piece) > chunk_size:
            chunks.append("".join(current).strip())
            while current and (length > chunk_overlap or length + len(piece) > chunk_size):
                length -= len(current.pop(0))
        current.append(piece)
        length += len(piece)
    if current:
        chunks.append("".join(current).strip())
    return [c for c in chunks if c]


class RAGService:
    def __init__(
        self,
        chroma_path=None,
        embedding_model: str = None,
        api_base: str = None,
        api_key: str = None,
        client=None,
        embedding_function=None,
    ):
        self.chroma_path = str(chroma_path or config.CHROMA_PATH)
        if client is None:
            os.makedirs(self.chroma_path, exist_ok=True)
            client = chromadb.PersistentClient(path=self.chroma_path)
        self.client = client
        if embedding_function is None:
            embedding_function = OpenAIEmbeddingFunction(
                api_base or config.LLM_BASE_URL,
                api_key or config.LLM_API_KEY,
                embedding_model or config.EMBEDDING_MODEL,
            )
        self.embedding_function = embedding_function

    def collection(self, name: Optional[str] = None):
        return self.client.get_or_create_collection(
            name=name or DEFAULT_COLLECTION,
            embedding_function=self.embedding_function,
            metadata={"hnsw:space": "cosine"},
        )

    def add_documents(self, documents: List[Dict[str, Any]], collection: Optional[str] = None,
                      chunk_size: int = 1000, chunk_overlap: int = 200) -> int:
        """
        Chunk and store `[{"content": ..., "metadata": {...}}]`. Returns the
        number of chunks added.
        """
        texts, metadatas = [], []
        for doc in documents:
            chunks = split_text(doc.get("content", ""), chunk_size, chunk_overlap)
            for index, chunk in enumerate(chunks):
                texts.append(chunk)
                metadatas.append({**(doc.get("metadata") or {}), "chunkIndex": index, "totalChunks": len(chunks)})
        if not texts:
            return 0

        self.collection(collection).add(
            documents=texts,
            metadatas=metadatas,
            ids=[str(uuid.uuid4()) for _ in texts],
        )
        logger.info(f"Added {len(texts)} chunks to collection '{collection or DEFAULT_COLLECTION}'")
        return len(texts)

    def count(self, collection: Optional[str] = None) -> int:
        return self.collection(collection).count()

    def query(self, text: str, k: int = 4, collection: Optional[str] = None) -> List[Dict[str, Any]]:
        col = self.collection(collection)
        total = col.count()
        if total == 0:
            return []
        results = col.query(query_texts=[text], n_results=min(k, total))
        distances = (results.get("distances") or [[None] * len(results["documents"][0])])[0]
        hits = []
        for content, metadata, distance in zip(results["documents"][0], results["metadatas"][0], distances):
            hits.append({
                "content": content,
                "metadata": metadata or {},
                "score": None if distance is None else 1.0 - distance,
            })
        return hits

    def status(self, collection: Optional[str] = None) -> Dict[str, Any]:
        col = self.collection(collection)
        sample = col.peek(limit=3)
        return {
            "collectionName": collection or DEFAULT_COLLECTION,
            "documentCount": col.count(),
            "sampleDocuments": [
                {"content": (doc or "")[:200], "metadata": meta or {}}
                for doc, meta in zip(sample.get("documents") or [], sample.get("metadatas") or [])
            ],
        }

    def collections(self) -> List[str]:
        # Older chromadb returns Collection objects, newer returns names
        return [c if isinstance(c, str) else c.name for c in self.client.list_collections()]
