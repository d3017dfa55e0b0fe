"""
RAG Service - ingestion and question answering.

Orchestrates the complete pipeline:
1. Chunking → splits documents
2. Embeddings → vectorizes (cached)
3. Vector store + BM25 → stores everything
4. Hybrid search → fusion → optional rerank
5. Completion → answer, behind the frequency and quality gates
"""

import asyncio
import inspect
import time
from typing import Any, Dict, List, Optional, Sequence

from hybridrag.cache.gate import CacheGate
from hybridrag.core.config import Settings
from hybridrag.core.exceptions import ValidationError
from hybridrag.core.logging import logger, perf_logger
from hybridrag.core.utils.retry import RetryPolicy
from hybridrag.embeddings.client import EmbeddingsClient, OllamaEmbeddingsClient
from hybridrag.embeddings.types import EmbeddingVector
from hybridrag.llm.base import CompletionClient
from hybridrag.llm.ollama import OllamaClient
from hybridrag.models.chunk import Chunk
from hybridrag.models.search import (
    FusedResult,
    QueryResult,
    RerankCandidate,
    SourceChunk,
)
from hybridrag.rag.chunking.hybrid import HybridChunker
from hybridrag.rag.rerank.base import Reranker, RerankConfig
from hybridrag.rag.retrieval.hybrid_search import HybridSearch
from hybridrag.rag.retrieval.lexical_index import BM25Index
from hybridrag.rag.retrieval.metrics import RAGMetrics
from hybridrag.vectorstore.base import VectorPoint, VectorStore
from hybridrag.vectorstore.memory import InMemoryVectorStore

NO_INFORMATION_ANSWER = "I don't have information about that in the knowledge base."
CONTEXT_SEPARATOR = "\n\n---\n\n"

ANSWER_PROMPT = """You are a helpful assistant answering questions based on the provided documentation.

RULES:
1. Use the information from the context below to answer the question.
2. Do not make up information that is not in the context.
3. If the context does not contain relevant information, say "{no_info}"

FORMAT:
- Respond in plain, natural language.
- If asked about steps or processes, use numbered steps.

Context:
{context}

Question: {question}

Answer:"""


def build_prompt(question: str, sources: Sequence[SourceChunk]) -> str:
    context = CONTEXT_SEPARATOR.join(source.text for source in sources)
    return ANSWER_PROMPT.format(no_info=NO_INFORMATION_ANSWER, context=context, question=question)


class RagService:
    """
    Entry point of the engine.

    Collaborators are injected so tests can run against in-memory fakes;
    ``create_rag_service`` wires the Ollama and Weaviate adapters.
    """

    def __init__(
        self,
        settings: Settings,
        embeddings_client: EmbeddingsClient,
        completion_client: CompletionClient,
        vector_store: VectorStore,
        reranker: Optional[Reranker] = None,
        lexical_index: Optional[BM25Index] = None,
    ) -> None:
        self.settings = settings
        self.metrics = RAGMetrics()
        self.chunker = HybridChunker(
            max_chars=settings.get("chunking.max_chars", 1200),
            overlap_chars=settings.get("chunking.overlap_chars", 150),
            min_chars=settings.get("chunking.min_chars", 50),
        )
        self.gate = CacheGate.from_settings(settings, embeddings_client, completion_client)
        self.vector_store = vector_store
        self.lexical_index = lexical_index or BM25Index()
        self.reranker = reranker or Reranker(
            RerankConfig.from_settings(settings), completion_client=completion_client
        )
        self.search = HybridSearch.from_settings(
            settings,
            vector_store,
            self.lexical_index,
            self.gate.embeddings,
            metrics=self.metrics,
        )

        self.top_k = settings.get("retrieval.top_k", 5)
        self.min_relevance_score = settings.get("retrieval.min_relevance_score", 0.0)
        self.temperature = settings.get("ollama.temperature", 0.2)
        self.max_tokens = settings.get("ollama.max_tokens", 256)
        self.batch_size = settings.get("performance.vector_batch_size", 64)

        # Limits in-flight embedding calls during ingestion
        self._embed_permits = asyncio.Semaphore(
            settings.get("performance.max_concurrent_embeddings", 4)
        )
        self._embedding_dim: Optional[int] = None
        self._clients = [embeddings_client, completion_client]

        logger.info(
            "RagService initialized",
            top_k=self.top_k,
            min_relevance_score=self.min_relevance_score,
            hybrid=self.search.enabled,
            reranker=self.reranker.is_enabled,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_document(
        self, document_id: str, text: str, categories: Optional[List[str]] = None
    ) -> int:
        """
        Chunk, embed and index a document.

        Args:
            document_id: Caller-chosen document id, must not be blank
            text: Raw document text, must not be blank
            categories: Category tags copied onto every chunk

        Returns:
            Number of chunks indexed

        Raises:
            ValidationError: Blank input or a malformed embedding
            ExternalServiceError: Embedding or vector store failure
        """
        if not document_id or not document_id.strip():
            raise ValidationError("Document id must not be blank", context={"field": "document_id"})
        if not text or not text.strip():
            raise ValidationError(
                "Document text must not be blank",
                context={"field": "text", "document_id": document_id},
            )

        start = time.perf_counter()
        categories = list(categories or [])
        pieces = self.chunker.chunk(text)
        if not pieces:
            removed = await self.remove_document(document_id)
            logger.info("Document produced no chunks", document_id=document_id, removed=removed)
            return 0

        chunks = [
            Chunk.create(document_id, index, piece, categories)
            for index, piece in enumerate(pieces)
        ]
        vectors = await asyncio.gather(*(self._embed_chunk(chunk) for chunk in chunks))
        self._check_dimensions(vectors)

        points = [
            VectorPoint(
                id=chunk.id,
                vector=vector,
                document_id=chunk.document_id,
                chunk_index=chunk.chunk_index,
                text=chunk.text,
                categories=chunk.categories,
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        # New points land first; an earlier version stays searchable until they are all stored
        try:
            with perf_logger.measure("vector_upsert", document_id=document_id, points=len(points)):
                for offset in range(0, len(points), self.batch_size):
                    await self.vector_store.upsert(points[offset : offset + self.batch_size])
        except Exception as e:
            logger.error(
                "Vector upsert failed, previous version kept",
                document_id=document_id,
                error=str(e),
            )
            raise

        stale = await self.vector_store.delete_by_document_id(
            document_id, keep_ids={chunk.id for chunk in chunks}
        )
        lexical = self.lexical_index.replace_document(document_id, chunks)

        latency_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_ingest(latency_ms, len(chunks))
        logger.info(
            "Document ingested",
            document_id=document_id,
            chunks=len(chunks),
            lexical_chunks=lexical,
            stale_vectors=stale,
            latency_ms=latency_ms,
        )
        return len(chunks)

    async def _embed_chunk(self, chunk: Chunk) -> EmbeddingVector:
        async with self._embed_permits:
            raw = await self.gate.embeddings.embed(chunk.text)

        return EmbeddingVector(raw, expected_dim=self._embedding_dim)

    def _check_dimensions(self, vectors: Sequence[EmbeddingVector]) -> None:
        expected = self._embedding_dim or vectors[0].dimension
        for vector in vectors:
            if vector.dimension != expected:
                raise ValidationError(
                    f"Embedding dimension mismatch: expected {expected}, got {vector.dimension}",
                    context={"field": "embedding", "expected": expected, "actual": vector.dimension},
                )
        if self._embedding_dim is None:
            self._embedding_dim = expected
            logger.info("Detected embedding dimension", dimension=expected)

    async def remove_document(self, document_id: str) -> int:
        """
        Remove a document from both indexes.

        Returns:
            Chunks removed, as reported by the vector store or, when it
            cannot tell, by the lexical index
        """
        lexical = self.lexical_index.remove_by_document_id(document_id)
        dense = await self.vector_store.delete_by_document_id(document_id)
        removed = max(lexical, dense)
        logger.info("Document removed", document_id=document_id, chunks=removed)
        return removed

    async def clear_index(self) -> None:
        self.lexical_index.clear()
        self.gate.clear()
        logger.info("Lexical index and caches cleared")

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def retrieve(
        self, query: str, top_k: Optional[int] = None, category_filter: Optional[str] = None
    ) -> List[FusedResult]:
        top_k = self.top_k if top_k is None else top_k
        return await self.search.search(query, top_k, category_filter)

    async def search_with_reranking(
        self, query: str, top_k: Optional[int] = None, category_filter: Optional[str] = None
    ) -> List[SourceChunk]:
        """
        Retrieve and, when a reranker is configured, re-order.

        A source's relevance is its rerank score when reranked, otherwise
        its cosine similarity (0.0 for chunks only BM25 found).
        """
        top_k = self.top_k if top_k is None else top_k
        if top_k <= 0:
            return []
        if not self.reranker.is_enabled:
            fused = await self.retrieve(query, top_k, category_filter)
            return [self._fused_to_source(result) for result in fused]

        start = time.perf_counter()
        fused = await self.retrieve(
            query, max(self.reranker.candidate_count, top_k), category_filter
        )
        candidates = [
            RerankCandidate(
                id=result.id,
                text=result.text,
                initial_score=result.fused_score,
                metadata={
                    "document_id": result.document_id,
                    "chunk_index": result.chunk_index,
                    "dense_score": result.dense_score,
                },
            )
            for result in fused
        ]
        reranked = await self.reranker.rerank(query, candidates, top_k)
        self.metrics.record_search(
            (time.perf_counter() - start) * 1000, len(reranked), search_type="rerank"
        )

        return [
            SourceChunk(
                document_id=result.metadata["document_id"],
                chunk_index=result.metadata["chunk_index"],
                relevance_score=result.rerank_score,
                text=result.text,
            )
            for result in reranked
        ]

    @staticmethod
    def _fused_to_source(result: FusedResult) -> SourceChunk:
        return SourceChunk(
            document_id=result.document_id,
            chunk_index=result.chunk_index,
            relevance_score=result.dense_score,
            text=result.text,
        )

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    async def answer(
        self, question: str, top_k: Optional[int] = None, category_filter: Optional[str] = None
    ) -> QueryResult:
        """
        Answer ``question`` from the indexed documents.

        Flow:
        1. Count the question (frequency gate)
        2. Serve from the query cache when a good answer is stored
        3. Retrieve, rerank, check minimum relevance
        4. Complete through the frequency-gated completion cache
        5. Offer the result to the quality gate
        """
        if not question or not question.strip():
            raise ValidationError("Question must not be blank", context={"field": "question"})

        start = time.perf_counter()
        top_k = self.top_k if top_k is None else top_k
        frequent = self.gate.record_question(question)

        cached = self.gate.lookup_answer(question, top_k, category_filter)
        if cached is not None:
            self.metrics.record_answer((time.perf_counter() - start) * 1000, True, True)
            logger.info("Answer served from cache", question=question[:80])
            return cached

        sources = await self.search_with_reranking(question, top_k, category_filter)
        top_score = sources[0].relevance_score if sources else 0.0

        if not sources or top_score < self.min_relevance_score:
            logger.info(
                "No relevant context, returning no-information answer",
                sources=len(sources),
                top_score=top_score,
                threshold=self.min_relevance_score,
            )
            answer = NO_INFORMATION_ANSWER
        else:
            answer = await self.gate.completion.complete(
                build_prompt(question, sources),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                cacheable=frequent,
            )

        result = QueryResult(question=question, answer=answer, sources=sources)
        admitted = self.gate.admit_answer(question, top_k, category_filter, result)

        latency_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_answer(latency_ms, False, admitted)
        logger.info(
            "Question answered",
            sources=len(sources),
            top_score=top_score,
            frequent=frequent,
            cached_after=admitted,
            latency_ms=latency_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Stats and lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            "lexical_index": self.lexical_index.get_stats().model_dump(),
            "embedding_dimension": self._embedding_dim,
            "hybrid": {
                "enabled": self.search.enabled,
                "strategy": self.search.strategy.value,
                "dense_weight": self.search.dense_weight,
                "sparse_weight": self.search.sparse_weight,
            },
            "rerank": self.reranker.get_stats(),
            "cache": self.gate.get_stats(),
            "metrics": self.metrics.get_summary(),
        }

    async def close(self) -> None:
        """Release HTTP sessions held by the collaborators."""
        closeables: List[Any] = [*self._clients, self.reranker.backend]
        for client in closeables:
            close = getattr(client, "close", None)
            if close is None:
                continue
            result = close()
            if inspect.isawaitable(result):
                await result


def create_rag_service(settings: Optional[Settings] = None, memory: bool = False) -> RagService:
    """
    Wire a RagService against Ollama and Weaviate.

    Args:
        settings: Configuration, loaded from ``.hybridrag`` when omitted
        memory: Keep vectors in process instead of Weaviate
    """
    settings = settings or Settings()
    retry_policy = RetryPolicy.from_settings(settings)
    embeddings = OllamaEmbeddingsClient(
        base_url=settings.get("ollama.url"),
        model=settings.get("ollama.embed_model"),
        timeout_seconds=settings.get("ollama.timeout_seconds", 120.0),
        retry_policy=retry_policy,
    )
    completion = OllamaClient(
        base_url=settings.get("ollama.url"),
        model=settings.get("ollama.model"),
        timeout_seconds=settings.get("ollama.timeout_seconds", 120.0),
        retry_policy=retry_policy,
    )

    vector_store: VectorStore
    if memory:
        vector_store = InMemoryVectorStore()
    else:
        from hybridrag.vectorstore.weaviate_store import WeaviateVectorStore

        vector_store = WeaviateVectorStore(
            url=settings.get("weaviate.url"),
            class_name=settings.get("weaviate.class_name", "HybridChunk"),
            timeout_seconds=settings.get("weaviate.timeout_seconds", 30.0),
            batch_size=settings.get("performance.vector_batch_size", 64),
        )

    return RagService(settings, embeddings, completion, vector_store)
