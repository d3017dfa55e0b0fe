"""
In-process re-ranking with a HuggingFace cross-encoder.

Cross-encoders read (query, document) pairs together and produce a
relevance score directly, which is slower than comparing embeddings but
considerably more precise on a short candidate list.
"""

import asyncio
import hashlib
import threading
import time
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

import torch
from transformers import AutoModelForSequenceClassification, AutoTokenizer

from hybridrag.core.exceptions import ExternalServiceError
from hybridrag.core.logging import logger
from hybridrag.models.search import RerankCandidate

DEFAULT_MODEL = "cross-encoder/ms-marco-MiniLM-L-6-v2"


class CrossEncoderBackend:
    """
    Lazily loads the model on first use and keeps an LRU of pair scores.

    Inference runs in a worker thread so the event loop is not blocked.
    """

    name = "cross_encoder"

    def __init__(
        self,
        model_name: Optional[str] = None,
        batch_size: int = 32,
        device: str = "auto",
        cache_size: int = 5000,
    ) -> None:
        self.model_name = model_name or DEFAULT_MODEL
        self.batch_size = batch_size
        self._device_config = device
        self._model = None
        self._tokenizer = None
        self._device: Optional[torch.device] = None
        self._load_lock = threading.Lock()
        self._cache_lock = threading.Lock()
        self._pair_cache: "OrderedDict[str, float]" = OrderedDict()
        self._cache_max_size = cache_size
        logger.info("CrossEncoderBackend initialized", model_name=self.model_name)

    @property
    def device(self) -> torch.device:
        if self._device is None:
            if self._device_config == "auto":
                self._device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
            else:
                self._device = torch.device(self._device_config)
        return self._device

    def _load_model(self) -> None:
        if self._model is not None:
            return
        with self._load_lock:
            # Double-checked: another thread may have finished loading
            if self._model is not None:
                return
            logger.info("Loading CrossEncoder", model_name=self.model_name)
            start_time = time.time()
            try:
                tokenizer = AutoTokenizer.from_pretrained(self.model_name)
                model = AutoModelForSequenceClassification.from_pretrained(self.model_name)
                model.to(self.device)
                model.eval()
            except Exception as e:
                error = ExternalServiceError(
                    f"Error loading CrossEncoder {self.model_name}",
                    context={"model": self.model_name, "device": str(self.device)},
                    cause=e,
                )
                error.add_suggestion("Check the model name")
                error.add_suggestion("Check the internet connection for the first download")
                logger.error("Error loading CrossEncoder", error=error.to_dict())
                raise error from e
            self._tokenizer = tokenizer
            self._model = model
            logger.info("CrossEncoder loaded", load_time_ms=(time.time() - start_time) * 1000)

    @staticmethod
    def _cache_key(query: str, document: str) -> str:
        return hashlib.sha256(f"{query}||{document}".encode("utf-8")).hexdigest()

    def _score_pairs(self, pairs: List[List[str]]) -> List[float]:
        if not pairs:
            return []
        self._load_model()

        inputs = self._tokenizer(
            pairs, padding=True, truncation=True, max_length=512, return_tensors="pt"
        ).to(self.device)

        with torch.no_grad():
            logits = self._model(**inputs).logits
            if logits.shape[-1] == 1:
                # Regression head: squash to [0, 1]
                scores = torch.sigmoid(logits.squeeze(-1))
            else:
                # Classification head: probability of the "relevant" class
                scores = torch.softmax(logits, dim=-1)[:, 1]

        return scores.cpu().tolist()

    def _score_sync(self, query: str, documents: List[str]) -> List[float]:
        scores: List[Optional[float]] = [None] * len(documents)
        pending: List[int] = []

        with self._cache_lock:
            for i, document in enumerate(documents):
                key = self._cache_key(query, document)
                if key in self._pair_cache:
                    self._pair_cache.move_to_end(key)
                    scores[i] = self._pair_cache[key]
                else:
                    pending.append(i)

        for start in range(0, len(pending), self.batch_size):
            batch = pending[start : start + self.batch_size]
            batch_scores = self._score_pairs([[query, documents[i]] for i in batch])
            with self._cache_lock:
                for i, score in zip(batch, batch_scores):
                    scores[i] = score
                    key = self._cache_key(query, documents[i])
                    if len(self._pair_cache) >= self._cache_max_size and key not in self._pair_cache:
                        self._pair_cache.popitem(last=False)
                    self._pair_cache[key] = score

        return [float(s) for s in scores]

    async def score(
        self, query: str, candidates: Sequence[RerankCandidate], top_k: int
    ) -> List[Tuple[int, float]]:
        start_time = time.time()
        scores = await asyncio.to_thread(self._score_sync, query, [c.text for c in candidates])
        latency = (time.time() - start_time) * 1000
        if latency > 1000:
            logger.warning("Slow re-ranking", latency_ms=latency, candidate_count=len(candidates))
        return list(enumerate(scores))
