"""Query orchestrator: retrieve → generate → materialize → persist.

Stages run strictly in order over an immutable PipelineState. Each stage
returns a partial update merged with dataclasses.replace() and records a
StageOutcome:

  ok        stage completed
  degraded  best-effort stage failed; its fallback update was applied
  skipped   stage not applicable (no session, semantic search off, ...)
  fatal     essential stage failed; the error propagates to the caller

generate_response is always essential. retrieve_context is essential only
when the request sets require_semantic_search.
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from loguru import logger

from docrag.config import RetrievalCfg
from docrag.errors import EmptyInputError, VectorStoreUnavailableError
from docrag.generate.materializer import DocumentMaterializer, GeneratedDocument
from docrag.rag.assembler import assemble, select_within_budget
from docrag.rag.embeddings import Embedder
from docrag.rag.generator import ResponseGenerator
from docrag.rag.history import ConversationStore
from docrag.rag.ranker import RankedChunk, rank, referenced_documents
from docrag.rag.vector_store import VectorStore


# ------------------------------------------------------------------
# Request / state / result
# ------------------------------------------------------------------


@dataclass(frozen=True)
class QueryInput:
    """One user query.

    Attributes:
        query: Free-text question.
        owner_id: Tenant whose documents may be searched.
        session_id: Chat session; turns are saved only when set.
        use_semantic_search: When False no embedding or vector search happens.
        document_ids: Restrict retrieval to these documents.
        conversation_context: Prior conversation text prepended to the context.
        require_semantic_search: Fail the run instead of degrading when
            retrieval fails.
    """

    query: str
    owner_id: str
    session_id: str | None = None
    use_semantic_search: bool = True
    document_ids: tuple[str, ...] | None = None
    conversation_context: str | None = None
    require_semantic_search: bool = False


class StageStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    SKIPPED = "skipped"
    FATAL = "fatal"


@dataclass(frozen=True)
class StageOutcome:
    stage: str
    status: StageStatus
    error: str | None = None


@dataclass(frozen=True)
class PipelineState:
    request: QueryInput
    context: str = ""
    retrieved: tuple[RankedChunk, ...] = ()
    referenced_documents: tuple[str, ...] = ()
    response: str = ""
    document: GeneratedDocument | None = None
    saved: bool = False
    outcomes: tuple[StageOutcome, ...] = ()


@dataclass
class QueryResult:
    response: str
    referenced_documents: list[str] = field(default_factory=list)
    document_file: GeneratedDocument | None = None
    outcomes: list[StageOutcome] = field(default_factory=list)

    def outcome(self, stage: str) -> StageOutcome | None:
        return next((o for o in self.outcomes if o.stage == stage), None)

    def to_dict(self) -> dict:
        data: dict = {
            "response": self.response,
            "referencedDocuments": list(self.referenced_documents),
        }
        if self.document_file is not None:
            data["documentFile"] = self.document_file.to_payload()
        return data


StageFn = Callable[[PipelineState], Awaitable[dict]]


@dataclass
class Stage:
    """One pipeline step.

    Attributes:
        name: Stage name used in outcomes and logs.
        run: Coroutine returning a partial state update.
        essential: Bool, or predicate on the state; essential failures propagate.
        fallback: Update applied when the stage is skipped or degrades.
        skip_if: Predicate; when true the stage is not run.
    """

    name: str
    run: StageFn
    essential: bool | Callable[[PipelineState], bool] = False
    fallback: Callable[[PipelineState], dict] | None = None
    skip_if: Callable[[PipelineState], bool] | None = None

    def is_essential(self, state: PipelineState) -> bool:
        return self.essential(state) if callable(self.essential) else self.essential


# ------------------------------------------------------------------
# Pipeline
# ------------------------------------------------------------------


class RagPipeline:
    """Runs the fixed stage list for each query.

    Args:
        vector_store: Owner-scoped chunk store.
        embedder: Query embedder (same model as ingestion).
        generator: Answer generator.
        materializer: Optional document materializer; None disables files.
        conversations: Optional turn store; None disables persistence.
        retrieval: Retrieval settings.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        generator: ResponseGenerator,
        materializer: DocumentMaterializer | None = None,
        conversations: ConversationStore | None = None,
        retrieval: RetrievalCfg | None = None,
    ) -> None:
        self._store = vector_store
        self._embedder = embedder
        self._generator = generator
        self._materializer = materializer
        self._conversations = conversations
        self._retrieval = retrieval or RetrievalCfg()
        self.stages: list[Stage] = [
            Stage(
                "retrieve_context",
                self._retrieve_context,
                essential=lambda s: s.request.require_semantic_search,
                fallback=_conversation_only,
                skip_if=lambda s: not s.request.use_semantic_search,
            ),
            Stage("generate_response", self._generate_response, essential=True),
            Stage(
                "generate_document",
                self._generate_document,
                fallback=lambda s: {"document": None},
                skip_if=lambda s: self._materializer is None,
            ),
            Stage(
                "save_conversation",
                self._save_conversation,
                fallback=lambda s: {"saved": False},
                skip_if=lambda s: not s.request.session_id or self._conversations is None,
            ),
        ]

    async def run_query(self, request: QueryInput) -> QueryResult:
        """Answer *request*.

        Raises:
            EmptyInputError: If the query is empty.
            GenerationFailedError: If the model call fails.
        """
        if not request.query or not request.query.strip():
            raise EmptyInputError("Query must not be empty")

        state = PipelineState(request=request)
        for stage in self.stages:
            state = await self._run_stage(stage, state)

        return QueryResult(
            response=state.response,
            referenced_documents=list(state.referenced_documents),
            document_file=state.document,
            outcomes=list(state.outcomes),
        )

    async def _run_stage(self, stage: Stage, state: PipelineState) -> PipelineState:
        if stage.skip_if is not None and stage.skip_if(state):
            update = stage.fallback(state) if stage.fallback else {}
            return _merge(state, update, StageOutcome(stage.name, StageStatus.SKIPPED))

        try:
            update = await stage.run(state)
        except Exception as exc:
            if stage.is_essential(state):
                outcome = StageOutcome(stage.name, StageStatus.FATAL, str(exc))
                logger.error(f"Stage '{outcome.stage}' failed ({outcome.status.value}): {exc}")
                raise
            logger.warning(f"Stage '{stage.name}' degraded: {exc}")
            update = stage.fallback(state) if stage.fallback else {}
            return _merge(state, update, StageOutcome(stage.name, StageStatus.DEGRADED, str(exc)))

        return _merge(state, update, StageOutcome(stage.name, StageStatus.OK))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _retrieve_context(self, state: PipelineState) -> dict:
        request = state.request
        cfg = self._retrieval
        document_ids = list(request.document_ids) if request.document_ids else None

        query_vector = await self._embedder.embed(request.query)
        hits = await self._store.search(
            query_vector,
            request.owner_id,
            cfg.top_k * cfg.candidate_multiplier,
            document_ids,
        )
        if not hits and self._store.degraded:
            raise VectorStoreUnavailableError(
                f"Vector store is unavailable: {self._store.degraded_reason}"
            )

        ranked = rank(query_vector, hits, cfg.top_k, cfg.min_score)
        if not ranked and document_ids and cfg.fallback_to_document_chunks:
            ranked = await self._leading_chunks(document_ids, request.owner_id)

        kept = select_within_budget(ranked, self._generator.model, cfg.token_budget)
        logger.debug(
            f"Retrieved {len(hits)} candidates, ranked {len(ranked)}, kept {len(kept)} "
            f"for owner {request.owner_id}"
        )
        return {
            "retrieved": tuple(kept),
            "referenced_documents": tuple(referenced_documents(kept)),
            "context": assemble(kept, request.conversation_context),
        }

    async def _leading_chunks(self, document_ids: list[str], owner_id: str) -> list[RankedChunk]:
        """First chunks of the requested documents, used when nothing ranks."""
        limit = self._retrieval.top_k
        chunks: list[RankedChunk] = []
        for document_id in document_ids:
            if len(chunks) >= limit:
                break
            hits = await self._store.fetch_document_chunks(
                document_id, owner_id, limit - len(chunks)
            )
            chunks.extend(
                RankedChunk(
                    text=h.text,
                    document_id=h.document_id,
                    score=h.score,
                    chunk_id=h.chunk_id,
                    chunk_index=h.chunk_index,
                )
                for h in hits
            )
        if chunks:
            logger.info(f"No chunk ranked above threshold; using {len(chunks)} leading chunks")
        return chunks

    async def _generate_response(self, state: PipelineState) -> dict:
        response = await self._generator.generate(state.request.query, state.context)
        return {"response": response}

    async def _generate_document(self, state: PipelineState) -> dict:
        document = await asyncio.to_thread(self._materializer.maybe_generate, state.response)
        return {"document": document}

    async def _save_conversation(self, state: PipelineState) -> dict:
        await self._conversations.save_exchange(
            state.request.session_id,
            state.request.query,
            state.response,
            list(state.referenced_documents),
        )
        return {"saved": True}


def _conversation_only(state: PipelineState) -> dict:
    return {
        "context": state.request.conversation_context or "",
        "retrieved": (),
        "referenced_documents": (),
    }


def _merge(state: PipelineState, update: dict, outcome: StageOutcome) -> PipelineState:
    return dataclasses.replace(state, **update, outcomes=state.outcomes + (outcome,))
