"""Context-augmented pull request review.

Pipeline:
    1. Prepare the caller's custom documents once for the whole changeset
    2. Gather context per changed file (concurrently) and merge it
    3. Decide whether the changeset fits one review request
    4. Small changesets: one request covering every file; if it fails, fall
       back to per-file reviews in windows of ``review_concurrency``
    5. Large changesets: split into token-budgeted chunks, review all chunks
       concurrently with a reduced example budget, then recombine

Fatal failures (LLM errors in the single-request path with no usable
fallback, or a failure to build the shared context) produce a result with
``success=False`` instead of an exception.
"""

import posixpath
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from loguru import logger

from ..config.defaults import MIN_EXAMPLES_PER_CHUNK
from ..config.settings import ReviewContextConfig
from ..core.concurrency import gather_with_defaults, run_in_windows
from ..core.exceptions import ReviewError
from ..core.llm_client import CompletionClient, extract_json
from ..core.models import CustomDocumentChunk, PRFileChange
from ..retrieval.aggregator import AggregatedContext, ContextAggregator
from ..retrieval.file_context import FileContextGatherer, normalize_path
from .combiner import ChunkResultCombiner
from .pr_chunking import PRChunkPlanner, as_change
from .pr_models import CombinedReviewResult, PRChunk
from .prompts import REVIEW_OUTPUT_SCHEMA, build_review_prompt

PromptBuilder = Callable[..., str]


class PRReviewEngine:
    """Reviews changesets using retrieved project context.

    Example:
        >>> engine = PRReviewEngine(gatherer, llm_client)
        >>> result = await engine.review_pr(changed_files)
        >>> for file_result in result.results:
        ...     print(file_result["filePath"], len(file_result["results"]["issues"]))
    """

    def __init__(
        self,
        gatherer: FileContextGatherer,
        llm_client: CompletionClient,
        *,
        aggregator: ContextAggregator | None = None,
        planner: PRChunkPlanner | None = None,
        combiner: ChunkResultCombiner | None = None,
        prompt_builder: PromptBuilder | None = None,
        config: ReviewContextConfig | None = None,
    ) -> None:
        """Initialize review engine.

        Args:
            gatherer: Per-file context gatherer
            llm_client: Completion service used for reviews
            aggregator: Context merger (created from config if omitted)
            planner: Changeset planner (created from config if omitted)
            combiner: Chunk result combiner (created from config if omitted)
            prompt_builder: ``(files, context, *, chunk_number, total_chunks)``
                returning prompt text; defaults to ``build_review_prompt``
            config: Engine configuration
        """
        self.config = config or ReviewContextConfig()
        self.gatherer = gatherer
        self.llm_client = llm_client
        self.aggregator = aggregator or ContextAggregator(self.config.aggregation)
        self.planner = planner or PRChunkPlanner(self.config.pr_chunking)
        self.combiner = combiner or ChunkResultCombiner(
            self.config.pr_chunking.cross_chunk_similarity
        )
        self.prompt_builder = prompt_builder or build_review_prompt

    async def review_pr(
        self,
        files: Sequence[PRFileChange | Mapping[str, Any]],
        *,
        custom_documents: Sequence[Mapping[str, Any]] | None = None,
        max_examples: int | None = None,
    ) -> CombinedReviewResult:
        """Review a changeset, chunking it when it is too large.

        Args:
            files: Changed files
            custom_documents: Optional ``{title, content}`` policy documents
            max_examples: Code-example budget (defaults to the configured value)

        Returns:
            Combined review result; ``success`` is False on fatal failures
        """
        start_time = time.time()
        changes = [as_change(file) for file in files]
        max_examples = (
            self.config.aggregation.max_examples
            if max_examples is None
            else max_examples
        )

        if not changes:
            logger.info("No changed files to review")
            return CombinedReviewResult(
                success=True,
                combined_summary="No changed files to review.",
                pr_context={"totalFiles": 0, "chunkedReview": False, "chunks": 0},
            )

        try:
            if custom_documents:
                await self.prepare_custom_documents(custom_documents)

            decision = self.planner.should_chunk_pr(changes)
            logger.info(
                f"Reviewing {len(changes)} files "
                f"(~{decision.estimated_tokens} tokens, "
                f"chunked={decision.should_chunk})"
            )

            shared_context = await self.gather_shared_context(changes, max_examples)

            if decision.should_chunk:
                result = await self._review_in_chunks(
                    changes, shared_context, max_examples
                )
            else:
                result = await self._review_single(changes, shared_context)

        except Exception as e:
            logger.error(f"PR review failed: {e}")
            return CombinedReviewResult(success=False, error=str(e))

        logger.info(f"PR review finished in {time.time() - start_time:.1f}s")
        return result

    async def prepare_custom_documents(
        self, documents: Sequence[Mapping[str, Any]]
    ) -> list[CustomDocumentChunk]:
        """Make sure the project's custom documents are chunked and embedded.

        Previously processed chunks are reused. Failures are logged and leave
        the review without custom documents.
        """
        processor = self.gatherer.document_processor
        project_path = self.gatherer.project_path
        if processor is None or project_path is None:
            logger.warning(
                "Custom documents supplied but no document processor configured"
            )
            return []

        try:
            chunks = await processor.get_existing_chunks(project_path)
            if chunks:
                logger.debug(f"Reusing {len(chunks)} processed custom document chunks")
                return chunks
            return await processor.process_documents(documents, project_path)
        except Exception as e:
            logger.error(f"Error processing custom documents: {e}")
            return []

    async def gather_shared_context(
        self, files: Sequence[PRFileChange], max_examples: int | None = None
    ) -> AggregatedContext:
        """Gather context for every file and merge it into one pool set."""
        file_contexts = await self.gatherer.gather_for_files(files)
        return self.aggregator.aggregate(
            file_contexts,
            max_examples=max_examples,
            reviewed_paths=[file.file_path for file in files],
        )

    async def review_chunk(
        self,
        chunk: PRChunk,
        shared_context: AggregatedContext,
        total_chunks: int,
    ) -> dict[str, Any]:
        """Review one chunk of a large changeset.

        Raises:
            ReviewError: If the completion request fails
        """
        logger.info(
            f"Reviewing chunk {chunk.chunk_id}/{total_chunks} "
            f"({len(chunk.files)} files)"
        )
        file_results, _holistic = await self._review_unit(
            chunk.changes,
            shared_context,
            chunk_number=chunk.chunk_id,
            total_chunks=total_chunks,
        )
        return {"chunkId": chunk.chunk_id, "success": True, "results": file_results}

    async def review_files(
        self,
        files: Sequence[PRFileChange | Mapping[str, Any]],
        shared_context: AggregatedContext | None = None,
    ) -> list[dict[str, Any]]:
        """Review files one by one in fixed-size concurrency windows.

        A file whose review fails yields ``{filePath, success: False, error}``.
        """
        changes = [as_change(file) for file in files]
        if shared_context is None:
            shared_context = await self.gather_shared_context(changes)

        def make_factory(change: PRFileChange):
            return lambda: self.review_file(change, shared_context)

        results = await run_in_windows(
            [make_factory(change) for change in changes],
            self.config.pr_chunking.review_concurrency,
            labels=[f"Review of {change.file_path}" for change in changes],
        )
        return [
            result
            if result is not None
            else {
                "filePath": change.file_path,
                "success": False,
                "error": "File review failed",
            }
            for change, result in zip(changes, results, strict=True)
        ]

    async def review_file(
        self, change: PRFileChange, shared_context: AggregatedContext
    ) -> dict[str, Any]:
        """Review a single file against the shared context."""
        file_results, _holistic = await self._review_unit([change], shared_context)
        return file_results[0]

    async def _review_single(
        self, changes: list[PRFileChange], shared_context: AggregatedContext
    ) -> CombinedReviewResult:
        pr_context: dict[str, Any] = {
            "totalFiles": len(changes),
            "chunkedReview": False,
            "chunks": 1,
            "contextSummary": shared_context.counts(),
        }
        try:
            file_results, holistic = await self._review_unit(changes, shared_context)
        except ReviewError as e:
            logger.warning(f"Holistic review failed, reviewing files individually: {e}")
            file_results = await self.review_files(changes, shared_context)
            if changes and not any(r.get("success") for r in file_results):
                raise
            return CombinedReviewResult(
                success=True,
                results=file_results,
                combined_summary=(
                    f"Reviewed {len(changes)} files individually after the "
                    "combined review failed."
                ),
                pr_context=pr_context,
            )

        pr_context["crossFileIssues"] = holistic.get("crossFileIssues", [])
        pr_context["recommendations"] = holistic.get("recommendations", [])
        return CombinedReviewResult(
            success=True,
            results=file_results,
            combined_summary=str(holistic.get("summary") or ""),
            pr_context=pr_context,
        )

    async def _review_in_chunks(
        self,
        changes: list[PRFileChange],
        shared_context: AggregatedContext,
        max_examples: int,
    ) -> CombinedReviewResult:
        chunks = self.planner.chunk_pr_files(changes)
        total_chunks = len(chunks)
        per_chunk_examples = max(
            MIN_EXAMPLES_PER_CHUNK, max_examples // max(total_chunks, 1)
        )
        chunk_context = shared_context.with_max_examples(per_chunk_examples)
        logger.info(
            f"Split PR into {total_chunks} chunks "
            f"({per_chunk_examples} code examples per chunk)"
        )

        chunk_results = await gather_with_defaults(
            (self.review_chunk(chunk, chunk_context, total_chunks) for chunk in chunks),
            labels=[f"Review of chunk {chunk.chunk_id}" for chunk in chunks],
        )
        chunk_results = [
            result
            if result is not None
            else {"chunkId": chunk.chunk_id, "success": False, "results": None}
            for chunk, result in zip(chunks, chunk_results, strict=True)
        ]
        return self.combiner.combine(chunk_results, len(changes))

    async def _review_unit(
        self,
        changes: Sequence[PRFileChange],
        context: AggregatedContext,
        *,
        chunk_number: int | None = None,
        total_chunks: int | None = None,
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Review files in one completion request.

        Returns:
            Tuple of (per-file results, parsed review payload)
        """
        prompt = self.prompt_builder(
            list(changes),
            context,
            chunk_number=chunk_number,
            total_chunks=total_chunks,
        )
        response = await self.llm_client.complete(prompt, REVIEW_OUTPUT_SCHEMA)
        review = self._parse_review(response)

        summary = str(review.get("summary") or "")
        file_issues = review.get("fileSpecificIssues") or {}
        results = []
        for change in changes:
            issues = self._issues_for_file(change.file_path, file_issues)
            results.append(
                {
                    "success": True,
                    "filePath": change.file_path,
                    "language": change.language,
                    "results": {"summary": summary, "issues": issues},
                    "context": context.counts(),
                }
            )
        return results, review

    def _parse_review(self, response: Mapping[str, Any]) -> dict[str, Any]:
        payload = response.get("json")
        if payload is None and response.get("text"):
            payload = extract_json(str(response["text"]))

        if isinstance(payload, list):
            # Bare issue list: nothing to attribute per file
            logger.warning("LLM returned a list instead of a review object")
            payload = {
                "summary": "",
                "fileSpecificIssues": {},
                "crossFileIssues": payload,
            }

        if not isinstance(payload, Mapping):
            logger.error("Failed to parse review JSON from LLM response")
            logger.debug(f"LLM response: {str(response.get('text', ''))[:500]}")
            return {"summary": "", "fileSpecificIssues": {}}
        return dict(payload)

    @staticmethod
    def _issues_for_file(
        file_path: str, file_issues: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """Issues reported for a file, matched by path, normalized path or name."""
        if not isinstance(file_issues, Mapping):
            return []

        normalized = normalize_path(file_path)
        candidates = [file_path, normalized, posixpath.basename(normalized)]
        for key in dict.fromkeys(candidates):
            issues = file_issues.get(key)
            if issues:
                parsed = []
                for item in issues:
                    if isinstance(item, Mapping):
                        parsed.append(dict(item))
                    else:
                        logger.warning(f"Skipping malformed issue for {file_path}")
                return parsed
        return []
