"""
Isolation Orchestrator

State machine over one symbol:

    SKIPPED            border is not a flat light canvas and nothing forces processing
    PROCESSED          edges -> mask -> bbox -> composite -> cleanup succeeded
    FALLBACK_ORIGINAL  any stage failed; the original input is returned untouched

Only InvalidConfigError escapes to the caller. Everything else is logged and
converted to a fallback so asset generation is never blocked by one symbol.
"""

from typing import Any, Dict, Optional

from symbol_isolation.core.config import Settings, settings as default_settings
from symbol_isolation.core.exceptions import (
    AllocationFailureError,
    IsolationBaseException,
    PipelineStageError,
)
from symbol_isolation.core.logging import LogContext, get_logger, stage_var
from symbol_isolation.core.metrics import record_isolation_result, track_stage_latency
from symbol_isolation.engines.isolation.classifier import has_uniform_background
from symbol_isolation.engines.isolation.cleanup import run_cleanup
from symbol_isolation.engines.isolation.codec import decode_image, encode_png
from symbol_isolation.engines.isolation.compositor import composite
from symbol_isolation.engines.isolation.masks import build_mask, extract_bbox, pad_bbox, protected_edges
from symbol_isolation.engines.isolation.schemas import (
    BoundingBox,
    ExtractionResult,
    IsolationConfig,
    IsolationState,
    RasterImage,
)
from symbol_isolation.pipeline.hints import SourceHint, resolve_source_hint

logger = get_logger(__name__)


class SymbolIsolationPipeline:
    """Runs the isolation stages for one symbol at a time. Holds no per-call state."""

    def __init__(self, config: Optional[IsolationConfig] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.config = config or IsolationConfig.from_settings(self.settings)

    def resolve_config(self, overrides: Optional[Dict[str, Any]] = None) -> IsolationConfig:
        """Merge per-call overrides. Raises InvalidConfigError eagerly."""
        return self.config.merged(overrides)

    # =========================================================================
    # Public entry points
    # =========================================================================

    def isolate(
        self,
        image: RasterImage,
        *,
        force: bool = False,
        overrides: Optional[Dict[str, Any]] = None,
        symbol_id: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Isolate the symbol in `image`.

        Args:
            image: Decoded source image (never modified)
            force: Process even when the border heuristic says no
            overrides: Per-call IsolationConfig field overrides
            symbol_id: Identifier carried into logs

        Returns:
            ExtractionResult; never raises except InvalidConfigError
        """
        cfg = self.resolve_config(overrides)
        return self.isolate_with_config(image, cfg, force=force, symbol_id=symbol_id)

    def isolate_with_config(
        self,
        image: RasterImage,
        cfg: IsolationConfig,
        *,
        force: bool = False,
        symbol_id: Optional[str] = None,
    ) -> ExtractionResult:
        with LogContext(symbol_id=symbol_id, stage="isolation") as ctx:
            logger.info(
                "isolation_started",
                width=image.width,
                height=image.height,
                force=force
            )

            try:
                if not force:
                    ctx.set_stage("border_check")
                    with track_stage_latency("border_check"):
                        uniform = has_uniform_background(image, cfg)
                    if not uniform:
                        return self._skip(image, reason="non_uniform_background")

                output, bbox = self._run_stages(image, cfg, ctx)

            except IsolationBaseException as e:
                return self._fallback(image, e)
            except MemoryError:
                return self._fallback(image, AllocationFailureError(stage=stage_var.get()))
            except Exception as e:
                stage = stage_var.get() or "unknown"
                return self._fallback(
                    image,
                    PipelineStageError(f"{type(e).__name__}: {e}", stage=stage)
                )

            logger.info(
                "isolation_completed",
                bbox=bbox.as_tuple(),
                output_width=output.width,
                output_height=output.height
            )
            record_isolation_result(IsolationState.PROCESSED.value)
            return ExtractionResult(image=output, bbox=bbox, state=IsolationState.PROCESSED)

    def isolate_bytes(
        self,
        data: bytes,
        *,
        source: Optional[str] = None,
        force: bool = False,
        overrides: Optional[Dict[str, Any]] = None,
        symbol_id: Optional[str] = None,
    ) -> bytes:
        """
        Encoded-image variant: returns PNG bytes when the symbol was processed,
        otherwise the original bytes unchanged.

        Args:
            data: Encoded image (PNG, JPEG, WebP, ...)
            source: Filename or URL, checked for skip/force keywords
        """
        cfg = self.resolve_config(overrides)

        hint = resolve_source_hint(source, self.settings)
        if hint == SourceHint.SKIP:
            with LogContext(symbol_id=symbol_id):
                logger.info("isolation_skipped", reason="source_hint", source=source)
            record_isolation_result(IsolationState.SKIPPED.value)
            return data

        with LogContext(symbol_id=symbol_id, stage="decode"):
            try:
                image = decode_image(data)
            except IsolationBaseException as e:
                self._log_fallback(e)
                record_isolation_result(IsolationState.FALLBACK_ORIGINAL.value)
                return data

        result = self.isolate_with_config(
            image, cfg, force=force or hint == SourceHint.FORCE, symbol_id=symbol_id
        )
        if not result.processed:
            return data

        with LogContext(symbol_id=symbol_id, stage="encode"):
            try:
                return encode_png(result.image)
            except (OSError, ValueError, MemoryError) as e:
                logger.warning(
                    "isolation_fallback",
                    error=str(e),
                    error_type=type(e).__name__
                )
                return data

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_stages(self, image: RasterImage, cfg: IsolationConfig, ctx: LogContext):
        ctx.set_stage("edges")
        with track_stage_latency("edges"):
            edge_mask = protected_edges(image, cfg)

        ctx.set_stage("mask")
        with track_stage_latency("mask"):
            mask = build_mask(image, cfg, edge_mask)

        ctx.set_stage("bbox")
        with track_stage_latency("bbox"):
            tight = extract_bbox(mask)
            bbox = pad_bbox(tight, image.width, image.height, cfg)

        logger.debug(
            "foreground_located",
            foreground_pixels=mask.count(),
            tight_bbox=tight.as_tuple(),
            padded_bbox=bbox.as_tuple()
        )

        ctx.set_stage("composite")
        with track_stage_latency("composite"):
            output = composite(image, bbox, cfg, edge_mask)

        ctx.set_stage("cleanup")
        with track_stage_latency("cleanup"):
            output = run_cleanup(output, cfg)

        return output, bbox

    def _skip(self, image: RasterImage, reason: str) -> ExtractionResult:
        logger.info("isolation_skipped", reason=reason)
        record_isolation_result(IsolationState.SKIPPED.value)
        return ExtractionResult(
            image=image,
            bbox=BoundingBox.full_frame(image.width, image.height),
            state=IsolationState.SKIPPED,
            diagnostic={"reason": reason},
        )

    def _fallback(self, image: RasterImage, error: IsolationBaseException) -> ExtractionResult:
        self._log_fallback(error)
        record_isolation_result(IsolationState.FALLBACK_ORIGINAL.value)
        return ExtractionResult(
            image=image,
            bbox=BoundingBox.full_frame(image.width, image.height),
            state=IsolationState.FALLBACK_ORIGINAL,
            diagnostic=error.to_dict(),
        )

    @staticmethod
    def _log_fallback(error: IsolationBaseException):
        logger.warning(
            "isolation_fallback",
            error=error.message,
            error_type=type(error).__name__,
            failed_stage=error.stage,
            details=error.details
        )
