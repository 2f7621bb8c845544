"""
Recognition Orchestrator - per-page controller.

Flow:
    site rule (if both selectors resolve) or scan + pair
    -> rasterize the best pair's image
    -> recognize with the active provider
    -> write the answer into the paired input

One recognition at a time: a trigger while another is running is rejected
with a Busy failure, not queued.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .config import Config, config as default_config
from .detection import (
    CandidateImage,
    CandidateInput,
    CandidateScanner,
    ImageKind,
    Pairing,
    image_kind_of,
    pair,
    pair_exclusive,
)
from .dom.page import PageContext
from .dom.selectors import unique_selector
from .dom.snapshot import PageSnapshot, corner_distance
from .errors import CaptchaError, ErrorKind, format_user_friendly_error
from .providers import ProviderConfig, RecognitionResult, recognize
from .run_logger import RunLogger
from .selection import ManualSelector, SelectionMode
from .storage import JsonStore, SiteRule, now_ms

logger = logging.getLogger(__name__)

Recognizer = Callable[[str, ProviderConfig], Awaitable[RecognitionResult]]
Notifier = Callable[[str, Optional[Dict[str, str]]], None]

SOURCE_RULE = "rule"
SOURCE_HEURISTIC = "heuristic"


def log_notifier(message: str, error: Optional[Dict[str, str]] = None) -> None:
    """Default notifier: user-facing messages go to the log."""
    if error:
        logger.warning(f"{message} ({error['kind']}: {error['suggestion']})")
    else:
        logger.info(message)


@dataclass
class DetectionResult:
    pairs: List[Pairing] = field(default_factory=list)
    images: List[CandidateImage] = field(default_factory=list)
    inputs: List[CandidateInput] = field(default_factory=list)
    source: str = SOURCE_HEURISTIC
    generation: int = 0

    @property
    def found(self) -> bool:
        return bool(self.pairs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "count": len(self.pairs),
            "source": self.source,
            "images": len(self.images),
            "inputs": len(self.inputs),
            "pairs": [p.to_dict() for p in self.pairs],
        }


class RecognitionOrchestrator:
    """
    Detect, select, recognize and fill on one page.

    Args:
        page: PageContext (PlaywrightPage or SnapshotPage)
        recognizer: async (image_data_uri, provider_config) -> RecognitionResult
        store: JsonStore-like collaborator for rules, settings and provider config
        config: Config (defaults to the module-level config)
        notifier: callable(message, error_payload_or_None)
        run_logger: optional RunLogger
        auto_fill: overrides the stored auto-fill setting when not None
    """

    def __init__(
        self,
        page: PageContext,
        recognizer: Optional[Recognizer] = None,
        store: Optional[JsonStore] = None,
        config: Optional[Config] = None,
        notifier: Optional[Notifier] = None,
        run_logger: Optional[RunLogger] = None,
        scanner: Optional[CandidateScanner] = None,
        auto_fill: Optional[bool] = None,
    ):
        self.page = page
        self.recognizer = recognizer or recognize
        self.store = store if store is not None else JsonStore()
        self.config = config or default_config
        self.notifier = notifier or log_notifier
        self.run_logger = run_logger
        self.scanner = scanner or CandidateScanner()
        self.auto_fill = auto_fill

        self.result: Optional[DetectionResult] = None
        self.rule: Optional[SiteRule] = None
        self.selector: Optional[ManualSelector] = None
        self._lock = asyncio.Lock()

    # --- Notifications ---

    def _notify(self, message: str, kind: Optional[ErrorKind] = None) -> None:
        error = format_user_friendly_error(kind, message) if kind else None
        if not self.store.get_general_settings().show_notifications:
            logger.debug(f"Notification suppressed: {message}")
            return
        self.notifier(message, error)

    def _fail(self, kind: ErrorKind, message: str, provider: str = "") -> RecognitionResult:
        self._notify(f"Recognition failed: {message}", kind)
        if self.run_logger:
            self.run_logger.log_error(f"{kind.value}: {message}")
        return RecognitionResult.failure(kind, message, provider=provider)

    # --- Detection ---

    async def _resolve(self, selector: str, snapshot: PageSnapshot):
        try:
            return await self.page.resolve(selector, snapshot)
        except ValueError as e:
            logger.warning(f"Stored selector {selector!r} cannot be resolved: {e}")
            return None

    async def _detect_by_rule(self, snapshot: PageSnapshot) -> Optional[DetectionResult]:
        rule = self.rule
        if rule is None or not rule.is_complete:
            return None
        image_el = await self._resolve(rule.image_selector, snapshot)
        input_el = await self._resolve(rule.input_selector, snapshot)
        if image_el is None or input_el is None:
            logger.info(f"Site rule for {rule.origin} did not resolve, falling back to heuristics")
            return None

        gen = snapshot.generation
        image = CandidateImage(
            element=image_el,
            kind=image_kind_of(image_el) or ImageKind.RASTER_IMAGE,
            identifying_text=rule.image_selector,
            width=image_el.rect.width,
            height=image_el.rect.height,
            reason=SOURCE_RULE,
            generation=gen,
        )
        inp = CandidateInput(
            element=input_el,
            identifying_text=rule.input_selector,
            label_text="",
            reason=SOURCE_RULE,
            generation=gen,
        )
        pairing = Pairing(image, inp, corner_distance(image_el.rect, input_el.rect), rank=0, generation=gen)
        return DetectionResult([pairing], [image], [inp], SOURCE_RULE, gen)

    async def detect(self) -> DetectionResult:
        """
        Find challenge pairs on the current page.

        A complete site rule whose selectors both resolve wins; otherwise the
        page is scanned and paired heuristically.
        """
        return await self._detect_on(await self.page.snapshot())

    async def _detect_on(self, snapshot: PageSnapshot) -> DetectionResult:
        self.rule = self.store.get_site_rule(self.page.origin)

        result = await self._detect_by_rule(snapshot)
        if result is None:
            scan = self.scanner.scan(snapshot.root, generation=snapshot.generation)
            if scan.empty:
                logger.debug(f"Generation {snapshot.generation} has no candidate images or inputs")
            pair_fn = pair_exclusive if self.config.exclusive_pairing else pair
            result = DetectionResult(
                pairs=pair_fn(scan.images, scan.inputs),
                images=scan.images,
                inputs=scan.inputs,
                source=SOURCE_HEURISTIC,
                generation=snapshot.generation,
            )

        self.result = result
        if result.found:
            logger.info(f"Detected {len(result.pairs)} captcha pair(s) on {self.page.origin} via {result.source}")
        else:
            logger.info(f"No captcha detected on {self.page.origin}")

        if self.run_logger:
            self.run_logger.log_heading("Detection")
            self.run_logger.log_kv("Images", len(result.images))
            self.run_logger.log_kv("Inputs", len(result.inputs))
            self.run_logger.log_pairs(result.pairs, source=result.source)
        return result

    async def current_result(self) -> DetectionResult:
        """
        Detection result for the page as it is now.

        Pairs from an older snapshot are discarded and the page is detected
        again; their index paths may point at different elements.
        """
        snapshot = await self.page.snapshot()
        if self.result is not None and self.result.found and self.result.generation == snapshot.generation:
            return self.result
        if self.result is not None and self.result.generation != snapshot.generation:
            logger.debug(f"Page changed (generation {self.result.generation} -> {snapshot.generation}), detecting again")
        return await self._detect_on(snapshot)

    async def auto_run(self) -> Optional[RecognitionResult]:
        """Page-load behaviour: detect after the settle delay, recognize if enabled."""
        settings = self.store.get_general_settings()
        if not settings.auto_detect:
            return None
        await asyncio.sleep(self.config.detect_delay_ms / 1000.0)
        result = await self.detect()
        if settings.auto_recognize and result.found:
            return await self.recognize_and_fill()
        return None

    # --- Recognition ---

    async def recognize_and_fill(self) -> RecognitionResult:
        """
        Recognize the best pair's image and fill its input.

        Returns:
            RecognitionResult; a concurrent call gets an immediate Busy failure
        """
        if self._lock.locked():
            message = "A recognition is already in progress"
            self._notify(message, ErrorKind.BUSY)
            return RecognitionResult.failure(ErrorKind.BUSY, message)

        async with self._lock:
            started = time.time()
            result = await self._recognize_and_fill()
            if self.run_logger:
                self.run_logger.finalize(
                    success=result.success,
                    duration_ms=int((time.time() - started) * 1000),
                    error=None if result.success else result.message,
                )
            return result

    async def _recognize_and_fill(self) -> RecognitionResult:
        detection = await self.current_result()
        if not detection.found:
            return self._fail(ErrorKind.NO_CANDIDATE, "No captcha detected on this page")

        best = detection.pairs[0]
        self._notify("Recognizing captcha...")

        try:
            image = await self.page.rasterize(best.image.element)
        except CaptchaError as e:
            return self._fail(e.kind, str(e))

        provider_config = self.store.get_api_config()
        if self.run_logger:
            self.run_logger.log_heading("Recognition")
            self.run_logger.log_kv("Provider", provider_config.kind)

        result = await self.recognizer(image, provider_config)
        if self.run_logger:
            self.run_logger.log_recognition(result)
        if not result.success:
            kind = result.error_kind or ErrorKind.UNKNOWN
            self._notify(f"Recognition failed: {result.message}", kind)
            return result

        auto_fill = self.auto_fill
        if auto_fill is None:
            auto_fill = self.store.get_general_settings().auto_fill
        if auto_fill:
            try:
                await self.page.fill(best.input.element, result.text)
            except CaptchaError as e:
                return self._fail(e.kind, str(e), provider=result.provider)
        self._notify(f"Recognized: {result.text}")
        if self.run_logger:
            self.run_logger.log_success(f"Filled {unique_selector(best.input.element)}")
        return result

    async def handle_captcha_result(self, result: Union[RecognitionResult, Dict[str, Any]]) -> bool:
        """Fill the best pair with a result produced elsewhere (e.g. the background role)."""
        if isinstance(result, dict):
            result = RecognitionResult.from_dict(result)
        detection = await self.current_result()

        if not result.success:
            self._notify(f"Recognition failed: {result.message}", result.error_kind or ErrorKind.UNKNOWN)
            return False
        if not detection.found:
            return False
        await self.page.fill(detection.pairs[0].input.element, result.text)
        self._notify(f"Recognized: {result.text}")
        return True

    # --- Manual selection and rules ---

    async def start_manual_selection(
        self,
        mode: Union[str, SelectionMode],
        callback: Optional[Callable[[Optional[dict]], Any]] = None,
    ) -> "asyncio.Future":
        """
        Arm the selection overlay. Starting again cancels an active selection.

        Returns:
            Future resolving to the selection dict (after the rule is saved)
            or None on cancel
        """
        mode = SelectionMode(mode)
        snapshot = await self.page.snapshot()
        if self.selector is None:
            self.selector = ManualSelector(self.page.overlay_driver(snapshot))
        else:
            self.selector.driver.snapshot = snapshot
        pending = await self.selector.start(mode)
        return asyncio.ensure_future(self._finish_selection(mode, pending, callback))

    async def _finish_selection(self, mode: SelectionMode, pending, callback) -> Optional[dict]:
        selection = await pending
        if selection is not None:
            await self.save_selection_as_rule(mode, selection["selector"])
            label = "captcha image" if mode == SelectionMode.IMAGE else "input box"
            self._notify(f"Saved {label} selector {selection['selector']}")
        if callback is not None:
            callback(selection)
        return selection

    async def save_selection_as_rule(self, mode: Union[str, SelectionMode], selector: str) -> SiteRule:
        """Merge one selector into the origin's rule, save it and detect again."""
        mode = SelectionMode(mode)
        origin = self.page.origin
        rule = self.store.get_site_rule(origin) or SiteRule(origin=origin)
        if mode == SelectionMode.IMAGE:
            rule.image_selector = selector
        else:
            rule.input_selector = selector
        rule.url = self.page.url
        rule.created_at = rule.created_at or now_ms()
        self.rule = self.store.save_site_rule(origin, rule)
        await self.detect()
        return self.rule

    async def set_image_from_source(self, src_url: str) -> Optional[SiteRule]:
        """Use the first <img> whose src attribute equals ``src_url`` as the rule's image."""
        snapshot = await self.page.snapshot()
        for el in snapshot.iter_elements():
            if el.tag == "img" and el.get("src") == src_url:
                return await self.save_selection_as_rule(SelectionMode.IMAGE, unique_selector(el))
        logger.info(f"No <img> with src {src_url!r} on {self.page.origin}")
        return None

    def get_status(self) -> Dict[str, Any]:
        return {
            "found": bool(self.result and self.result.found),
            "pairCount": len(self.result.pairs) if self.result else 0,
            "hasRule": self.rule is not None,
            "hostname": self.page.origin,
        }
