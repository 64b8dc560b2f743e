"""LangGraph orchestration of a single application attempt.

The graph is strictly sequential::

    initialize -> navigate -> classify -> fill -> capture -> finalize

Every node before ``capture`` can fail. A failure records an
``ApplicationResult`` with ``success=False`` and jumps straight to
``capture``, so a screenshot is attempted on every path. The browser
context is opened around ``invoke`` and closed whatever happens.
"""

import logging
import time
from pathlib import Path
from typing import Dict, Literal, Optional

from langgraph.graph import END, StateGraph

from config.settings import SCREENSHOT_DIR
from src.adapters import build_adapters, classify
from src.adapters.base import PlatformAdapter
from src.agents.field_mapper import FieldMapper
from src.agents.state import (
    ApplicationResult,
    ApplyState,
    CvSnapshot,
    JobPosting,
    Platform,
)

logger = logging.getLogger(__name__)


def _failure(state: ApplyState, error: BaseException, step: str) -> Dict:
    message = str(error) or error.__class__.__name__
    logger.error("Application attempt failed during %s: %s", step, message)
    return {
        "result": ApplicationResult.failure(message, platform=state.get("platform")),
        "error_message": message,
    }


def route_after_step(state: ApplyState) -> Literal["continue", "capture"]:
    """Skip to capture as soon as any step has produced a failed result."""
    result = state.get("result")
    if result is not None and not result.success:
        return "capture"
    return "continue"


class ApplicationOrchestrator:
    """Single entry point for one automation attempt."""

    def __init__(
        self,
        field_mapper: Optional[FieldMapper] = None,
        adapters: Optional[Dict[Platform, PlatformAdapter]] = None,
        screenshot_dir: Path = SCREENSHOT_DIR,
    ) -> None:
        self.adapters = adapters or build_adapters(field_mapper)
        self.screenshot_dir = Path(screenshot_dir)
        self.graph = self._create_workflow()

    def apply(
        self,
        browser,
        *,
        cv: CvSnapshot,
        job: JobPosting,
        resume_path: str = "",
        application_id: str = "",
    ) -> ApplicationResult:
        """Run one attempt in a fresh browser context owned by ``browser``."""
        try:
            with browser.new_page() as page:
                final_state = self.graph.invoke(
                    {
                        "job_url": job.application_url,
                        "cv": cv,
                        "job": job,
                        "resume_path": resume_path,
                        "application_id": application_id,
                        "page": page,
                        "stage": "initializing",
                        "platform": None,
                        "result": None,
                        "screenshot_path": None,
                        "error_message": "",
                    }
                )
        except Exception as error:
            logger.error("Browser context failure for %s: %s", job.application_url, error, exc_info=True)
            return ApplicationResult.failure(str(error))

        return final_state["result"]

    # Graph nodes

    def initialize_node(self, state: ApplyState) -> Dict:
        if not state.get("job_url"):
            return _failure(state, ValueError("Job has no application URL"), "initializing")
        logger.info("Starting application attempt for %s", state["job_url"])
        return {"stage": "initializing"}

    def navigate_node(self, state: ApplyState) -> Dict:
        try:
            state["page"].navigate(state["job_url"])
        except Exception as error:
            return _failure(state, error, "navigation")
        return {"stage": "navigated"}

    def classify_node(self, state: ApplyState) -> Dict:
        page = state["page"]
        try:
            platform = classify(page.current_url(), page.read_html())
        except Exception as error:
            return _failure(state, error, "classification")
        logger.info("Detected platform: %s", platform.value)
        return {"stage": "classified", "platform": platform}

    def fill_node(self, state: ApplyState) -> Dict:
        platform = state.get("platform") or Platform.GENERIC
        adapter = self.adapters[platform]
        try:
            result = adapter.fill(state["page"], state["cv"], state.get("resume_path", ""), job=state.get("job"))
        except Exception as error:
            return {"stage": "filling", **_failure(state, error, "filling")}
        if result.platform is None:
            result = result.model_copy(update={"platform": platform})
        return {"stage": "filling", "result": result}

    def capture_node(self, state: ApplyState) -> Dict:
        name = f"application_{state.get('application_id') or 'attempt'}_{int(time.time() * 1000)}.png"
        path = self.screenshot_dir / name
        try:
            screenshot_path = state["page"].screenshot(str(path))
        except Exception as error:
            logger.warning("Screenshot capture failed: %s", error)
            screenshot_path = None
        return {"stage": "captured", "screenshot_path": screenshot_path}

    def finalize_node(self, state: ApplyState) -> Dict:
        result = state.get("result") or ApplicationResult.failure(
            state.get("error_message") or "Application attempt produced no result"
        )
        confirmation_url = result.confirmation_url
        if not confirmation_url:
            try:
                confirmation_url = state["page"].current_url()
            except Exception:
                confirmation_url = None
        result = result.model_copy(
            update={
                "screenshot_path": state.get("screenshot_path"),
                "platform": result.platform or state.get("platform"),
                "confirmation_url": confirmation_url,
            }
        )
        logger.info(
            "Attempt finished: success=%s platform=%s fields=%d",
            result.success,
            result.platform.value if result.platform else "unknown",
            result.fields_processed,
        )
        return {"stage": "done", "result": result}

    def _create_workflow(self):
        """Create and compile the attempt graph."""
        workflow = StateGraph(ApplyState)

        workflow.add_node("initialize", self.initialize_node)
        workflow.add_node("navigate", self.navigate_node)
        workflow.add_node("classify", self.classify_node)
        workflow.add_node("fill", self.fill_node)
        workflow.add_node("capture", self.capture_node)
        workflow.add_node("finalize", self.finalize_node)

        workflow.set_entry_point("initialize")

        workflow.add_conditional_edges(
            "initialize",
            route_after_step,
            {"continue": "navigate", "capture": "capture"},
        )
        workflow.add_conditional_edges(
            "navigate",
            route_after_step,
            {"continue": "classify", "capture": "capture"},
        )
        workflow.add_conditional_edges(
            "classify",
            route_after_step,
            {"continue": "fill", "capture": "capture"},
        )
        workflow.add_edge("fill", "capture")
        workflow.add_edge("capture", "finalize")
        workflow.add_edge("finalize", END)

        return workflow.compile()
