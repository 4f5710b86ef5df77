"""Page-level commands handed to the automation engine.

Navigation and screenshots go straight through Playwright. Natural-language
``act``/``extract``/``observe`` are delegated to browser-use agents attached
to the same CDP endpoint; none of that reasoning happens here. The engine
must never close Chrome: its lifetime belongs to the session coordinator.
"""
import asyncio
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from pydantic import BaseModel

from .errors import AutomationError

log = logging.getLogger(__name__)

OBSERVE_TASK = (
    "Do not click, type or navigate. Look at the page that is currently open "
    "and list the interactive elements matching this description: {query}. "
    "For each one give a short description and how to target it."
)
EXTRACT_TASK = (
    "Do not navigate away from the page that is currently open. "
    "Extract the following from it: {instruction}"
)
ACT_TASK = "On the page that is currently open, perform this action: {action}"


def take_screenshot(page: Any, screenshot_dir: str) -> str:
    """Save a viewport PNG and return its path."""
    os.makedirs(screenshot_dir, exist_ok=True)
    ts = time.strftime("%Y%m%d_%H%M%S") + f"_{int(time.time() * 1000) % 1000:03d}"
    path = os.path.join(screenshot_dir, f"screenshot_{ts}.png")
    page.screenshot(path=path, full_page=False)
    return path


class BrowserUseEngine:
    """Runs one browser-use agent per request against an existing Chrome."""

    def __init__(self, endpoint: str, model: str, *, max_steps: int = 15):
        self.endpoint = endpoint
        self.model = model
        self.max_steps = max_steps

    def _llm(self):
        from browser_use.llm import ChatAnthropic

        return ChatAnthropic(model=self.model, temperature=0.0)

    async def _run(self, task: str, max_steps: int, output_model: type[BaseModel] | None = None):
        from browser_use import Agent, BrowserSession

        browser_session = BrowserSession(cdp_url=self.endpoint, keep_alive=True)
        agent_kwargs: dict = dict(
            task=task,
            llm=self._llm(),
            browser_session=browser_session,
        )
        if output_model is not None:
            agent_kwargs["output_model_schema"] = output_model
        agent = Agent(**agent_kwargs)
        history = await agent.run(max_steps=max_steps)
        if not history.is_done():
            errors = [e for e in history.errors() if e]
            detail = errors[-1] if errors else f"no result after {max_steps} steps"
            raise AutomationError(detail)
        return history

    def _run_blocking(self, task: str, max_steps: int, output_model: type[BaseModel] | None = None):
        """Run an agent to completion on a worker thread with its own event loop.

        The sync Playwright driver keeps an event loop running on the calling
        thread, so ``asyncio.run`` cannot be used there.
        """
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser-use") as pool:
            return pool.submit(asyncio.run, self._run(task, max_steps, output_model)).result()

    def act(self, action: str) -> str:
        history = self._run_blocking(ACT_TASK.format(action=action), self.max_steps)
        return history.final_result() or ""

    def extract(self, instruction: str, output_model: type[BaseModel]) -> dict:
        history = self._run_blocking(EXTRACT_TASK.format(instruction=instruction), 5, output_model)
        structured = history.structured_output
        if structured is None:
            raise AutomationError("Extraction finished without data matching the schema")
        return structured.model_dump()

    def observe(self, query: str) -> str:
        history = self._run_blocking(OBSERVE_TASK.format(query=query), 5)
        return history.final_result() or ""


class PageActions:
    """What the CLI can ask of an acquired page."""

    def __init__(self, page: Any, engine: Any, screenshot_dir: str):
        self.page = page
        self.engine = engine
        self.screenshot_dir = screenshot_dir

    def screenshot(self) -> str:
        return take_screenshot(self.page, self.screenshot_dir)

    def navigate(self, url: str) -> str:
        log.info("Navigating to %s", url)
        self.page.goto(url)
        return f"Successfully navigated to {url}"

    def act(self, action: str) -> str:
        outcome = self.engine.act(action)
        message = f"Successfully performed action: {action}"
        return f"{message} ({outcome})" if outcome else message

    def extract(self, instruction: str, output_model: type[BaseModel]) -> dict:
        return self.engine.extract(instruction, output_model)

    def observe(self, query: str) -> str:
        return self.engine.observe(query)
