"""Playwright-based Amenitiz back-office extractor.

Logs into the Amenitiz admin with a real Chromium page, answers the emailed
verification step when the coordinator hands over a code, then reads the
booking manager's arrivals cards. Card parsing is done in Python from the raw
texts the page returns so it can be tested without a browser.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import AmenitizConfig
from ..core.exceptions import ExtractionFailure
from ..core.types import Guest

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
]

EMAIL_SELECTOR = 'input[type="email"], input[name="email"]'
PASSWORD_SELECTOR = 'input[type="password"]'
SUBMIT_SELECTOR = 'button[type="submit"], input[type="submit"]'
DASHBOARD_SELECTOR = "nav, .dashboard, .admin"
LOGIN_PATH_MARKERS = ("/login", "/signin")

CHALLENGE_SELECTORS = [
    'input[name="code"]',
    'input[name="otp"]',
    'input[name="token"]',
    'input[placeholder*="code"]',
    'input[type="text"][maxlength="6"]',
]
CHALLENGE_KEYWORDS = [
    "code de vérification",
    "two-factor",
    "2fa",
    "verification code",
]
CODE_INPUT_SELECTOR = ", ".join(CHALLENGE_SELECTORS[:4])
CONFIRM_BUTTON_KEYWORDS = ["valider", "verify", "confirmer", "submit"]

CARD_SELECTOR = ".check-in-out-card"
NAVIGATION_TIMEOUT_MS = 15000
SETTLE_SECONDS = 2.0

# Returns raw card texts; interpretation happens in parse_card()
EXTRACT_CARDS_JS = """(selector) => {
    return Array.from(document.querySelectorAll(selector)).map(card => {
        const text = (sel) => {
            const el = card.querySelector(sel);
            return el ? el.textContent.trim() : '';
        };
        const infos = Array.from(card.querySelectorAll('.card-info p')).map(p => ({
            text: p.textContent,
            strong: p.querySelector('strong') ? p.querySelector('strong').textContent.trim() : ''
        }));
        return {
            name: text('.check-in-out-card-title p'),
            room: text('.check-in-out-card-room p'),
            dates: text('.check-in-out-card-date'),
            persons: text('.card-info.u-flex.pb2 .size0'),
            infos: infos
        };
    });
}"""


def matches_challenge_text(page_text: str, keywords: list[str] = CHALLENGE_KEYWORDS) -> str | None:
    """First challenge keyword found in the page text (case-insensitive)"""
    lowered = (page_text or "").lower()
    for keyword in keywords:
        if keyword.lower() in lowered:
            return keyword
    return None


def parse_room_type(text: str) -> str:
    """'Chambre  (4) Chambre Marocaine' -> 'Chambre Marocaine'"""
    text = (text or "").strip()
    match = re.search(r"\(\d+\)\s*(.+)$", text)
    return match.group(1).strip() if match else text


def parse_persons(text: str) -> str:
    """'2  x' -> '2'"""
    match = re.search(r"(\d+)\s*x", text or "")
    return match.group(1) if match else ""


def parse_card(card: dict[str, Any]) -> Guest | None:
    """Build a Guest from raw card texts; cards without a name are skipped"""
    name = (card.get("name") or "").strip()
    if not name:
        return None

    room_type = parse_room_type(card.get("room") or "")
    amount = ""
    for info in card.get("infos") or []:
        text = info.get("text") or ""
        if not room_type and "Type de chambre:" in text:
            room_type = info.get("strong") or ""
        if "Montant dû:" in text:
            amount = info.get("strong") or ""

    return Guest(
        name=name,
        room_type=room_type,
        persons=parse_persons(card.get("persons") or ""),
        amount_due=amount,
        dates=(card.get("dates") or "").strip(),
    )


class AmenitizExtractor:
    """Extractor implementation over one Playwright browser context"""

    def __init__(self, config: AmenitizConfig, screenshot_dir: str | Path = "screenshots"):
        self.config = config
        self.screenshot_dir = Path(screenshot_dir)
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None or self._page.is_closed():
            raise RuntimeError("Extractor is not open")
        return self._page

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def open(self) -> None:
        if self._page and not self._page.is_closed():
            return

        if not self._playwright:
            self._playwright = await async_playwright().start()

        if not self._browser:
            launch_kwargs: dict[str, Any] = {
                "headless": self.config.headless,
                "args": LAUNCH_ARGS,
            }
            if self.config.executable_path:
                launch_kwargs["executable_path"] = self.config.executable_path
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)

        if not self._context:
            self._context = await self._browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1920, "height": 1080},
            )

        self._page = await self._context.new_page()

    async def close(self) -> None:
        """Close browser resources"""
        try:
            if self._page and not self._page.is_closed():
                await self._page.close()
        except Exception as e:
            logger.debug(f"Page close failed: {e}")
        finally:
            self._page = None
        try:
            if self._context:
                await self._context.close()
        except Exception as e:
            logger.debug(f"Context close failed: {e}")
        finally:
            self._context = None
        try:
            if self._browser:
                await self._browser.close()
        except Exception as e:
            logger.debug(f"Browser close failed: {e}")
        finally:
            self._browser = None
        try:
            if self._playwright:
                await self._playwright.stop()
        except Exception as e:
            logger.debug(f"Playwright stop failed: {e}")
        finally:
            self._playwright = None

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #
    async def goto_login(self) -> None:
        await self.page.goto(self.config.login_url, wait_until="networkidle")

    async def reload(self) -> None:
        await self.page.reload(wait_until="networkidle")

    async def apply_cookies(self, cookies: list[dict]) -> None:
        if self._context is None:
            raise RuntimeError("Extractor is not open")
        await self._context.add_cookies(cookies)

    async def export_cookies(self) -> list[dict]:
        if self._context is None:
            raise RuntimeError("Extractor is not open")
        return list(await self._context.cookies())

    async def is_logged_in(self) -> bool:
        url = self.page.url
        if any(marker in url for marker in LOGIN_PATH_MARKERS):
            return False
        return await self.page.query_selector(DASHBOARD_SELECTOR) is not None

    # ------------------------------------------------------------------ #
    # Login form and second factor
    # ------------------------------------------------------------------ #
    async def submit_credentials(self, email: str, password: str) -> None:
        page = self.page
        await page.wait_for_selector(EMAIL_SELECTOR, timeout=10000)

        email_input = await page.query_selector(EMAIL_SELECTOR)
        password_input = await page.query_selector(PASSWORD_SELECTOR)
        if email_input:
            await email_input.type(email, delay=100)
        if password_input:
            await password_input.type(password, delay=100)

        await self.screenshot("1-login-form.png")
        await self._click_and_wait(page.locator(SUBMIT_SELECTOR).first)
        await self.screenshot("2-after-login.png")

    async def challenge_detected(self) -> bool:
        page = self.page
        for selector in CHALLENGE_SELECTORS:
            if await page.query_selector(selector):
                logger.info(f"2FA field detected: {selector}")
                return True

        page_text = await page.evaluate("() => document.body ? document.body.innerText : ''")
        keyword = matches_challenge_text(page_text)
        if keyword:
            logger.info(f'2FA mention detected: "{keyword}"')
            return True
        return False

    async def submit_code(self, code: str) -> None:
        page = self.page
        code_input = await page.query_selector(CODE_INPUT_SELECTOR)
        if not code_input:
            raise RuntimeError("Unable to find 2FA code input field")

        await code_input.type(code, delay=100)
        await self.screenshot("2b-2fa-code.png")

        submit_button = await page.query_selector(SUBMIT_SELECTOR)
        if submit_button is None:
            for keyword in CONFIRM_BUTTON_KEYWORDS:
                submit_button = await page.query_selector(f'button:has-text("{keyword}")')
                if submit_button:
                    break

        if submit_button:
            await self._click_and_wait(submit_button)
        else:
            logger.info("Confirm button not found, pressing Enter")
            await self._click_and_wait(code_input, press="Enter")

    async def _click_and_wait(self, target, press: str | None = None) -> None:
        """Click (or press a key on) target and wait for the resulting navigation"""
        try:
            async with self.page.expect_navigation(
                wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS
            ):
                if press:
                    await target.press(press)
                else:
                    await target.click()
        except PlaywrightTimeoutError:
            # Single-page forms may not navigate at all
            logger.debug("No navigation after submit")
        await asyncio.sleep(SETTLE_SECONDS)

    # ------------------------------------------------------------------ #
    # Data
    # ------------------------------------------------------------------ #
    async def fetch_records(self) -> list[Guest]:
        page = self.page
        logger.info("Navigating to arrivals page...")
        await page.goto(self.config.arrivals_url, wait_until="networkidle", timeout=30000)
        await asyncio.sleep(3)

        try:
            await page.wait_for_selector(CARD_SELECTOR, timeout=10000)
        except PlaywrightTimeoutError:
            logger.info("No booking cards found")

        await asyncio.sleep(SETTLE_SECONDS)
        await self.screenshot("3-arrivals.png")

        raw_cards = await page.evaluate(EXTRACT_CARDS_JS, CARD_SELECTOR)
        if not isinstance(raw_cards, list):
            raise ExtractionFailure("unexpected arrivals page structure")

        guests = [g for g in (parse_card(card) for card in raw_cards) if g is not None]
        logger.info(f"{len(guests)} booking(s) found")
        return guests

    async def screenshot(self, name: str) -> None:
        if not self.config.screenshots or self._page is None or self._page.is_closed():
            return
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        await self._page.screenshot(path=str(self.screenshot_dir / name))
