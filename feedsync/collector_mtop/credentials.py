"""Session credential acquisition.

A credential is either parsed from a raw ``Cookie`` header (for example one
copied from a logged-in browser) or captured by opening the marketplace in a
Playwright-driven Chromium and reading the context cookies.
"""
from __future__ import annotations

import logging
import random
from typing import Any, Iterable, List, Mapping, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from feedsync.antibot import UserAgentPool
from feedsync.errors import MissingCredentialError
from feedsync.models import CookieSpec, SessionCredential

TOKEN_COOKIE = "_m_h5_tk"
HOME_URL = "https://www.goofish.com"
COOKIE_DOMAIN = ".goofish.com"
_NEEDS_LOGIN_JS = "() => !!document.querySelector('.login-guide') || document.body.innerText.includes('立即登录')"
_LOGGED_IN_JS = "() => !document.querySelector('.login-guide') && !document.body.innerText.includes('立即登录')"
_HAS_TOKEN_JS = "() => document.cookie.includes('_m_h5_tk')"
LOGGER = logging.getLogger(__name__)


def mask_secret(value: str, visible: int = 4) -> str:
    """Hide all but the first ``visible`` characters of a secret."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)


def parse_token(raw_value: str) -> str:
    """``_m_h5_tk`` values look like ``<token>_<expiry>``; keep the token."""
    return raw_value.split("_", 1)[0] if raw_value else ""


def token_from_cookies(cookies: Iterable[CookieSpec]) -> str:
    for cookie in cookies:
        if cookie.name == TOKEN_COOKIE:
            return parse_token(cookie.value)
    return ""


def parse_cookie_header(header: str, domain: str = COOKIE_DOMAIN) -> List[CookieSpec]:
    """Split ``a=1; b=2`` into cookies, skipping malformed pairs."""
    cookies: List[CookieSpec] = []
    for chunk in (header or "").split(";"):
        name, sep, value = chunk.strip().partition("=")
        if not sep or not name.strip():
            continue
        cookies.append(CookieSpec(name=name.strip(), value=value.strip(), domain=domain))
    return cookies


def from_cookie_header(header: str) -> SessionCredential:
    """Build a credential from a raw header; requires ``_m_h5_tk``."""
    cookies = parse_cookie_header(header)
    token = token_from_cookies(cookies)
    if not token:
        raise MissingCredentialError("cookie header does not contain a _m_h5_tk token")
    LOGGER.info("Loaded %d cookie(s) from header, token=%s", len(cookies), mask_secret(token))
    return SessionCredential(token=token, cookies=tuple(cookies))


def from_browser_cookies(raw_cookies: Iterable[Mapping[str, Any]]) -> SessionCredential:
    """Convert Playwright ``context.cookies()`` output into a credential."""
    cookies = [
        CookieSpec(
            name=str(raw.get("name", "")),
            value=str(raw.get("value", "")),
            domain=str(raw.get("domain", "")),
            path=str(raw.get("path", "/")),
        )
        for raw in raw_cookies
        if raw.get("name")
    ]
    token = token_from_cookies(cookies)
    if not token:
        raise MissingCredentialError("browser session did not produce a _m_h5_tk cookie")
    return SessionCredential(token=token, cookies=tuple(cookies))


def acquire_with_browser(
    headless: bool = True,
    timeout_ms: int = 60_000,
    login_timeout_ms: int = 300_000,
    rng: Optional[random.Random] = None,
) -> SessionCredential:
    """Open the marketplace in Chromium and capture its session cookies.

    Parameters
    ----------
    headless : bool
        Run without a window; a login prompt then aborts the capture
    timeout_ms : int
        Navigation and token wait timeout
    login_timeout_ms : int
        How long a headed run waits for a manual login
    rng : random.Random, optional
        Source of randomness for the browser user agent

    Returns
    -------
    SessionCredential
        Token and every cookie of the browser context
    """
    user_agent = UserAgentPool().get_by_browser("chrome", rng or random.Random())
    with sync_playwright() as p:
        browser = p.chromium.launch(
            headless=headless,
            args=["--disable-blink-features=AutomationControlled", "--no-sandbox"],
        )
        try:
            context = browser.new_context(user_agent=user_agent, locale="zh-CN")
            page = context.new_page()
            page.set_default_timeout(timeout_ms)
            LOGGER.info("Opening %s (headless=%s)", HOME_URL, headless)
            page.goto(HOME_URL, wait_until="domcontentloaded")

            if page.evaluate(_NEEDS_LOGIN_JS):
                if headless:
                    raise MissingCredentialError("marketplace session is not logged in, rerun with --headed")
                LOGGER.info("Waiting for manual login in the browser window")
                try:
                    page.wait_for_function(_LOGGED_IN_JS, timeout=login_timeout_ms)
                except PlaywrightTimeoutError as exc:
                    raise MissingCredentialError("timed out waiting for login") from exc

            try:
                page.wait_for_function(_HAS_TOKEN_JS)
            except PlaywrightTimeoutError:
                LOGGER.warning("Token cookie did not appear within %dms", timeout_ms)

            credential = from_browser_cookies(context.cookies())
        except PlaywrightError as exc:
            raise MissingCredentialError(f"browser session capture failed: {exc}") from exc
        finally:
            browser.close()

    LOGGER.info("Captured %d cookie(s), token=%s", len(credential.cookies), mask_secret(credential.token))
    return credential
