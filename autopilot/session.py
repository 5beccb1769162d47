"""Browser session and LinkedIn login."""
from __future__ import annotations

from pathlib import Path
from typing import Callable

from autopilot.actuator import Actuator
from autopilot.config import Paths, Settings
from autopilot.diagnostics import capture
from autopilot.errors import LoginFailed, VerificationRequired
from autopilot.log import get_logger
from autopilot.resolver import Resolver, Target
from autopilot.surfaces.base import Surface
from autopilot.timing import Clock, SystemClock

log = get_logger(__name__)

LOGIN_URL = "https://www.linkedin.com/login"
FEED_URL = "https://www.linkedin.com/feed/"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
]
HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"


def is_home(url: str) -> bool:
    return "/feed" in url or "/mynetwork" in url


class BrowserSession:
    """A persistent Chromium profile driven through Playwright's sync API.

    The profile directory keeps cookies between runs, so most runs skip the
    login form entirely.
    """

    def __init__(self, settings: Settings, paths: Paths, *, headless: bool | None = None) -> None:
        self.settings = settings
        self.paths = paths
        self.headless = settings.headless if headless is None else headless
        self._pw = None
        self.context = None
        self.page = None
        self.surface: Surface | None = None

    def __enter__(self) -> BrowserSession:
        from playwright.sync_api import sync_playwright

        from autopilot.surfaces.playwright import PlaywrightSurface

        self.paths.user_data.mkdir(parents=True, exist_ok=True)
        log.info("Launching browser (headless=%s)", self.headless)
        self._pw = sync_playwright().start()
        try:
            self.context = self._pw.chromium.launch_persistent_context(
                str(self.paths.user_data),
                headless=self.headless,
                args=LAUNCH_ARGS,
                viewport={"width": 1920, "height": 1080},
                user_agent=USER_AGENT,
            )
            self.context.add_init_script(HIDE_WEBDRIVER)
            self.context.set_default_timeout(90_000)
            self.context.set_default_navigation_timeout(90_000)
            self.page = self.context.pages[0] if self.context.pages else self.context.new_page()
        except BaseException:
            # a locked profile or missing browser still has a driver to stop
            self.__exit__(None, None, None)
            raise
        self.surface = PlaywrightSurface(self.page.main_frame)
        return self

    def __exit__(self, *exc) -> None:
        context, pw = self.context, self._pw
        self.context = self._pw = None
        try:
            if context is not None:
                context.close()
        finally:
            if pw is not None:
                pw.stop()
            log.info("Browser closed")


class LinkedInLogin:
    def __init__(
        self,
        surface: Surface,
        resolver: Resolver,
        targets: dict[str, Target],
        actuator: Actuator,
        *,
        email: str,
        password: str,
        verification_code: str = "",
        screenshots: Path | None = None,
    ) -> None:
        self.surface = surface
        self.resolver = resolver
        self.targets = targets
        self.actuator = actuator
        self.email = email
        self.password = password
        self.verification_code = verification_code
        self.screenshots = screenshots

    def login(self) -> bool:
        """Reach the feed or raise ``AuthenticationError``."""
        delay = self.actuator.delay
        log.info("Logging into LinkedIn...")
        self.surface.goto(LOGIN_URL, timeout=90)
        delay.pause(2, 4)

        if "/feed" in self.surface.url:
            log.info("Already logged in (session detected)")
            return True
        if not self.email or not self.password:
            raise LoginFailed("LINKEDIN_EMAIL / LINKEDIN_PASSWORD are not set")

        try:
            self._type("username", self.email)
            delay.pause(1, 2)
            self._type("password", self.password)
            delay.pause(1, 2)
            self._click("login_submit")
            log.info("Waiting for login to complete...")
            delay.pause(5, 8)
            self._wait_for_feed()

            url = self.surface.url
            if "/checkpoint/challenge" in url:
                self._verify()
            elif not is_home(url):
                raise LoginFailed(f"Login may have failed - unexpected URL: {url}")
        except (LoginFailed, VerificationRequired):
            self._capture("login-error")
            if is_home(self.surface.url):
                log.info("Despite the error we are on the feed, continuing")
                return True
            raise

        log.info("Successfully logged in")
        self._capture("login-success")
        return True

    def _verify(self) -> None:
        if not self.verification_code:
            raise VerificationRequired("Verification required but no VERIFICATION_CODE is set")
        log.info("Verification challenge, entering code")
        self.actuator.delay.pause(2, 3)
        self._type("verification_input", self.verification_code)
        self.actuator.delay.pause(1, 2)
        self._click("verification_submit")
        self.actuator.delay.pause(5, 8)
        self._wait_for_feed()
        url = self.surface.url
        if not is_home(url):
            raise LoginFailed(f"Login failed after verification - URL: {url}")

    def _wait_for_feed(self) -> None:
        if not self.resolver.resolve(self.surface, self.targets["feed_marker"], timeout=60):
            log.warning("Feed not detected, checking URL")

    def _type(self, target: str, text: str) -> None:
        found = self.resolver.resolve(self.surface, self.targets[target], timeout=10)
        if not found:
            raise LoginFailed(f"Login form field {target!r} not found")
        self.actuator.fill(self.surface, found.element, text)

    def _click(self, target: str) -> None:
        found = self.resolver.resolve(self.surface, self.targets[target], timeout=10)
        if not found or not self.actuator.click(found.element, pause=(0.2, 0.5)):
            raise LoginFailed(f"Could not click {target!r}")

    def _capture(self, name: str) -> None:
        if self.screenshots is not None:
            capture(self.surface, self.screenshots, name)


def interactive_login(
    settings: Settings,
    paths: Paths,
    *,
    clock: Clock | None = None,
    timeout: float = 300.0,
    session_factory: Callable[..., BrowserSession] = BrowserSession,
) -> bool:
    """Open a headed browser and wait for the operator to log in by hand.

    Completing any verification here stores the session in the profile, so
    scheduled runs can skip the challenge afterwards.
    """
    clock = clock or SystemClock()
    with session_factory(settings, paths, headless=False) as session:
        surface = session.surface
        surface.goto(LOGIN_URL, timeout=30)
        log.info("Please log in in the browser window (waiting up to %.0f minutes)", timeout / 60)
        start = clock.monotonic()
        while clock.monotonic() - start < timeout:
            if is_home(surface.url):
                log.info("Login detected; session saved to %s", paths.user_data)
                return True
            clock.sleep(2)
    log.warning("Timed out waiting for manual login")
    return False
