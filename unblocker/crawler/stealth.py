"""
Browser stealth and identity spoofing for Unblocker.

Makes the automated Chromium look like a common consumer device:
- playwright-stealth patches for the usual automation tells
- Identity profile init script (platform, languages, Intl, WebGL, webdriver)
- User agent and client-hint metadata via CDP
- Launch arguments that drop the AutomationControlled blink feature

Init scripts are registered on the browsing context so they run before any
page script on every document load in that context.
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from playwright_stealth import Stealth

from unblocker.utils.config import IdentityConfig, get_settings
from unblocker.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

logger = get_logger(__name__)


# WebGL debug-renderer-info constants
UNMASKED_VENDOR_WEBGL = 0x9245
UNMASKED_RENDERER_WEBGL = 0x9246


@dataclass(frozen=True)
class IdentityProfile:
    """Fingerprint presented to visited pages.

    Attributes:
        user_agent: User-Agent header and navigator.userAgent.
        brands: Client-hint brand/version pairs.
        mobile: Client-hint mobile flag.
        ua_platform: Client-hint platform name (e.g. "Windows").
        architecture: Client-hint CPU architecture.
        model: Client-hint device model.
        platform_version: Client-hint platform version.
        bitness: Client-hint bitness.
        wow64: Client-hint WoW64 flag.
        platform: navigator.platform value (e.g. "Win32").
        gpu_vendor: Unmasked WebGL vendor.
        gpu_renderer: Unmasked WebGL renderer.
        viewport_width: Viewport width in pixels.
        viewport_height: Viewport height in pixels.
        languages: Preferred languages, most preferred first.
        timezone: IANA timezone id.
    """

    user_agent: str
    brands: tuple[tuple[str, str], ...]
    mobile: bool
    ua_platform: str
    architecture: str
    model: str
    platform_version: str
    bitness: str
    wow64: bool
    platform: str
    gpu_vendor: str
    gpu_renderer: str
    viewport_width: int
    viewport_height: int
    languages: tuple[str, ...]
    timezone: str

    @property
    def locale(self) -> str:
        """Primary locale (first language)."""
        return self.languages[0]

    @property
    def accept_language(self) -> str:
        """Accept-Language header value for the language list."""
        return ",".join(self.languages)

    @classmethod
    def from_config(cls, config: IdentityConfig | None = None) -> "IdentityProfile":
        """Build a profile from settings (defaults to the loaded settings)."""
        if config is None:
            config = get_settings().identity
        languages = tuple(part.strip() for part in config.locale.split(",") if part.strip())
        return cls(
            user_agent=config.user_agent,
            brands=tuple((b.brand, b.version) for b in config.brands),
            mobile=config.mobile,
            ua_platform=config.ua_platform,
            architecture=config.architecture,
            model=config.model,
            platform_version=config.platform_version,
            bitness=config.bitness,
            wow64=config.wow64,
            platform=config.platform,
            gpu_vendor=config.gpu_vendor,
            gpu_renderer=config.gpu_renderer,
            viewport_width=config.viewport_width,
            viewport_height=config.viewport_height,
            languages=languages or ("en-US",),
            timezone=config.timezone,
        )

    def context_options(self) -> dict[str, Any]:
        """Keyword arguments for Browser.new_context()."""
        return {
            "user_agent": self.user_agent,
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "locale": self.locale,
            "timezone_id": self.timezone,
            "extra_http_headers": {"Accept-Language": self.accept_language},
        }

    def user_agent_metadata(self) -> dict[str, Any]:
        """Client-hint metadata for CDP Network.setUserAgentOverride."""
        return {
            "brands": [{"brand": brand, "version": version} for brand, version in self.brands],
            "mobile": self.mobile,
            "platform": self.ua_platform,
            "platformVersion": self.platform_version,
            "architecture": self.architecture,
            "model": self.model,
            "bitness": self.bitness,
            "wow64": self.wow64,
        }


_IDENTITY_JS_TEMPLATE = """
(() => {
    const profile = __PROFILE__;

    const define = (target, prop, getter) => {
        try {
            Object.defineProperty(target, prop, { get: getter, configurable: true });
        } catch (e) {}
    };

    define(Navigator.prototype, 'platform', () => profile.platform);
    define(Navigator.prototype, 'webdriver', () => false);
    define(Navigator.prototype, 'language', () => profile.languages[0]);
    define(Navigator.prototype, 'languages', () => profile.languages.slice());

    // Locale-aware date/time formatting reports the profile, not the host
    const resolvedOptions = Intl.DateTimeFormat.prototype.resolvedOptions;
    Intl.DateTimeFormat.prototype.resolvedOptions = function() {
        const options = resolvedOptions.call(this);
        options.locale = profile.languages[0];
        options.timeZone = profile.timezone;
        options.calendar = 'gregory';
        options.numberingSystem = 'latn';
        return options;
    };

    // GPU fingerprint
    const patchWebGL = (proto) => {
        if (!proto) return;
        const getParameter = proto.getParameter;
        proto.getParameter = function(parameter) {
            if (parameter === __UNMASKED_VENDOR__) return profile.gpuVendor;
            if (parameter === __UNMASKED_RENDERER__) return profile.gpuRenderer;
            return getParameter.call(this, parameter);
        };
    };
    patchWebGL(window.WebGLRenderingContext && WebGLRenderingContext.prototype);
    patchWebGL(window.WebGL2RenderingContext && WebGL2RenderingContext.prototype);
})();
"""


def build_identity_script(profile: IdentityProfile) -> str:
    """Render the page-load init script for a profile.

    Args:
        profile: Identity profile to present.

    Returns:
        JavaScript source suitable for add_init_script.
    """
    payload = json.dumps(
        {
            "platform": profile.platform,
            "languages": list(profile.languages),
            "timezone": profile.timezone,
            "gpuVendor": profile.gpu_vendor,
            "gpuRenderer": profile.gpu_renderer,
        }
    )
    return (
        _IDENTITY_JS_TEMPLATE.replace("__PROFILE__", payload)
        .replace("__UNMASKED_VENDOR__", str(UNMASKED_VENDOR_WEBGL))
        .replace("__UNMASKED_RENDERER__", str(UNMASKED_RENDERER_WEBGL))
    )


_stealth = Stealth()


async def apply_identity_to_context(context: "BrowserContext", profile: IdentityProfile) -> None:
    """Install stealth patches and the identity script on a context.

    The identity script is registered after the stealth patches so its
    values win where both touch the same property.

    Args:
        context: Playwright browser context.
        profile: Identity profile to present.
    """
    await _stealth.apply_stealth_async(context)
    await context.add_init_script(build_identity_script(profile))
    logger.debug("Identity applied to context", platform=profile.platform)


async def apply_user_agent_override(
    context: "BrowserContext", page: "Page", profile: IdentityProfile
) -> None:
    """Set the user agent and client-hint brand data on a page via CDP.

    Args:
        context: Context that owns the page.
        page: Playwright page.
        profile: Identity profile to present.
    """
    session = await context.new_cdp_session(page)
    await session.send(
        "Network.setUserAgentOverride",
        {
            "userAgent": profile.user_agent,
            "acceptLanguage": profile.accept_language,
            "platform": profile.platform,
            "userAgentMetadata": profile.user_agent_metadata(),
        },
    )


def get_stealth_args() -> list[str]:
    """Get Chromium launch arguments for stealth.

    Returns:
        List of command-line arguments.
    """
    return [
        # Disable automation-controlled flag
        "--disable-blink-features=AutomationControlled",
        # Disable infobars (e.g., "Chrome is being controlled by automated software")
        "--disable-infobars",
        "--disable-extensions",
        "--disable-background-networking",
        "--disable-sync",
        "--disable-translate",
    ]
