# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Unit tests for the icon resolver module."""

import json
import threading
from io import BytesIO
from typing import Any, Callable

import pytest
from PIL import Image as PILImage

from favicon_resolver.exceptions import (
    ExhaustionError,
    InputError,
    UpstreamDependencyError,
)
from favicon_resolver.icons.markup_scanner import scan_markup
from favicon_resolver.icons.models import ResolvedIcon
from favicon_resolver.icons.normalizer import ImageNormalizer
from favicon_resolver.icons.resolver import IconResolver
from favicon_resolver.icons.scoring import CandidateScorer

PAGE_URL = "https://example.com/"
HTML_HEADERS = {"Content-Type": "text/html; charset=utf-8"}
PNG_HEADERS = {"Content-Type": "image/png"}
LOOKUP_SERVICE = "https://icons.example.net/ip3/{domain}.ico"
LOOKUP_URL = "https://icons.example.net/ip3/example.com.ico"

ResolverFactory = Callable[..., IconResolver]


def html_page(head: str) -> tuple[int, dict[str, str], bytes]:
    """Return a route serving an HTML page with the given head contents."""
    return 200, HTML_HEADERS, f"<html><head>{head}</head><body>hi</body></html>".encode()


@pytest.fixture(name="create_resolver")
def fixture_create_resolver(metrics_client_mock: Any) -> ResolverFactory:
    """Return a factory building a resolver on top of a MockWeb instance."""

    def _create(web, **kwargs: Any) -> IconResolver:
        options: dict[str, Any] = {
            "scorer": CandidateScorer(),
            "normalizer": ImageNormalizer(target_size=64, unsupported_type_policy="passthrough"),
            "metrics_client": metrics_client_mock,
            "max_candidates": 10,
            "min_icon_bytes": 70,
            "max_icon_bytes": 5 * 1024 * 1024,
            "placeholder_enabled": False,
            "retry_plain_http": True,
            "on_decode_failure": "next",
            "lookup_services": [],
        }
        options.update(kwargs)
        return IconResolver(downloader=web.downloader, **options)

    return _create


def png_size(content: bytes) -> tuple[int, int]:
    """Return the dimensions of encoded PNG bytes."""
    with PILImage.open(BytesIO(content)) as image:
        assert image.format == "PNG"
        return image.size


@pytest.mark.asyncio
async def test_resolve_prefers_apple_touch_icon(
    mock_web, create_resolver: ResolverFactory, make_png, metrics_client_mock
) -> None:
    """Test that a 180x180 apple touch icon is fetched before a 32x32 icon."""
    web = mock_web(
        {
            PAGE_URL: html_page(
                '<link rel="icon" href="/favicon-32.png" sizes="32x32">'
                '<link rel="apple-touch-icon" href="/apple.png" sizes="180x180">'
            ),
            "https://example.com/apple.png": (200, PNG_HEADERS, make_png(180, 180)),
            "https://example.com/favicon-32.png": (200, PNG_HEADERS, make_png(32, 32)),
        }
    )

    icon = await create_resolver(web).resolve("example.com")

    assert icon.source_url == "https://example.com/apple.png"
    assert icon.content_type == "image/png"
    assert png_size(icon.content) == (64, 64)
    assert web.was_requested("https://example.com/apple.png")
    assert not web.was_requested("https://example.com/favicon-32.png")
    metrics_client_mock.increment.assert_any_call("resolver.resolved", tags={"stage": "page"})
    metrics_client_mock.timeit.assert_called_once_with("resolver.duration")


@pytest.mark.asyncio
async def test_resolve_manifest_svg(
    mock_web, create_resolver: ResolverFactory, svg_bytes: bytes
) -> None:
    """Test that a scalable SVG declared only in the manifest is served as sized SVG."""
    manifest = {"icons": [{"src": "/c.svg", "sizes": "any", "type": "image/svg+xml"}]}
    web = mock_web(
        {
            PAGE_URL: html_page('<link rel="manifest" href="/manifest.json">'),
            "https://example.com/manifest.json": (
                200,
                {"Content-Type": "application/manifest+json"},
                json.dumps(manifest).encode(),
            ),
            "https://example.com/c.svg": (200, {"Content-Type": "image/svg+xml"}, svg_bytes),
        }
    )

    icon = await create_resolver(web).resolve("example.com")

    assert icon.content_type == "image/svg+xml"
    assert icon.source_url == "https://example.com/c.svg"
    assert b'width="64"' in icon.content
    assert b'height="64"' in icon.content


@pytest.mark.asyncio
async def test_resolve_skips_failed_candidates(
    mock_web, create_resolver: ResolverFactory, make_png, metrics_client_mock
) -> None:
    """Test that missing, tiny and non-image candidates fall through to the next one."""
    web = mock_web(
        {
            PAGE_URL: html_page(
                '<link rel="icon" href="/missing.svg">'
                '<link rel="apple-touch-icon" href="/tiny.png" sizes="180x180">'
                '<link rel="apple-touch-icon" href="/html.png" sizes="152x152">'
                '<link rel="icon" href="/ok.png" sizes="16x16">'
            ),
            "https://example.com/missing.svg": (404, HTML_HEADERS, b"<html>gone</html>"),
            "https://example.com/tiny.png": (200, PNG_HEADERS, b"tiny"),
            "https://example.com/html.png": (200, HTML_HEADERS, b"<html>" + b"x" * 200),
            "https://example.com/ok.png": (200, PNG_HEADERS, make_png(16, 16)),
        }
    )

    icon = await create_resolver(web).resolve("example.com")

    assert icon.source_url == "https://example.com/ok.png"
    rejected_calls = [
        call.args for call in metrics_client_mock.increment.call_args_list
    ].count(("resolver.candidate.rejected",))
    assert rejected_calls == 3


@pytest.mark.asyncio
async def test_resolve_respects_max_candidates(
    mock_web, create_resolver: ResolverFactory, make_png
) -> None:
    """Test that only the best `max_candidates` candidates are fetched."""
    web = mock_web(
        {
            PAGE_URL: html_page(
                '<link rel="icon" href="/a.png" sizes="64x64">'
                '<link rel="icon" href="/b.png" sizes="32x32">'
            ),
            "https://example.com/b.png": (200, PNG_HEADERS, make_png(32, 32)),
        }
    )

    with pytest.raises(ExhaustionError):
        await create_resolver(web, max_candidates=1).resolve("example.com")

    assert web.was_requested("https://example.com/a.png")
    assert not web.was_requested("https://example.com/b.png")


@pytest.mark.parametrize(
    ["on_decode_failure", "expected_source"],
    [("next", "https://example.com/good.png"), ("original", "https://example.com/broken.png")],
)
@pytest.mark.asyncio
async def test_resolve_decode_failure_policy(
    mock_web,
    create_resolver: ResolverFactory,
    make_png,
    on_decode_failure: str,
    expected_source: str,
) -> None:
    """Test that undecodable payloads are skipped or served as is, per policy."""
    broken = b"\x89PNG\r\n\x1a\n" + b"\x00" * 100
    web = mock_web(
        {
            PAGE_URL: html_page(
                '<link rel="icon" href="/broken.png" sizes="64x64">'
                '<link rel="icon" href="/good.png" sizes="16x16">'
            ),
            "https://example.com/broken.png": (200, PNG_HEADERS, broken),
            "https://example.com/good.png": (200, PNG_HEADERS, make_png(16, 16)),
        }
    )

    icon = await create_resolver(web, on_decode_failure=on_decode_failure).resolve("example.com")

    assert icon.source_url == expected_source
    if on_decode_failure == "original":
        assert icon.content == broken
        assert icon.content_type == "image/png"


@pytest.mark.asyncio
async def test_resolve_skips_oversized_candidate(
    mock_web, create_resolver: ResolverFactory, make_png, oversized_png: bytes
) -> None:
    """Test that a candidate declaring huge dimensions is skipped for the next one."""
    web = mock_web(
        {
            PAGE_URL: html_page(
                '<link rel="apple-touch-icon" href="/huge.png" sizes="180x180">'
                '<link rel="icon" href="/ok.png" sizes="32x32">'
            ),
            "https://example.com/huge.png": (200, PNG_HEADERS, oversized_png),
            "https://example.com/ok.png": (200, PNG_HEADERS, make_png(32, 32)),
        }
    )

    icon = await create_resolver(web).resolve("example.com")

    assert web.was_requested("https://example.com/huge.png")
    assert icon.source_url == "https://example.com/ok.png"
    assert png_size(icon.content) == (64, 64)


@pytest.mark.asyncio
async def test_resolve_runs_cpu_bound_work_off_the_event_loop(
    mock_web, create_resolver: ResolverFactory, make_png, mocker
) -> None:
    """Test that markup scanning and normalization don't run on the event loop thread."""
    web = mock_web(
        {
            PAGE_URL: html_page('<link rel="icon" href="/ok.png" sizes="32x32">'),
            "https://example.com/ok.png": (200, PNG_HEADERS, make_png(32, 32)),
        }
    )
    resolver = create_resolver(web)
    loop_thread = threading.get_ident()
    worker_threads: dict[str, int] = {}

    normalize = resolver.normalizer.normalize

    def record_scan(*args: Any) -> Any:
        worker_threads["scan"] = threading.get_ident()
        return scan_markup(*args)

    def record_normalize(*args: Any) -> Any:
        worker_threads["normalize"] = threading.get_ident()
        return normalize(*args)

    mocker.patch("favicon_resolver.icons.resolver.scan_markup", side_effect=record_scan)
    mocker.patch.object(resolver.normalizer, "normalize", side_effect=record_normalize)

    icon = await resolver.resolve("example.com")

    assert icon.source_url == "https://example.com/ok.png"
    assert set(worker_threads) == {"scan", "normalize"}
    assert loop_thread not in worker_threads.values()


@pytest.mark.asyncio
async def test_resolve_social_preview_as_last_page_candidate(
    mock_web, create_resolver: ResolverFactory, make_png
) -> None:
    """Test that the og:image is used when it is the only page candidate."""
    web = mock_web(
        {
            PAGE_URL: html_page('<meta property="og:image" content="/preview.png">'),
            "https://example.com/preview.png": (200, PNG_HEADERS, make_png(120, 60)),
        }
    )

    icon = await create_resolver(web).resolve("example.com")

    assert icon.source_url == "https://example.com/preview.png"
    assert png_size(icon.content) == (64, 64)


@pytest.mark.asyncio
async def test_resolve_default_favicon(
    mock_web, create_resolver: ResolverFactory, ico_bytes: bytes, metrics_client_mock
) -> None:
    """Test that /favicon.ico at the page origin is tried when the page has no icons."""
    favicon_route = (200, {"Content-Type": "image/x-icon"}, ico_bytes)
    web = mock_web(
        {
            "https://example.com/blog/post": html_page("<title>No icons</title>"),
            "http://example.com/blog/post": html_page("<title>Still no icons</title>"),
            "https://example.com/favicon.ico": favicon_route,
        }
    )

    icon = await create_resolver(web).resolve("example.com/blog/post")

    assert icon.source_url == "https://example.com/favicon.ico"
    assert icon.content_type == "image/png"
    assert png_size(icon.content) == (64, 64)
    assert web.was_requested("https://example.com/favicon.ico", method="HEAD")
    metrics_client_mock.increment.assert_any_call("resolver.resolved", tags={"stage": "default"})


@pytest.mark.asyncio
async def test_resolve_retries_plain_http(
    mock_web, create_resolver: ResolverFactory, make_png
) -> None:
    """Test that a scheme-less target is retried over plain HTTP when HTTPS yields nothing."""
    web = mock_web(
        {
            "http://example.com/": html_page('<link rel="icon" href="/icon.png">'),
            "http://example.com/icon.png": (200, PNG_HEADERS, make_png()),
        }
    )

    icon = await create_resolver(web).resolve("example.com")

    assert icon.source_url == "http://example.com/icon.png"
    assert web.was_requested("https://example.com/")
    assert web.was_requested("http://example.com/")


@pytest.mark.asyncio
async def test_resolve_explicit_scheme_is_not_retried(
    mock_web, create_resolver: ResolverFactory
) -> None:
    """Test that targets with an explicit scheme are never downgraded."""
    web = mock_web({})

    with pytest.raises(ExhaustionError):
        await create_resolver(web).resolve("https://example.com/")

    assert not web.was_requested("http://example.com/")


@pytest.mark.asyncio
async def test_resolve_ignores_non_html_page(
    mock_web, create_resolver: ResolverFactory, make_png
) -> None:
    """Test that markup is only scanned for HTML responses."""
    web = mock_web(
        {
            "https://example.com/data": (
                200,
                {"Content-Type": "application/json"},
                b'{"html": "<link rel=\\"icon\\" href=\\"/icon.png\\">"}',
            ),
            "https://example.com/icon.png": (200, PNG_HEADERS, make_png()),
        }
    )

    with pytest.raises(ExhaustionError):
        await create_resolver(web).resolve("https://example.com/data")

    assert not web.was_requested("https://example.com/icon.png")


@pytest.mark.asyncio
async def test_resolve_lookup_services(
    mock_web, create_resolver: ResolverFactory, make_png, metrics_client_mock
) -> None:
    """Test that lookup services are queried when the site offers nothing."""
    web = mock_web(
        {
            LOOKUP_URL: (200, PNG_HEADERS, make_png(16, 16)),
            "https://icons.example.org/s2?domain=example.com&sz=128": (
                404,
                PNG_HEADERS,
                make_png(16, 16),
            ),
        }
    )
    resolver = create_resolver(
        web,
        lookup_services=[
            "https://icons.example.org/s2?domain={domain}&sz=128",
            LOOKUP_SERVICE,
        ],
    )

    icon = await resolver.resolve("example.com")

    assert icon.source_url == LOOKUP_URL
    assert png_size(icon.content) == (64, 64)
    metrics_client_mock.increment.assert_any_call("resolver.resolved", tags={"stage": "lookup"})


@pytest.mark.asyncio
async def test_resolve_placeholder(
    mock_web, create_resolver: ResolverFactory, metrics_client_mock
) -> None:
    """Test that a monogram placeholder is served when every source fails."""
    web = mock_web({})

    icon = await create_resolver(
        web, placeholder_enabled=True, lookup_services=[LOOKUP_SERVICE]
    ).resolve("www.example.com")

    assert icon.placeholder is True
    assert icon.content_type == "image/svg+xml"
    assert b'width="64" height="64"' in icon.content
    assert b">E</text>" in icon.content
    metrics_client_mock.increment.assert_any_call("resolver.placeholder")


@pytest.mark.asyncio
async def test_resolve_upstream_failure(mock_web, create_resolver: ResolverFactory) -> None:
    """Test that unreachable lookup services are reported as an upstream failure."""
    web = mock_web({})

    with pytest.raises(UpstreamDependencyError):
        await create_resolver(web, lookup_services=[LOOKUP_SERVICE]).resolve("example.com")

    assert web.was_requested(LOOKUP_URL)


@pytest.mark.asyncio
async def test_resolve_exhausted_with_reachable_services(
    mock_web, create_resolver: ResolverFactory, metrics_client_mock
) -> None:
    """Test that exhaustion is reported when lookup services answer without an icon."""
    web = mock_web({LOOKUP_URL: (404, {}, b"")})

    with pytest.raises(ExhaustionError):
        await create_resolver(web, lookup_services=[LOOKUP_SERVICE]).resolve("example.com")

    metrics_client_mock.increment.assert_any_call("resolver.exhausted")


@pytest.mark.asyncio
async def test_resolve_invalid_target(mock_web, create_resolver: ResolverFactory) -> None:
    """Test that invalid targets are rejected before any request."""
    web = mock_web({})

    with pytest.raises(InputError):
        await create_resolver(web).resolve("   ")

    assert web.requests == []


@pytest.mark.asyncio
async def test_resolve_is_idempotent(
    mock_web, create_resolver: ResolverFactory, make_png
) -> None:
    """Test that resolving the same target twice selects the same source."""
    web = mock_web(
        {
            PAGE_URL: html_page(
                '<link rel="icon" href="/a.png" sizes="32x32">'
                '<link rel="icon" href="/b.png" sizes="32x32">'
            ),
            "https://example.com/a.png": (200, PNG_HEADERS, make_png(32, 32, seed=1)),
            "https://example.com/b.png": (200, PNG_HEADERS, make_png(32, 32, seed=2)),
        }
    )
    resolver = create_resolver(web)

    first = await resolver.resolve("example.com")
    second = await resolver.resolve("example.com")

    assert first.source_url == second.source_url == "https://example.com/a.png"
    assert first.content == second.content


@pytest.mark.parametrize(
    ["content_type", "size", "expected"],
    [
        ("image/png", 100, True),
        ("image/svg+xml", 100, True),
        ("application/ico", 100, True),
        ("text/html", 100, False),
        ("", 100, False),
        ("image/png", 70, False),
        ("image/png", 1001, False),
    ],
)
def test_is_acceptable(
    mock_web, create_resolver: ResolverFactory, content_type: str, size: int, expected: bool
) -> None:
    """Test the content type and size checks applied to fetched icons."""
    resolver = create_resolver(mock_web({}), max_icon_bytes=1000)
    icon = ResolvedIcon(url="https://a.com/i", content=b"x" * size, content_type=content_type)

    assert resolver.is_acceptable(icon) is expected
