"""
Image helpers - data URIs, Pillow flattening and live element rasterization.

Pixels are read from what the page already shows (canvas draw of the loaded
<img>, ``canvas.toDataURL``) so the challenge is not requested again and
rotated by the server. Background images are the exception: their bytes are
fetched through the page's own request context, which shares its cookies.
"""

import base64
import io
import logging
import re
from typing import Optional, Union

import aiohttp
from PIL import Image

from .config import config
from .dom.page import ELEMENT_BY_PATH_JS
from .dom.snapshot import DomElement
from .errors import CrossOriginError, NetworkError, UnsupportedElementError

logger = logging.getLogger(__name__)

DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+;base64,")
PNG_PREFIX = "data:image/png;base64,"


def strip_data_uri(image: str) -> str:
    """Raw base64 payload of a data URI (unchanged if already raw)."""
    return DATA_URI_RE.sub("", image or "", count=1)


def ensure_data_uri(image: str) -> str:
    if (image or "").startswith("data:"):
        return image
    return PNG_PREFIX + (image or "")


def to_base64(image: Union[str, bytes]) -> str:
    """Accepts a data URI, raw base64 or encoded image bytes."""
    if isinstance(image, (bytes, bytearray)):
        return base64.b64encode(bytes(image)).decode("ascii")
    return strip_data_uri(image)


def to_data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(image: str) -> bytes:
    return base64.b64decode(strip_data_uri(image))


def flatten_on_white(data: bytes) -> bytes:
    """
    Composite an image onto an opaque white background and re-encode as PNG.

    Transparent challenge images read as black-on-black to most vision
    models otherwise.
    """
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        rgba = img.convert("RGBA")
    background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    background.alpha_composite(rgba)
    out = io.BytesIO()
    background.convert("RGB").save(out, format="PNG")
    return out.getvalue()


def normalize_png_data_uri(image: str) -> str:
    """Flatten a data URI onto white; returns it unchanged if Pillow cannot read it."""
    try:
        return to_data_uri(flatten_on_white(decode_data_uri(image)))
    except (OSError, ValueError) as e:
        logger.debug(f"Image left as is, not decodable by Pillow: {e}")
        return image


async def fetch_image_as_data_uri(url: str, session: Optional[aiohttp.ClientSession] = None) -> str:
    """
    Download an image and return it as a data URI.

    Raises:
        NetworkError: transport failure or non-2xx status
    """
    async def _get(s):
        async with s.get(url) as resp:
            if resp.status < 200 or resp.status >= 300:
                raise NetworkError(f"Image fetch failed: {resp.status} - {resp.reason}", status=resp.status)
            data = await resp.read()
            mime = (resp.headers.get("Content-Type") or "image/png").split(";")[0].strip()
            return to_data_uri(data, mime)

    try:
        if session is not None:
            return await _get(session)
        timeout_obj = aiohttp.ClientTimeout(total=config.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout_obj) as s:
            return await _get(s)
    except aiohttp.ClientError as e:
        raise NetworkError(f"Image fetch failed: {e}")


RASTERIZE_SCRIPT = "async (path) => {" + ELEMENT_BY_PATH_JS + r"""
    const el = __byPath(path);
    if (!el) return {error: 'missing'};
    const tag = el.tagName.toUpperCase();

    if (tag === 'CANVAS') {
        try {
            return {dataUrl: el.toDataURL('image/png')};
        } catch (e) {
            return {error: 'cross-origin', detail: String(e)};
        }
    }

    if (tag === 'IMG') {
        if (!el.complete || el.naturalWidth === 0) {
            await new Promise((resolve) => {
                el.addEventListener('load', resolve, {once: true});
                el.addEventListener('error', resolve, {once: true});
                setTimeout(resolve, 3000);
            });
        }
        const width = el.naturalWidth || el.width || el.offsetWidth;
        const height = el.naturalHeight || el.height || el.offsetHeight;
        if (!width || !height) return {error: 'unsupported', detail: 'image not loaded'};
        const canvas = document.createElement('canvas');
        canvas.width = width;
        canvas.height = height;
        const ctx = canvas.getContext('2d');
        ctx.fillStyle = '#FFFFFF';
        ctx.fillRect(0, 0, width, height);
        ctx.drawImage(el, 0, 0, width, height);
        try {
            return {dataUrl: canvas.toDataURL('image/png')};
        } catch (e) {
            return {error: 'cross-origin', detail: String(e)};
        }
    }

    if (tag === 'SVG') {
        try {
            const svgData = new XMLSerializer().serializeToString(el);
            const url = URL.createObjectURL(new Blob([svgData], {type: 'image/svg+xml;charset=utf-8'}));
            const img = new Image();
            await new Promise((resolve, reject) => {
                img.onload = resolve;
                img.onerror = reject;
                img.src = url;
            });
            const canvas = document.createElement('canvas');
            canvas.width = el.clientWidth || 200;
            canvas.height = el.clientHeight || 100;
            canvas.getContext('2d').drawImage(img, 0, 0);
            URL.revokeObjectURL(url);
            return {dataUrl: canvas.toDataURL('image/png')};
        } catch (e) {}
    }

    const bg = window.getComputedStyle(el).backgroundImage;
    if (bg && bg !== 'none') {
        const m = bg.match(/url\(['"]?(.+?)['"]?\)/);
        if (m) return {background: new URL(m[1], location.href).href};
    }

    const child = el.querySelector('img');
    if (child && child.complete && child.naturalWidth > 0) {
        const rect = el.getBoundingClientRect();
        const canvas = document.createElement('canvas');
        canvas.width = rect.width;
        canvas.height = rect.height;
        const ctx = canvas.getContext('2d');
        ctx.fillStyle = '#FFFFFF';
        ctx.fillRect(0, 0, rect.width, rect.height);
        ctx.drawImage(child, 0, 0, rect.width, rect.height);
        try {
            return {dataUrl: canvas.toDataURL('image/png')};
        } catch (e) {
            return {error: 'cross-origin', detail: String(e)};
        }
    }
    return {error: 'unsupported'};
}
"""

HANDLE_BY_PATH_SCRIPT = "(path) => {" + ELEMENT_BY_PATH_JS + """
    return __byPath(path);
}
"""


async def screenshot_element(page, element: DomElement) -> Optional[str]:
    """PNG screenshot of the live element, or None if it is gone."""
    handle = await page.evaluate_handle(HANDLE_BY_PATH_SCRIPT, element.index_path())
    el = handle.as_element()
    if el is None:
        await handle.dispose()
        return None
    try:
        data = await el.screenshot(type="png")
    finally:
        await handle.dispose()
    return to_data_uri(data)


async def _fetch_background(page, url: str) -> str:
    if url.startswith("data:"):
        return url
    response = await page.request.get(url)
    if not response.ok:
        raise NetworkError(f"Background image fetch failed: {response.status} - {response.status_text}", status=response.status)
    mime = (response.headers.get("content-type") or "image/png").split(";")[0].strip()
    return to_data_uri(await response.body(), mime)


async def rasterize_element(page, element: DomElement, screenshot_fallback: bool = True) -> str:
    """
    Read the pixels of an image-like element as a PNG data URI.

    Order: canvas bitmap, <img> drawn onto white, inline SVG, background
    image bytes, first loaded child <img>. Cross-origin and unsupported
    elements fall back to an element screenshot when allowed.

    Raises:
        CrossOriginError: pixels blocked and no screenshot fallback
        UnsupportedElementError: no strategy produced pixels
    """
    result = await page.evaluate(RASTERIZE_SCRIPT, element.index_path()) or {}

    if result.get("dataUrl"):
        return normalize_png_data_uri(result["dataUrl"])

    if result.get("background"):
        logger.warning("Captcha is a background image; fetching it again may rotate the challenge")
        return normalize_png_data_uri(await _fetch_background(page, result["background"]))

    error = result.get("error") or "unsupported"
    logger.info(f"Rasterize <{element.tag}> failed: {error} {result.get('detail', '')}".rstrip())

    if error != "missing" and screenshot_fallback:
        shot = await screenshot_element(page, element)
        if shot:
            logger.info(f"Used element screenshot for <{element.tag}>")
            return normalize_png_data_uri(shot)

    if error == "cross-origin":
        raise CrossOriginError(
            "Cannot read a cross-origin captcha image; the image and the page must share an origin"
        )
    raise UnsupportedElementError(f"Cannot read image data from <{element.tag}>")
