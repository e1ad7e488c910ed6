"""
Page Scraper
============

Fetches vendor product pages and pulls out:
- Product name, description, price
- Images
- Structured data (JSON-LD, OpenGraph)

Nothing here raises to the caller. Scrapes report failures through
`ScrapeResult.error`, downloads through `Outcome`.
"""

import json
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from ..config import config
from ..errors import ScrapeError, DownloadError
from ..logger import get_logger
from ..models import ScrapeResult, DownloadedImage, Outcome

logger = get_logger('page_scraper')

USER_AGENT = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
              '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36')

PAGE_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

# Priority selectors for product images
IMAGE_SELECTORS = [
    '[data-product-image]',
    '.product-image img',
    '.product-gallery img',
    '#product-image',
    '[itemprop="image"]',
    '.main-image img',
    'figure img',
    '.gallery img',
]
ENOUGH_PRIORITY_IMAGES = 5
MAX_IMAGES = 10
MIN_IMAGE_DIMENSION = 200
SKIP_IMAGE_WORDS = ('logo', 'icon', 'sprite', 'placeholder')

PRICE_PATTERNS = [
    re.compile(r'\$\s*([\d,]+(?:\.\d{2})?)'),                         # $1,234.56
    re.compile(r'USD\s*([\d,]+(?:\.\d{2})?)', re.IGNORECASE),           # USD 1234.56
    re.compile(r'([\d,]+(?:\.\d{2})?)\s*(?:USD|dollars?)', re.IGNORECASE),  # 1234.56 USD
]

RAW_TEXT_LIMIT = 5000
DESCRIPTION_LIMIT = 2000


def _http(session: Optional[requests.Session]):
    return session if session is not None else requests


def fetch_html(url: str, timeout: Optional[float] = None,
               session: Optional[requests.Session] = None) -> str:
    """GET a page with browser headers. Raises ScrapeError on non-2xx or timeout."""
    timeout = timeout or config.SCRAPE_TIMEOUT
    try:
        response = _http(session).get(url, headers=PAGE_HEADERS, timeout=timeout)
    except requests.Timeout as e:
        raise ScrapeError("Request timed out") from e
    except requests.RequestException as e:
        raise ScrapeError(str(e)) from e

    if not response.ok:
        raise ScrapeError(f"HTTP {response.status_code}: {response.reason}")

    return response.text


def resolve_url(url: Optional[str], base_url: str) -> Optional[str]:
    """Resolve relative and protocol-relative URLs against the page URL"""
    if not url:
        return None
    if url.startswith('http://') or url.startswith('https://'):
        return url
    if url.startswith('//'):
        return 'https:' + url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def extract_price(text: Optional[str]) -> Optional[int]:
    """Find a dollar amount in free text and return it in cents"""
    if not text:
        return None

    for pattern in PRICE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        try:
            price = float(match.group(1).replace(',', ''))
        except ValueError:
            continue
        if price > 0:
            return round(price * 100)

    return None


def extract_json_ld(soup: BeautifulSoup) -> List[dict]:
    """All JSON-LD objects on the page, with @graph arrays flattened"""
    results = []

    for script in soup.find_all('script', attrs={'type': 'application/ld+json'}):
        content = script.string or script.get_text()
        if not content or not content.strip():
            continue
        try:
            data = json.loads(content.strip())
        except json.JSONDecodeError:
            continue

        for item in (data if isinstance(data, list) else [data]):
            if not isinstance(item, dict):
                continue
            if isinstance(item.get('@graph'), list):
                results.extend(i for i in item['@graph'] if isinstance(i, dict))
            else:
                results.append(item)

    return results


def find_product_schema(items: List[dict]) -> Optional[dict]:
    for item in items:
        item_type = item.get('@type')
        if item_type == 'Product' or (isinstance(item_type, list) and 'Product' in item_type):
            return item
    return None


def extract_open_graph(soup: BeautifulSoup) -> Dict[str, str]:
    og = {}
    for tag in soup.find_all('meta', attrs={'property': re.compile(r'^og:')}):
        prop = tag.get('property', '')[3:]
        content = tag.get('content')
        if prop and content:
            og[prop] = content
    return og


def extract_meta_tags(soup: BeautifulSoup) -> Dict[str, str]:
    meta = {}
    for tag in soup.find_all('meta', attrs={'name': True}):
        name = tag.get('name')
        content = tag.get('content')
        if name and content:
            meta[name] = content
    return meta


def _dimension(value) -> int:
    match = re.match(r'\s*(\d+)', str(value or ''))
    return int(match.group(1)) if match else 0


def extract_images(soup: BeautifulSoup, base_url: str) -> List[str]:
    """
    Candidate product images, deduplicated and resolved.

    Priority selectors first (stop once enough are found). If none match,
    fall back to every large <img> that doesn't look like a logo or icon.
    """
    images = []
    seen = set()

    def add(src):
        resolved = resolve_url(src, base_url)
        if resolved and resolved not in seen:
            seen.add(resolved)
            images.append(resolved)

    for selector in IMAGE_SELECTORS:
        for el in soup.select(selector):
            src = el.get('src') or el.get('data-src') or el.get('data-lazy-src')
            if src:
                add(src)
        if len(images) >= ENOUGH_PRIORITY_IMAGES:
            break

    if not images:
        for el in soup.find_all('img'):
            src = el.get('src') or el.get('data-src')
            if not src:
                continue
            classes = ' '.join(el.get('class') or [])
            haystack = f"{src} {classes}".lower()
            if any(word in haystack for word in SKIP_IMAGE_WORDS):
                continue
            width = _dimension(el.get('width'))
            height = _dimension(el.get('height'))
            if (width and width < MIN_IMAGE_DIMENSION) or (height and height < MIN_IMAGE_DIMENSION):
                continue
            add(src)

    return images[:MAX_IMAGES]


def _first_text(soup: BeautifulSoup, selector: str) -> Optional[str]:
    el = soup.select_one(selector)
    return el.get_text() if el else None


def _first_attr(soup: BeautifulSoup, selector: str, attr: str) -> Optional[str]:
    el = soup.select_one(selector)
    return el.get(attr) if el else None


def extract_product_from_html(soup: BeautifulSoup) -> dict:
    """Heuristic name/description/price from common markup patterns"""
    product = {"name": None, "description": None, "price": None}

    title = soup.title.get_text() if soup.title else ""
    name_sources = [
        lambda: _first_text(soup, 'h1[itemprop="name"]'),
        lambda: _first_text(soup, '.product-title'),
        lambda: _first_text(soup, '.product-name'),
        lambda: _first_text(soup, '[data-product-title]'),
        lambda: _first_text(soup, 'h1'),
        lambda: title.split('|')[0].split('-')[0],
    ]
    for source in name_sources:
        name = (source() or "").strip()
        if 2 < len(name) < 200:
            product["name"] = name
            break

    desc_sources = [
        lambda: _first_text(soup, '[itemprop="description"]'),
        lambda: _first_text(soup, '.product-description'),
        lambda: _first_text(soup, '[data-product-description]'),
        lambda: _first_attr(soup, 'meta[name="description"]', 'content'),
        lambda: _first_text(soup, '.description'),
    ]
    for source in desc_sources:
        desc = (source() or "").strip()
        if len(desc) > 20:
            product["description"] = desc[:DESCRIPTION_LIMIT]
            break

    price_sources = [
        lambda: _first_attr(soup, '[itemprop="price"]', 'content'),
        lambda: _first_text(soup, '[itemprop="price"]'),
        lambda: _first_text(soup, '.price'),
        lambda: _first_attr(soup, '[data-price]', 'data-price'),
        lambda: _first_text(soup, '.product-price'),
        lambda: _first_text(soup, '[class*="price"]'),
    ]
    for source in price_sources:
        price = extract_price(source())
        if price:
            product["price"] = price
            break

    return product


def _first_offer(product_schema: dict) -> dict:
    offers = product_schema.get('offers')
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    return offers if isinstance(offers, dict) else {}


def _offer_price(offer: dict) -> Optional[int]:
    price = offer.get('price')
    if price in (None, ''):
        return None
    try:
        value = float(str(price).replace(',', ''))
    except ValueError:
        return None
    return round(value * 100) if value > 0 else None


def _brand_name(brand) -> Optional[str]:
    if isinstance(brand, dict):
        return brand.get('name')
    if isinstance(brand, str):
        return brand
    return None


def parse_vendor_page(html: str, url: str) -> ScrapeResult:
    """Build a ScrapeResult from page HTML, structured data first"""
    soup = BeautifulSoup(html, 'html.parser')

    json_ld = extract_json_ld(soup)
    og = extract_open_graph(soup)
    meta = extract_meta_tags(soup)
    product_schema = find_product_schema(json_ld) or {}

    images = extract_images(soup, url)
    og_image = resolve_url(og.get('image'), url)
    if og_image and og_image not in images:
        images.insert(0, og_image)
    images = images[:MAX_IMAGES]

    html_product = extract_product_from_html(soup)
    offer = _first_offer(product_schema)

    result = ScrapeResult(
        url=url,
        name=product_schema.get('name') or og.get('title') or html_product["name"],
        description=(product_schema.get('description') or og.get('description')
                     or meta.get('description') or html_product["description"]),
        images=images,
        brand=_brand_name(product_schema.get('brand')),
        sku=product_schema.get('sku'),
        gtin=product_schema.get('gtin') or product_schema.get('gtin13'),
        category=product_schema.get('category'),
        availability=offer.get('availability'),
        structured={
            "json_ld": product_schema or None,
            "open_graph": og or None,
        },
    )

    offer_price = _offer_price(offer)
    if offer_price is not None:
        result.price = offer_price
        result.currency = (offer.get('priceCurrency') or 'usd').lower()
    elif html_product["price"]:
        result.price = html_product["price"]

    for tag in soup(['script', 'style', 'noscript']):
        tag.decompose()
    body = soup.body or soup
    result.raw_text = re.sub(r'\s+', ' ', body.get_text(' ')).strip()[:RAW_TEXT_LIMIT]

    return result


def scrape_vendor_page(url: str, timeout: Optional[float] = None,
                       session: Optional[requests.Session] = None) -> ScrapeResult:
    """
    Scrape a vendor product page.

    Args:
        url: Page to scrape
        timeout: Request timeout in seconds (default SCRAPE_TIMEOUT)
        session: Optional requests session

    Returns:
        ScrapeResult; on any failure only `url` and `error` are set
    """
    logger.info(f"Scraping: {url}")

    try:
        html = fetch_html(url, timeout=timeout, session=session)
        result = parse_vendor_page(html, url)
    except Exception as e:
        logger.warning(f"Error scraping {url}: {e}")
        return ScrapeResult.failed(url, str(e))

    logger.info(f"Extracted: {result.name or 'No name found'}, {len(result.images)} images")
    return result


def scrape_multiple_urls(urls: List[str], concurrency: Optional[int] = None,
                         delay: Optional[float] = None,
                         session: Optional[requests.Session] = None) -> List[ScrapeResult]:
    """Scrape URLs in fixed-size batches with a pause between batches. Order is preserved."""
    concurrency = max(1, concurrency or config.SCRAPE_CONCURRENCY)
    delay = config.SCRAPE_BATCH_DELAY if delay is None else delay
    results: List[ScrapeResult] = []

    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        for start in range(0, len(urls), concurrency):
            batch = urls[start:start + concurrency]
            results.extend(executor.map(lambda u: scrape_vendor_page(u, session=session), batch))

            if start + concurrency < len(urls) and delay > 0:
                time.sleep(delay)

    return results


def download_image(image_url: str, timeout: Optional[float] = None,
                   session: Optional[requests.Session] = None) -> Outcome[DownloadedImage]:
    """Fetch an image. Rejects non-2xx responses and non-image content types."""
    if not image_url or not image_url.startswith('http'):
        return Outcome.failure("Invalid image URL")

    timeout = timeout or config.IMAGE_TIMEOUT
    try:
        response = _http(session).get(image_url, headers={'User-Agent': USER_AGENT}, timeout=timeout)
        if not response.ok:
            raise DownloadError(f"HTTP {response.status_code}")

        content_type = response.headers.get('content-type', '')
        if not content_type.startswith('image/'):
            raise DownloadError("Not an image")

        data = response.content
        return Outcome.success(DownloadedImage(data=data, content_type=content_type, size=len(data)))

    except (requests.RequestException, DownloadError) as e:
        logger.warning(f"Failed to download image {image_url}: {e}")
        return Outcome.failure(str(e))


def download_pdf(pdf_url: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None) -> Outcome[bytes]:
    """Fetch a PDF as bytes"""
    timeout = timeout or config.PDF_TIMEOUT
    try:
        response = _http(session).get(pdf_url, headers={'User-Agent': USER_AGENT}, timeout=timeout)
    except requests.Timeout:
        return Outcome.failure("Failed to download PDF: request timed out")
    except requests.RequestException as e:
        return Outcome.failure(f"Failed to download PDF: {e}")

    if not response.ok:
        return Outcome.failure(f"Failed to download PDF: {response.status_code}")

    return Outcome.success(response.content)
