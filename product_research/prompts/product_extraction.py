"""
Product Extraction Prompt
=========================

System rules and user prompt assembly for extracting catalog products from
PDF page text and scraped vendor pages.
"""

from typing import List, Optional, Union

from ..models import PageExtraction, ScrapeResult


PAGE_TEXT_LIMIT = 4000
VENDOR_TEXT_LIMIT = 2000
VENDOR_IMAGE_LIMIT = 5

DEFAULT_INSTRUCTIONS = "Extract all products found in the provided content."
SEO_DIRECTIVE = "Generate detailed, SEO-friendly descriptions (150-300 words) for each product."


SYSTEM_PROMPT = """You are a product research assistant building a premium building materials catalog. Your only job is to turn catalog pages and vendor web pages into structured product records.

The catalog covers: windows, doors, glass (shower doors, panels), mirrors, millwork (casing, baseboard, crown molding), lighting fixtures, and bathroom products (vanities, faucets, toilets).

OUTPUT FORMAT (JSON only, nothing else):
{
  "products": [
    {
      "name": "Product Name",
      "description": "Marketing description",
      "price_cents": 63000,
      "category": "windows|doors|glass|mirrors|millwork|lighting|bathroom",
      "variants": [
        {
          "name": "Variant name (e.g. Black Aluminum Frame)",
          "material": "Material description",
          "price": 63000,
          "image_url": "URL if found",
          "notes": "Additional notes"
        }
      ],
      "highlights": ["Feature 1", "Feature 2", "Feature 3"],
      "images": ["url1", "url2"],
      "confidence": 0.95,
      "sources": ["page:45", "url:vendor.com/product"]
    }
  ],
  "errors": ["Problems encountered while extracting"],
  "suggestions": ["Missing data or follow-ups for the reviewer"]
}

RULES:
1. Extract only the products the instructions ask for.
2. All prices are integer cents ($630.00 = 63000).
3. Use web search to fill in missing specifications when available.
4. Set confidence below 0.8 for any product you are unsure about.
5. Never invent specifications. Use "unknown" or leave the field empty.
6. Return the JSON object and nothing else.
7. Millwork is usually priced per linear foot; say so in the variant notes.
8. Give every product at least 3 highlights.
9. Descriptions should cover materials, use cases and benefits."""


def _format_price(cents: int) -> str:
    return f"${cents / 100:.2f}"


def _vendor_block(site: ScrapeResult) -> List[str]:
    lines = [f"[{site.url}]:"]
    if site.name:
        lines.append(f"Name: {site.name}")
    if site.description:
        lines.append(f"Description: {site.description}")
    if site.price:
        lines.append(f"Price: {_format_price(site.price)}")
    if site.images:
        lines.append(f"Images: {', '.join(site.images[:VENDOR_IMAGE_LIMIT])}")
    if site.raw_text:
        lines.append(f"Content: {site.raw_text[:VENDOR_TEXT_LIMIT]}")
    return lines


def augment_instructions(instructions: Optional[str], category: Optional[str] = None,
                         generate_descriptions: bool = True) -> str:
    """Append the category pin and description directives to the caller's instructions"""
    text = instructions or ""

    if category and category.strip().lower() != "auto":
        text += f'\n\nIMPORTANT: All products should be categorized as "{category.strip()}".'

    if generate_descriptions:
        text += f"\n\n{SEO_DIRECTIVE}"

    return text


def build_user_prompt(instructions: Optional[str],
                      pdf_data: Optional[PageExtraction] = None,
                      url_data: Union[ScrapeResult, List[ScrapeResult], None] = None) -> str:
    """
    Assemble the user prompt.

    Sections, in order: instructions, PDF pages, vendor pages, task.
    Page text and vendor content are truncated to bound token usage.
    """
    parts = [
        "=== EXTRACTION INSTRUCTIONS ===",
        instructions.strip() if instructions and instructions.strip() else DEFAULT_INSTRUCTIONS,
        "",
    ]

    if pdf_data and pdf_data.text_by_page:
        parts.append("=== PDF CATALOG CONTENT ===")
        for page_number in sorted(pdf_data.text_by_page):
            text = pdf_data.text_by_page[page_number]
            if text and text.strip():
                parts.append(f"[Page {page_number}]:")
                parts.append(text[:PAGE_TEXT_LIMIT])
                parts.append("")

    sites = url_data if isinstance(url_data, list) else ([url_data] if url_data else [])
    sites = [site for site in sites if site and site.url]
    if sites:
        parts.append("=== VENDOR WEBSITE DATA ===")
        for site in sites:
            parts.extend(_vendor_block(site))
            parts.append("")

    parts.append("")
    parts.append("=== TASK ===")
    parts.append("Extract product data following the JSON schema exactly. "
                 "Include all variants, pricing, and images found.")

    return "\n".join(parts)
