"""
Product Description Prompt
==========================

Regenerates a single product's marketing description.
"""

from ..models import ExtractedProduct


def get_description_prompt(product: ExtractedProduct) -> str:
    material = product.variants[0].material if product.variants and product.variants[0].material else "Unknown"

    return f"""Write a professional, SEO-friendly product description (150-200 words) for:

Product: {product.name}
Category: {product.category or 'building materials'}
Current Description: {product.description or 'None'}
Highlights: {', '.join(product.highlights)}
Material: {material}

The description should:
1. Open with the product name
2. Cover key features and benefits
3. Mention use cases and applications
4. Read well for contractors and architects
5. Include relevant search keywords

Return only the description text, no formatting."""
