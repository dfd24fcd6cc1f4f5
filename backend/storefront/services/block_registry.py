"""
Block Registry

Definitions of every block the page builder can place on a store page,
with the content and settings a freshly added block starts from.
"""
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from storefront.core.errors import ValidationError
from storefront.domain.page import PageBlock

BLOCK_CATEGORIES = ("layout", "commerce", "content", "marketing")

CONTAINER_TYPES = {"section", "columns", "column"}


class BlockDefinition(BaseModel):
    type: str
    name: str
    description: str
    category: str
    default_content: Dict[str, Any] = Field(default_factory=dict)
    default_settings: Dict[str, Any] = Field(default_factory=dict)
    is_container: bool = False


def _padding(top: int = 0, bottom: int = 0) -> Dict[str, int]:
    return {"top": top, "right": 0, "bottom": bottom, "left": 0}


def _section_settings(vertical: int, max_width: str = "container") -> Dict[str, Any]:
    return {"padding": _padding(vertical, vertical), "maxWidth": max_width}


_DEFINITIONS: List[BlockDefinition] = [
    # Layout
    BlockDefinition(
        type="hero", name="Hero Section", category="layout",
        description="Large banner with heading, text, and call-to-action buttons",
        default_content={
            "layout": "center",
            "heading": "Welcome to Our Store",
            "subheading": "Discover amazing products",
            "description": "",
            "primaryButton": {"text": "Shop Now", "link": "/products", "style": "primary"},
            "height": "large",
        },
        default_settings=_section_settings(0, "full"),
    ),
    BlockDefinition(
        type="banner", name="Banner", category="layout",
        description="Promotional banner with image and text overlay",
        default_content={
            "layout": "overlay",
            "image": "",
            "heading": "Special Offer",
            "description": "Limited time only",
            "textPosition": "center",
            "height": "medium",
            "overlayOpacity": 40,
        },
        default_settings={"padding": _padding()},
    ),
    BlockDefinition(
        type="spacer", name="Spacer", category="layout",
        description="Add vertical space between sections",
        default_content={"height": 64, "mobileHeight": 32},
    ),
    BlockDefinition(
        type="divider", name="Divider", category="layout",
        description="Horizontal line to separate content",
        default_content={"style": "solid", "width": "full", "thickness": 1},
        default_settings={"padding": _padding(16, 16)},
    ),
    BlockDefinition(
        type="section", name="Section", category="layout", is_container=True,
        description="Full-width container that groups other blocks",
        default_content={"background": None, "fullWidth": False},
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="columns", name="Columns", category="layout", is_container=True,
        description="Side-by-side columns",
        default_content={"count": 2, "gap": "medium", "stackOnMobile": True},
        default_settings=_section_settings(24),
    ),
    BlockDefinition(
        type="column", name="Column", category="layout", is_container=True,
        description="A single column inside a columns block",
        default_content={"width": "auto", "verticalAlign": "top"},
    ),

    # Commerce
    BlockDefinition(
        type="featured-products", name="Featured Products", category="commerce",
        description="Showcase selected products in a grid",
        default_content={
            "heading": "Featured Products",
            "source": "latest",
            "limit": 4,
            "columns": 4,
            "showPrice": True,
            "showAddToCart": True,
            "showQuickView": False,
        },
        default_settings=_section_settings(64),
    ),
    BlockDefinition(
        type="product-grid", name="Product Grid", category="commerce",
        description="Display products with filtering and pagination",
        default_content={
            "heading": "All Products",
            "source": "latest",
            "limit": 12,
            "columns": 4,
            "showFilters": True,
            "showSorting": True,
            "showPagination": True,
        },
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="collection-showcase", name="Collection Showcase", category="commerce",
        description="Feature a specific collection",
        default_content={
            "collectionId": "",
            "layout": "grid",
            "showDescription": True,
            "productLimit": 4,
        },
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="category-grid", name="Category Grid", category="commerce",
        description="Display product categories",
        default_content={
            "heading": "Shop by Category",
            "showAll": True,
            "categoryIds": [],
            "limit": 6,
            "columns": 3,
            "style": "card",
            "showProductCount": True,
        },
        default_settings=_section_settings(48),
    ),

    # Content
    BlockDefinition(
        type="text", name="Text", category="content",
        description="Simple text block",
        default_content={"text": "Enter your text here...", "alignment": "left", "size": "medium"},
        default_settings=_section_settings(24),
    ),
    BlockDefinition(
        type="rich-text", name="Rich Text", category="content",
        description="Formatted text with headings, lists, and links",
        default_content={"html": "<p>Enter your content here...</p>", "alignment": "left"},
        default_settings=_section_settings(24),
    ),
    BlockDefinition(
        type="image", name="Image", category="content",
        description="Single image with optional link",
        default_content={"src": "", "alt": "", "width": "contained", "aspectRatio": "auto"},
        default_settings=_section_settings(24),
    ),
    BlockDefinition(
        type="image-gallery", name="Image Gallery", category="content",
        description="Grid or carousel of images",
        default_content={"images": [], "layout": "grid", "columns": 3, "gap": "medium", "lightbox": True},
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="video", name="Video", category="content",
        description="Embed YouTube, Vimeo, or custom video",
        default_content={
            "source": "youtube",
            "url": "",
            "autoplay": False,
            "loop": False,
            "muted": False,
            "controls": True,
            "aspectRatio": "16:9",
        },
        default_settings=_section_settings(24),
    ),
    BlockDefinition(
        type="testimonials", name="Testimonials", category="content",
        description="Customer reviews and testimonials",
        default_content={
            "heading": "What Our Customers Say",
            "layout": "carousel",
            "testimonials": [{
                "id": "1",
                "quote": "Amazing products and great customer service!",
                "author": "John Doe",
                "role": "Verified Buyer",
                "rating": 5,
            }],
            "showRating": True,
            "autoplay": True,
        },
        default_settings=_section_settings(64),
    ),
    BlockDefinition(
        type="faq", name="FAQ", category="content",
        description="Frequently asked questions accordion",
        default_content={
            "heading": "Frequently Asked Questions",
            "items": [{
                "id": "1",
                "question": "What is your return policy?",
                "answer": "We offer a 30-day return policy on all items.",
            }],
            "layout": "accordion",
        },
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="map", name="Map", category="content",
        description="Embedded map for a store address",
        default_content={"address": "", "zoom": 14, "height": 400, "showMarker": True, "style": "default"},
        default_settings=_section_settings(0, "full"),
    ),
    BlockDefinition(
        type="html", name="Custom HTML", category="content",
        description="Add custom HTML code",
        default_content={"code": "<!-- Your custom HTML here -->"},
        default_settings=_section_settings(24),
    ),

    # Marketing
    BlockDefinition(
        type="newsletter", name="Newsletter", category="marketing",
        description="Email signup form",
        default_content={
            "heading": "Subscribe to Our Newsletter",
            "description": "Get the latest updates and exclusive offers",
            "placeholder": "Enter your email",
            "buttonText": "Subscribe",
            "successMessage": "Thanks for subscribing!",
            "layout": "inline",
        },
        default_settings={"padding": _padding(64, 64), "maxWidth": "narrow", "backgroundColor": "#f4f4f5"},
    ),
    BlockDefinition(
        type="countdown", name="Countdown Timer", category="marketing",
        description="Countdown to a specific date/time",
        default_content={
            "heading": "Sale Ends In",
            "endDate": None,
            "showDays": True,
            "showHours": True,
            "showMinutes": True,
            "showSeconds": True,
            "expiredMessage": "Sale has ended",
        },
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="contact-form", name="Contact Form", category="marketing",
        description="Contact form with customizable fields",
        default_content={
            "heading": "Get in Touch",
            "description": "We'd love to hear from you",
            "fields": [
                {"id": "name", "type": "text", "label": "Name", "required": True},
                {"id": "email", "type": "email", "label": "Email", "required": True},
                {"id": "message", "type": "textarea", "label": "Message", "required": True},
            ],
            "submitText": "Send Message",
            "successMessage": "Thanks for your message! We'll get back to you soon.",
        },
        default_settings={"padding": _padding(48, 48), "maxWidth": "narrow"},
    ),
    BlockDefinition(
        type="logo-cloud", name="Logo Cloud", category="marketing",
        description="Display partner or brand logos",
        default_content={"heading": "Trusted By", "logos": [], "grayscale": True, "columns": 5},
        default_settings=_section_settings(48),
    ),
    BlockDefinition(
        type="announcement-bar", name="Announcement Bar", category="marketing",
        description="Top banner for announcements and promotions",
        default_content={
            "text": "Free shipping on orders over $50!",
            "backgroundColor": "#000000",
            "textColor": "#ffffff",
            "dismissible": True,
        },
        default_settings=_section_settings(0, "full"),
    ),
]

BLOCK_REGISTRY: Dict[str, BlockDefinition] = {d.type: d for d in _DEFINITIONS}


def get_block_definition(block_type: str) -> BlockDefinition:
    definition = BLOCK_REGISTRY.get(block_type)
    if definition is None:
        raise ValidationError(
            f"Unknown block type: {block_type}",
            code="UNKNOWN_BLOCK_TYPE",
            details={"type": block_type},
        )
    return definition


def is_container(block_type: str) -> bool:
    return block_type in CONTAINER_TYPES


def get_blocks_by_category() -> Dict[str, List[BlockDefinition]]:
    grouped: Dict[str, List[BlockDefinition]] = {category: [] for category in BLOCK_CATEGORIES}
    for definition in _DEFINITIONS:
        grouped[definition.category].append(definition)
    return grouped


def create_block(
    block_type: str,
    variant: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None
) -> PageBlock:
    """
    New block of `block_type` populated from its defaults

    Defaults are deep-copied so editing one block never leaks into the
    registry or into another block. `overrides` may carry `content` and
    `settings` dicts which are merged over the defaults.
    """
    definition = get_block_definition(block_type)
    overrides = overrides or {}

    content = copy.deepcopy(definition.default_content)
    settings = copy.deepcopy(definition.default_settings)

    if block_type == "countdown" and not content.get("endDate"):
        now = now or datetime.now(timezone.utc)
        content["endDate"] = (now + timedelta(days=7)).isoformat()

    content.update(copy.deepcopy(overrides.get("content") or {}))
    settings.update(copy.deepcopy(overrides.get("settings") or {}))

    return PageBlock(
        id=str(uuid.uuid4()),
        type=block_type,
        variant=variant,
        visible=True,
        content=content,
        settings=settings,
        children=[] if definition.is_container else None,
    )


def _collect_ids(blocks: List[PageBlock], seen: set):
    for block in blocks:
        get_block_definition(block.type)
        if block.id in seen:
            raise ValidationError(
                f"Duplicate block id: {block.id}",
                code="DUPLICATE_BLOCK_ID",
                details={"id": block.id},
            )
        seen.add(block.id)
        if block.children:
            _collect_ids(block.children, seen)


def validate_blocks(raw_blocks: List[Any]) -> List[PageBlock]:
    """Parse and validate a block list coming from the editor"""
    try:
        blocks = [
            block if isinstance(block, PageBlock) else PageBlock.model_validate(block)
            for block in raw_blocks or []
        ]
    except PydanticValidationError as e:
        raise ValidationError("Invalid block structure", details={"errors": [err["msg"] for err in e.errors()]})

    _collect_ids(blocks, set())
    return blocks
