"""
Page Service - store page lifecycle for the page builder

Wraps PageRepository with the rules the editor relies on: unique slugs,
default home page content, version snapshots on every block change,
publishing, duplication and restore.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from storefront.core.config import settings
from storefront.core.errors import NotFoundError
from storefront.domain.common import slugify, unique_slug
from storefront.domain.page import (
    BlockTemplate, BlockTemplateCreate, PageCreate, PageUpdate, PageVersion,
    StorePage, StoreTheme, ThemeUpdate, default_page_settings,
)
from storefront.repositories.page_repository import PageRepository
from storefront.services.block_registry import create_block, validate_blocks

logger = logging.getLogger(__name__)

VERSION_LIST_LIMIT = 20


def default_home_blocks() -> list:
    return [create_block("hero"), create_block("featured-products")]


class PageService:
    def __init__(self, repository: Optional[PageRepository] = None, version_limit: Optional[int] = None):
        self.repository = repository or PageRepository()
        self.version_limit = version_limit or settings.PAGE_VERSION_LIMIT

    def get_page(self, tenant_id: str, page_id: str) -> StorePage:
        page = self.repository.find_by_id(tenant_id, page_id)
        if not page:
            raise NotFoundError(f"Page {page_id} not found", code="PAGE_NOT_FOUND")
        return page

    def list_pages(self, tenant_id: str, status: Optional[str] = None) -> List[StorePage]:
        return self.repository.find_all(tenant_id, status=status)

    def get_published_page(self, tenant_id: str, page_slug: str) -> StorePage:
        """Published page by slug; 'home' resolves to the homepage"""
        if page_slug == "home":
            page = self.repository.find_homepage(tenant_id) or self.repository.find_by_slug(tenant_id, "home")
        else:
            page = self.repository.find_by_slug(tenant_id, page_slug)

        if not page or page.status != "published":
            raise NotFoundError(f"Page '{page_slug}' not found", code="PAGE_NOT_FOUND")
        return page

    def _unique_slug(self, tenant_id: str, base_slug: str) -> str:
        base_slug = base_slug or "page"
        return unique_slug(base_slug, self.repository.find_slugs(tenant_id, base_slug))

    def create_page(self, tenant_id: str, data: PageCreate) -> StorePage:
        slug = self._unique_slug(tenant_id, slugify(data.title))

        values = {
            'title': data.title,
            'slug': slug,
            'page_type': data.page_type,
            'status': 'draft',
            'blocks': [],
            'settings': {},
        }
        if data.page_type == "home":
            values['blocks'] = [b.model_dump() for b in default_home_blocks()]
            values['settings'] = default_page_settings()

        page = self.repository.create(tenant_id, values)
        logger.info(f"Created page {page.id} ({page.slug}) for tenant {tenant_id}")
        return page

    def update_page(
        self,
        tenant_id: str,
        page_id: str,
        data: PageUpdate,
        user_id: Optional[str] = None
    ) -> StorePage:
        current = self.get_page(tenant_id, page_id)
        updates = data.model_dump(exclude_unset=True)

        if 'blocks' in updates:
            blocks = validate_blocks(updates['blocks'] or [])
            updates['blocks'] = [b.model_dump() for b in blocks]

        if 'slug' in updates:
            new_slug = slugify(updates['slug'] or '') or slugify(current.title)
            if new_slug == current.slug:
                updates.pop('slug')
            else:
                updates['slug'] = unique_slug(
                    new_slug, self.repository.find_slugs(tenant_id, new_slug), exclude=current.slug
                )

        if updates.get('status') == 'published' and current.status != 'published':
            updates['published_at'] = datetime.now(timezone.utc)

        page = self.repository.update(
            tenant_id, page_id, updates,
            version_limit=self.version_limit,
            created_by=user_id,
        )
        if not page:
            raise NotFoundError(f"Page {page_id} not found", code="PAGE_NOT_FOUND")
        return page

    def publish_page(self, tenant_id: str, page_id: str, user_id: Optional[str] = None) -> StorePage:
        return self.update_page(tenant_id, page_id, PageUpdate(status="published"), user_id)

    def delete_page(self, tenant_id: str, page_id: str) -> bool:
        if not self.repository.delete(tenant_id, page_id):
            raise NotFoundError(f"Page {page_id} not found", code="PAGE_NOT_FOUND")
        logger.info(f"Deleted page {page_id} for tenant {tenant_id}")
        return True

    def duplicate_page(self, tenant_id: str, page_id: str) -> StorePage:
        source = self.get_page(tenant_id, page_id)
        slug = self._unique_slug(tenant_id, f"{source.slug}-copy")

        values = {
            'title': f"{source.title} (Copy)",
            'slug': slug,
            'page_type': 'custom' if source.page_type == 'home' else source.page_type,
            'status': 'draft',
            'is_homepage': False,
            'meta_title': source.meta_title,
            'meta_description': source.meta_description,
            'blocks': [b.model_dump() for b in source.blocks],
            'settings': dict(source.settings),
        }
        return self.repository.create(tenant_id, values)

    def list_versions(self, tenant_id: str, page_id: str) -> List[PageVersion]:
        self.get_page(tenant_id, page_id)
        return self.repository.find_versions(tenant_id, page_id, limit=VERSION_LIST_LIMIT)

    def restore_version(
        self,
        tenant_id: str,
        page_id: str,
        version_number: int,
        user_id: Optional[str] = None
    ) -> StorePage:
        """Restore blocks and settings; the state being replaced is versioned too"""
        version = self.repository.find_version(tenant_id, page_id, version_number)
        if not version:
            raise NotFoundError(
                f"Version {version_number} of page {page_id} not found",
                code="VERSION_NOT_FOUND",
            )

        return self.update_page(
            tenant_id, page_id,
            PageUpdate(blocks=version.blocks, settings=version.settings),
            user_id,
        )

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------

    def get_theme(self, tenant_id: str) -> StoreTheme:
        return self.repository.find_theme(tenant_id) or StoreTheme(tenant_id=tenant_id)

    def update_theme(self, tenant_id: str, data: ThemeUpdate) -> StoreTheme:
        theme = self.get_theme(tenant_id)
        updates = data.model_dump(exclude_unset=True)

        for key in ('colors', 'typography', 'layout'):
            if updates.get(key) is not None:
                updates[key] = {**getattr(theme, key), **updates[key]}
            else:
                updates.pop(key, None)

        return self.repository.upsert_theme(theme.model_copy(update=updates))

    # ------------------------------------------------------------------
    # Block templates
    # ------------------------------------------------------------------

    def list_templates(self, tenant_id: str, block_type: Optional[str] = None) -> List[BlockTemplate]:
        return self.repository.find_templates(tenant_id, block_type)

    def save_template(self, tenant_id: str, data: BlockTemplateCreate) -> BlockTemplate:
        block = validate_blocks([data.block])[0]
        return self.repository.create_template(
            tenant_id,
            name=data.name,
            description=data.description,
            block_type=block.type,
            block_data=block.model_dump(),
        )

    def delete_template(self, tenant_id: str, template_id: str) -> bool:
        if not self.repository.delete_template(tenant_id, template_id):
            raise NotFoundError(f"Template {template_id} not found", code="TEMPLATE_NOT_FOUND")
        return True


_page_service: Optional[PageService] = None


def get_page_service() -> PageService:
    global _page_service
    if _page_service is None:
        _page_service = PageService()
    return _page_service
