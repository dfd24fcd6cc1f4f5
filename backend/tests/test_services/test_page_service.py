"""
Unit tests for PageService and PageRenderer

The repository is replaced by a MagicMock; no database is needed.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront.core.errors import NotFoundError, ValidationError
from storefront.domain.collection import Collection
from storefront.domain.discount import Discount
from storefront.domain.page import (
    BlockTemplateCreate, PageBlock, PageCreate, PageUpdate, PageVersion, StorePage, ThemeUpdate,
)
from storefront.domain.product import Category, Product
from storefront.services.page_renderer import PageRenderer, RenderContext, load_render_context
from storefront.services.page_service import PageService

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _page(**overrides):
    values = {'id': 'page-1', 'tenant_id': 't', 'title': 'About Us', 'slug': 'about-us'}
    values.update(overrides)
    return StorePage(**values)


@pytest.fixture
def repo():
    repository = MagicMock()
    repository.find_slugs.return_value = []
    repository.create.side_effect = lambda tenant_id, values: _page(**values)
    return repository


@pytest.fixture
def service(repo):
    return PageService(repository=repo, version_limit=50)


class TestPageService:

    def test_create_page_gets_unique_slug(self, service, repo):
        repo.find_slugs.return_value = ['about-us', 'about-us-1']

        page = service.create_page('t', PageCreate(title='About Us'))

        assert page.slug == 'about-us-2'
        assert page.status == 'draft'
        assert page.blocks == []

    def test_home_page_starts_with_default_blocks(self, service, repo):
        page = service.create_page('t', PageCreate(title='Home', page_type='home'))

        assert [b.type for b in page.blocks] == ['hero', 'featured-products']
        assert page.settings == {'show_header': True, 'show_footer': True}

    def test_get_page_not_found(self, service, repo):
        repo.find_by_id.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            service.get_page('t', 'missing')

        assert exc_info.value.code == 'PAGE_NOT_FOUND'

    def test_update_passes_version_limit_and_user(self, service, repo):
        repo.find_by_id.return_value = _page()
        repo.update.return_value = _page()

        service.update_page('t', 'page-1', PageUpdate(blocks=[{'id': 'b1', 'type': 'text'}]), user_id='u1')

        args, kwargs = repo.update.call_args
        assert args[2]['blocks'][0]['id'] == 'b1'
        assert kwargs == {'version_limit': 50, 'created_by': 'u1'}

    def test_update_rejects_invalid_blocks(self, service, repo):
        repo.find_by_id.return_value = _page()

        with pytest.raises(ValidationError):
            service.update_page('t', 'page-1', PageUpdate(blocks=[{'id': 'b1', 'type': 'nope'}]))

        repo.update.assert_not_called()

    def test_update_slug_is_normalized_and_unique(self, service, repo):
        repo.find_by_id.return_value = _page()
        repo.find_slugs.return_value = ['our-story']
        repo.update.return_value = _page()

        service.update_page('t', 'page-1', PageUpdate(slug='Our Story'))

        assert repo.update.call_args[0][2]['slug'] == 'our-story-1'

    def test_unchanged_slug_is_dropped(self, service, repo):
        repo.find_by_id.return_value = _page()
        repo.update.return_value = _page()

        service.update_page('t', 'page-1', PageUpdate(slug='About-Us'))

        assert 'slug' not in repo.update.call_args[0][2]

    def test_first_publish_sets_published_at(self, service, repo):
        repo.find_by_id.return_value = _page(status='draft')
        repo.update.return_value = _page(status='published')

        service.publish_page('t', 'page-1')

        updates = repo.update.call_args[0][2]
        assert updates['status'] == 'published'
        assert isinstance(updates['published_at'], datetime)

    def test_duplicate_page(self, service, repo):
        repo.find_by_id.return_value = _page(title='Home', slug='home', page_type='home', is_homepage=True)

        copy = service.duplicate_page('t', 'page-1')

        assert copy.title == 'Home (Copy)'
        assert copy.slug == 'home-copy'
        assert copy.page_type == 'custom'
        assert copy.is_homepage is False
        assert copy.status == 'draft'

    def test_published_page_by_home_slug(self, service, repo):
        repo.find_homepage.return_value = _page(slug='welcome', status='published', is_homepage=True)

        page = service.get_published_page('t', 'home')

        assert page.slug == 'welcome'
        repo.find_by_slug.assert_not_called()

    def test_draft_pages_are_not_served(self, service, repo):
        repo.find_by_slug.return_value = _page(status='draft')

        with pytest.raises(NotFoundError):
            service.get_published_page('t', 'about-us')

    def test_restore_version(self, service, repo):
        repo.find_version.return_value = PageVersion(
            id='v', page_id='page-1', tenant_id='t', version_number=3,
            blocks=[PageBlock(id='old', type='text')], settings={'show_footer': False}
        )
        repo.find_by_id.return_value = _page()
        repo.update.return_value = _page()

        service.restore_version('t', 'page-1', 3)

        updates = repo.update.call_args[0][2]
        assert updates['blocks'][0]['id'] == 'old'
        assert updates['settings'] == {'show_footer': False}

    def test_restore_missing_version(self, service, repo):
        repo.find_version.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            service.restore_version('t', 'page-1', 99)

        assert exc_info.value.code == 'VERSION_NOT_FOUND'

    def test_theme_update_merges_colors(self, service, repo):
        repo.find_theme.return_value = None
        repo.upsert_theme.side_effect = lambda theme: theme

        theme = service.update_theme('t', ThemeUpdate(colors={'primary': '#ff0000'}))

        assert theme.colors['primary'] == '#ff0000'
        assert theme.colors['accent'] == '#3b82f6'

    def test_save_template_validates_block(self, service, repo):
        data = BlockTemplateCreate(name='Promo hero', block=PageBlock(id='b', type='hero'))

        service.save_template('t', data)

        kwargs = repo.create_template.call_args.kwargs
        assert kwargs['block_type'] == 'hero'
        assert kwargs['block_data']['id'] == 'b'

    def test_delete_missing_template(self, service, repo):
        repo.delete_template.return_value = False

        with pytest.raises(NotFoundError):
            service.delete_template('t', 'tpl-1')


def _product(product_id, created, price="20.00", **kwargs):
    data = {'id': product_id, 'price': price, 'created_at': created, 'category_id': None, 'collection_ids': []}
    data.update(kwargs)
    return data


class TestPageRenderer:

    @pytest.fixture
    def context(self):
        return RenderContext(
            tenant_id='t',
            currency='EUR',
            products=[
                _product('old', '2025-01-01T00:00:00+00:00'),
                _product('new', '2025-05-01T00:00:00+00:00'),
                _product('mid', '2025-03-01T00:00:00+00:00'),
            ],
            collections=[Collection(id='col-1', tenant_id='t', name='Summer', slug='summer')],
            collection_products={'col-1': [_product('mid', '2025-03-01T00:00:00+00:00')]},
            categories=[
                Category(id='c1', tenant_id='t', name='Tea', slug='tea'),
                Category(id='c2', tenant_id='t', name='Coffee', slug='coffee'),
            ],
            sales=[Discount(id='sale-1', tenant_id='t', name='25% off', kind='sale',
                            value=Decimal('25'), applicable_product_ids=['new'])],
            now=NOW,
        )

    def test_latest_products_newest_first_with_limit(self, context):
        block = PageBlock(id='b', type='featured-products', content={'source': 'latest', 'limit': 2})

        payload = PageRenderer(context).render_block(block)

        assert [p['id'] for p in payload['data']['products']] == ['new', 'mid']
        assert payload['data']['currency'] == 'EUR'

    def test_products_carry_sale_price(self, context):
        block = PageBlock(id='b', type='product-grid', content={'source': 'manual', 'productIds': ['new', 'old']})

        products = PageRenderer(context).render_block(block)['data']['products']

        assert [p['id'] for p in products] == ['new', 'old']
        assert products[0]['sale_price'] == '15.00'
        assert products[0]['sale_id'] == 'sale-1'
        assert products[1]['sale_price'] is None

    def test_collection_source(self, context):
        block = PageBlock(id='b', type='featured-products', content={'source': 'collection', 'collectionId': 'col-1'})

        products = PageRenderer(context).render_block(block)['data']['products']

        assert [p['id'] for p in products] == ['mid']

    def test_collection_showcase(self, context):
        block = PageBlock(id='b', type='collection-showcase', content={'collectionId': 'col-1'})

        data = PageRenderer(context).render_block(block)['data']

        assert data['collection']['name'] == 'Summer'
        assert len(data['products']) == 1

    def test_category_grid_selected(self, context):
        block = PageBlock(id='b', type='category-grid', content={'showAll': False, 'categoryIds': ['c2']})

        data = PageRenderer(context).render_block(block)['data']

        assert [c['id'] for c in data['categories']] == ['c2']

    def test_countdown_expiry(self, context):
        past = PageBlock(id='a', type='countdown', content={'endDate': (NOW - timedelta(hours=1)).isoformat()})
        future = PageBlock(id='b', type='countdown', content={'endDate': (NOW + timedelta(hours=1)).isoformat()})

        renderer = PageRenderer(context)

        assert renderer.render_block(past)['data']['expired'] is True
        assert renderer.render_block(future)['data']['seconds_remaining'] == 3600

    def test_unknown_and_hidden_blocks_are_skipped(self, context):
        blocks = [
            PageBlock(id='x', type='legacy-slider', order=0),
            PageBlock(id='h', type='text', order=1, visible=False),
            PageBlock(id='t', type='text', order=2),
        ]

        rendered = PageRenderer(context).render(blocks)

        assert [b['id'] for b in rendered] == ['t']

    def test_containers_render_children(self, context):
        section = PageBlock(id='s', type='section', children=[
            PageBlock(id='c2', type='text', order=1),
            PageBlock(id='c1', type='text', order=0),
        ])

        payload = PageRenderer(context).render_block(section)

        assert [c['id'] for c in payload['children']] == ['c1', 'c2']

    def test_load_context_only_fetches_what_blocks_need(self):
        products, collections, categories, discounts = MagicMock(), MagicMock(), MagicMock(), MagicMock()

        context = load_render_context(
            't', [PageBlock(id='a', type='text')],
            products=products, collections=collections, categories=categories, discounts=discounts,
        )

        products.find_all.assert_not_called()
        categories.find_all.assert_not_called()
        discounts.find_active_sales.assert_not_called()
        assert context.products == []

    def test_load_context_survives_sales_failure(self):
        products, collections, categories, discounts = MagicMock(), MagicMock(), MagicMock(), MagicMock()
        products.find_all.return_value = ([], 0)
        discounts.find_active_sales.side_effect = Exception("db down")

        context = load_render_context(
            't', [PageBlock(id='a', type='featured-products', content={'source': 'latest'})],
            products=products, collections=collections, categories=categories, discounts=discounts,
        )

        assert context.sales == []

    def test_manual_picks_outside_latest_window_are_loaded_by_id(self):
        # Arrange
        products, collections, categories, discounts = MagicMock(), MagicMock(), MagicMock(), MagicMock()
        newest = [
            Product(id=f'p{i}', tenant_id='t', name=f'P{i}', slug=f'p{i}', price=Decimal('5'), status='active')
            for i in range(200)
        ]
        products.find_all.return_value = (newest, 300)
        products.find_by_ids.return_value = [
            Product(id='p1', tenant_id='t', name='P1', slug='p1', price=Decimal('5'), status='active'),
            Product(id='p250', tenant_id='t', name='P250', slug='p250', price=Decimal('5'), status='active'),
            Product(id='p260', tenant_id='t', name='P260', slug='p260', price=Decimal('5'), status='draft'),
        ]
        discounts.find_active_sales.return_value = []
        blocks = [
            PageBlock(id='latest', type='featured-products', content={'source': 'latest', 'limit': 4}),
            PageBlock(id='picked', type='product-grid', content={
                'source': 'manual', 'productIds': ['p250', 'p260', 'p1'],
            }),
        ]

        # Act
        context = load_render_context(
            't', blocks, products=products, collections=collections, categories=categories, discounts=discounts,
        )
        rendered = PageRenderer(context).render_block(blocks[1])

        # Assert
        assert products.find_by_ids.call_args[0] == ('t', ['p250', 'p260', 'p1'])
        assert [p['id'] for p in rendered['data']['products']] == ['p250', 'p1']

    def test_manual_only_page_skips_latest_query(self):
        products, collections, categories, discounts = MagicMock(), MagicMock(), MagicMock(), MagicMock()
        products.find_by_ids.return_value = []
        discounts.find_active_sales.return_value = []

        load_render_context(
            't', [PageBlock(id='b', type='product-grid', content={'source': 'manual', 'productIds': ['p9']})],
            products=products, collections=collections, categories=categories, discounts=discounts,
        )

        products.find_all.assert_not_called()
        products.find_by_ids.assert_called_once_with('t', ['p9'])
