"""
Widget and dropdown installer tests, run against the in-memory page.
"""

import asyncio

import pytest

from feature_loader.loader.attributes import DropdownDescriptor, WidgetDescriptor
from feature_loader.loader.installers import collect_dropdowns, install_dropdown, install_dropdowns, install_widget, install_widgets
from feature_loader.loader.page import MemoryPage, dropdown_selector, spin_query


class TestInstallWidget:

    @pytest.mark.asyncio
    async def test_literal_true_installs_and_calls_success(self, page):
        called = []
        widget = WidgetDescriptor(condition=True, content='<i>w</i>', success=lambda: called.append(1))
        assert await install_widget(page, widget) is True
        assert page.widgets == ['<i>w</i>']
        assert called == [1]

    @pytest.mark.asyncio
    async def test_false_condition_skips(self, page):
        assert await install_widget(page, WidgetDescriptor(condition=False, content='x')) is False
        assert page.widgets == []

    @pytest.mark.asyncio
    async def test_truthy_non_boolean_condition_skips(self, page):
        assert await install_widget(page, WidgetDescriptor(condition='yes', content='x')) is False

    @pytest.mark.asyncio
    async def test_sync_and_async_predicates(self, page):
        async def ready():
            await asyncio.sleep(0)
            return True

        assert await install_widget(page, WidgetDescriptor(condition=lambda: True, content='a')) is True
        assert await install_widget(page, WidgetDescriptor(condition=ready, content='b')) is True
        assert page.widgets == ['a', 'b']

    @pytest.mark.asyncio
    async def test_rejecting_predicate_is_false(self, page):
        async def broken():
            raise RuntimeError('no')

        assert await install_widget(page, WidgetDescriptor(condition=broken, content='x')) is False
        assert page.widgets == []

    @pytest.mark.asyncio
    async def test_async_success_is_awaited(self, page):
        called = []

        async def done():
            called.append('done')

        await install_widget(page, WidgetDescriptor(content='x', success=done))
        assert called == ['done']


class TestInstallWidgets:

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, make_manager, page):
        manager = make_manager({})

        def explode():
            raise RuntimeError('success failed')

        manager.attributes.set('a', {'widget': {'content': 'a', 'success': explode}})
        manager.attributes.set('b', {'widget': {'content': 'b'}})
        manager.attributes.set('c', {'widget': {'condition': False, 'content': 'c'}})
        manager.attributes.set('d', {'export': 'no widget'})
        installed = await install_widgets(manager)
        assert installed == ['b']
        assert sorted(page.widgets) == ['a', 'b']
        assert await install_widgets(manager) == []
        assert sorted(page.widgets) == ['a', 'b']

    @pytest.mark.asyncio
    async def test_no_candidates(self, make_manager):
        assert await install_widgets(make_manager({})) == []


class TestInstallDropdowns:

    @pytest.mark.asyncio
    async def test_options_set_dropdown_value(self, page):
        dropdown = page.add_dropdown('speed')
        seen = []
        dropdown.listeners.append(seen.append)
        assert await install_dropdown(page, DropdownDescriptor('speed', [0.5, 1, 2])) is True
        assert dropdown.items() == [0.5, 1, 2]
        dropdown.select(2)
        assert dropdown.value == 2
        assert seen == [2]

    @pytest.mark.asyncio
    async def test_missing_dropdown_times_out(self, page):
        assert await install_dropdown(page, DropdownDescriptor('absent', ['x'])) is False

    @pytest.mark.asyncio
    async def test_dropdown_appearing_later_is_found(self):
        page = MemoryPage(poll_interval=0.01, max_retry=50)

        async def attach():
            await asyncio.sleep(0.03)
            page.add_dropdown('late')

        task = asyncio.ensure_future(attach())
        assert await install_dropdown(page, DropdownDescriptor('late', ['x'])) is True
        await task
        assert page.query(dropdown_selector('late')).items() == ['x']

    @pytest.mark.asyncio
    async def test_catalog_and_component_descriptors(self, make_manager, page):
        manager = make_manager({
            'a': {
                'type': 'script',
                'url': 'https://cdn.test/a.js',
                'dropdown': {'key': 'from-catalog', 'items': ['c']},
            },
        })
        manager.attributes.set('b', {'dropdown': [[{'key': 'from-export', 'items': ['e']}], {'key': 'absent', 'items': []}]})
        assert [d.key for d in collect_dropdowns(manager)] == ['from-catalog', 'from-export', 'absent']
        page.add_dropdown('from-catalog')
        page.add_dropdown('from-export')
        installed = await install_dropdowns(manager)
        assert installed == ['from-catalog', 'from-export']


class TestSpinQuery:

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retry(self):
        calls = []

        def query():
            calls.append(1)
            return None

        assert await spin_query(query, interval=0, max_retry=3) is None
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_async_query(self):
        async def query():
            return 'found'

        assert await spin_query(query, interval=0) == 'found'
