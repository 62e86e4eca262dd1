"""Tests for the command line entry point."""

import json
import logging

import pytest
from aioresponses import aioresponses

from main import CrawlerApp, build_parser


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "crawler:\n"
        "  seed_urls: ['http://example.com/']\n"
        "  hosts: ['example.com']\n"
        "logging:\n"
        f"  file: '{tmp_path / 'logs' / 'crawler.log'}'\n"
    )
    return path


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.config == 'config.yaml'
    assert args.seeds is None
    assert args.max_pages is None
    assert not args.dry_run


def test_repeatable_seeds():
    args = build_parser().parse_args(['--seed', 'http://a.test/', '--seed', 'http://b.test/'])
    assert args.seeds == ['http://a.test/', 'http://b.test/']


@pytest.mark.asyncio
async def test_missing_config_fails(tmp_path):
    assert await CrawlerApp().run(str(tmp_path / "missing.yaml")) == 1


@pytest.mark.asyncio
async def test_crawl_with_page_limit_and_export(tmp_path, config_file, restore_root_logger):
    export_path = tmp_path / "state.json"

    with aioresponses() as mocked:
        mocked.get("http://example.com/", status=200, content_type="text/html",
                   body='<a href="/a">a</a><a href="/b">b</a>')

        code = await CrawlerApp().run(str(config_file), max_pages=1, export_path=str(export_path))

    assert code == 0
    assert json.loads(export_path.read_text()) == {
        'history': ["http://example.com/"],
        'queue': ["http://example.com/a", "http://example.com/b"],
    }


@pytest.mark.asyncio
async def test_seed_override(tmp_path, config_file, restore_root_logger):
    export_path = tmp_path / "state.json"

    with aioresponses() as mocked:
        mocked.get("http://example.com/other", status=200, content_type="text/html", body="")

        code = await CrawlerApp().run(str(config_file), seeds=["http://example.com/other"],
                                      export_path=str(export_path))

    assert code == 0
    assert json.loads(export_path.read_text())['history'] == ["http://example.com/other"]


@pytest.mark.asyncio
async def test_invalid_seed_fails(config_file, restore_root_logger):
    assert await CrawlerApp().run(str(config_file), seeds=["not a url"]) == 1
