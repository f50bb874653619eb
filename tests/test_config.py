import json
import logging

import pytest

from budget_insights import settings
from budget_insights.config import get_config_value, get_service_categories, load_config


def test_packaged_taxonomy():
    categories = get_service_categories()
    assert len(categories) == 8
    assert 'speech' in categories['Communication Therapy']
    assert list(categories)[0] == 'Communication Therapy'


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config('service_categories', tmp_path)


def test_config_dir_override(tmp_path, monkeypatch):
    taxonomy = {'categories': [{'name': 'Music Therapy', 'keywords': ['Music', 'Rhythm']}]}
    (tmp_path / 'service_categories.json').write_text(json.dumps(taxonomy), encoding='utf-8')
    monkeypatch.setattr(settings, 'CONFIG_DIR', tmp_path)

    assert get_service_categories() == {'Music Therapy': ['music', 'rhythm']}
    assert get_config_value('service_categories', 'categories', 0, 'name') == 'Music Therapy'


def test_get_config_value_default():
    assert get_config_value('service_categories', 'missing', default='fallback') == 'fallback'
    assert get_config_value('no_such_file', 'categories', default=[]) == []


def test_configure_logging_is_idempotent():
    logger = settings.configure_logging('DEBUG')
    handlers = len(logger.handlers)
    settings.configure_logging(logging.INFO)

    assert logger.name == 'budget_insights'
    assert logger.level == logging.INFO
    assert len(logger.handlers) == handlers
    settings.configure_logging('WARNING')
