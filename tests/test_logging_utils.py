import json
import logging

import pytest

from recordkit.utils.logging_utils import (
    ContextAwareFormatter,
    LoggerManager,
    get_log_context,
    init_logger,
    log_context,
    shutdown_logger,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    shutdown_logger()


def _record(message='hello'):
    return logging.LogRecord('recordkit.model', logging.INFO, __file__, 1, message, None, None)


class TestLogContext:
    """Contextual fields carried by the formatter."""

    def test_log_context_is_scoped(self):
        with log_context(model='UserModel', action='find', skipped=None):
            assert get_log_context() == {'model': 'UserModel', 'action': 'find'}
            with log_context(action='insert'):
                assert get_log_context()['action'] == 'insert'
            assert get_log_context()['action'] == 'find'
        assert get_log_context() == {}

    def test_text_format_appends_context(self):
        formatter = ContextAwareFormatter('%(message)s')
        assert formatter.format(_record()) == 'hello'
        with log_context(table='user'):
            assert formatter.format(_record()) == 'hello | table=user'

    def test_json_format(self):
        formatter = ContextAwareFormatter(json_format=True)
        with log_context(table='user'):
            payload = json.loads(formatter.format(_record()))
        assert payload['message'] == 'hello'
        assert payload['logger'] == 'recordkit.model'
        assert payload['context'] == {'table': 'user'}


class TestLoggerManager:
    """Handler wiring per category."""

    def test_logger_without_handlers_propagates(self):
        logger = LoggerManager().get_logger('model')
        assert logger.name == 'recordkit.model'
        assert logger.propagate is True

    def test_category_files_need_base_dir(self):
        manager = LoggerManager(enable_category_files=True)
        assert manager.get_logger('query').handlers == []

    def test_category_files(self, tmp_path):
        manager = LoggerManager(base_dir=str(tmp_path), enable_category_files=True)
        try:
            logger = manager.get_logger('query')
            logger.info('select')
            assert logger.propagate is False
            assert (tmp_path / 'query.log').read_text(encoding='utf-8').strip().endswith('select')
        finally:
            manager.shutdown()
        assert logger.handlers == []
        assert logger.propagate is True

    def test_init_logger_reads_config(self, tmp_path):
        class Settings:
            LOGGING_BASE_DIR = str(tmp_path)
            LOGGING_ENABLE_CATEGORY_FILES = True
            LOGGING_DEFAULT_LEVEL = 'DEBUG'
            LOGGING_CATEGORY_LEVELS = {'query': 'warning'}

        manager = init_logger(Settings)
        assert manager.get_logger('model').level == logging.DEBUG
        assert manager.get_logger('query').level == logging.WARNING
        assert (tmp_path / 'model.log').exists()
