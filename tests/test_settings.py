"""
Tests for the SettingsManager class in managers/settings.py
"""

import pytest
import os
import json

from managers.settings import DEFAULT_SETTINGS, SettingsManager
from models.search_models import MatchOptions


class TestSettingsManager:
    """Tests for SettingsManager"""

    @pytest.fixture
    def manager(self, settings_file):
        """Create a fresh SettingsManager for each test"""
        return SettingsManager(settings_file)

    def test_initialization(self, manager, settings_file):
        """Test manager initializes correctly"""
        assert manager.settings_file == settings_file
        assert manager._settings == {}

    def test_load_nonexistent_file(self, manager):
        """Test loading from non-existent file returns empty dict"""
        result = manager.load()
        assert result == {}

    def test_save_and_load(self, manager):
        """Test saving and loading settings"""
        test_settings = {
            'max_results': 200,
            'include_patterns': ['Notes/'],
            'log_level': 'DEBUG',
        }

        manager.save(test_settings)
        result = manager.load()

        assert result == test_settings

    def test_load_invalid_json(self, manager, settings_file):
        """Test that a corrupt settings file is ignored"""
        with open(settings_file, 'w', encoding='utf-8') as f:
            f.write('{not json')

        assert manager.load() == {}
        assert manager.get('max_results') == DEFAULT_SETTINGS['max_results']

    def test_load_non_object(self, manager, settings_file):
        """Test that a settings file holding a list is ignored"""
        with open(settings_file, 'w', encoding='utf-8') as f:
            json.dump([1, 2], f)
        assert manager.load() == {}

    def test_get_existing_key(self, manager):
        """Test getting an existing key"""
        manager.save({'key1': 'value1', 'key2': 42})
        manager.load()

        assert manager.get('key1') == 'value1'
        assert manager.get('key2') == 42

    def test_get_nonexistent_key_default(self, manager):
        """Test getting non-existent key returns default"""
        manager.save({})
        manager.load()

        assert manager.get('nonexistent') is None
        assert manager.get('nonexistent', 'default') == 'default'

    def test_get_falls_back_to_defaults(self, manager):
        """Test that known keys have built-in defaults"""
        manager.load()
        assert manager.get('search_batch_size') == DEFAULT_SETTINGS['search_batch_size']
        assert manager.get('enable_history') is True

    def test_default_lists_are_copies(self, manager):
        """Test that changing a returned default does not change the defaults"""
        manager.get('search_history').append('oops')
        assert DEFAULT_SETTINGS['search_history'] == []

    def test_set_persists(self, manager, settings_file):
        """Test that set() writes the file"""
        manager.set('max_results', 10)
        with open(settings_file, encoding='utf-8') as f:
            assert json.load(f)['max_results'] == 10

    def test_set_without_save(self, manager, settings_file):
        """Test that set(save=False) only changes memory"""
        manager.set('max_results', 10, save=False)
        assert manager.get('max_results') == 10
        assert not os.path.exists(settings_file)

    def test_save_failure_logged(self, temp_dir, caplog):
        """Test that an unwritable settings path is logged, not raised"""
        manager = SettingsManager(os.path.join(temp_dir, 'missing', 'settings.json'))
        manager.save({'max_results': 1})
        assert 'Failed to save settings' in caplog.text
        assert manager.get('max_results') == 1

    def test_no_settings_file(self):
        """Test that a manager without a file works in memory"""
        manager = SettingsManager(None)
        assert manager.load() == {}
        manager.set('max_results', 5)
        assert manager.get('max_results') == 5


class TestValidateSettings:
    """Tests for validate_settings"""

    @pytest.fixture
    def manager(self, settings_file):
        return SettingsManager(settings_file)

    def test_wrong_types_dropped(self, manager):
        """Test that values of the wrong type are ignored"""
        valid = manager.validate_settings({'max_results': 'lots', 'enable_history': 1, 'extra': 'kept'})
        assert 'max_results' not in valid
        assert 'enable_history' not in valid
        assert valid['extra'] == 'kept'

    def test_numbers_clamped(self, manager):
        """Test that numeric settings are clamped to usable values"""
        valid = manager.validate_settings({'search_batch_size': 0, 'max_results': -5, 'max_history_size': 0})
        assert valid == {'search_batch_size': 1, 'max_results': 0, 'max_history_size': 1}


class TestSearchSettings:
    """Tests for the search option and filter helpers"""

    @pytest.fixture
    def manager(self, settings_file):
        manager = SettingsManager(settings_file)
        manager.load()
        return manager

    def test_default_match_options(self, manager):
        """Test that all switches start off"""
        assert manager.get_match_options() == MatchOptions()

    def test_remember_options(self, manager, settings_file):
        """Test that remembered options come back after a reload"""
        manager.remember_options(MatchOptions(whole_word=True, use_pattern=True))

        reloaded = SettingsManager(settings_file)
        reloaded.load()
        assert reloaded.get_match_options() == MatchOptions(whole_word=True, use_pattern=True)

    def test_remember_disabled(self, manager):
        """Test that options are not remembered when the setting is off"""
        manager.set('remember_search_options', False)
        manager.remember_options(MatchOptions(case_sensitive=True))
        assert manager.get_match_options() == MatchOptions()

    def test_build_file_filter(self, manager):
        """Test building a filter from settings"""
        assert manager.build_file_filter() is None

        manager.set('exclude_patterns', ['Archive/'])
        manager.set('file_extensions', ['md'])
        file_filter = manager.build_file_filter()
        assert file_filter.accepts('Notes/todo.md')
        assert not file_filter.accepts('Archive/old.md')
        assert not file_filter.accepts('data.csv')
