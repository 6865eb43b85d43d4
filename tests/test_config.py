"""
Configuration Tests
"""
from pdf2text import create_app
from pdf2text.config import DevelopmentConfig, TestingConfig, get_config, get_parameter, setting


class TestConfig:
    """Config selection and lookup"""

    def test_get_config(self):
        assert get_config('testing') is TestingConfig
        assert get_config('unknown') is DevelopmentConfig

    def test_parameter_env_precedence(self, monkeypatch):
        monkeypatch.setenv('UPSTAGE_API_KEY', 'from-env')
        assert get_parameter('upstage-api-key', 'fallback') == 'from-env'

    def test_parameter_default(self, monkeypatch):
        monkeypatch.delenv('SOME_MISSING_PARAM', raising=False)
        monkeypatch.delenv('USE_PARAMETER_STORE', raising=False)
        assert get_parameter('some-missing-param', 'fallback') == 'fallback'

    def test_setting_prefers_app_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv('OPENAI_MODEL', 'env-model')
        app = create_app('testing', {'ARCHIVE_DIR': str(tmp_path), 'OPENAI_MODEL': 'app-model'})
        with app.app_context():
            assert setting('OPENAI_MODEL') == 'app-model'
        assert setting('OPENAI_MODEL') == 'env-model'

    def test_archive_created(self, tmp_path):
        create_app('testing', {'ARCHIVE_DIR': str(tmp_path / 'arch')})
        assert (tmp_path / 'arch' / 'index.json').exists()
        assert (tmp_path / 'arch' / 'pdfs').is_dir()
