"""
Test Configuration and Fixtures
"""
import io

import pytest
import PyPDF2

from pdf2text import create_app
from pdf2text.archive import ArchiveStore


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing with an isolated archive"""
    app = create_app('testing', {
        'ARCHIVE_DIR': str(tmp_path / 'archive'),
        'UPLOAD_DIR': str(tmp_path / 'uploads'),
        'UPSTAGE_API_KEY': '',
        'OPENAI_API_KEY': '',
    })
    yield app


@pytest.fixture(scope='function')
def configured_app(app):
    """Application with both API keys present"""
    app.config['UPSTAGE_API_KEY'] = 'test-upstage-key'
    app.config['OPENAI_API_KEY'] = 'test-openai-key'
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def configured_client(configured_app):
    """Test client with API keys configured"""
    return configured_app.test_client()


@pytest.fixture(scope='function')
def archive(app) -> ArchiveStore:
    """The app's archive store"""
    return app.extensions['archive']


@pytest.fixture(scope='function')
def store(tmp_path) -> ArchiveStore:
    """Standalone archive store"""
    return ArchiveStore(str(tmp_path / 'store'))


@pytest.fixture
def pdf_bytes():
    """A minimal two-page PDF"""
    writer = PyPDF2.PdfWriter()
    writer.add_blank_page(width=72, height=72)
    writer.add_blank_page(width=72, height=72)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()
