"""
Pytest configuration and fixtures for the find and replace tests.
"""

import pytest
import sys
import os
import asyncio
import logging
from pathlib import Path
import tempfile
import shutil

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Qt documents and objects are created without a display
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

from PyQt6.QtWidgets import QApplication

from models.document_host import DocumentHost
from models.errors import DocumentUnavailable, DocumentWriteError


class MemoryHost(DocumentHost):
    """In-memory document host with optional failures and read delays"""

    def __init__(self, documents=None, unreadable=(), unwritable=(), read_delay=0):
        self.documents = dict(documents or {})
        self.unreadable = set(unreadable)
        self.unwritable = set(unwritable)
        self.read_delay = read_delay
        self.reads = []
        self.writes = []

    async def enumerate_documents(self):
        return sorted(self.documents)

    async def read_document(self, document_id):
        self.reads.append(document_id)
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if document_id in self.unreadable or document_id not in self.documents:
            raise DocumentUnavailable(document_id, "simulated read failure")
        return self.documents[document_id]

    async def write_document(self, document_id, text):
        if document_id in self.unwritable:
            raise DocumentWriteError(document_id, "simulated write failure")
        self.writes.append(document_id)
        self.documents[document_id] = text


@pytest.fixture(scope='session')
def qapp():
    """Create QApplication instance for all tests"""
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    yield app
    # Don't quit the app here as it may be used by multiple tests


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    # Cleanup after test
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def settings_file(temp_dir):
    """Path of a settings file that does not exist yet"""
    return os.path.join(temp_dir, 'find_replace_settings.json')


@pytest.fixture
def sample_documents():
    """Provide a small corpus of notes"""
    return {
        'A.md': "# Animals\n\nthe cat sat\nThe Cat slept\n",
        'B.md': "first\nsecond\nthird\nfourth\nfifth\na cat ran\n",
        'Notes/todo.md': "- buy cat food\n- concatenate files\n",
        'Notes/empty.md': "",
    }


@pytest.fixture
def memory_host(sample_documents):
    """In-memory host over the sample corpus"""
    return MemoryHost(sample_documents)


@pytest.fixture
def vault_dir(temp_dir, sample_documents):
    """Write the sample corpus to a folder"""
    for name, text in sample_documents.items():
        path = os.path.join(temp_dir, *name.split('/'))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(text)
    return temp_dir


@pytest.fixture
def restore_logging():
    """Remove the handler installed by configure_logging and reset the level"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, '_find_replace_handler', False):
            root.removeHandler(handler)
    root.setLevel(level)
