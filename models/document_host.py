"""
Document hosts: where the engine reads and writes documents.
A host enumerates document ids, returns full text and accepts rewritten text.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from PyQt6.QtGui import QTextCursor, QTextDocument

from constants import DOCUMENT_EXTENSIONS
from models.errors import DocumentUnavailable, DocumentWriteError
from utils.file_filter import normalize_extension

logger = logging.getLogger(__name__)


def run_in_thread(func, *args, **kwargs):
    """Run blocking I/O in the default executor."""
    loop = asyncio.get_running_loop()
    return loop.run_in_executor(None, lambda: func(*args, **kwargs))


class DocumentHost:
    """Interface the engine uses to reach documents."""

    async def enumerate_documents(self):
        """Return all candidate document ids."""
        raise NotImplementedError

    async def read_document(self, document_id):
        """Return the full text of a document.

        Raises:
            DocumentUnavailable: If the document is missing or unreadable
        """
        raise NotImplementedError

    async def write_document(self, document_id, text):
        """Replace the full text of a document.

        Raises:
            DocumentWriteError: If the document could not be written
        """
        raise NotImplementedError


class FolderVault(DocumentHost):
    """Documents are the files below a root folder.

    Document ids are POSIX paths relative to the root, e.g. 'Notes/todo.md'.
    Only markdown notes are documents by default; pass other extensions to
    widen the vault, or an empty sequence for every non-hidden file.
    """

    def __init__(self, root, extensions=DOCUMENT_EXTENSIONS):
        self.root = Path(root)
        self.extensions = tuple(normalize_extension(e) for e in extensions) if extensions else None

    def _path_for(self, document_id):
        path = (self.root / document_id).resolve()
        if self.root.resolve() not in path.parents:
            raise DocumentUnavailable(document_id, "outside of vault")
        return path

    def _list_files(self):
        ids = []
        for path in self.root.rglob('*'):
            if not path.is_file():
                continue
            rel = path.relative_to(self.root)
            if any(part.startswith('.') for part in rel.parts):
                continue  # hidden files and folders
            if self.extensions and path.suffix.lower() not in self.extensions:
                continue
            ids.append(rel.as_posix())
        return sorted(ids)

    def _read(self, document_id):
        path = self._path_for(document_id)
        try:
            with open(path, 'r', encoding='utf-8', newline='') as f:
                return f.read()
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise DocumentUnavailable(document_id, str(e)) from e

    def _write(self, document_id, text):
        path = self._path_for(document_id)
        try:
            with tempfile.NamedTemporaryFile('w', delete=False, dir=path.parent,
                                             encoding='utf-8', newline='') as tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_path = tmp.name
            os.replace(tmp_path, path)
        except (IOError, OSError, UnicodeEncodeError) as e:
            raise DocumentWriteError(document_id, str(e)) from e

    async def enumerate_documents(self):
        return await run_in_thread(self._list_files)

    async def read_document(self, document_id):
        return await run_in_thread(self._read, document_id)

    async def write_document(self, document_id, text):
        await run_in_thread(self._write, document_id, text)


class TextDocumentHost(DocumentHost):
    """Documents are QTextDocuments, e.g. the open tabs of an editor.

    Text is read and written on the calling thread, as Qt documents require.
    """

    def __init__(self, documents=None):
        self.documents = {}
        for name, document in (documents or {}).items():
            self.add_document(name, document)

    def add_document(self, name, document):
        """Register a document under a name.

        Args:
            name: Document id, e.g. the tab title or file path
            document: QTextDocument, or plain text to wrap in a new one
        """
        if isinstance(document, str):
            document = QTextDocument(document)
        self.documents[name] = document
        return document

    def remove_document(self, name):
        self.documents.pop(name, None)

    async def enumerate_documents(self):
        return sorted(self.documents)

    async def read_document(self, document_id):
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentUnavailable(document_id, "no such document")
        return document.toPlainText()

    async def write_document(self, document_id, text):
        document = self.documents.get(document_id)
        if document is None:
            raise DocumentWriteError(document_id, "no such document")
        if document.isUndoRedoEnabled():
            # One undo step for the whole rewrite, like the editor's replace-all
            cursor = QTextCursor(document)
            cursor.beginEditBlock()
            cursor.select(QTextCursor.SelectionType.Document)
            cursor.insertText(text)
            cursor.endEditBlock()
        else:
            document.setPlainText(text)


class DryRunHost(DocumentHost):
    """Wraps another host and keeps writes in memory.

    Reads of a document that was "written" return the new text, so a dry run
    behaves like the real replacement without touching the wrapped host.
    """

    def __init__(self, host):
        self.host = host
        self.written = {}

    async def enumerate_documents(self):
        return await self.host.enumerate_documents()

    async def read_document(self, document_id):
        if document_id in self.written:
            return self.written[document_id]
        return await self.host.read_document(document_id)

    async def write_document(self, document_id, text):
        self.written[document_id] = text
