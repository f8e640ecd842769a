import os
import logging
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Dict, List

import anyio
from langchain_core.documents import Document
from langchain_community.document_loaders import (
    BSHTMLLoader,
    Docx2txtLoader,
    PyPDFLoader,
    TextLoader,
)

from src.core.exceptions import DocumentParsingError
from src.services.upload_validator import get_file_extension

logger = logging.getLogger(__name__)


def _load_html(path: str) -> List[Document]:
    return BSHTMLLoader(path, open_encoding="utf-8", bs_kwargs={"features": "html.parser"}).load()


@dataclass
class FileParser:
    """Extracts plain text from uploaded files with LangChain document loaders."""

    file_parser: Dict[str, Callable[[str], List[Document]]] = field(
        default_factory=lambda: {
            ".pdf": lambda path: PyPDFLoader(path).load(),
            ".docx": lambda path: Docx2txtLoader(path).load(),
            ".html": _load_html,
            ".htm": _load_html,
            ".txt": lambda path: TextLoader(path, encoding="utf-8").load(),
            ".md": lambda path: TextLoader(path, encoding="utf-8").load(),
        }
    )

    async def parse_bytes(self, file_name: str, content: bytes) -> str:
        """
        Parse raw file bytes into normalized text.

        The bytes are written to a temporary file because the loaders work on
        paths; the file is removed before returning.

        Args:
            file_name: Original file name, used to pick the loader
            content: Raw file bytes

        Returns:
            str: Extracted text, pages joined by blank lines

        Raises:
            DocumentParsingError: If the type is unsupported, the loader fails
                or no text could be extracted
        """
        extension = get_file_extension(file_name)
        parser = self.file_parser.get(extension or "")
        if parser is None:
            logger.error(f"Unsupported file type: {extension}")
            raise DocumentParsingError(
                f"Unsupported file type: {extension}", file_name=file_name
            )

        with tempfile.NamedTemporaryFile(delete=False, suffix=extension) as temp_file:
            temp_file.write(content)
            temp_path = temp_file.name

        try:
            documents = await anyio.to_thread.run_sync(parser, temp_path)
        except Exception as e:
            logger.error(f"Error parsing {extension} file '{file_name}': {str(e)}")
            raise DocumentParsingError(
                f"Failed to extract text from {file_name}: {str(e)}",
                file_name=file_name,
            ) from e
        finally:
            os.remove(temp_path)

        text = "\n\n".join(
            document.page_content.strip()
            for document in documents
            if document.page_content and document.page_content.strip()
        )
        if not text:
            raise DocumentParsingError(
                f"No text could be extracted from {file_name}", file_name=file_name
            )

        logger.info(
            f"Extracted {len(text)} characters from '{file_name}' ({len(documents)} parts)"
        )
        return text
