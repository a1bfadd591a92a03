"""Knowledge ingestion service.

Turns an uploaded PDF or a pasted note into text, splits it into overlapping
chunks, embeds the chunks in small batches and writes them to the store in a
single bulk insert, followed by one audit log entry.
"""

import asyncio
import io

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import CallerIdentity
from shared.models.errors import ChatBridgeError, InvalidInputError, UnauthorizedError
from shared.models.knowledge import KnowledgeChunk, KnowledgeMetadata
from services.knowledge.text_splitter import RecursiveTextSplitter

CHUNK_SIZE = 1000       # characters per text chunk
CHUNK_OVERLAP = 200     # character overlap between consecutive chunks
EMBED_BATCH_SIZE = 10   # texts per embedding request
EMBED_CONCURRENCY = 2   # max parallel embedding requests


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the extracted text of every page.

    Raises:
        InvalidInputError: If the bytes are not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, ValueError, OSError) as e:
        raise InvalidInputError(f"Could not read PDF: {e}") from e


def build_note_text(title: str, text: str) -> str:
    return f"[TITLE: {title}]\n{text}"


class KnowledgeService:
    """Producer of knowledge chunks for the retrieval strategy."""

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface | None,
        store_client: StoreClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._store_client = store_client
        self._splitter = RecursiveTextSplitter(chunk_size=CHUNK_SIZE, chunk_overlap=CHUNK_OVERLAP)

    ##########################################
    ############### INGESTION ################
    ##########################################

    async def do_ingest(
        self,
        caller: CallerIdentity,
        file_name: str | None = None,
        file_data: bytes | None = None,
        text: str | None = None,
        title: str | None = None,
    ) -> int:
        """Ingest one PDF or one note.

        Args:
            caller (CallerIdentity): The uploader. Must carry an email.
            file_name (str | None): Name of the uploaded PDF; used as the source.
            file_data (bytes | None): PDF bytes. Takes precedence over text.
            text (str | None): Note body.
            title (str | None): Note title; required together with text.

        Returns:
            int: Number of chunks written.

        Raises:
            UnauthorizedError: If the caller has no email.
            InvalidInputError: If neither a file nor text + title is given, or nothing could be extracted.
            EmbeddingError: If the embedding provider fails.
            ChatBridgeError: If no embedding client is configured.
        """
        if not caller.email:
            raise UnauthorizedError("Unauthorized")
        if self._embed_client is None:
            raise ChatBridgeError("Knowledge ingestion is not configured (EMBED_ENGINE is not set).", status_code=503)

        if file_data is not None:
            raw_text = await asyncio.to_thread(extract_pdf_text, file_data)
            source = file_name or "upload.pdf"
            source_type = "pdf"
        elif text and title:
            raw_text = build_note_text(title, text)
            source = f"Manual Note: {title}"
            source_type = "text"
        else:
            raise InvalidInputError("No file or text provided")

        pieces = self._splitter.split_text(raw_text)
        if not pieces:
            raise InvalidInputError(f"No text could be extracted from '{source}'.")

        self.logging.info("Ingesting '%s' (%s): %d chunk(s).", source, source_type, len(pieces))
        vectors = await self._embed_all(pieces)

        metadata = KnowledgeMetadata(source=source, uploaded_by=caller.email)
        chunks = [
            KnowledgeChunk(content=piece, embedding=vector, metadata=metadata)
            for piece, vector in zip(pieces, vectors)
        ]
        await self._store_client.do_insert_knowledge(chunks)

        await self._store_client.do_insert_audit_log(
            user_id=caller.user_id,
            action="add_knowledge",
            details={"source": source, "type": source_type, "chunks": len(chunks)},
        )
        self.logging.info("Knowledge '%s' stored: %d chunk(s).", source, len(chunks), color="green")
        return len(chunks)

    async def _embed_all(self, pieces: list[str]) -> list[list[float]]:
        """Embed all pieces in batches with bounded parallelism. Order is preserved."""
        batches = [pieces[i:i + EMBED_BATCH_SIZE] for i in range(0, len(pieces), EMBED_BATCH_SIZE)]
        sem = asyncio.Semaphore(EMBED_CONCURRENCY)

        async def embed_batch(batch: list[str]) -> list[list[float]]:
            async with sem:
                return await self._embed_client.do_embed(batch)

        results = await asyncio.gather(*[embed_batch(batch) for batch in batches])
        return [vector for batch_vectors in results for vector in batch_vectors]
