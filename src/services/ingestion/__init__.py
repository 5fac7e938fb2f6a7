"""Document ingestion pipeline.

Orchestrates the full pipeline: **extract -> chunk -> cleanse -> embed -> store**.

1. **Extract** (text_extractor.py / TextExtractor) -- PDF, Word,
   PowerPoint, HTML, CSV, JSON, Markdown and plain text become plain text
   plus format metadata.

2. **Chunk** (chunking/) -- fixed-size, sentence, paragraph or sliding
   window strategies split text into chunks with exact source offsets.

3. **Cleanse** (src/services/cleansing) -- rule-based cleanup with an
   optional LLM pass that falls back to the rule-based result.

4. **Embed** (via IEmbeddingProvider) -- one vector per chunk.

5. **Store** (via IVectorStoreProvider) -- chunks are written to the
   collection's vector store.

IngestionService runs the stages per document; DocumentProcessingService
exposes steps 1-2 on their own.
"""

from src.services.ingestion.document_processor import DocumentProcessingService
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor

__all__ = [
    "DocumentProcessingService",
    "IngestionService",
    "TextExtractor",
]
