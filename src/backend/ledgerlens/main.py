from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledgerlens.config import settings
from ledgerlens.services.auto_categorizer import AutoCategorizer
from ledgerlens.services.document_processor import DocumentProcessor
from ledgerlens.services.entity_extractor import EntityExtractor
from ledgerlens.services.llm_client import LLMParseClient
from ledgerlens.services.llm_statement_parser import LLMStatementParser
from ledgerlens.services.mapping_store import InMemoryMappingStore, SupabaseMappingStore
from ledgerlens.services.statement_parser import StatementParser
from ledgerlens.services.text_extraction import TextExtractionService
from ledgerlens.services.vendor_learning import VendorLearningService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


def build_services(app: FastAPI) -> None:
    """Construct the process-wide services and attach them to app.state."""
    if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_KEY:
        store = SupabaseMappingStore()
    else:
        store = InMemoryMappingStore()

    learning = VendorLearningService(store)
    categorizer = AutoCategorizer(learning)
    statement_parser = StatementParser(categorizer)
    entity_extractor = EntityExtractor()
    llm_parser = LLMStatementParser(LLMParseClient(), categorizer)

    app.state.learning = learning
    app.state.categorizer = categorizer
    app.state.statement_parser = statement_parser
    app.state.entity_extractor = entity_extractor
    app.state.llm_parser = llm_parser
    app.state.document_processor = DocumentProcessor(
        TextExtractionService(),
        entity_extractor,
        statement_parser,
        llm_parser,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    build_services(app)
    await app.state.learning.initialize()
    logger.info("LedgerLens API started", extra={
        "store": type(app.state.learning.store).__name__,
        "llm_configured": app.state.llm_parser.client.configured
    })
    yield


app = FastAPI(
    title="LedgerLens API",
    description="Statement and receipt parsing with learned categorization",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {
        "message": "LedgerLens API",
        "version": "0.1.0",
        "status": "running"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

# Import routers
from ledgerlens.routers import categories, parse

# Include routers
app.include_router(parse.router)
app.include_router(categories.router)
