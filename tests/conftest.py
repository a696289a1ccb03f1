"""Shared fixtures for the Prompt Template Engine tests."""

import os

# Environment must be set before the package reads its settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio

from template_engine.core.database import DatabaseManager, close_database, init_database
from template_engine.models.template import (
    BusinessObjective,
    CharacterLimit,
    Documentation,
    Industry,
    ModelSettings,
    PromptSegment,
    PromptTemplate,
    SegmentType,
    SegmentValidation,
    SegmentValidationType,
    TemplateCategory,
    TemplateComplexity,
    TemplateMetadata,
    VoiceConfiguration,
    VoiceSettings,
)
from template_engine.services.template_service import TemplateService
from template_engine.services.template_store import SQLTemplateStore
from template_engine.services.validation_service import TemplateValidator
from template_engine.services.versioning_service import TemplateVersioningService


def build_template(**updates) -> PromptTemplate:
    """A complete, valid appointment booking template."""
    template = PromptTemplate(
        name="Dental Appointment Booking",
        category=TemplateCategory(primary="appointment_booking", functional_area="inbound"),
        industry=[Industry.HEALTHCARE],
        complexity=TemplateComplexity.INTERMEDIATE,
        business_objectives=[
            BusinessObjective(id="book", name="Book appointments", measurable=True),
        ],
        segments=[
            PromptSegment(
                id="greeting",
                type=SegmentType.FOUNDATION,
                label="Greeting",
                content="Hello, thank you for calling.",
                business_purpose="Open the call politely",
            ),
            PromptSegment(
                id="practice_name",
                type=SegmentType.DYNAMIC,
                label="Practice name",
                content="Bright Smiles",
                business_purpose="Brand the conversation",
                validation=SegmentValidation(type=SegmentValidationType.REQUIRED),
                character_limit=CharacterLimit(min=1, max=100),
            ),
        ],
        voice_configuration=VoiceConfiguration(
            model=ModelSettings(provider="openai", model_name="gpt-4o"),
            voice=VoiceSettings(provider="elevenlabs", voice_id="rachel"),
        ),
        metadata=TemplateMetadata(tags=["dental", "booking"]),
        documentation=Documentation(
            description="Books, moves and cancels dental appointments for a single practice.",
            best_practices=["Confirm the date and time twice"],
        ),
    )
    return template.model_copy(update=updates)


@pytest.fixture
def make_template():
    return build_template


@pytest_asyncio.fixture
async def database(tmp_path):
    """A file backed SQLite database with all tables created."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'templates.db'}", echo=False)
    assert await init_database(manager)
    yield manager
    await close_database(manager)


@pytest.fixture
def store(database):
    return SQLTemplateStore.from_manager(database)


@pytest.fixture
def versioning(store):
    return TemplateVersioningService(store)


@pytest.fixture
def service(store, versioning):
    return TemplateService(store, validator=TemplateValidator(), versioning=versioning)
