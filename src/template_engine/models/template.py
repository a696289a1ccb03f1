"""Prompt template content models."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class TemplateStatus(str, Enum):
    """Template lifecycle status."""
    DRAFT = "draft"
    ACTIVE = "active"
    BETA = "beta"
    DEPRECATED = "deprecated"


class Industry(str, Enum):
    """Industries a template is designed for."""
    HEALTHCARE = "healthcare"
    REAL_ESTATE = "real_estate"
    SAAS = "saas"
    ECOMMERCE = "ecommerce"
    FINANCIAL_SERVICES = "financial_services"
    PROFESSIONAL_SERVICES = "professional_services"
    AUTOMOTIVE = "automotive"
    EDUCATION = "education"
    HOSPITALITY = "hospitality"
    FITNESS = "fitness"
    LEGAL = "legal"
    INSURANCE = "insurance"
    GENERAL = "general"


class TemplateComplexity(str, Enum):
    """Template complexity levels."""
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ConversationObjective(str, Enum):
    """Primary goal of a conversation."""
    LEAD_QUALIFICATION = "lead_qualification"
    APPOINTMENT_BOOKING = "appointment_booking"
    CUSTOMER_SUPPORT = "customer_support"
    SALES_DISCOVERY = "sales_discovery"
    SURVEY_COLLECTION = "survey_collection"
    ORDER_PROCESSING = "order_processing"
    TECHNICAL_SUPPORT = "technical_support"
    INFORMATION_GATHERING = "information_gathering"


class SegmentType(str, Enum):
    """Kinds of prompt segments. ``dynamic`` segments are user-fillable."""
    FOUNDATION = "foundation"
    DYNAMIC = "dynamic"
    BUSINESS_RULE = "business_rule"
    CONVERSATION_FLOW = "conversation_flow"
    FALLBACK = "fallback"


class SegmentValidationType(str, Enum):
    """Whether a segment must carry content."""
    REQUIRED = "required"
    OPTIONAL = "optional"
    CONDITIONAL = "conditional"


class ImpactLevel(str, Enum):
    """Business impact of a segment."""
    CRITICAL = "critical"
    IMPORTANT = "important"
    NICE_TO_HAVE = "nice_to_have"


class TemplateModel(BaseModel):
    """Base for template content models; unknown keys are rejected."""

    class Config:
        """Pydantic configuration."""
        extra = "forbid"


class TemplateCategory(TemplateModel):
    """Business category of a template."""
    primary: str = "general"
    secondary: Optional[str] = None
    functional_area: Optional[str] = None  # inbound, outbound, hybrid
    interaction_type: Optional[str] = None  # transactional, consultative, informational, emergency


class BusinessObjective(TemplateModel):
    """A measurable goal the template should achieve."""
    id: str
    name: str
    description: str = ""
    success_criteria: List[str] = Field(default_factory=list)
    priority: str = "medium"
    measurable: bool = False


class UseCase(TemplateModel):
    """Typical situation in which a template is used."""
    title: str = ""
    description: str = ""
    typical_scenarios: List[str] = Field(default_factory=list)
    expected_outcomes: List[str] = Field(default_factory=list)
    avg_call_duration: Optional[int] = None  # seconds
    success_rate: Optional[float] = None  # percentage


class ValidationRule(TemplateModel):
    """Rule applied to user supplied segment content."""
    type: str  # length, format, pattern, business_logic, required_if
    value: Union[int, float, str]
    error_message: str
    severity: str = "error"


class SegmentValidation(TemplateModel):
    """Validation settings of a segment."""
    type: SegmentValidationType = SegmentValidationType.OPTIONAL
    rules: List[ValidationRule] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


class CharacterLimit(TemplateModel):
    """Allowed content length of a segment."""
    min: int = Field(default=0, ge=0)
    max: int = Field(gt=0)


class PromptSegment(TemplateModel):
    """A named unit of prompt content, either fixed or user-fillable."""
    id: str
    type: SegmentType = SegmentType.FOUNDATION
    label: str = ""
    content: str = ""
    editable: bool = True
    validation: Optional[SegmentValidation] = None
    business_purpose: str = ""
    impact_level: ImpactLevel = ImpactLevel.IMPORTANT
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    examples: List[str] = Field(default_factory=list)
    character_limit: Optional[CharacterLimit] = None

    @property
    def is_required(self) -> bool:
        return self.validation is not None and self.validation.type == SegmentValidationType.REQUIRED


class ModelSettings(TemplateModel):
    """Language model used by the agent."""
    provider: str
    model_name: str
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)
    system_prompt_optimization: Optional[str] = None

    class Config:
        """Pydantic configuration."""
        protected_namespaces = ()


class VoiceSettings(TemplateModel):
    """Text-to-speech voice used by the agent."""
    provider: str
    voice_id: str = ""
    voice_name: Optional[str] = None
    gender: Optional[str] = None
    accent: Optional[str] = None
    personality: Optional[str] = None
    speed: float = 1.0
    stability: float = 0.5
    use_speaker_boost: bool = False


class ConversationSettings(TemplateModel):
    """Conversation flow and timing controls."""
    first_message: str = ""
    end_call_message: str = ""
    transfer_message: Optional[str] = None
    hold_message: Optional[str] = None
    max_duration_seconds: int = 600
    silence_timeout_seconds: int = 30
    allow_interruptions: bool = True
    recording_enabled: bool = False
    transcription_enabled: bool = True


class EscalationRule(TemplateModel):
    trigger: str
    condition: str
    action: str
    message: str = ""
    priority: str = "normal"


class DataCollectionRule(TemplateModel):
    field_name: str
    required: bool = False
    validation_pattern: Optional[str] = None
    collection_prompt: str = ""
    max_attempts: int = 3


class ComplianceRule(TemplateModel):
    type: str  # gdpr, hipaa, tcpa, custom
    requirement: str
    enforcement: str = "strict"
    disclaimer_text: Optional[str] = None


class BusinessRules(TemplateModel):
    """Business rules enforced during calls."""
    escalation_triggers: List[EscalationRule] = Field(default_factory=list)
    information_collection: List[DataCollectionRule] = Field(default_factory=list)
    compliance_settings: List[ComplianceRule] = Field(default_factory=list)


class WebhookSettings(TemplateModel):
    url: str
    events: List[str] = Field(default_factory=list)
    max_retries: int = 3
    backoff_strategy: str = "exponential"


class VoiceConfiguration(TemplateModel):
    """Voice/model configuration handed to the deployment platform."""
    model: Optional[ModelSettings] = None
    voice: Optional[VoiceSettings] = None
    conversation_settings: Optional[ConversationSettings] = None
    business_rules: Optional[BusinessRules] = None
    webhook_settings: Optional[WebhookSettings] = None


class KPIConfiguration(TemplateModel):
    primary_metric: str
    secondary_metrics: List[str] = Field(default_factory=list)
    benchmark_targets: Dict[str, float] = Field(default_factory=dict)


class PerformanceConfiguration(TemplateModel):
    """Performance tracking settings."""
    kpis: Optional[KPIConfiguration] = None
    analytics: Dict[str, bool] = Field(default_factory=dict)


class UserExperience(TemplateModel):
    estimated_setup_time: Optional[int] = None  # minutes
    required_skills: List[str] = Field(default_factory=list)
    difficulty: str = "beginner"
    prerequisites: List[str] = Field(default_factory=list)


class UsageStats(TemplateModel):
    times_used: int = 0
    average_rating: float = 0.0
    last_used: Optional[datetime] = None


class TemplateMetadata(TemplateModel):
    """Management metadata of a template."""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    parent_template_id: Optional[str] = None
    child_template_ids: List[str] = Field(default_factory=list)
    usage: UsageStats = Field(default_factory=UsageStats)


class Documentation(TemplateModel):
    description: str = ""
    detailed_instructions: str = ""
    best_practices: List[str] = Field(default_factory=list)
    common_pitfalls: List[str] = Field(default_factory=list)


class PromptTemplate(TemplateModel):
    """Content snapshot of a prompt template.

    This is what gets validated, versioned and compared. Storage level
    bookkeeping (latest flag, counters, history) lives on
    ``TemplateVersion``.
    """
    id: Optional[str] = None
    name: str = ""
    version: str = "1.0.0"
    status: TemplateStatus = TemplateStatus.DRAFT

    # Business context
    category: TemplateCategory = Field(default_factory=TemplateCategory)
    industry: List[Industry] = Field(default_factory=list)
    use_case: Optional[UseCase] = None
    complexity: TemplateComplexity = TemplateComplexity.BASIC
    business_objectives: List[BusinessObjective] = Field(default_factory=list)

    # Structure
    segments: List[PromptSegment] = Field(default_factory=list)

    # Voice integration
    voice_configuration: Optional[VoiceConfiguration] = None

    performance_config: Optional[PerformanceConfiguration] = None
    user_experience: Optional[UserExperience] = None
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)
    documentation: Optional[Documentation] = None

    def get_segment(self, segment_id: str) -> Optional[PromptSegment]:
        """Return the segment with the given id, if any."""
        for segment in self.segments:
            if segment.id == segment_id:
                return segment
        return None

    @property
    def dynamic_segments(self) -> List[PromptSegment]:
        return [s for s in self.segments if s.type == SegmentType.DYNAMIC]


class BusinessContextInput(TemplateModel):
    """Business context supplied when cloning a template."""
    company_name: str
    industry: Industry
    primary_objective: ConversationObjective
    target_audience: str = ""
    brand_voice: str = "professional"
    compliance_requirements: List[str] = Field(default_factory=list)
