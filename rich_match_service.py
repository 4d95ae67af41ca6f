"""
Rich Match Service for the networking matcher
Runs the staged research and synthesis pipeline that turns a scored pair into
a personalized introduction:

    IndustryResearch -> EntityResearch -> CollaborationResearch -> Synthesis -> Done

Any stage failure (timeout, API error, incomplete JSON) jumps straight to
Fallback, which always produces a rationale without calling out.
"""
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Any, Optional, Tuple

from config import get_ai_settings, get_stage_timeout
from llm_client import AIResponseError, get_llm_client
from match_scorer import ScoreResult
from rationale import Rationale, generate_fallback_rationale
from utils.helpers import safe_get

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    INDUSTRY_RESEARCH = 'industry_research'
    ENTITY_RESEARCH = 'entity_research'
    COLLABORATION_RESEARCH = 'collaboration_research'
    SYNTHESIS = 'synthesis'
    FALLBACK = 'fallback'
    DONE = 'done'


NEXT_STAGE = {
    PipelineStage.INDUSTRY_RESEARCH: PipelineStage.ENTITY_RESEARCH,
    PipelineStage.ENTITY_RESEARCH: PipelineStage.COLLABORATION_RESEARCH,
    PipelineStage.COLLABORATION_RESEARCH: PipelineStage.SYNTHESIS,
    PipelineStage.SYNTHESIS: PipelineStage.DONE,
}

STAGE_FIELDS: Dict[PipelineStage, Dict[str, type]] = {
    PipelineStage.INDUSTRY_RESEARCH: {
        'subject_industry_trends': list,
        'candidate_industry_trends': list,
        'cross_industry_insight': str,
    },
    PipelineStage.ENTITY_RESEARCH: {
        'subject_summary': str,
        'candidate_summary': str,
        'notable_signals': list,
    },
    PipelineStage.COLLABORATION_RESEARCH: {
        'creative_ideas': list,
        'synergy_rating': str,
        'direct_fit': str,
    },
    PipelineStage.SYNTHESIS: {
        'strategic_rationale': str,
        'collaboration_angle': str,
        'conversation_openers': str,
    },
}

SYNERGY_RATINGS = ('High', 'Medium', 'Low')

# Industry-specific language for the expert persona
INDUSTRY_CONTEXTS = {
    'technology': 'You understand CAC, LTV, ARR, churn, product-market fit and tech stack decisions.',
    'digital marketing': 'You speak fluently about CTR, ROAS, conversion funnels, attribution and content strategy.',
    'real estate': 'You know cap rates, NOI, market cycles, zoning and the value of local networks.',
    'finance': 'You understand deal structuring, due diligence, diversification and risk mitigation.',
    'e-commerce': 'You know inventory turnover, AOV, conversion optimization, logistics and marketplaces.',
    'legal services': 'You understand retainer models, regulatory compliance and referral-driven client acquisition.',
    'food & hospitality': 'You know food cost, table turns, labor management and the power of local reputation.',
    'online education': 'You know completion rates, student lifetime value and community engagement.',
    'consulting': 'You understand value-based pricing, thought leadership and referral networks.',
    'media': 'You know audience metrics, distribution, monetization models and platform algorithms.',
}


@dataclass(frozen=True)
class ResearchContext:
    """Structured outputs of the research stages completed so far"""
    industry: Optional[Dict[str, Any]] = None
    entities: Optional[Dict[str, Any]] = None
    collaboration: Optional[Dict[str, Any]] = None

    def with_stage_result(self, stage: PipelineStage, result: Dict[str, Any]) -> 'ResearchContext':
        if stage == PipelineStage.INDUSTRY_RESEARCH:
            return replace(self, industry=result)
        if stage == PipelineStage.ENTITY_RESEARCH:
            return replace(self, entities=result)
        if stage == PipelineStage.COLLABORATION_RESEARCH:
            return replace(self, collaboration=result)
        return self


@dataclass(frozen=True)
class PipelineState:
    stage: PipelineStage
    context: ResearchContext = field(default_factory=ResearchContext)
    rationale: Optional[Rationale] = None
    completed: Tuple[PipelineStage, ...] = ()
    failed_stage: Optional[PipelineStage] = None
    error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.rationale is not None and self.rationale.source == 'fallback'


class RichMatchService:
    """
    Generates research-backed introductions between two attendees.
    The text-generation client is injected so tests can substitute a fake.
    """

    def __init__(self, llm_client=None, api_key: Optional[str] = None, timeouts: Optional[Dict[str, float]] = None):
        """
        Initialize the rich match service

        Args:
            llm_client: Object with generate(system_prompt, user_prompt,
                required_fields, temperature, timeout); defaults to OpenAI
            api_key: OpenAI API key (defaults to environment variable)
            timeouts: Optional per-stage timeout overrides in seconds
        """
        self.llm_client = llm_client if llm_client is not None else get_llm_client(api_key)
        self.settings = get_ai_settings()
        self.timeouts = timeouts or {}

    def close(self):
        """Release the text-generation client's worker pool"""
        if self.llm_client is not None and hasattr(self.llm_client, 'close'):
            self.llm_client.close()

    # ==========================================
    # PIPELINE
    # ==========================================

    def generate_rationale(
        self,
        subject: Dict[str, Any],
        candidate: Dict[str, Any],
        score: Optional[ScoreResult] = None,
        deep_research: bool = True
    ) -> PipelineState:
        """
        Run the pipeline for one pair until Done

        Args:
            subject: Member the intro is written for
            candidate: Member being suggested
            score: Score breakdown to ground the synthesis in
            deep_research: False starts directly at Synthesis

        Returns:
            Final PipelineState; rationale is always set
        """
        if deep_research:
            state = self.research(subject, candidate, score)
        else:
            state = PipelineState(stage=PipelineStage.SYNTHESIS)
        return self.finish(state, subject, candidate, score)

    def research(
        self,
        subject: Dict[str, Any],
        candidate: Dict[str, Any],
        score: Optional[ScoreResult] = None
    ) -> PipelineState:
        """
        Run the three research stages.

        Returns a state parked at Synthesis (all research succeeded) or
        Fallback, so the caller can rescore with the collaboration research
        before calling finish().
        """
        logger.info(f"Researching {subject.get('name')} -> {candidate.get('name')}")
        state = PipelineState(stage=PipelineStage.INDUSTRY_RESEARCH)
        while state.stage not in (PipelineStage.SYNTHESIS, PipelineStage.FALLBACK, PipelineStage.DONE):
            state = self.step(state, subject, candidate, score)
        return state

    def finish(
        self,
        state: PipelineState,
        subject: Dict[str, Any],
        candidate: Dict[str, Any],
        score: Optional[ScoreResult] = None
    ) -> PipelineState:
        """Run the remaining stages until Done"""
        while state.stage != PipelineStage.DONE:
            state = self.step(state, subject, candidate, score)

        logger.info(
            f"Intro for {subject.get('name')} -> {candidate.get('name')} "
            f"generated from {state.rationale.source}"
        )
        return state

    def step(
        self,
        state: PipelineState,
        subject: Dict[str, Any],
        candidate: Dict[str, Any],
        score: Optional[ScoreResult] = None
    ) -> PipelineState:
        """Advance the pipeline by exactly one stage"""
        if state.stage == PipelineStage.DONE:
            return state

        if state.stage == PipelineStage.FALLBACK:
            return replace(
                state,
                stage=PipelineStage.DONE,
                rationale=generate_fallback_rationale(subject, candidate)
            )

        if self.llm_client is None:
            return self._fail(state, "Text generation unavailable")

        try:
            result = self._run_stage(state.stage, state.context, subject, candidate, score)
        except AIResponseError as e:
            return self._fail(state, str(e))

        completed = state.completed + (state.stage,)

        if state.stage == PipelineStage.SYNTHESIS:
            return replace(
                state,
                stage=PipelineStage.DONE,
                completed=completed,
                rationale=Rationale(
                    strategic_rationale=result['strategic_rationale'],
                    collaboration_angle=result['collaboration_angle'],
                    conversation_openers=result['conversation_openers'],
                    source='ai'
                )
            )

        return replace(
            state,
            stage=NEXT_STAGE[state.stage],
            completed=completed,
            context=state.context.with_stage_result(state.stage, result)
        )

    def _fail(self, state: PipelineState, error: str) -> PipelineState:
        logger.warning(f"Stage {state.stage.value} failed, using fallback rationale: {error}")
        return replace(state, stage=PipelineStage.FALLBACK, failed_stage=state.stage, error=error)

    def _run_stage(
        self,
        stage: PipelineStage,
        context: ResearchContext,
        subject: Dict[str, Any],
        candidate: Dict[str, Any],
        score: Optional[ScoreResult]
    ) -> Dict[str, Any]:
        builders = {
            PipelineStage.INDUSTRY_RESEARCH: self._build_industry_prompt,
            PipelineStage.ENTITY_RESEARCH: self._build_entity_prompt,
            PipelineStage.COLLABORATION_RESEARCH: self._build_collaboration_prompt,
            PipelineStage.SYNTHESIS: self._build_synthesis_prompt,
        }
        user_prompt = builders[stage](subject, candidate, context, score)

        if stage == PipelineStage.SYNTHESIS:
            temperature = self.settings.get('synthesis_temperature', 0.85)
        else:
            temperature = self.settings.get('research_temperature', 0.4)

        result = self.llm_client.generate(
            system_prompt=self._build_system_prompt(stage, subject, candidate),
            user_prompt=user_prompt,
            required_fields=STAGE_FIELDS[stage],
            temperature=temperature,
            timeout=self.timeouts.get(stage.value, get_stage_timeout(stage.value))
        )

        if stage == PipelineStage.COLLABORATION_RESEARCH:
            result = self._normalize_collaboration(result)

        return result

    def _normalize_collaboration(self, result: Dict[str, Any]) -> Dict[str, Any]:
        """Enforce the High/Medium/Low rating and string ideas"""
        rating = str(result['synergy_rating']).strip().capitalize()
        if rating not in SYNERGY_RATINGS:
            raise AIResponseError(f"Incomplete AI response: synergy_rating '{result['synergy_rating']}' is not High/Medium/Low")

        ideas = [str(idea).strip() for idea in result['creative_ideas'] if str(idea).strip()]
        if not ideas:
            raise AIResponseError("Incomplete AI response: 'creative_ideas' has no usable entries")

        return {**result, 'synergy_rating': rating, 'creative_ideas': ideas}

    # ==========================================
    # PROMPTS
    # ==========================================

    def _build_system_prompt(self, stage: PipelineStage, subject: Dict[str, Any], candidate: Dict[str, Any]) -> str:
        industries = []
        for member in (subject, candidate):
            industry = (member.get('industry') or '').strip()
            if industry and industry.lower() not in [i.lower() for i in industries]:
                industries.append(industry)

        industry_notes = ' '.join(
            INDUSTRY_CONTEXTS.get(i.lower(), f"You understand {i} business models, key metrics and growth drivers.")
            for i in industries
        )
        cross_note = ''
        if len(industries) > 1:
            cross_note = (
                f" You recognize that {industries[0]}-to-{industries[1]} connections often create "
                f"breakthrough opportunities because each side sees the other's blind spots."
            )

        if stage == PipelineStage.SYNTHESIS:
            role = (
                "You are a master business networking strategist with 20+ years connecting executives "
                "and entrepreneurs at Rotary, YPO and Vistage. You write warm, specific, second-person "
                "introduction briefings."
            )
        else:
            role = (
                "You are a market intelligence analyst preparing research notes for a networking "
                "introduction. Be factual and concise; say so when you have no knowledge of a company."
            )

        return f"{role} {industry_notes}{cross_note} Always respond with a single JSON object."

    def _profile_block(self, member: Dict[str, Any], heading: str) -> str:
        return f"""{heading}
- Name: {safe_get(member, 'name')}
- Organization: {safe_get(member, 'org')}
- Role: {safe_get(member, 'role')}
- Industry: {safe_get(member, 'industry')}
- Based in: {safe_get(member, 'city')}
- Revenue Driver: {safe_get(member, 'rev_driver')}
- Current Challenge: {safe_get(member, 'current_constraint')}
- What They Bring: {safe_get(member, 'assets')}
- What They Seek: {safe_get(member, 'needs')}
- Fun Fact: {safe_get(member, 'fun_fact')}"""

    def _profiles(self, subject: Dict[str, Any], candidate: Dict[str, Any]) -> str:
        return (
            self._profile_block(subject, "**Attendee A (the person this intro is for)**")
            + "\n\n"
            + self._profile_block(candidate, "**Attendee B (the suggested connection)**")
        )

    def _build_industry_prompt(self, subject, candidate, context: ResearchContext, score) -> str:
        return f"""Research the industries of these two networking-event attendees.

{self._profiles(subject, candidate)}

Provide a JSON response with these exact fields:

{{
    "subject_industry_trends": ["top 3 current trends in Attendee A's industry"],
    "candidate_industry_trends": ["top 3 current trends in Attendee B's industry"],
    "cross_industry_insight": "2-3 sentences on how these trends create urgency or opportunity for a connection, citing precedent partnerships between the industries if you know any"
}}
"""

    def _build_entity_prompt(self, subject, candidate, context: ResearchContext, score) -> str:
        return f"""Research the people and organizations below using your knowledge base: recent news,
product launches, funding, awards, media presence, interviews. Validate and amplify any
achievements mentioned in fun facts.

{self._profiles(subject, candidate)}

Industry research so far:
{self._format_research(context.industry)}

Provide a JSON response with these exact fields:

{{
    "subject_summary": "What is known about Attendee A and their organization",
    "candidate_summary": "What is known about Attendee B and their organization",
    "notable_signals": ["credibility builders, achievements or timely developments worth mentioning"]
}}
"""

    def _build_collaboration_prompt(self, subject, candidate, context: ResearchContext, score) -> str:
        return f"""Identify how these two attendees could work together. Think both directly
(stated assets solving stated needs or constraints) and creatively (latent assets,
cross-pollination between industries, network effects, timing, shared experiences).

{self._profiles(subject, candidate)}

Industry research:
{self._format_research(context.industry)}

Entity research:
{self._format_research(context.entities)}

Provide a JSON response with these exact fields:

{{
    "creative_ideas": ["2-5 specific, non-obvious collaboration ideas"],
    "synergy_rating": "One of: High, Medium, Low",
    "direct_fit": "1-2 sentences on how B's assets address A's stated needs or constraint"
}}
"""

    def _build_synthesis_prompt(self, subject, candidate, context: ResearchContext, score: Optional[ScoreResult]) -> str:
        subject_name = safe_get(subject, 'name', 'the attendee')
        candidate_name = safe_get(candidate, 'name', 'the match')
        candidate_org = safe_get(candidate, 'org', 'their organization')

        research_sections = []
        if context.industry:
            research_sections.append(f"Industry research:\n{self._format_research(context.industry)}")
        if context.entities:
            research_sections.append(f"Entity research:\n{self._format_research(context.entities)}")
        if context.collaboration:
            research_sections.append(f"Collaboration research:\n{self._format_research(context.collaboration)}")
        research_text = "\n\n".join(research_sections) or "No prior research available; rely on the profiles."

        return f"""You're preparing {subject_name} for a high-value networking introduction to
{candidate_name} from {candidate_org}.

{self._profiles(subject, candidate)}

Match score breakdown:
{self._format_score(score)}

{research_text}

Write THREE components addressed directly to {subject_name} ("you", "your business") and
speaking about {candidate_name} in the third person ("they", "their company"):

1. strategic_rationale: 3-5 sentences starting "You should connect with {candidate_name} because...".
   Cover the direct fit (their assets vs. your stated constraint) and at least one creative,
   non-obvious synergy. Reference specific details and research.
2. collaboration_angle: 2-3 sentences presenting a memorable, non-transactional way to work
   with {candidate_org} (joint venture, co-marketing, knowledge sharing, introductions).
3. conversation_openers: three numbered approaches, 2-3 sentences each:
   Approach #1 the direct value pitch, Approach #2 the creative collaboration,
   Approach #3 a personal icebreaker using fun facts or research findings.

Return as JSON with keys: strategic_rationale, collaboration_angle, conversation_openers
(all three are strings).
"""

    def _format_research(self, research: Optional[Dict[str, Any]]) -> str:
        if not research:
            return "- (not available)"
        lines = []
        for key, value in research.items():
            label = key.replace('_', ' ').capitalize()
            if isinstance(value, list):
                lines.append(f"- {label}: " + "; ".join(str(v) for v in value))
            else:
                lines.append(f"- {label}: {value}")
        return "\n".join(lines)

    def _format_score(self, score: Optional[ScoreResult]) -> str:
        if score is None or not score.categories:
            return "- (not scored)"
        lines = [f"- Total: {score.total}/100 ({score.grade})"]
        for category in score.categories:
            lines.append(f"- {category.label}: {category.points}/{category.max_points} ({category.justification})")
        return "\n".join(lines)
