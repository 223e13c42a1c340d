"""
Built-in team -- used when no team is requested or a requested team cannot
be resolved.

A chief-of-staff lead and a bench of startup specialists. Prompts are kept
short; deployments override them through the registry.
"""

from .definitions import (
    AGENT_TYPE_SUB_AGENT,
    AGENT_TYPE_TEAM_LEAD,
    AgentDefinition,
    Team,
    TeamRoster,
)

DEFAULT_TEAM_ID = "default_team"
DEFAULT_LEAD_ID = "chief_of_staff"

CHIEF_OF_STAFF_PROMPT = """You are the founder's Chief of Staff, the primary interface for running the business. Your role is to reduce overwhelm, enforce priorities, and bring in specialist perspectives when they help.

You MUST:
- Triage every request by priority (survive, sell, build, legitimize, raise, scale).
- Keep responses concise and action-oriented.
- Synthesize specialist input into a single final answer in your own voice.
- When missing critical details, ask at most 1-2 clarifying questions, then proceed with best effort."""

_SPECIALISTS = [
    (
        "fundraising_cash_flow_advisor",
        "Fundraising & Cash Flow Advisor",
        "Runway, burn, cash planning, friends-and-family and seed fundraising.",
        "You are the founder's financial strategist. Always show the numbers "
        "(burn, runway, target, next action). Be direct, realistic and time-aware.",
        ["web_search"],
    ),
    (
        "gtm_revenue_growth_strategist",
        "GTM & Revenue Growth Strategist",
        "Pricing, sales, conversion experiments and MRR growth.",
        "You are the founder's sales and marketing strategist. Tie every "
        "recommendation to conversion and MRR impact. Prefer simple, testable experiments.",
        [],
    ),
    (
        "product_technical_advisor",
        "Product & Technical Advisor",
        "Roadmap prioritization, bugs vs features, contractor management.",
        "You are the founder's product and technical strategist. Prioritize "
        "ruthlessly by customer impact and effort.",
        [],
    ),
    (
        "legal_compliance_advisor",
        "Legal & Compliance Advisor",
        "Entity formation, contracts, IP and compliance questions.",
        "You are the founder's legal and compliance advisor. You are not a lawyer; "
        "flag when a real attorney is needed.",
        [],
    ),
    (
        "brand_voice_marketing_agent",
        "Brand Voice & Marketing",
        "Messaging, positioning, copywriting and content.",
        "You are the founder's brand and marketing voice. Produce concrete copy, "
        "not generic advice.",
        ["web_search"],
    ),
    (
        "operations_scaling_advisor",
        "Operations & Scaling Advisor",
        "Systems, processes, hiring and delegation.",
        "You are the founder's operations advisor. Recommend the lightest process "
        "that solves the problem; defer scaling work until revenue justifies it.",
        [],
    ),
    (
        "founder_wellbeing_advisor",
        "Founder Wellbeing Advisor",
        "Workload, focus, burnout risk and sustainable pace.",
        "You are the founder's wellbeing advisor. Watch for overload and suggest "
        "what to drop, defer or delegate.",
        [],
    ),
]


def default_agent_definitions() -> list[AgentDefinition]:
    """Fresh copies of the built-in lead and specialist definitions."""
    definitions = [
        AgentDefinition(
            id=DEFAULT_LEAD_ID,
            name="Chief of Staff",
            description="Primary orchestrator; answers the user.",
            system_prompt=CHIEF_OF_STAFF_PROMPT,
            agent_type=AGENT_TYPE_TEAM_LEAD,
            tools=["web_search"],
        )
    ]
    for agent_id, name, description, prompt, tools in _SPECIALISTS:
        definitions.append(
            AgentDefinition(
                id=agent_id,
                name=name,
                description=description,
                system_prompt=prompt,
                agent_type=AGENT_TYPE_SUB_AGENT,
                tools=list(tools),
            )
        )
    return definitions


def default_team() -> Team:
    return Team(
        id=DEFAULT_TEAM_ID,
        name="Founder Team",
        description="Built-in chief of staff with startup specialists.",
        team_lead_agent_id=DEFAULT_LEAD_ID,
        sub_agent_ids=[s[0] for s in _SPECIALISTS],
    )


def default_roster() -> TeamRoster:
    definitions = default_agent_definitions()
    return TeamRoster(
        team_id=DEFAULT_TEAM_ID,
        lead=definitions[0],
        specialists=definitions[1:],
    )
