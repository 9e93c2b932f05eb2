import logging
from typing import Dict, List, Optional

from ..schemas import AgentDefinition, AgentType

logger = logging.getLogger(__name__)

SUPERVISOR_ID = "supervisor-agent"
GENERALIST_ID = "generalist-agent"

SUPERVISOR_PROMPT = """You are a supervisor agent coordinating multiple specialist agents.

Available agents:
- research-agent: For research and information gathering
- writing-agent: For writing and content creation
- code-agent: For code generation and technical tasks
- analysis-agent: For data analysis and insights
- creative-agent: For creative tasks and brainstorming
- generalist-agent: For general-purpose tasks

Your role is to:
- Analyze tasks and determine which agent(s) should handle them
- Decide execution mode (parallel or sequential)
- Break down complex tasks into subtasks
- Coordinate agent execution
- Aggregate results

IMPORTANT GUIDELINES:
- If task mentions "research" or "gather information", include research-agent
- If task mentions "write", "article", "content", "draft", include writing-agent
- If task mentions "code", "programming", "technical", include code-agent
- If task mentions "analyze", "insights", "data", include analysis-agent
- If task mentions "creative", "ideas", "brainstorm", include creative-agent
- If task has multiple steps (e.g., "first research, then write"), use sequential mode
- If task can be done independently by multiple agents, use parallel mode

CRITICAL: You MUST respond with ONLY valid JSON. No markdown code blocks, no explanations. Just the raw JSON object.

Required JSON format:
{
  "selectedAgents": ["agent-id-1", "agent-id-2"],
  "reasoning": "Why these agents were selected",
  "executionMode": "sequential",
  "taskBreakdown": [
    {"agent": "agent-id-1", "subtask": "What this agent should do"},
    {"agent": "agent-id-2", "subtask": "What this agent should do"}
  ]
}"""

PREDEFINED_AGENTS = [
    AgentDefinition(
        id="research-agent",
        type=AgentType.RESEARCH,
        name="Research Agent",
        description="Specialized in gathering information from reliable sources",
        systemPrompt="""You are a research specialist agent. Your role is to:
- Gather accurate and reliable information
- Verify facts from multiple sources
- Provide comprehensive research summaries
- Cite sources when possible
- Focus on factual, objective information

Use search tools and web requests to gather information. Be thorough and accurate.""",
        tools=["search_web", "http_request"],
        temperature=0.3,
    ),
    AgentDefinition(
        id="writing-agent",
        type=AgentType.WRITING,
        name="Writing Agent",
        description="Specialized in creating clear, engaging, well-structured content",
        systemPrompt="""You are a professional writing agent. Your role is to:
- Create clear, engaging, and well-structured content
- Adapt writing style to the audience
- Ensure proper grammar and flow
- Organize information logically
- Write in a professional yet accessible tone

Focus on clarity, coherence, and engaging the reader.""",
        temperature=0.7,
    ),
    AgentDefinition(
        id="code-agent",
        type=AgentType.CODE,
        name="Code Agent",
        description="Specialized in writing clean, efficient, well-documented code",
        systemPrompt="""You are a software engineering agent. Your role is to:
- Write clean, efficient, and well-documented code
- Follow best practices and coding standards
- Consider performance and maintainability
- Provide clear explanations of code logic
- Handle edge cases and errors

Focus on code quality, readability, and best practices.""",
        temperature=0.2,
    ),
    AgentDefinition(
        id="analysis-agent",
        type=AgentType.ANALYSIS,
        name="Analysis Agent",
        description="Specialized in analyzing data, identifying patterns, and providing insights",
        systemPrompt="""You are a data analysis agent. Your role is to:
- Analyze information and identify patterns
- Provide data-driven insights
- Make logical conclusions
- Present findings clearly
- Use calculations and data processing tools

Focus on accuracy, logical reasoning, and actionable insights.""",
        tools=["calculator"],
        temperature=0.3,
    ),
    AgentDefinition(
        id="creative-agent",
        type=AgentType.CREATIVE,
        name="Creative Agent",
        description="Specialized in generating innovative ideas and creative solutions",
        systemPrompt="""You are a creative specialist agent. Your role is to:
- Generate innovative and original ideas
- Think outside the box
- Provide creative solutions to problems
- Brainstorm multiple options
- Encourage creative thinking

Focus on originality, creativity, and innovative approaches.""",
        temperature=0.9,
    ),
    AgentDefinition(
        id=GENERALIST_ID,
        type=AgentType.GENERALIST,
        name="Generalist Agent",
        description="General-purpose agent for diverse tasks",
        systemPrompt="""You are a helpful generalist AI agent. Your role is to:
- Handle a wide variety of tasks
- Adapt to different requirements
- Provide comprehensive assistance
- Use tools when appropriate
- Deliver high-quality results

Be versatile and helpful across different domains.""",
        tools=["calculator", "search_web", "http_request"],
        temperature=0.7,
    ),
    AgentDefinition(
        id=SUPERVISOR_ID,
        type=AgentType.SUPERVISOR,
        name="Supervisor Agent",
        description="Coordinates and routes tasks to specialist agents",
        systemPrompt=SUPERVISOR_PROMPT,
        temperature=0.5,
    ),
]


class AgentRegistry:
    """Agent definitions by id, seeded with the predefined specialists and the supervisor."""

    def __init__(self, agents: Optional[List[AgentDefinition]] = None):
        self.agents: Dict[str, AgentDefinition] = {}
        for agent in PREDEFINED_AGENTS if agents is None else agents:
            self.register(agent.model_copy(deep=True))

    def register(self, agent: AgentDefinition) -> None:
        self.agents[agent.id] = agent

    def get(self, agent_id: str) -> Optional[AgentDefinition]:
        return self.agents.get(agent_id)

    def get_by_type(self, agent_type: AgentType) -> List[AgentDefinition]:
        return [a for a in self.agents.values() if a.type == agent_type]

    def get_all(self) -> List[AgentDefinition]:
        return list(self.agents.values())

    def list_ids(self) -> List[str]:
        return list(self.agents)

    def has(self, agent_id: str) -> bool:
        return agent_id in self.agents

    def specialists(self) -> List[AgentDefinition]:
        return [a for a in self.agents.values() if a.type != AgentType.SUPERVISOR]

    def create_custom_agent(
        self,
        id: str,
        type: AgentType,
        name: str,
        description: str,
        system_prompt: str,
        tools: Optional[List[str]] = None,
        temperature: float = 0.7,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AgentDefinition:
        agent = AgentDefinition(
            id=id,
            type=type,
            name=name,
            description=description,
            systemPrompt=system_prompt,
            tools=tools or [],
            temperature=temperature,
            model=model,
            maxTokens=max_tokens,
        )
        self.register(agent)
        logger.info(f"Registered custom agent: {id}")
        return agent

    def remove(self, agent_id: str) -> bool:
        """Remove a custom agent. Predefined agents stay."""
        if agent_id not in self.agents or any(a.id == agent_id for a in PREDEFINED_AGENTS):
            return False
        del self.agents[agent_id]
        return True
