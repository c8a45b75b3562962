"""Governance analysis prompt templates.

Each template renders one user message that walks the agent through the
server's tools for a particular governance question. Parameter names are the
prompt argument names seen by MCP clients, so they keep the camelCase of the
tool inputs they refer to.
"""

from typing import Callable, Dict, Optional

COMPARISON_ASPECTS = {
    "overall": (
        "Compare all governance aspects including participation, delegate distribution, "
        "proposal activity, and community engagement"
    ),
    "delegates": (
        "Focus on delegate ecosystems: voting power distribution, delegate activity, "
        "and representation quality"
    ),
    "proposals": (
        "Compare proposal patterns: success rates, types, community engagement, "
        "and voting participation"
    ),
    "activity": (
        "Focus on governance activity levels: proposal frequency, voting participation, "
        "and community engagement trends"
    ),
}

TREND_TIMEFRAMES = {
    "current": "Focus on active proposals and immediate governance activity happening right now",
    "recent": "Analyze recent governance patterns and completed proposals from the past few weeks",
    "emerging": "Identify new DAOs, emerging governance patterns, and innovative approaches",
}

PARTICIPATION_GUIDANCE = {
    "observer": "- Focus on DAOs with transparent governance and educational resources",
    "voter": "- Look for DAOs with regular proposals and clear voting processes",
    "delegate": "- Identify DAOs needing quality delegates with growth opportunities",
    "contributor": "- Find DAOs with active working groups and contribution opportunities",
}


def analyze_dao_governance(organizationId: str, includeComparison: Optional[str] = None) -> str:
    """Analyze the overall governance health of a DAO."""
    comparison = (
        "\n5. **Compare with Peers**: Use list_organizations to find similar DAOs for comparison"
        if includeComparison == "true"
        else ""
    )
    return f"""Analyze the governance health of organization {organizationId}. Please:

1. **Get Organization Overview**: Use get_organization to understand the DAO's basic info
2. **Check Active Governance**: Use get_active_proposals with organizationId to see current voting activity
3. **Analyze Delegate Distribution**: Use get_delegates to examine voting power distribution
4. **Review Recent Proposals**: Use list_proposals to understand proposal patterns and success rates

Focus on:
- Governance participation rates and trends
- Voting power concentration vs. decentralization
- Proposal quality and community engagement
- Delegate activity and representation
{comparison}

Provide actionable insights about the DAO's governance strengths and areas for improvement."""


def compare_dao_governance(dao1: str, dao2: str, aspect: str) -> str:
    """Compare governance metrics between two DAOs."""
    instruction = COMPARISON_ASPECTS.get(aspect, COMPARISON_ASPECTS["overall"])
    return f"""Compare the governance of {dao1} and {dao2}, focusing on {aspect}.

**Step-by-step analysis:**

1. **Gather Data for Both DAOs**:
   - Use get_organization for each DAO to get basic metrics
   - Use get_delegates to analyze voting power distribution
   - Use list_proposals to review recent governance activity
   - Use get_active_proposals with organizationId to check current activity levels

2. **Analysis Focus**: {instruction}

3. **Comparison Framework**:
   - Quantitative metrics (member counts, proposal counts, voting participation)
   - Qualitative assessment (governance quality, community health)
   - Structural differences (governance models, voting mechanisms)

4. **Insights & Recommendations**:
   - Which DAO has stronger governance practices and why
   - What each DAO could learn from the other
   - Specific actionable recommendations for improvement

Present your findings in a clear, structured format with supporting data."""


def analyze_delegate_profile(address: str, organizationId: Optional[str] = None) -> str:
    """Research and profile a specific delegate."""
    scope = f" in organization {organizationId}" if organizationId else " across all DAOs"
    if organizationId:
        second_step = (
            "2. **Specific DAO Analysis**: Use get_delegate_statement to get their statement "
            f"and positions in {organizationId}"
        )
    else:
        second_step = "2. **Cross-DAO Analysis**: Review their participation across multiple DAOs"
    return f"""Analyze the governance profile and activity of delegate {address}{scope}.

**Research Steps:**

1. **Get Delegate Overview**: Use get_user_profile to understand their overall DAO participation
{second_step}
3. **Voting Power Analysis**: Check their current voting power and delegation status
4. **Activity Assessment**: Evaluate their governance participation and engagement

**Analysis Framework:**
- **Governance Experience**: How long have they been active? Which DAOs?
- **Voting Power**: Current delegation and influence level
- **Participation Quality**: Voting consistency, proposal engagement
- **Community Standing**: Delegate statements, community recognition
- **Specialization**: Any particular focus areas or expertise

**Output**: Provide a comprehensive delegate profile that would help token holders make informed delegation decisions."""


def discover_governance_trends(timeframe: str, category: Optional[str] = None) -> str:
    """Discover trending governance activity across the ecosystem."""
    instruction = TREND_TIMEFRAMES.get(timeframe, TREND_TIMEFRAMES["current"])
    in_category = f" in the {category} category" if category and category != "all" else ""
    category_trends = (
        f"- **{category[:1].upper() + category[1:]} Specific**: Trends unique to {category} DAOs"
        if category
        else ""
    )
    return f"""Discover and analyze {timeframe} governance trends across the DAO ecosystem{in_category}.

**Discovery Process:**

1. **Active Governance Scan**: Use get_organizations_with_active_proposals to find DAOs with active governance, then use get_active_proposals with specific organizationId to see current activity
2. **Organization Landscape**: Use list_organizations with explore sorting to find most active DAOs
3. **Delegate Ecosystem**: Use get_delegates across top DAOs to understand leadership trends
4. **Proposal Patterns**: Use list_proposals to analyze recent governance themes

**Analysis Focus**: {instruction}

**Trend Categories to Explore:**
- **Governance Innovation**: New voting mechanisms, delegation models, or participation incentives
- **Hot Topics**: Common themes across multiple DAO proposals
- **Participation Patterns**: Changes in voter engagement and delegate activity
- **Cross-DAO Movements**: Shared initiatives or coordinated governance actions
{category_trends}

**Deliverable**: A trend report highlighting the most significant governance developments, with specific examples and data to support your findings."""


def find_dao_to_join(interests: str, participationLevel: str, experience: str) -> str:
    """Help a user find the right DAO to participate in."""
    interest_list = ", ".join(i.strip() for i in interests.split(","))
    # One line per level; only the requested level has text
    guidance = "\n".join(
        text if level == participationLevel else "" for level, text in PARTICIPATION_GUIDANCE.items()
    )
    return f"""Help find the best DAO(s) for someone interested in: {interest_list}, wanting to participate as a {participationLevel}, with {experience} governance experience.

**Discovery Process:**

1. **DAO Landscape Survey**: Use list_organizations to explore available DAOs
2. **Activity Assessment**: Use get_organizations_with_active_proposals to find DAOs with healthy governance activity
3. **Community Analysis**: Use get_delegates to understand the delegate ecosystem and entry barriers
4. **Governance Culture**: Use list_proposals to assess proposal quality and community engagement

**Matching Criteria:**
- **Interest Alignment**: DAOs working in relevant areas ({interest_list})
- **Participation Opportunities**: Suitable for {participationLevel} level engagement
- **Experience Fit**: Appropriate complexity for {experience} governance participants
- **Community Health**: Active, welcoming, and well-functioning governance

**For {participationLevel}s specifically:**
{guidance}

**Recommendations**: Provide 3-5 specific DAO recommendations with rationale for each, including how to get started and what to expect."""


def analyze_proposal(organizationId: str, proposalId: str) -> str:
    """Analyze a specific proposal in detail."""
    return f"""Provide a comprehensive analysis of proposal {proposalId} in organization {organizationId}.

**Analysis Steps:**

1. **Proposal Details**: Use get_proposal to get full proposal information
2. **Organization Context**: Use get_organization to understand the DAO's background
3. **Voting Analysis**: Examine current voting patterns and participation
4. **Delegate Positions**: Use get_delegates to see how key delegates might vote
5. **Historical Context**: Use list_proposals to compare with similar past proposals

**Analysis Framework:**

**Proposal Overview:**
- What is being proposed and why?
- What are the potential impacts and implications?
- How does this fit into the DAO's broader strategy?

**Voting Dynamics:**
- Current voting trends and participation levels
- Key delegate positions and influence
- Likelihood of passage based on current data

**Risk Assessment:**
- Potential benefits and drawbacks
- Implementation challenges
- Community sentiment and concerns

**Recommendation:**
- Should token holders support this proposal?
- What questions should voters consider?
- How does this align with the DAO's long-term interests?

Provide a balanced, data-driven analysis that helps inform voting decisions."""


GOVERNANCE_PROMPTS: Dict[str, Callable[..., str]] = {
    "analyze-dao-governance": analyze_dao_governance,
    "compare-dao-governance": compare_dao_governance,
    "analyze-delegate-profile": analyze_delegate_profile,
    "discover-governance-trends": discover_governance_trends,
    "find-dao-to-join": find_dao_to_join,
    "analyze-proposal": analyze_proposal,
}


def describe_prompt(name: str) -> str:
    return f"Governance analysis prompt: {name.replace('-', ' ')}"
