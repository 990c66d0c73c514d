"""
Default agent catalog: a technical-debt analysis hierarchy.

    coordinator
    ├── analysis-manager
    │   ├── scanner      (run_safe_shell)
    │   ├── analyzer     (run_safe_shell)
    │   └── assessor
    └── report-manager
        └── reporter
"""

from ..tools.base import ToolParameter
from .definitions import AgentDef, AgentLevel, DelegateSchema
from .registry import AgentRegistry

SHELL_TOOL = "run_safe_shell"

MEMORY_COORDINATOR_PROMPT = """You are a conversational assistant with memory. Your context holds memory summaries (marked "[Memory summary]") and the most recent conversation.

When you need the exact details of an earlier message, call load_message_detail with its message id to load the original text.
You do not need to end your replies with any marker."""


def _task_param(description: str) -> ToolParameter:
    return ToolParameter(name="task", param_type="string", description=description)


def _options_param() -> ToolParameter:
    return ToolParameter(
        name="options",
        param_type="object",
        description="Optional parameters (JSON object)",
        required=False,
    )


def default_agents(marker: str = "[STOP]") -> list[AgentDef]:
    """Build the default hierarchy; every prompt ends with ``marker``."""
    done = f"When you are finished, end your reply with {marker}."

    coordinator = AgentDef(
        id="coordinator",
        level=AgentLevel.COORDINATOR,
        children=("analysis-manager", "report-manager"),
        system_prompt=f"""You are the top-level coordinator of a technical-debt analysis system.

Your responsibilities:
1. Understand the user's analysis request
2. Delegate the analysis to the analysis manager
3. Once analysis results are in, delegate report writing to the report manager
4. Present the final report to the user

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_coordinator",
            description="Internal delegation tool of the top-level coordinator",
            parameters=(_task_param("The delegated task"), _options_param()),
            input_key="task",
        ),
    )

    analysis_manager = AgentDef(
        id="analysis-manager",
        level=AgentLevel.MANAGER,
        parent_id="coordinator",
        children=("scanner", "analyzer", "assessor"),
        system_prompt=f"""You are the code analysis manager and run the whole technical-debt analysis.

Your responsibilities:
1. Have the scanner find the target projects
2. Have the analyzer identify technical debt in each project
3. Have the assessor rank the findings by severity
4. Summarise all results for the coordinator

Workflow:
1. Delegate to the scanner to scan the directory and find projects
2. Delegate to the analyzer once per project
3. Delegate to the assessor with all findings
4. Return the combined result

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_analysis_manager",
            description="Delegate to the analysis manager, which runs project scanning, code analysis and severity assessment",
            parameters=(_task_param("Description of the analysis task"), _options_param()),
            input_key="task",
        ),
    )

    report_manager = AgentDef(
        id="report-manager",
        level=AgentLevel.MANAGER,
        parent_id="coordinator",
        children=("reporter",),
        system_prompt=f"""You are the report manager and turn analysis results into a well-structured report.

Your responsibilities:
1. Take the combined findings from the analysis manager
2. Delegate to the reporter to produce a structured Markdown report
3. Optionally tidy up and format the result

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_report_manager",
            description="Delegate to the report manager, which produces the technical-debt report",
            parameters=(_task_param("Description of the report task"), _options_param()),
            input_key="task",
        ),
    )

    scanner = AgentDef(
        id="scanner",
        level=AgentLevel.WORKER,
        parent_id="analysis-manager",
        tools=(SHELL_TOOL,),
        system_prompt=f"""You are a file scanning specialist. You search a directory and identify the target projects in it.

You may only use:
- run_safe_shell: run a safe shell command (ls, find, grep...)

Notes:
- Read-only work, never delete anything
- Return a clear list of projects

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_scanner",
            description="Delegate to the file scanning specialist to scan a directory and identify projects",
            parameters=(
                ToolParameter(name="directory", param_type="string", description="Directory to scan"),
                ToolParameter(
                    name="filter",
                    param_type="string",
                    description="Filter, e.g. a file name the project must contain",
                    required=False,
                ),
            ),
            input_key="directory",
        ),
    )

    analyzer = AgentDef(
        id="analyzer",
        level=AgentLevel.WORKER,
        parent_id="analysis-manager",
        tools=(SHELL_TOOL,),
        system_prompt=f"""You are a code analysis specialist. You analyse technical debt in a single project.

You may only use:
- run_safe_shell: run a safe shell command

Analysis dimensions:
1. Code size (lines, files)
2. Potential problems (outdated dependencies, hard-coded values, missing comments)
3. Code structure (directory depth, module layout)

Classify every finding as high, medium or low severity.

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_analyzer",
            description="Delegate to the code analysis specialist to analyse one project's technical debt",
            parameters=(
                ToolParameter(name="project", param_type="string", description="Project path"),
                ToolParameter(
                    name="focus",
                    param_type="string",
                    description="Analysis focus (tech-debt, security, quality)",
                    required=False,
                ),
            ),
            input_key="project",
        ),
    )

    assessor = AgentDef(
        id="assessor",
        level=AgentLevel.WORKER,
        parent_id="analysis-manager",
        system_prompt=f"""You are a severity assessment specialist. You rank the technical debt of several projects.

Criteria:
- More high-severity findings means higher severity
- The same finding weighs more in a larger code base
- Long-standing debt weighs more

Output:
1. Overall ranking
2. Severity rating per project
3. Summary of key findings

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_assessor",
            description="Delegate to the severity assessment specialist to rank technical debt",
            parameters=(
                ToolParameter(name="projects", param_type="string", description="Project analysis results as JSON"),
                ToolParameter(
                    name="sort_by",
                    param_type="string",
                    description="Sort criterion (severity, count, ratio)",
                    required=False,
                ),
            ),
            input_key="projects",
        ),
    )

    reporter = AgentDef(
        id="reporter",
        level=AgentLevel.WORKER,
        parent_id="report-manager",
        system_prompt=f"""You are a report writing specialist. You turn analysis data into a structured Markdown report.

Report structure:
1. Title and executive summary
2. Findings ordered by severity
3. Details and a concrete fix for each finding
4. Overall rating and suggested priorities

Use Markdown tables where they help.

{done}""",
        delegate=DelegateSchema(
            name="delegate_to_reporter",
            description="Delegate to the report writing specialist to produce a Markdown technical-debt report",
            parameters=(
                ToolParameter(name="title", param_type="string", description="Report title"),
                ToolParameter(name="content", param_type="string", description="The findings to report on"),
                ToolParameter(
                    name="format",
                    param_type="string",
                    description="Output format (markdown, json)",
                    required=False,
                ),
            ),
            input_key="content",
        ),
    )

    return [coordinator, analysis_manager, report_manager, scanner, analyzer, assessor, reporter]


def build_default_registry(marker: str = "[STOP]") -> AgentRegistry:
    return AgentRegistry(default_agents(marker))
