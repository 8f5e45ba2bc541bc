"""Seed contents for a fresh taskforge home directory."""

DEFAULT_MODELS_YAML = """\
models:
  claude-code:
    provider: anthropic
    access: cli
    context_window: 200000
    strengths: [agentic_code_editing, architecture_reasoning, debugging_complex, safety_critical]
    weaknesses: [cost_per_token, bulk_reading]
    cost: {input_per_1m: 3.0, output_per_1m: 15.0}
    speed: medium
    best_for:
      - refactor multi-file codebase
      - debug production issue
      - design system architecture
      - write infrastructure as code

  claude-3.5-haiku:
    provider: anthropic
    access: cli
    context_window: 200000
    strengths: [speed, cost_efficiency]
    weaknesses: [complex_reasoning]
    cost: {input_per_1m: 0.8, output_per_1m: 4.0}
    speed: fast
    best_for:
      - quick code question

  gemini-2.5-pro:
    provider: google
    access: cli
    context_window: 1048576
    strengths: [deep_reasoning, long_context_analysis, research_synthesis, code_generation]
    weaknesses: [agentic_file_editing]
    cost: {input_per_1m: 1.25, output_per_1m: 10.0}
    speed: medium
    best_for:
      - research and compare technologies
      - analyze large codebase
      - synthesize multiple documents

  gemini-2.5-flash:
    provider: google
    access: cli
    context_window: 1048576
    strengths: [speed, cost_efficiency, summarization, classification]
    weaknesses: [complex_reasoning, precision_tasks]
    cost: {input_per_1m: 0.15, output_per_1m: 0.6}
    speed: fast
    best_for:
      - quick classification
      - summarize document
      - triage issues

  gemini-2.0-pro:
    provider: google
    access: cli
    context_window: 2097152
    strengths: [deep_reasoning, long_context_analysis]
    weaknesses: [agentic_file_editing]
    cost: {input_per_1m: 1.25, output_per_1m: 10.0}
    speed: medium
    best_for:
      - research and compare technologies

  gemini-2.0-flash:
    provider: google
    access: cli
    context_window: 1048576
    strengths: [speed, cost_efficiency]
    weaknesses: [complex_reasoning]
    cost: {input_per_1m: 0.1, output_per_1m: 0.4}
    speed: fast
    best_for:
      - summarize document

  ollama-qwen2.5-coder:
    provider: local
    access: http
    context_window: 32768
    strengths: [zero_cost, privacy, speed, simple_code, commit_messages]
    weaknesses: [complex_reasoning, long_context, multi_file]
    cost: {input_per_1m: 0.0, output_per_1m: 0.0}
    speed: fastest
    best_for:
      - generate commit message
      - simple code snippet
      - quick factual question

  ollama-deepseek-r1:
    provider: local
    access: http
    context_window: 65536
    strengths: [zero_cost, reasoning, code_analysis]
    weaknesses: [speed, very_complex_tasks]
    cost: {input_per_1m: 0.0, output_per_1m: 0.0}
    speed: medium
    best_for:
      - debug logic error locally
      - explain technical concept

  ollama-llama-3.3-70b:
    provider: local
    access: http
    context_window: 131072
    strengths: [zero_cost, privacy, general_knowledge]
    weaknesses: [speed]
    cost: {input_per_1m: 0.0, output_per_1m: 0.0}
    speed: slow
    best_for:
      - general question offline

  gpt-4o-mini:
    provider: openai
    access: http
    context_window: 128000
    strengths: [speed, cost_efficiency]
    weaknesses: [complex_reasoning]
    cost: {input_per_1m: 0.15, output_per_1m: 0.6}
    speed: fast
    best_for:
      - quick factual question

  gpt-4.5:
    provider: openai
    access: http
    context_window: 128000
    strengths: [writing, general_knowledge]
    weaknesses: [cost_per_token]
    cost: {input_per_1m: 75.0, output_per_1m: 150.0}
    speed: slow
    best_for:
      - nuanced writing

  o3-mini:
    provider: openai
    access: http
    context_window: 200000
    strengths: [reasoning, math, cost_efficiency]
    weaknesses: [long_context]
    cost: {input_per_1m: 1.1, output_per_1m: 4.4}
    speed: medium
    best_for:
      - analyze algorithm complexity

  o3:
    provider: openai
    access: http
    context_window: 200000
    strengths: [deep_reasoning, math]
    weaknesses: [cost_per_token, speed]
    cost: {input_per_1m: 10.0, output_per_1m: 40.0}
    speed: slow
    best_for:
      - hard reasoning problem

  codex-cli:
    provider: openai
    access: cli
    context_window: 200000
    strengths: [fast_scaffolding, boilerplate, prototyping]
    weaknesses: [deep_reasoning]
    cost: {input_per_1m: 2.5, output_per_1m: 10.0}
    speed: fast
    best_for:
      - scaffold new project
      - generate boilerplate

  jules-cli:
    provider: google
    access: cli
    context_window: null
    strengths: [async_execution, background_tasks, github_integration]
    weaknesses: [interactive, speed]
    cost: {input_per_1m: null, output_per_1m: null}
    speed: slow
    best_for:
      - fix this GitHub issue in the background

routing_principles:
  - Always try local (Ollama) first for small tasks that don't need frontier reasoning
  - Use Gemini Flash for classification and triage
  - Reserve Claude Code for tasks where precision has financial or safety consequences
  - Jules is for async only
"""

DEFAULT_BRAIN_YAML = """\
notebooks:
  - name: models
    kind: reference
    file: notebooks/models.md
    description: Model capability registry notes
  - name: project-taskforge
    kind: project
    file: notebooks/project-taskforge.md
    description: taskforge project knowledge
  - name: history-engineering
    kind: history
    file: notebooks/history-engineering.md
    description: Engineering task summaries
  - name: history-research
    kind: history
    file: notebooks/history-research.md
    description: Research task summaries
  - name: history-infrastructure
    kind: history
    file: notebooks/history-infrastructure.md
    description: Infrastructure task summaries
  - name: history-operations
    kind: history
    file: notebooks/history-operations.md
    description: Operations task summaries
  - name: errors
    kind: error
    file: notebooks/errors.md
    description: Repeated failures and fixes
  - name: reference
    kind: reference
    file: notebooks/reference.md
    description: Reference snippets and external notes
"""

DEFAULT_INTENT = """\
# Intent.md - taskforge System Identity

## Mission
Build and maintain high-quality software systems with maximum efficiency
and minimum waste. Every token spent should produce measurable value.

## Vision
A personal AI development environment that compounds knowledge over time,
making each interaction smarter than the last.

## Values
- **Precision over volume**: A 200-token targeted prompt beats a 10,000-token generic one
- **Local first**: Never send to the cloud what can be handled on the machine
- **Transparency**: Every cost visible, every decision traceable
- **Composability**: Small tools, clear interfaces, replaceable parts
- **Earned complexity**: Add abstraction only when simplicity fails

## Principles
- Ship working code, not perfect architecture
- Measure everything, optimize what matters
- Human checkpoints before destructive actions
- Fail fast, fail cheap (try Ollama first, escalate if needed)
- Context is king - the right 500 tokens beat the wrong 50,000

## Owner Context
- Name: Jake
- Role: AI Engineer
- Technical depth: Infrastructure, DevOps, AI/ML, full-stack
- Projects: taskforge, homelab
- Communication style: Direct, technical, no fluff
- Decision framework: Pragmatic - "does this actually work?"

## Departments (Sub-Agent Architecture)

### Engineering
- **Focus**: Code quality, architecture, debugging, refactoring
- **Default models**: Claude Code (complex), Ollama (simple)
- **Review standard**: Two-stage (spec compliance -> quality)
- **Methodology**: Design -> Plan -> Implement -> Test -> Review

### Research
- **Focus**: Technology evaluation, comparison, synthesis
- **Default models**: Gemini Pro (deep), Gemini Flash (quick)
- **Output standard**: Structured findings with sources
- **Methodology**: Define scope -> Multi-source gather -> Synthesize -> Recommend

### Infrastructure
- **Focus**: Homelab, cloud, networking, deployment, IaC
- **Default models**: Claude Code (IaC), Gemini Pro (troubleshooting)
- **Safety standard**: Human checkpoint before any destructive action
- **Methodology**: Diagnose -> Plan -> Execute -> Verify -> Document

### Operations
- **Focus**: Git workflow, commit messages, PR management, CI/CD
- **Default models**: Ollama (commits)
- **Automation level**: Full auto for commits, human approval for merges
- **Methodology**: Detect change -> Generate -> Validate -> Apply
"""

NOTEBOOK_SEEDS = {
    "models.md": "# Models\n\nModel observations land here.\n",
    "project-taskforge.md": "# Project taskforge\n\nProject-specific context lands here.\n",
    "history-engineering.md": "# History Engineering\n\nTask summaries land here.\n",
    "history-research.md": "# History Research\n\nTask summaries land here.\n",
    "history-infrastructure.md": "# History Infrastructure\n\nTask summaries land here.\n",
    "history-operations.md": "# History Operations\n\nTask summaries land here.\n",
    "errors.md": "# Errors\n\nKnown errors and fixes land here.\n",
    "reference.md": "# Reference\n\nReference notes land here.\n",
}
