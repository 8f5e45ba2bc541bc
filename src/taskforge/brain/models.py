"""Data models for the notebook knowledge base."""

from pydantic import BaseModel, Field


class Notebook(BaseModel):
    """A markdown notebook registered in ``brain.yaml``."""

    name: str
    kind: str = "reference"  # "project", "history", "error", "reference"
    file: str  # relative to the home directory unless absolute
    description: str = ""


class NotebookRegistry(BaseModel):
    """Parsed ``brain.yaml``."""

    notebooks: list[Notebook] = Field(default_factory=list)

    def get(self, name: str) -> Notebook | None:
        """Look up a notebook by name."""
        for notebook in self.notebooks:
            if notebook.name == name:
                return notebook
        return None

    @property
    def names(self) -> list[str]:
        """Registered notebook names in registry order."""
        return [notebook.name for notebook in self.notebooks]


class BrainResult(BaseModel):
    """Excerpt of one notebook for one query."""

    notebook: str
    query: str
    excerpt: str


class BrainQueryResult(BaseModel):
    """Fan-in of a query across the routed notebooks."""

    query: str
    notebooks: list[str] = Field(default_factory=list)
    results: list[BrainResult] = Field(default_factory=list)


class TaskSummary(BaseModel):
    """Compressed record of one finished task, stored in history notebooks."""

    task: str
    command: str
    model: str
    backend: str
    project: str
    department: str
    outcome: str
    decisions: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    escalated: bool = False
    success: bool = True
    prompt_tokens: int = 0
    completion_tokens: int = 0
    estimated_cost: float = 0.0
