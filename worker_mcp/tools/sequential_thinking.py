from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from mcp import types
from pydantic import BaseModel

from ..config import Settings
from . import ToolRegistry, error_result, text_result
from .schema import Param, boolean, integer, string

DESCRIPTION = """
A detailed tool for dynamic and reflective problem-solving through thoughts.
This tool helps analyze problems through a flexible thinking process that can adapt and evolve.
Each thought can build on, question, or revise previous insights as understanding deepens.

When to use this tool:
- Breaking down complex problems into steps
- Planning and design with room for revision
- Analysis that might need course correction
- Problems where the full scope might not be clear initially
- Tasks that need to maintain context over multiple steps

Key features:
- You can adjust totalThoughts up or down as you progress
- You can question or revise previous thoughts
- You can add more thoughts even after reaching what seemed like the end
- Not every thought needs to build linearly - you can branch or backtrack

Parameters explained:
- thought: Your current thinking step
- nextThoughtNeeded: True if you need more thinking, even if at what seemed like the end
- thoughtNumber: Current number in sequence (can go beyond initial total if needed)
- totalThoughts: Current estimate of thoughts needed (can be adjusted up/down)
- isRevision: Whether this thought revises previous thinking
- revisesThought: If isRevision is true, which thought number is being reconsidered
- branchFromThought: If branching, which thought number is the branching point
- branchId: Identifier for the current branch (if any)
- needsMoreThoughts: If reaching end but realizing more thoughts needed

Only set nextThoughtNeeded to false when truly done and a satisfactory answer is reached.
""".strip()


class ThoughtData(BaseModel):
    thought: str
    thoughtNumber: int
    totalThoughts: int
    nextThoughtNeeded: bool
    isRevision: Optional[bool] = None
    revisesThought: Optional[int] = None
    branchFromThought: Optional[int] = None
    branchId: Optional[str] = None
    needsMoreThoughts: Optional[bool] = None


def _validate_thought(data: Dict[str, Any]) -> ThoughtData:
    thought = data.get("thought")
    if not thought or not isinstance(thought, str):
        raise ValueError("Invalid thought: must be a string")
    for key in ("thoughtNumber", "totalThoughts"):
        value = data.get(key)
        if not value or isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Invalid {key}: must be a number")
    if not isinstance(data.get("nextThoughtNeeded"), bool):
        raise ValueError("Invalid nextThoughtNeeded: must be a boolean")
    return ThoughtData.model_validate(data)


class SequentialThinkingTool:
    """
    Scratchpad for multi-step, revisable and branching reasoning.

    History and branches live on the instance, so they last as long as the
    registry entry that owns the tool.
    """

    name = "sequentialthinking"
    description = DESCRIPTION

    def __init__(self) -> None:
        self.schema: Dict[str, Param] = {
            "thought": string("Your current thinking step"),
            "nextThoughtNeeded": boolean("Whether another thought step is needed"),
            "thoughtNumber": integer("Current thought number", minimum=1),
            "totalThoughts": integer("Estimated total thoughts needed", minimum=1),
            "isRevision": boolean("Whether this revises previous thinking", optional=True),
            "revisesThought": integer("Which thought is being reconsidered", minimum=1, optional=True),
            "branchFromThought": integer("Branching point thought number", minimum=1, optional=True),
            "branchId": string("Branch identifier", optional=True),
            "needsMoreThoughts": boolean("If more thoughts are needed", optional=True),
        }
        self.thought_history: List[ThoughtData] = []
        self.branches: Dict[str, List[ThoughtData]] = {}

    async def execute(self, arguments: Dict[str, Any]) -> types.CallToolResult:
        try:
            thought = _validate_thought(arguments)
        except ValueError as e:
            return error_result(json.dumps({"error": str(e), "status": "failed"}, indent=2))

        if thought.thoughtNumber > thought.totalThoughts:
            thought.totalThoughts = thought.thoughtNumber

        self.thought_history.append(thought)

        if thought.branchFromThought and thought.branchId:
            self.branches.setdefault(thought.branchId, []).append(thought)

        if thought.nextThoughtNeeded:
            message = f"Next thought is needed. Please provide thought number {thought.thoughtNumber + 1}."
        else:
            message = "No further thoughts are needed. The process is complete."

        return text_result(
            json.dumps(
                {
                    "thoughtNumber": thought.thoughtNumber,
                    "totalThoughts": thought.totalThoughts,
                    "nextThoughtNeeded": thought.nextThoughtNeeded,
                    "branches": list(self.branches.keys()),
                    "thoughtHistoryLength": len(self.thought_history),
                    "message": message,
                },
                indent=2,
            )
        )


def register_tools(registry: ToolRegistry, settings: Settings) -> None:
    registry.register(SequentialThinkingTool())
