"""Structured-output schemas for text generation calls."""

from pydantic import BaseModel, Field


class ScriptAndPrompts(BaseModel):
    """Job scripting output: spoken script plus one visual prompt per scene."""

    script: str = Field(min_length=1)
    visual_prompts: list[str] = Field(min_length=1)


class RewrittenScript(BaseModel):
    """First pass over a reference transcript."""

    text: str = Field(min_length=1)
    characters: int = 0


class ScriptStructure(BaseModel):
    """Second pass: packaging for the rewritten script."""

    title: str
    description: str = ""
    thumb_text: str = ""
    tags: list[str] = Field(default_factory=list)


class ScenePrompts(BaseModel):
    """Visual prompts for a storyboard built from an existing script."""

    visual_prompts: list[str] = Field(min_length=1)
