from __future__ import annotations


class SkillError(Exception):
    """Base class for failures raised while resolving or running a skill."""


class SkillNotFoundError(SkillError):
    def __init__(self, skill_id: str):
        super().__init__(f'Skill "{skill_id}" is not available right now')
        self.skill_id = skill_id


class SkillNotExecutableError(SkillError):
    def __init__(self, skill_id: str):
        super().__init__(f'Skill "{skill_id}" is instruction-only and cannot be executed directly')
        self.skill_id = skill_id


class SkillInputError(SkillError, ValueError):
    """Raised when raw tool input does not satisfy the skill's input schema."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors
