from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Option(BaseModel):
    """Answer choice with the score it contributes."""

    text: str
    score: int
    index: int = Field(default=-1, description="Position within the owning question.")

    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text, "score": self.score}


class Question(BaseModel):
    """Personality question tied to a trait."""

    trait: str
    prompt: str = Field(alias="question")
    options: list[Option] = Field(min_length=1)

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @field_validator("options", mode="before")
    @classmethod
    def _number_options(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        numbered: list[Any] = []
        for position, item in enumerate(value):
            if isinstance(item, Option):
                numbered.append(item.model_copy(update={"index": position}))
            elif isinstance(item, dict):
                numbered.append({**item, "index": position})
            else:
                numbered.append(item)
        return numbered

    def option_at(self, index: int) -> Option | None:
        if 0 <= index < len(self.options):
            return self.options[index]
        return None

    def owns(self, option: Option) -> bool:
        """Return True when ``option`` is one of this question's options."""
        candidate = self.option_at(option.index)
        return candidate is not None and candidate == option

    def to_payload(self) -> dict[str, Any]:
        return {
            "trait": self.trait,
            "question": self.prompt,
            "options": [option.to_payload() for option in self.options],
        }
